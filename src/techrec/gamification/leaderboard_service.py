"""XP leaderboard with anonymous display names."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from techrec.db.models import UserGamification
from techrec.gamification.level_curve import level_title

MAX_LEADERBOARD_SIZE = 100


async def get_top_users(db: AsyncSession, limit: int = 10) -> list[dict]:
    """Top users by total XP. Ties go to the earlier account."""
    limit = max(1, min(limit, MAX_LEADERBOARD_SIZE))
    result = await db.execute(
        select(UserGamification)
        .where(UserGamification.total_xp > 0)
        .order_by(UserGamification.total_xp.desc(), UserGamification.user_id.asc())
        .limit(limit)
    )
    return [
        {
            "rank": rank,
            "user_id": gam.user_id,
            "display_name": f"Developer #{rank}",
            "total_xp": gam.total_xp,
            "level": gam.current_level,
            "title": level_title(gam.current_level),
            "tier": gam.tier,
        }
        for rank, gam in enumerate(result.scalars().all(), start=1)
    ]


def mark_current_user(entries: list[dict], current_user_id: int | None) -> list[dict]:
    """Flag the caller's row and strip user ids from the public view."""
    marked = []
    for entry in entries:
        public = {k: v for k, v in entry.items() if k != "user_id"}
        public["is_current_user"] = current_user_id is not None and entry["user_id"] == current_user_id
        marked.append(public)
    return marked
