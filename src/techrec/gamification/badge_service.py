"""Badge evaluation with idempotent awarding and notification."""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from techrec.db.models import User, UserActivityStats, UserBadge, UserGamification
from techrec.gamification.badge_definitions import (
    BADGE_DEFINITIONS,
    BadgeDefinition,
    requirement_progress,
)
from techrec.gamification.enums import XPSource
from techrec.gamification.errors import NotFound
from techrec.gamification.notify import publish
from techrec.gamification.period_utils import as_utc, utcnow
from techrec.gamification.xp_service import already_awarded, award_xp, get_state

logger = logging.getLogger(__name__)

# Counters copied straight from user_activity_stats.
ACTIVITY_FIELDS = (
    "profile_completeness",
    "contact_info_complete",
    "cv_analyses_completed",
    "best_cv_score",
    "suggestions_accepted",
    "suggestions_generated",
    "applications_submitted",
    "relevant_applications",
    "skills_count",
    "challenges_completed",
    "perfect_challenge_streak",
    "feedback_submitted",
    "beta_participant",
    "new_year_actions",
    "weekend_actions",
)


async def get_signup_rank(db: AsyncSession, user_id: int) -> int | None:
    """1-based position of the user in signup order (ties broken by id)."""
    created = await db.execute(select(User.created_at).where(User.id == user_id))
    created_at = created.scalar_one_or_none()
    if created_at is None:
        return None
    result = await db.execute(
        select(func.count()).select_from(User).where(
            or_(
                User.created_at < created_at,
                and_(User.created_at == created_at, User.id <= user_id),
            )
        )
    )
    return result.scalar() or None


async def collect_stats(
    db: AsyncSession, state: UserGamification, today: date | None = None
) -> dict:
    """Everything badge requirements are evaluated against."""
    today = today or utcnow().date()
    result = await db.execute(
        select(UserActivityStats).where(UserActivityStats.user_id == state.user_id)
    )
    activity = result.scalar_one_or_none()

    stats: dict = {field: 0 for field in ACTIVITY_FIELDS}
    stats["applications_today"] = 0
    if activity is not None:
        for field in ACTIVITY_FIELDS:
            stats[field] = getattr(activity, field)
        if activity.applications_day == today:
            stats["applications_today"] = activity.applications_today

    stats["streak"] = state.streak
    stats["current_level"] = state.current_level
    stats["signup_rank"] = await get_signup_rank(db, state.user_id)
    return stats


async def get_user_badges(db: AsyncSession, user_id: int) -> dict[str, UserBadge]:
    result = await db.execute(select(UserBadge).where(UserBadge.user_id == user_id))
    return {row.badge_id: row for row in result.scalars().all()}


async def insert_user_badge(
    db: AsyncSession, user_id: int, badge_id: str, earned_at: datetime
) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True only if this call created the row."""
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = (
        insert(UserBadge)
        .values(user_id=user_id, badge_id=badge_id, earned_at=earned_at)
        .on_conflict_do_nothing(index_elements=["user_id", "badge_id"])
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def _earned_at(db: AsyncSession, user_id: int, badge_id: str) -> datetime | None:
    result = await db.execute(
        select(UserBadge.earned_at).where(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none()


def _entry(
    badge: BadgeDefinition,
    progress: int,
    earned_at: datetime | None = None,
) -> dict:
    is_earned = earned_at is not None
    if badge.is_hidden and not is_earned:
        progress = 0
    return {
        **badge.to_dict(),
        "is_earned": is_earned,
        "progress": 100 if is_earned else progress,
        "is_in_progress": not is_earned and 0 < progress < 100,
        "earned_at": as_utc(earned_at).isoformat() if earned_at else None,
    }


async def _reward_badge(
    db: AsyncSession, redis: object, user_id: int, badge: BadgeDefinition, now: datetime
) -> None:
    """Grant badge XP and broadcast. Only called when the insert created the row."""
    if badge.xp_reward > 0 and not await already_awarded(db, user_id, XPSource.BADGE_EARNED, badge.id):
        await award_xp(
            db, redis, user_id,
            amount=badge.xp_reward,
            source=XPSource.BADGE_EARNED,
            source_id=badge.id,
            description=f'Earned badge: "{badge.name}"',
            now=now,
        )

    await publish(redis, "pubsub:badge_earned", {
        "user_id": user_id,
        "badge_id": badge.id,
        "badge_name": badge.name,
        "rarity": badge.rarity.value,
        "xp_reward": badge.xp_reward,
    })


async def evaluate(
    db: AsyncSession,
    redis: object,
    user_id: int,
    definitions: list[BadgeDefinition] | None = None,
    *,
    now: datetime | None = None,
) -> list[dict]:
    """Evaluate every badge for a user, awarding any that just reached 100%.

    Returns one entry per definition. The caller owns the transaction.
    """
    definitions = BADGE_DEFINITIONS if definitions is None else definitions
    now = now or utcnow()

    state = await get_state(db, user_id)
    if state is None:
        raise NotFound(f"No gamification state for user {user_id}")

    earned = await get_user_badges(db, user_id)
    stats = await collect_stats(db, state, now.date())

    results: list[dict] = []
    for badge in definitions:
        existing = earned.get(badge.id)
        if existing is not None:
            results.append(_entry(badge, 100, existing.earned_at))
            continue

        progress = requirement_progress(badge.requirement, stats)
        if progress < 100:
            results.append(_entry(badge, progress))
            continue

        if await insert_user_badge(db, user_id, badge.id, now):
            logger.info("Badge %s earned by user %d", badge.id, user_id)
            await _reward_badge(db, redis, user_id, badge, now)
            results.append(_entry(badge, 100, now))
        else:
            # Lost the race to a concurrent evaluation; the row is there.
            results.append(_entry(badge, 100, await _earned_at(db, user_id, badge.id) or now))

    return results
