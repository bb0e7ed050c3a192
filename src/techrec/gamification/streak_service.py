"""Daily activity streak with a soft decrement for a single missed day."""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from techrec.gamification.enums import XPSource
from techrec.gamification.period_utils import as_utc, days_between, utcnow
from techrec.gamification.xp_service import award_xp, get_or_create_state

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (3, 7, 14, 30, 60, 90)
MAX_STREAK_BONUS = 50


def next_streak(current: int, last_activity: date | None, today: date) -> int:
    """Streak after activity on ``today``.

    Same day keeps it, the next day extends it, one missed day costs one,
    anything longer starts over.
    """
    if last_activity is None:
        return 1
    gap = days_between(last_activity, today)
    if gap <= 0:
        return max(current, 1)
    if gap == 1:
        return current + 1
    if gap == 2:
        return max(1, current - 1)
    return 1


def is_streak_milestone(streak: int) -> bool:
    if streak in STREAK_MILESTONES:
        return True
    return streak > STREAK_MILESTONES[-1] and streak % 30 == 0


def streak_bonus(streak: int) -> int:
    """XP for reaching a milestone streak: 5 per two days, capped at 50."""
    return min((streak // 2) * 5, MAX_STREAK_BONUS)


async def update_daily_streak(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> dict:
    """Record activity for today and award a milestone bonus when one is reached."""
    now = now or utcnow()
    state = await get_or_create_state(db, user_id, now)

    previous = state.streak
    last_day = as_utc(state.last_activity_date).date() if state.last_activity_date else None
    today = now.date()
    streak = next_streak(previous, last_day, today)

    state.streak = streak
    state.longest_streak = max(state.longest_streak, streak)
    state.last_activity_date = now
    state.updated_at = now
    await db.flush()

    bonus_xp = 0
    if streak > previous and is_streak_milestone(streak):
        outcome = await award_xp(
            db, redis, user_id,
            amount=streak_bonus(streak),
            source=XPSource.STREAK_BONUS,
            source_id=f"streak-{streak}-{today.isoformat()}",
            description=f"{streak}-day streak milestone bonus",
            now=now,
        )
        bonus_xp = outcome["xp_awarded"]
        logger.info("Streak milestone %d for user %d: +%d XP", streak, user_id, bonus_xp)

    return {
        "streak": streak,
        "longest_streak": state.longest_streak,
        "streak_broken": last_day is not None and days_between(last_day, today) > 2,
        "bonus_awarded": bonus_xp > 0,
        "bonus_xp": bonus_xp,
    }
