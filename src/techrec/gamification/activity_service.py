"""Activity counters that feed badge requirements."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from techrec.db.models import UserActivityStats
from techrec.gamification.enums import GamificationEventType
from techrec.gamification.period_utils import is_new_year_week, is_weekend, utcnow

# Applications scored at or above this count towards the quality badge.
RELEVANT_APPLICATION_SCORE = 80


async def get_or_create_activity(db: AsyncSession, user_id: int) -> UserActivityStats:
    result = await db.execute(
        select(UserActivityStats).where(UserActivityStats.user_id == user_id)
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        activity = UserActivityStats(
            user_id=user_id,
            profile_completeness=0,
            contact_info_complete=False,
            cv_analyses_completed=0,
            best_cv_score=0,
            suggestions_accepted=0,
            suggestions_generated=0,
            applications_submitted=0,
            applications_today=0,
            applications_day=None,
            relevant_applications=0,
            skills_count=0,
            challenges_completed=0,
            perfect_challenge_streak=0,
            feedback_submitted=0,
            beta_participant=False,
            new_year_actions=0,
            weekend_actions=0,
            updated_at=utcnow(),
        )
        db.add(activity)
        await db.flush()
    return activity


def _as_int(value: object, default: int = 0) -> int:
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return default


async def record_event(
    db: AsyncSession,
    user_id: int,
    event: GamificationEventType,
    data: dict,
    now: datetime | None = None,
) -> UserActivityStats:
    """Update counters for a platform event."""
    now = now or utcnow()
    activity = await get_or_create_activity(db, user_id)

    if event == GamificationEventType.CV_ANALYSIS_COMPLETED:
        activity.cv_analyses_completed += 1
        score = _as_int(data.get("score"))
        if score > activity.best_cv_score:
            activity.best_cv_score = min(score, 100)
        activity.suggestions_generated += max(0, _as_int(data.get("suggestionsGenerated")))

    elif event == GamificationEventType.CV_IMPROVEMENT_APPLIED:
        activity.suggestions_accepted += 1

    elif event == GamificationEventType.APPLICATION_SUBMITTED:
        today = now.date()
        if activity.applications_day != today:
            activity.applications_day = today
            activity.applications_today = 0
        activity.applications_today += 1
        activity.applications_submitted += 1
        if _as_int(data.get("relevanceScore")) >= RELEVANT_APPLICATION_SCORE:
            activity.relevant_applications += 1

    elif event == GamificationEventType.SKILL_ADDED:
        activity.skills_count += 1

    elif event == GamificationEventType.PROFILE_SECTION_UPDATED:
        if "profileCompleteness" in data:
            activity.profile_completeness = max(0, min(100, _as_int(data["profileCompleteness"])))
        if "contactInfoComplete" in data:
            activity.contact_info_complete = bool(data["contactInfoComplete"])

    if is_weekend(now):
        activity.weekend_actions += 1
    if is_new_year_week(now):
        activity.new_year_actions += 1

    activity.updated_at = now
    await db.flush()
    return activity
