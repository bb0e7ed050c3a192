"""Gamification façade.

Every public method runs one unit of work in its own session, commits it,
and returns ``Ok`` or ``Err``. Engine errors never escape to the caller.
Optimistic-lock conflicts are retried with a fresh session.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from techrec.config import Settings, get_settings
from techrec.gamification import (
    activity_service,
    badge_service,
    leaderboard_service,
    points_service,
    streak_service,
    xp_service,
)
from techrec.gamification.cache import ProfileCache
from techrec.gamification.enums import XP_REWARDS, GamificationEventType, XPSource, parse_enum
from techrec.gamification.errors import (
    ConcurrencyConflict,
    GamificationError,
    NotFound,
    StorageUnavailable,
)
from techrec.gamification.level_curve import level_title, next_milestone
from techrec.gamification.period_utils import as_utc, utcnow
from techrec.gamification.results import Err, Ok, Result

logger = structlog.get_logger()

T = TypeVar("T")

STREAK_EVENTS = frozenset({
    GamificationEventType.DAILY_LOGIN,
    GamificationEventType.CV_ANALYSIS_COMPLETED,
    GamificationEventType.APPLICATION_SUBMITTED,
    GamificationEventType.PROFILE_SECTION_UPDATED,
})

# event -> (XP source, payload key holding the source id, description)
EVENT_XP: dict[GamificationEventType, tuple[XPSource, str | None, Callable[[dict], str]]] = {
    GamificationEventType.CV_UPLOADED: (XPSource.CV_UPLOAD, "cvId", lambda d: "Uploaded new CV"),
    GamificationEventType.CV_ANALYSIS_COMPLETED: (
        XPSource.CV_ANALYSIS, "analysisId", lambda d: "Completed CV analysis",
    ),
    GamificationEventType.CV_IMPROVEMENT_APPLIED: (
        XPSource.CV_IMPROVEMENT, "suggestionId", lambda d: "Applied AI improvement suggestion",
    ),
    GamificationEventType.APPLICATION_SUBMITTED: (
        XPSource.APPLICATION_SUBMIT, "applicationId",
        lambda d: f"Applied to {d.get('roleTitle') or 'position'}",
    ),
    GamificationEventType.PROFILE_SECTION_UPDATED: (
        XPSource.PROFILE_UPDATE, "sectionType",
        lambda d: f"Updated {d.get('sectionType') or 'profile'} section",
    ),
    GamificationEventType.SKILL_ADDED: (
        XPSource.SKILL_ADD, "skillId", lambda d: f"Added skill: {d.get('skillName') or 'skill'}",
    ),
    GamificationEventType.DAILY_LOGIN: (XPSource.DAILY_LOGIN, None, lambda d: "Daily login bonus"),
}


@dataclass
class XPAwardEvent:
    user_id: int
    amount: int
    source: XPSource | str
    source_id: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class GamificationEventManager:
    """Entry point used by the HTTP layer and by in-process callers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: object = None,
        cache: ProfileCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.redis = redis
        self.cache = cache
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        user_id: int | None = None,
        invalidate: bool = True,
    ) -> Result[T]:
        attempts = max(1, self.settings.conflict_retry_attempts)
        error: GamificationError | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with self.session_factory() as db:
                    value = await work(db)
                    await db.commit()
            except GamificationError as exc:
                error = exc
            except (StaleDataError, IntegrityError) as exc:
                # Stale version or a lost get-or-create race on the state row.
                error = ConcurrencyConflict(f"Concurrent update during {operation}")
                error.__cause__ = exc
            except (OperationalError, InterfaceError) as exc:
                logger.error("storage_unavailable", operation=operation, error=str(exc))
                return Err(StorageUnavailable("Database unavailable"))
            except DBAPIError as exc:
                # Out-of-range values and other statement failures the driver rejects.
                logger.error(
                    "storage_write_rejected",
                    operation=operation,
                    user_id=user_id,
                    error=str(exc.orig),
                )
                return Err(StorageUnavailable("Database rejected the write"))
            else:
                if invalidate and user_id is not None:
                    await self._invalidate(user_id)
                return Ok(value)

            if not error.retryable or attempt == attempts:
                break
            logger.warning(
                "gamification_conflict_retry",
                operation=operation,
                user_id=user_id,
                attempt=attempt,
            )

        assert error is not None
        logger.info(
            "gamification_operation_failed",
            operation=operation,
            user_id=user_id,
            code=error.code,
            error=error.message,
        )
        return Err(error)

    async def _invalidate(self, user_id: int) -> None:
        if self.cache is not None:
            await self.cache.invalidate_profile(user_id)

    # ------------------------------------------------------------------
    # XP
    # ------------------------------------------------------------------

    async def award_xp(self, event: XPAwardEvent) -> Result[dict]:
        """Award XP. State is created on the first award."""

        async def work(db: AsyncSession) -> dict:
            outcome = await xp_service.award_xp(
                db, self.redis, event.user_id,
                amount=event.amount,
                source=event.source,
                source_id=event.source_id,
                description=event.description,
            )
            return {"success": True, **outcome}

        result = await self._run("award_xp", work, user_id=event.user_id)
        if result.is_ok:
            logger.info(
                "xp_awarded",
                user_id=event.user_id,
                xp=result.value["xp_awarded"],
                new_level=result.value["new_level"],
            )
        return result

    async def batch_award_xp(self, events: list[XPAwardEvent]) -> dict:
        """Award sequentially; one failure does not stop the rest."""
        results = []
        successful = 0
        for event in events:
            result = await self.award_xp(event)
            if result.is_ok:
                successful += 1
                results.append(result.value)
            else:
                results.append({"success": False, "xp_awarded": 0, "error": result.message})
        return {"successful": successful, "failed": len(events) - successful, "results": results}

    async def get_xp_history(self, user_id: int, page: int = 1, per_page: int = 20) -> Result[dict]:
        async def work(db: AsyncSession) -> dict:
            return await xp_service.get_xp_history(db, user_id, page, per_page)

        return await self._run("get_xp_history", work, user_id=user_id, invalidate=False)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_user_profile(self, user_id: int, *, use_cache: bool = True) -> Result[dict]:
        """Aggregate XP, points, badges and recent activity for a user."""
        if use_cache and self.cache is not None:
            cached = await self.cache.get_profile(user_id)
            if cached is not None:
                return Ok(cached)

        limit = self.settings.recent_transactions_limit

        async def work(db: AsyncSession) -> dict:
            state = await xp_service.get_state(db, user_id)
            if state is None:
                raise NotFound(f"No gamification profile for user {user_id}")

            balance = await points_service.get_balance(db, user_id)
            badges = await badge_service.evaluate(db, self.redis, user_id)
            # Badge rewards may have moved XP; the state row is current after evaluate.
            return {
                "user_id": user_id,
                "total_xp": state.total_xp,
                "current_level": state.current_level,
                "level_title": level_title(state.current_level),
                "level_progress": state.level_progress,
                "tier": state.tier,
                "next_milestone": next_milestone(state.total_xp),
                "streak": state.streak,
                "longest_streak": state.longest_streak,
                "last_activity_date": (
                    as_utc(state.last_activity_date).isoformat() if state.last_activity_date else None
                ),
                "monthly_points": balance["monthly_points"],
                "points_used": balance["points_used"],
                "points_earned": balance["points_earned"],
                "available_points": balance["available"],
                "points_reset_date": balance["reset_date"],
                "badges": badges,
                "badges_earned": sum(1 for b in badges if b["is_earned"]),
                "recent_transactions": await xp_service.recent_xp_transactions(db, user_id, limit),
                "recent_points_transactions": await points_service.recent_points_transactions(
                    db, user_id, limit,
                ),
            }

        result = await self._run("get_user_profile", work, user_id=user_id, invalidate=False)
        if result.is_ok and self.cache is not None:
            await self.cache.set_profile(user_id, result.value)
        return result

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    async def get_balance(self, user_id: int) -> Result[dict]:
        async def work(db: AsyncSession) -> dict:
            return await points_service.get_balance(db, user_id)

        return await self._run("get_balance", work, user_id=user_id, invalidate=False)

    async def get_points_overview(self, user_id: int) -> Result[dict]:
        """Balance, recent transactions and usage breakdown."""
        limit = self.settings.recent_transactions_limit

        async def work(db: AsyncSession) -> dict:
            balance = await points_service.get_balance(db, user_id)
            recent = await points_service.recent_points_transactions(db, user_id, limit)
            return {
                "balance": balance,
                "recent_transactions": recent,
                "usage": points_service.usage_stats(recent),
            }

        return await self._run("get_points_overview", work, user_id=user_id, invalidate=False)

    async def spend_points(
        self,
        user_id: int,
        amount: int,
        spend_type: str,
        source_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Result[dict]:
        async def work(db: AsyncSession) -> dict:
            return await points_service.spend_points(
                db, user_id, amount, spend_type, source_id=source_id, metadata=metadata,
            )

        return await self._run("spend_points", work, user_id=user_id)

    async def spend_for_action(
        self,
        user_id: int,
        spend_type: str,
        source_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Result[dict]:
        async def work(db: AsyncSession) -> dict:
            return await points_service.spend_for_action(
                db, user_id, spend_type, source_id=source_id, metadata=metadata,
            )

        return await self._run("spend_for_action", work, user_id=user_id)

    async def credit_points(
        self,
        user_id: int,
        amount: int,
        source: str = "ADMIN_AWARD",
        description: str | None = None,
        source_id: str | None = None,
    ) -> Result[dict]:
        async def work(db: AsyncSession) -> dict:
            return await points_service.credit_points(
                db, user_id, amount, source, description=description, source_id=source_id,
            )

        return await self._run("credit_points", work, user_id=user_id)

    async def set_exact_points(
        self, user_id: int, target: int, description: str | None = None
    ) -> Result[dict]:
        async def work(db: AsyncSession) -> dict:
            return await points_service.set_exact_points(db, user_id, target, description)

        return await self._run("set_exact_points", work, user_id=user_id)

    # ------------------------------------------------------------------
    # Platform events
    # ------------------------------------------------------------------

    async def trigger_event(
        self,
        event_type: GamificationEventType | str,
        user_id: int,
        data: dict | None = None,
        *,
        now: datetime | None = None,
    ) -> Result[dict]:
        """Apply a platform event: counters, XP, streak, then badges."""
        data = data or {}

        async def work(db: AsyncSession) -> dict:
            event = parse_enum(GamificationEventType, event_type, "event type")
            at = now or utcnow()
            earned_before = set(await badge_service.get_user_badges(db, user_id))
            await xp_service.get_or_create_state(db, user_id, at)

            await activity_service.record_event(db, user_id, event, data, at)

            xp = None
            source, id_key, describe = EVENT_XP[event]
            source_id = str(data[id_key]) if id_key and data.get(id_key) is not None else None
            if event == GamificationEventType.DAILY_LOGIN:
                source_id = at.date().isoformat()
                if await xp_service.already_awarded(db, user_id, source, source_id):
                    source_id = None
            if event != GamificationEventType.DAILY_LOGIN or source_id is not None:
                xp = await xp_service.award_xp(
                    db, self.redis, user_id,
                    amount=XP_REWARDS[source],
                    source=source,
                    source_id=source_id,
                    description=describe(data),
                    now=at,
                )

            streak = None
            if event in STREAK_EVENTS:
                streak = await streak_service.update_daily_streak(db, self.redis, user_id, at)

            badges = await badge_service.evaluate(db, self.redis, user_id, now=at)
            return {
                "event": event.value,
                "xp": xp,
                "streak": streak,
                "badges_earned": [
                    b["id"] for b in badges if b["is_earned"] and b["id"] not in earned_before
                ],
            }

        return await self._run("trigger_event", work, user_id=user_id)

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    async def get_leaderboard(
        self, limit: int = 10, current_user_id: int | None = None
    ) -> Result[list[dict]]:
        entries = None
        if self.cache is not None:
            entries = await self.cache.get_leaderboard(limit)

        if entries is None:
            async def work(db: AsyncSession) -> list[dict]:
                return await leaderboard_service.get_top_users(db, limit)

            result = await self._run("get_leaderboard", work, invalidate=False)
            if not result.is_ok:
                return result
            entries = result.value
            if self.cache is not None:
                await self.cache.set_leaderboard(limit, entries)

        return Ok(leaderboard_service.mark_current_user(entries, current_user_id))
