"""Event manager: unit of work, results, retries, events and read models."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import DataError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from techrec.db.models import UserActivityStats, XPTransaction
from techrec.gamification import xp_service
from techrec.gamification.errors import (
    ConcurrencyConflict,
    InvalidArgument,
    NotFound,
    StorageUnavailable,
)
from techrec.gamification.event_manager import GamificationEventManager, XPAwardEvent
from techrec.gamification.results import Err, Ok

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestAwardXP:
    @pytest.mark.asyncio
    async def test_ok_result(self, manager, make_user):
        user = await make_user()
        result = await manager.award_xp(XPAwardEvent(user.id, 100, "CV_UPLOAD"))

        assert isinstance(result, Ok)
        assert result.value["success"] is True
        assert result.value["total_xp"] == 100
        assert result.value["new_level"] == 2

    @pytest.mark.asyncio
    async def test_invalid_amount_is_err(self, manager, make_user):
        user = await make_user()
        result = await manager.award_xp(XPAwardEvent(user.id, 0, "CV_UPLOAD"))

        assert isinstance(result, Err)
        assert isinstance(result.error, InvalidArgument)

    @pytest.mark.asyncio
    async def test_unknown_user_is_err(self, manager):
        result = await manager.award_xp(XPAwardEvent(4242, 10, "CV_UPLOAD"))
        assert isinstance(result.error, NotFound)

    @pytest.mark.asyncio
    async def test_batch_continues_after_failure(self, manager, make_user):
        user = await make_user()
        outcome = await manager.batch_award_xp([
            XPAwardEvent(user.id, 10, "SKILL_ADD"),
            XPAwardEvent(user.id, -1, "SKILL_ADD"),
            XPAwardEvent(user.id, 15, "PROFILE_UPDATE"),
        ])

        assert outcome["successful"] == 2
        assert outcome["failed"] == 1
        assert outcome["results"][1]["success"] is False
        assert outcome["results"][2]["total_xp"] == 25


class TestRetries:
    @pytest.mark.asyncio
    async def test_stale_write_retried(self, manager, make_user, monkeypatch):
        user = await make_user()
        real_award = xp_service.award_xp
        calls = {"n": 0}

        async def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("version mismatch")
            return await real_award(*args, **kwargs)

        monkeypatch.setattr(xp_service, "award_xp", flaky)
        result = await manager.award_xp(XPAwardEvent(user.id, 30, "CV_UPLOAD"))

        assert result.is_ok
        assert calls["n"] == 2
        assert result.value["total_xp"] == 30

    @pytest.mark.asyncio
    async def test_conflict_gives_up_after_max_attempts(self, manager, make_user, monkeypatch):
        user = await make_user()
        calls = {"n": 0}

        async def always_conflicts(*args, **kwargs):
            calls["n"] += 1
            raise ConcurrencyConflict("busy")

        monkeypatch.setattr(xp_service, "award_xp", always_conflicts)
        result = await manager.award_xp(XPAwardEvent(user.id, 30, "CV_UPLOAD"))

        assert isinstance(result.error, ConcurrencyConflict)
        assert calls["n"] == manager.settings.conflict_retry_attempts

    @pytest.mark.asyncio
    async def test_storage_failure_not_retried(self, manager, make_user, monkeypatch):
        user = await make_user()
        calls = {"n": 0}

        async def db_down(*args, **kwargs):
            calls["n"] += 1
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(xp_service, "award_xp", db_down)
        result = await manager.award_xp(XPAwardEvent(user.id, 30, "CV_UPLOAD"))

        assert isinstance(result.error, StorageUnavailable)
        assert calls["n"] == 1

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self, manager, make_user, monkeypatch):
        user = await make_user()
        calls = {"n": 0}

        async def invalid(*args, **kwargs):
            calls["n"] += 1
            raise InvalidArgument("nope")

        monkeypatch.setattr(xp_service, "award_xp", invalid)
        await manager.award_xp(XPAwardEvent(user.id, 30, "CV_UPLOAD"))
        assert calls["n"] == 1

    @pytest.mark.asyncio
    async def test_rejected_statement_maps_to_storage_error(self, manager, make_user, monkeypatch):
        user = await make_user()
        calls = {"n": 0}

        async def out_of_range(*args, **kwargs):
            calls["n"] += 1
            raise DataError("UPDATE user_gamification", {}, Exception("integer out of range"))

        monkeypatch.setattr(xp_service, "award_xp", out_of_range)
        result = await manager.award_xp(XPAwardEvent(user.id, 30, "CV_UPLOAD"))

        assert isinstance(result.error, StorageUnavailable)
        assert calls["n"] == 1

    @pytest.mark.asyncio
    async def test_oversized_award_rejected_before_write(self, manager, make_user, db_session):
        user = await make_user()
        result = await manager.award_xp(XPAwardEvent(user.id, 2**31, "ADMIN_GRANT"))

        assert isinstance(result.error, InvalidArgument)
        assert await xp_service.get_state(db_session, user.id) is None


class TestConcurrentWrites:
    @pytest.mark.asyncio
    async def test_parallel_awards_all_land(self, session_factory, settings, make_user):
        user = await make_user()
        manager = GamificationEventManager(
            session_factory,
            settings=settings.model_copy(update={"conflict_retry_attempts": 10}),
        )
        first = await manager.award_xp(XPAwardEvent(user.id, 10, "PROFILE_UPDATE"))
        assert first.is_ok

        results = await asyncio.gather(*(
            manager.award_xp(XPAwardEvent(user.id, 10, "PROFILE_UPDATE")) for _ in range(5)
        ))

        assert all(result.is_ok for result in results)
        async with session_factory() as db:
            state = await xp_service.get_state(db, user.id)
            ledger = await db.execute(
                select(func.sum(XPTransaction.amount)).where(XPTransaction.user_id == user.id)
            )
        assert state.total_xp == 60
        assert ledger.scalar() == 60


class TestProfile:
    @pytest.mark.asyncio
    async def test_missing_profile(self, manager, make_user):
        user = await make_user()
        result = await manager.get_user_profile(user.id)
        assert isinstance(result.error, NotFound)

    @pytest.mark.asyncio
    async def test_aggregates_state(self, manager, make_user):
        user = await make_user()
        await manager.award_xp(XPAwardEvent(user.id, 100, "CV_UPLOAD"))

        profile = (await manager.get_user_profile(user.id)).value

        # The signup rank badge is awarded on first evaluation.
        assert profile["total_xp"] == 850
        assert profile["current_level"] == 5
        assert profile["level_title"] == "Expert"
        assert 0 <= profile["level_progress"] < 1
        assert profile["badges_earned"] == 1
        assert profile["available_points"] == 50
        assert len(profile["badges"]) == 26
        assert [tx["source"] for tx in profile["recent_transactions"]] == ["BADGE_EARNED", "CV_UPLOAD"]
        assert profile["tier"] == "GOLD"
        assert profile["next_milestone"]["type"] == "tier"
        assert profile["next_milestone"]["target"] == 1000

    @pytest.mark.asyncio
    async def test_profile_cached_and_invalidated(self, session_factory, settings, make_user):
        user = await make_user()
        cache = AsyncMock()
        cache.get_profile.return_value = None
        manager = GamificationEventManager(session_factory, cache=cache, settings=settings)

        await manager.award_xp(XPAwardEvent(user.id, 10, "CV_UPLOAD"))
        cache.invalidate_profile.assert_awaited_once_with(user.id)

        await manager.get_user_profile(user.id)
        cache.set_profile.assert_awaited_once()
        assert cache.set_profile.await_args.args[0] == user.id

    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self, session_factory, settings):
        cache = AsyncMock()
        cache.get_profile.return_value = {"user_id": 1, "total_xp": 5}
        manager = GamificationEventManager(session_factory, cache=cache, settings=settings)

        result = await manager.get_user_profile(1)
        assert result.value == {"user_id": 1, "total_xp": 5}

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(self, session_factory, settings, make_user):
        user = await make_user()
        cache = AsyncMock()
        manager = GamificationEventManager(session_factory, cache=cache, settings=settings)

        await manager.spend_points(user.id, 1000, "JOB_QUERY")
        cache.invalidate_profile.assert_not_awaited()


class TestPoints:
    @pytest.mark.asyncio
    async def test_overview(self, manager, make_user):
        user = await make_user()
        await manager.spend_for_action(user.id, "PREMIUM_ANALYSIS")
        await manager.credit_points(user.id, 20)

        overview = (await manager.get_points_overview(user.id)).value

        assert overview["balance"]["available"] == 55
        assert overview["usage"]["spent_by_type"] == {"PREMIUM_ANALYSIS": 15}
        assert overview["usage"]["earned_by_source"] == {"ADMIN_AWARD": 20}
        assert len(overview["recent_transactions"]) == 2

    @pytest.mark.asyncio
    async def test_insufficient_points_is_err(self, manager, make_user):
        user = await make_user()
        result = await manager.spend_points(user.id, 51, "JOB_QUERY")
        assert result.error.code == "insufficient_points"
        assert (await manager.get_balance(user.id)).value["available"] == 50

    @pytest.mark.asyncio
    async def test_set_exact(self, manager, make_user):
        user = await make_user()
        await manager.spend_points(user.id, 10, "JOB_QUERY")
        result = await manager.set_exact_points(user.id, 100)
        assert result.value["delta"] == 60
        assert result.value["available"] == 100


class TestTriggerEvent:
    @pytest.mark.asyncio
    async def test_cv_analysis(self, manager, make_user, session_factory):
        user = await make_user()
        result = await manager.trigger_event(
            "CV_ANALYSIS_COMPLETED", user.id, {"analysisId": "a-1", "score": 72}, now=NOW,
        )

        outcome = result.value
        assert outcome["event"] == "CV_ANALYSIS_COMPLETED"
        assert outcome["xp"]["xp_awarded"] == 50
        assert outcome["streak"]["streak"] == 1
        assert {"first_analysis", "early_adopter"} <= set(outcome["badges_earned"])

        async with session_factory() as db:
            stats = (await db.execute(
                select(UserActivityStats).where(UserActivityStats.user_id == user.id)
            )).scalar_one()
            assert stats.cv_analyses_completed == 1
            assert stats.best_cv_score == 72

    @pytest.mark.asyncio
    async def test_badges_reported_once(self, manager, make_user):
        user = await make_user()
        await manager.trigger_event("SKILL_ADDED", user.id, {"skillId": 1}, now=NOW)
        second = await manager.trigger_event("SKILL_ADDED", user.id, {"skillId": 2}, now=NOW)
        assert "early_adopter" not in second.value["badges_earned"]

    @pytest.mark.asyncio
    async def test_daily_login_once_per_day(self, manager, make_user):
        user = await make_user()
        first = await manager.trigger_event("DAILY_LOGIN", user.id, now=NOW)
        again = await manager.trigger_event("DAILY_LOGIN", user.id, now=NOW + timedelta(hours=3))

        assert first.value["xp"]["xp_awarded"] == 5
        assert again.value["xp"] is None
        assert again.value["streak"]["streak"] == 1

    @pytest.mark.asyncio
    async def test_streak_milestone_bonus(self, manager, make_user):
        user = await make_user()
        for day in range(3):
            result = await manager.trigger_event("DAILY_LOGIN", user.id, now=NOW + timedelta(days=day))

        streak = result.value["streak"]
        assert streak["streak"] == 3
        assert streak["bonus_awarded"]
        assert streak["bonus_xp"] == 5

    @pytest.mark.asyncio
    async def test_missing_source_id_rolls_back(self, manager, make_user, session_factory):
        user = await make_user()
        result = await manager.trigger_event("APPLICATION_SUBMITTED", user.id, {}, now=NOW)

        assert isinstance(result.error, InvalidArgument)
        async with session_factory() as db:
            assert await xp_service.get_state(db, user.id) is None

    @pytest.mark.asyncio
    async def test_unknown_event(self, manager, make_user):
        user = await make_user()
        result = await manager.trigger_event("SOMETHING_ELSE", user.id)
        assert isinstance(result.error, InvalidArgument)


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_ranked_and_anonymous(self, manager, make_user):
        leader = await make_user()
        runner_up = await make_user()
        await make_user()
        await manager.award_xp(XPAwardEvent(leader.id, 300, "ADMIN_GRANT"))
        await manager.award_xp(XPAwardEvent(runner_up.id, 100, "ADMIN_GRANT"))

        entries = (await manager.get_leaderboard(10, current_user_id=runner_up.id)).value

        assert [e["display_name"] for e in entries] == ["Developer #1", "Developer #2"]
        assert [e["total_xp"] for e in entries] == [300, 100]
        assert [e["is_current_user"] for e in entries] == [False, True]
        assert all("user_id" not in e for e in entries)
