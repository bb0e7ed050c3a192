"""Badge evaluation, awarding and idempotency."""

import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from techrec.db.models import UserBadge, XPTransaction
from techrec.gamification import activity_service, badge_service, xp_service
from techrec.gamification.badge_definitions import (
    BadgeCategory,
    BadgeDefinition,
    BadgeRarity,
    BadgeTier,
    CountRequirement,
)
from techrec.gamification.errors import NotFound

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _by_id(entries):
    return {entry["id"]: entry for entry in entries}


async def _prepare(db, user_id, **activity):
    await xp_service.get_or_create_state(db, user_id, NOW)
    stats = await activity_service.get_or_create_activity(db, user_id)
    for key, value in activity.items():
        setattr(stats, key, value)
    await db.flush()


async def _badge_rows(db, user_id):
    result = await db.execute(
        select(func.count()).select_from(UserBadge).where(UserBadge.user_id == user_id)
    )
    return result.scalar()


def _skill_badge(badge_id, minimum, *, hidden=False):
    return BadgeDefinition(
        id=badge_id,
        name=badge_id.title(),
        description="Add skills",
        icon="*",
        category=BadgeCategory.SPECIAL,
        tier=BadgeTier.BRONZE,
        xp_reward=10,
        requirement=CountRequirement("skills_count", minimum),
        rarity=BadgeRarity.COMMON,
        is_hidden=hidden,
    )


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_complete_profile_earns_badge_and_xp(self, db_session, make_user):
        user = await make_user()
        await _prepare(db_session, user.id, profile_completeness=100)

        entries = _by_id(await badge_service.evaluate(db_session, None, user.id, now=NOW))

        assert entries["profile_complete"]["is_earned"]
        assert entries["profile_complete"]["progress"] == 100
        assert entries["profile_complete"]["earned_at"].startswith("2026-03-10")
        result = await db_session.execute(
            select(XPTransaction.amount).where(
                XPTransaction.user_id == user.id,
                XPTransaction.source == "BADGE_EARNED",
                XPTransaction.source_id == "profile_complete",
            )
        )
        assert result.scalars().all() == [200]

    @pytest.mark.asyncio
    async def test_reevaluation_does_not_insert_again(self, db_session, make_user, monkeypatch):
        user = await make_user()
        await _prepare(db_session, user.id, profile_completeness=100)
        await badge_service.evaluate(db_session, None, user.id, now=NOW)
        await db_session.commit()
        state = await xp_service.get_state(db_session, user.id)
        xp_before = state.total_xp

        spy = AsyncMock(wraps=badge_service.insert_user_badge)
        monkeypatch.setattr(badge_service, "insert_user_badge", spy)
        entries = _by_id(await badge_service.evaluate(db_session, None, user.id, now=NOW))

        spy.assert_not_awaited()
        assert entries["profile_complete"]["is_earned"]
        assert (await xp_service.get_state(db_session, user.id)).total_xp == xp_before

    @pytest.mark.asyncio
    async def test_partial_progress(self, db_session, make_user):
        user = await make_user()
        await _prepare(db_session, user.id, cv_analyses_completed=4)

        entries = _by_id(await badge_service.evaluate(db_session, None, user.id, now=NOW))

        assert entries["first_analysis"]["is_earned"]
        veteran = entries["analysis_veteran"]
        assert not veteran["is_earned"]
        assert 0 < veteran["progress"] < 100
        assert veteran["is_in_progress"]
        assert veteran["earned_at"] is None

    @pytest.mark.asyncio
    async def test_early_adopter_by_signup_rank(self, db_session, make_user):
        user = await make_user()
        await _prepare(db_session, user.id)
        entries = _by_id(await badge_service.evaluate(db_session, None, user.id, now=NOW))
        assert entries["early_adopter"]["is_earned"]

    @pytest.mark.asyncio
    async def test_badge_broadcast(self, db_session, make_user):
        user = await make_user()
        await _prepare(db_session, user.id)
        redis = AsyncMock()

        await badge_service.evaluate(
            db_session, redis, user.id, [_skill_badge("starter", 0)], now=NOW,
        )

        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert "pubsub:badge_earned" in channels

    @pytest.mark.asyncio
    async def test_hidden_badge_progress_masked(self, db_session, make_user):
        user = await make_user()
        await _prepare(db_session, user.id, skills_count=5)
        definitions = [_skill_badge("visible", 10), _skill_badge("secret", 10, hidden=True)]

        entries = _by_id(await badge_service.evaluate(db_session, None, user.id, definitions, now=NOW))

        assert entries["visible"]["progress"] == 50
        assert entries["secret"]["progress"] == 0
        assert not entries["secret"]["is_in_progress"]

    @pytest.mark.asyncio
    async def test_hidden_badge_still_awarded(self, db_session, make_user):
        user = await make_user()
        await _prepare(db_session, user.id, skills_count=10)

        entries = await badge_service.evaluate(
            db_session, None, user.id, [_skill_badge("secret", 10, hidden=True)], now=NOW,
        )

        assert entries[0]["is_earned"]
        assert await _badge_rows(db_session, user.id) == 1

    @pytest.mark.asyncio
    async def test_missing_state(self, db_session, make_user):
        user = await make_user()
        with pytest.raises(NotFound):
            await badge_service.evaluate(db_session, None, user.id, now=NOW)


class TestInsertUserBadge:
    @pytest.mark.asyncio
    async def test_second_insert_loses(self, session_factory, make_user):
        user = await make_user()
        async with session_factory() as first:
            assert await badge_service.insert_user_badge(first, user.id, "first_analysis", NOW)
            await first.commit()

        async with session_factory() as second:
            assert not await badge_service.insert_user_badge(second, user.id, "first_analysis", NOW)
            await second.commit()
            assert await _badge_rows(second, user.id) == 1

    @pytest.mark.asyncio
    async def test_lost_race_reports_existing_row(self, session_factory, make_user, monkeypatch):
        user = await make_user()
        async with session_factory() as db:
            await _prepare(db, user.id, cv_analyses_completed=1)
            await db.commit()

        async with session_factory() as other:
            await badge_service.insert_user_badge(other, user.id, "first_analysis", NOW)
            await other.commit()

        # Evaluate as if the row was not there when earned badges were loaded.
        async def no_badges(db, user_id):
            return {}

        monkeypatch.setattr(badge_service, "get_user_badges", no_badges)
        async with session_factory() as db:
            entries = _by_id(await badge_service.evaluate(db, None, user.id, now=NOW))
            assert entries["first_analysis"]["is_earned"]
            result = await db.execute(
                select(func.count()).select_from(XPTransaction).where(
                    XPTransaction.user_id == user.id,
                    XPTransaction.source_id == "first_analysis",
                )
            )
            assert result.scalar() == 0


class TestCollectStats:
    @pytest.mark.asyncio
    async def test_applications_today_only_counts_today(self, db_session, make_user):
        user = await make_user()
        await _prepare(
            db_session, user.id, applications_today=6, applications_day=date(2026, 3, 9),
        )
        state = await xp_service.get_state(db_session, user.id)

        stale = await badge_service.collect_stats(db_session, state, date(2026, 3, 10))
        current = await badge_service.collect_stats(db_session, state, date(2026, 3, 9))

        assert stale["applications_today"] == 0
        assert current["applications_today"] == 6
        assert current["signup_rank"] == 1


class TestConcurrentEvaluation:
    @pytest.mark.asyncio
    async def test_parallel_evaluations_award_once(self, session_factory, make_user):
        user = await make_user()
        async with session_factory() as db:
            await _prepare(db, user.id, cv_analyses_completed=1)
            await db.commit()

        async def evaluate_and_commit():
            async with session_factory() as db:
                entries = await badge_service.evaluate(db, None, user.id, now=NOW)
                await db.commit()
                return _by_id(entries)

        first, second = await asyncio.gather(evaluate_and_commit(), evaluate_and_commit())

        assert first["first_analysis"]["is_earned"]
        assert second["first_analysis"]["is_earned"]
        async with session_factory() as db:
            rows = await db.execute(
                select(func.count()).select_from(UserBadge).where(
                    UserBadge.user_id == user.id,
                    UserBadge.badge_id == "first_analysis",
                )
            )
            rewards = await db.execute(
                select(XPTransaction.amount).where(
                    XPTransaction.user_id == user.id,
                    XPTransaction.source == "BADGE_EARNED",
                    XPTransaction.source_id == "first_analysis",
                )
            )
            state = await xp_service.get_state(db, user.id)
            ledger = await db.execute(
                select(func.sum(XPTransaction.amount)).where(XPTransaction.user_id == user.id)
            )
        assert rows.scalar() == 1
        assert rewards.scalars().all() == [100]
        assert state.total_xp == ledger.scalar()
