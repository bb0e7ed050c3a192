"""XP award service with duplicate detection and level-up detection."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from techrec.db.models import User, UserGamification, XPTransaction
from techrec.gamification.enums import (
    MAX_XP_AWARD,
    REPEATABLE_XP_SOURCES,
    SOURCE_ID_REQUIRED_XP_SOURCES,
    TIER_MONTHLY_POINTS,
    TIER_XP_MULTIPLIERS,
    UNMULTIPLIED_XP_SOURCES,
    SubscriptionTier,
    XPSource,
    parse_enum,
)
from techrec.gamification.errors import InvalidArgument, NotFound
from techrec.gamification.level_curve import compute_level, compute_tier
from techrec.gamification.notify import publish
from techrec.gamification.period_utils import add_months, utcnow

logger = logging.getLogger(__name__)


async def get_subscription_tier(db: AsyncSession, user_id: int) -> SubscriptionTier:
    """Subscription tier of a user. Raises NotFound for unknown users."""
    result = await db.execute(select(User.subscription_tier).where(User.id == user_id))
    tier = result.scalar_one_or_none()
    if tier is None:
        raise NotFound(f"User {user_id} not found")
    try:
        return SubscriptionTier(tier)
    except ValueError:
        logger.warning("Unknown subscription tier %r for user %d, using FREE", tier, user_id)
        return SubscriptionTier.FREE


async def get_state(
    db: AsyncSession, user_id: int, *, for_update: bool = False
) -> UserGamification | None:
    """Load the gamification row, optionally locking it for the rest of the transaction."""
    stmt = select(UserGamification).where(UserGamification.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_state(
    db: AsyncSession, user_id: int, now: datetime | None = None
) -> UserGamification:
    """Get (locked) or lazily create the gamification row for a user.

    A new row starts at level 1 with the tier's monthly allocation and a
    reset date one month out.
    """
    state = await get_state(db, user_id, for_update=True)
    if state is not None:
        return state

    tier = await get_subscription_tier(db, user_id)
    now = now or utcnow()
    state = UserGamification(
        user_id=user_id,
        total_xp=0,
        current_level=1,
        level_progress=0.0,
        monthly_points=TIER_MONTHLY_POINTS[tier],
        points_used=0,
        points_earned=0,
        points_reset_date=add_months(now, 1),
        streak=0,
        longest_streak=0,
        last_activity_date=None,
        tier="BRONZE",
        updated_at=now,
    )
    db.add(state)
    await db.flush()
    return state


def validate_xp_award(source: XPSource, amount: int, source_id: str | None) -> None:
    """Reject an award before anything is read or written."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgument("XP amount must be a positive integer")
    if amount > MAX_XP_AWARD:
        raise InvalidArgument(f"XP amount cannot exceed {MAX_XP_AWARD}")
    if source in SOURCE_ID_REQUIRED_XP_SOURCES and not source_id:
        raise InvalidArgument(f"{source.value} awards require a source_id")


def apply_multiplier(amount: int, source: XPSource, tier: SubscriptionTier) -> int:
    """Scale an award by the subscription multiplier (never below 1)."""
    if source in UNMULTIPLIED_XP_SOURCES:
        return amount
    return max(1, round(amount * TIER_XP_MULTIPLIERS[tier]))


async def already_awarded(
    db: AsyncSession, user_id: int, source: XPSource, source_id: str
) -> bool:
    result = await db.execute(
        select(XPTransaction.id)
        .where(
            XPTransaction.user_id == user_id,
            XPTransaction.source == source.value,
            XPTransaction.source_id == source_id,
        )
        .limit(1)
    )
    return result.first() is not None


async def award_xp(
    db: AsyncSession,
    redis: object,
    user_id: int,
    amount: int,
    source: XPSource | str,
    source_id: str | None = None,
    description: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Award XP to a user. The caller owns the transaction.

    1. Validate the amount and source
    2. Lock (or create) user_gamification
    3. Insert into xp_transactions
    4. Recompute level, progress and tier from total_xp
    5. If the level rose, broadcast level_up
    """
    source = parse_enum(XPSource, source, "XP source")
    validate_xp_award(source, amount, source_id)

    if source not in REPEATABLE_XP_SOURCES and source_id:
        if await already_awarded(db, user_id, source, source_id):
            raise InvalidArgument(f"XP already awarded for {source.value} {source_id}")

    now = now or utcnow()
    state = await get_or_create_state(db, user_id, now)
    tier = await get_subscription_tier(db, user_id)
    final_amount = apply_multiplier(amount, source, tier)

    db.add(XPTransaction(
        user_id=user_id,
        amount=final_amount,
        source=source.value,
        source_id=source_id,
        description=description or f"XP from {source.value}",
        earned_at=now,
    ))

    old_level = state.current_level
    old_tier = state.tier
    state.total_xp += final_amount
    level_info = compute_level(state.total_xp)
    state.current_level = level_info["level"]
    state.level_progress = level_info["progress"]
    state.tier = compute_tier(state.total_xp).value
    state.updated_at = now

    await db.flush()

    logger.info(
        "xp_awarded user=%d amount=%d source=%s total=%d",
        user_id, final_amount, source.value, state.total_xp,
    )

    new_level = state.current_level if state.current_level > old_level else None
    if new_level is not None:
        await publish(redis, "pubsub:level_up", {
            "user_id": user_id,
            "old_level": old_level,
            "new_level": new_level,
            "title": level_info["title"],
        })

    return {
        "xp_awarded": final_amount,
        "new_level": new_level,
        "total_xp": state.total_xp,
        "new_tier": state.tier if state.tier != old_tier else None,
    }


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


def serialize_xp_transaction(tx: XPTransaction) -> dict:
    return {
        "id": tx.id,
        "amount": tx.amount,
        "source": tx.source,
        "source_id": tx.source_id,
        "description": tx.description,
        "earned_at": tx.earned_at.isoformat(),
    }


async def recent_xp_transactions(db: AsyncSession, user_id: int, limit: int = 10) -> list[dict]:
    result = await db.execute(
        select(XPTransaction)
        .where(XPTransaction.user_id == user_id)
        .order_by(XPTransaction.earned_at.desc(), XPTransaction.id.desc())
        .limit(limit)
    )
    return [serialize_xp_transaction(tx) for tx in result.scalars().all()]


async def get_xp_history(
    db: AsyncSession, user_id: int, page: int = 1, per_page: int = 20
) -> dict:
    """Paginated XP ledger, newest first."""
    total_result = await db.execute(
        select(func.count()).select_from(XPTransaction).where(XPTransaction.user_id == user_id)
    )
    total = total_result.scalar() or 0

    result = await db.execute(
        select(XPTransaction)
        .where(XPTransaction.user_id == user_id)
        .order_by(XPTransaction.earned_at.desc(), XPTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return {
        "data": [serialize_xp_transaction(tx) for tx in result.scalars().all()],
        "total": total,
        "page": page,
        "per_page": per_page,
    }
