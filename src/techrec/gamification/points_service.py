"""Monthly points budget: balance, spends, credits and admin overrides.

Available points are ``monthly_points - points_used + points_earned``. The
monthly allocation refreshes lazily the first time the state row is touched
after ``points_reset_date``; earned points carry over.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from techrec.db.models import PointsTransaction, UserGamification
from techrec.gamification.enums import (
    BONUS_POINT_CAPS,
    MAX_POINTS_AMOUNT,
    SOURCE_ID_REQUIRED_SPEND_TYPES,
    SPEND_COSTS,
    TIER_MONTHLY_POINTS,
    TIER_SPEND_EFFICIENCY,
    PointsSource,
    PointsSpendType,
    SubscriptionTier,
    parse_enum,
)
from techrec.gamification.errors import InsufficientPoints, InvalidArgument
from techrec.gamification.period_utils import is_reset_due, next_reset_after, utcnow
from techrec.gamification.xp_service import get_or_create_state, get_subscription_tier

logger = logging.getLogger(__name__)


def available_points(state: UserGamification) -> int:
    """Spendable balance, never reported below zero."""
    return max(0, state.monthly_points - state.points_used + state.points_earned)


def _require_positive(amount: object, what: str) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgument(f"{what} must be a positive integer")
    if amount > MAX_POINTS_AMOUNT:
        raise InvalidArgument(f"{what} cannot exceed {MAX_POINTS_AMOUNT}")


def apply_monthly_reset(
    state: UserGamification, tier: SubscriptionTier, now: datetime
) -> bool:
    """Refresh the monthly allocation if the period has ended. Returns True if reset."""
    if not is_reset_due(state.points_reset_date, now):
        return False
    state.points_used = 0
    state.monthly_points = TIER_MONTHLY_POINTS[tier]
    state.points_reset_date = next_reset_after(state.points_reset_date, now)
    state.updated_at = now
    logger.info(
        "points_reset user=%d monthly=%d next_reset=%s",
        state.user_id, state.monthly_points, state.points_reset_date.isoformat(),
    )
    return True


def clear_negative_carry_over(state: UserGamification) -> int:
    """Raise a negative earned balance so the fresh allocation still covers it.

    A "set exact" below the allocation leaves ``points_earned`` negative; if the
    next allocation is smaller (tier downgrade) the row would break
    ``points_used <= monthly_points + points_earned``. Returns the points added.
    """
    floor = -state.monthly_points
    if state.points_earned >= floor:
        return 0
    adjustment = floor - state.points_earned
    state.points_earned = floor
    return adjustment


async def _load_for_update(
    db: AsyncSession, user_id: int, now: datetime
) -> tuple[UserGamification, SubscriptionTier]:
    state = await get_or_create_state(db, user_id, now)
    tier = await get_subscription_tier(db, user_id)
    if apply_monthly_reset(state, tier, now):
        previous_earned = state.points_earned
        adjustment = clear_negative_carry_over(state)
        if adjustment:
            _record(
                db, user_id, adjustment, PointsSource.SUBSCRIPTION, now,
                description="Negative carry-over cleared at monthly reset",
                metadata={
                    "previous_earned": previous_earned,
                    "monthly_points": state.monthly_points,
                    "tier": tier.value,
                },
            )
            logger.info(
                "points_carry_over_cleared user=%d adjustment=%d", user_id, adjustment,
            )
    return state, tier


def balance_dict(state: UserGamification) -> dict:
    return {
        "monthly_points": state.monthly_points,
        "points_used": state.points_used,
        "points_earned": state.points_earned,
        "available": available_points(state),
        "reset_date": state.points_reset_date.isoformat() if state.points_reset_date else None,
    }


async def get_balance(db: AsyncSession, user_id: int, *, now: datetime | None = None) -> dict:
    """Current balance after any due monthly reset."""
    now = now or utcnow()
    state, _ = await _load_for_update(db, user_id, now)
    await db.flush()
    return balance_dict(state)


def _record(
    db: AsyncSession,
    user_id: int,
    amount: int,
    source: PointsSource,
    now: datetime,
    *,
    spend_type: PointsSpendType | None = None,
    source_id: str | None = None,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    db.add(PointsTransaction(
        user_id=user_id,
        amount=amount,
        source=source.value,
        spend_type=spend_type.value if spend_type else None,
        source_id=source_id,
        description=description,
        transaction_metadata=metadata or {},
        created_at=now,
    ))


async def spend_points(
    db: AsyncSession,
    user_id: int,
    amount: int,
    spend_type: PointsSpendType | str,
    source_id: str | None = None,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Spend points. Raises InsufficientPoints without touching state."""
    _require_positive(amount, "Spend amount")
    spend_type = parse_enum(PointsSpendType, spend_type, "spend type")

    now = now or utcnow()
    state, _ = await _load_for_update(db, user_id, now)

    available = available_points(state)
    if amount > available:
        raise InsufficientPoints(needed=amount, available=available)

    state.points_used += amount
    state.updated_at = now
    _record(
        db, user_id, -amount, PointsSource.SPEND, now,
        spend_type=spend_type,
        source_id=source_id,
        description=description or f"Spent on {spend_type.value}",
        metadata=metadata,
    )
    await db.flush()

    logger.info("points_spent user=%d amount=%d type=%s", user_id, amount, spend_type.value)
    return {"spent": amount, "remaining": available_points(state), **balance_dict(state)}


def effective_cost(spend_type: PointsSpendType, tier: SubscriptionTier) -> int:
    """Base cost scaled by the tier's efficiency, rounded up."""
    return max(1, math.ceil(SPEND_COSTS[spend_type] * TIER_SPEND_EFFICIENCY[tier] - 1e-9))


async def spend_for_action(
    db: AsyncSession,
    user_id: int,
    spend_type: PointsSpendType | str,
    source_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Charge the effective cost of a platform action."""
    spend_type = parse_enum(PointsSpendType, spend_type, "spend type")
    if spend_type in SOURCE_ID_REQUIRED_SPEND_TYPES and not source_id:
        raise InvalidArgument(f"{spend_type.value} requires a source_id")

    tier = await get_subscription_tier(db, user_id)
    cost = effective_cost(spend_type, tier)
    return await spend_points(
        db, user_id, cost, spend_type,
        source_id=source_id,
        metadata={**(metadata or {}), "base_cost": SPEND_COSTS[spend_type], "tier": tier.value},
        now=now,
    )


def validate_credit(source: PointsSource, amount: int, source_id: str | None) -> None:
    _require_positive(amount, "Credit amount")
    if source in (PointsSource.SPEND, PointsSource.ADMIN_SET):
        raise InvalidArgument(f"{source.value} cannot be used for credits")
    if source == PointsSource.ACHIEVEMENT_BONUS and not source_id:
        raise InvalidArgument("ACHIEVEMENT_BONUS credits require a source_id")
    cap = BONUS_POINT_CAPS.get(source)
    if cap is not None and amount > cap:
        raise InvalidArgument(f"{source.value} credits are capped at {cap} points")


async def credit_points(
    db: AsyncSession,
    user_id: int,
    amount: int,
    source: PointsSource | str = PointsSource.ADMIN_AWARD,
    description: str | None = None,
    source_id: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Add earned points (admin award or capped bonus)."""
    source = parse_enum(PointsSource, source, "points source")
    validate_credit(source, amount, source_id)

    now = now or utcnow()
    state, _ = await _load_for_update(db, user_id, now)
    state.points_earned += amount
    state.updated_at = now
    _record(
        db, user_id, amount, source, now,
        source_id=source_id,
        description=description or f"{source.value} credit",
    )
    await db.flush()

    logger.info("points_credited user=%d amount=%d source=%s", user_id, amount, source.value)
    return {"credited": amount, **balance_dict(state)}


async def set_exact_points(
    db: AsyncSession,
    user_id: int,
    target: int,
    description: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Set the available balance to ``target``.

    The delta is computed under the row lock so two admins editing the same
    user cannot both apply a delta against the same stale balance.
    """
    if isinstance(target, bool) or not isinstance(target, int) or target < 0:
        raise InvalidArgument("Target balance must be a non-negative integer")
    if target > MAX_POINTS_AMOUNT:
        raise InvalidArgument(f"Target balance cannot exceed {MAX_POINTS_AMOUNT}")

    now = now or utcnow()
    state, _ = await _load_for_update(db, user_id, now)
    # The raw balance, so a negative earned carry-over is reconciled too.
    current = state.monthly_points - state.points_used + state.points_earned
    delta = target - current
    if delta != 0:
        state.points_earned += delta
        state.updated_at = now
        _record(
            db, user_id, delta, PointsSource.ADMIN_SET, now,
            description=description or f"Balance set to {target}",
            metadata={"previous": max(0, current), "target": target},
        )
    await db.flush()

    logger.info("points_set user=%d target=%d delta=%d", user_id, target, delta)
    return {"delta": delta, **balance_dict(state)}


# ---------------------------------------------------------------------------
# History and stats
# ---------------------------------------------------------------------------


def serialize_points_transaction(tx: PointsTransaction) -> dict:
    return {
        "id": tx.id,
        "amount": tx.amount,
        "source": tx.source,
        "spend_type": tx.spend_type,
        "source_id": tx.source_id,
        "description": tx.description,
        "metadata": tx.transaction_metadata or {},
        "created_at": tx.created_at.isoformat(),
    }


async def recent_points_transactions(
    db: AsyncSession, user_id: int, limit: int = 10
) -> list[dict]:
    result = await db.execute(
        select(PointsTransaction)
        .where(PointsTransaction.user_id == user_id)
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .limit(limit)
    )
    return [serialize_points_transaction(tx) for tx in result.scalars().all()]


def usage_stats(transactions: list[dict]) -> dict:
    """Totals and breakdowns over serialized points transactions."""
    spent_by_type: dict[str, int] = defaultdict(int)
    earned_by_source: dict[str, int] = defaultdict(int)
    total_spent = 0
    total_earned = 0
    for tx in transactions:
        amount = tx["amount"]
        if tx["source"] == PointsSource.SPEND.value:
            total_spent += -amount
            spent_by_type[tx.get("spend_type") or "UNKNOWN"] += -amount
        else:
            total_earned += amount
            earned_by_source[tx["source"]] += amount
    return {
        "total_spent": total_spent,
        "total_earned": total_earned,
        "spent_by_type": dict(spent_by_type),
        "earned_by_source": dict(earned_by_source),
    }
