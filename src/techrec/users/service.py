"""User lookups. Accounts are owned by the platform; the engine only reads them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from techrec.db.models import User
from techrec.gamification.enums import SubscriptionTier, parse_enum

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    email: str,
    *,
    display_name: str | None = None,
    subscription_tier: SubscriptionTier | str = SubscriptionTier.FREE,
    is_admin: bool = False,
) -> User:
    """Mirror a platform account locally (used by provisioning and tests)."""
    tier = parse_enum(SubscriptionTier, subscription_tier, "subscription tier")
    user = User(
        email=email,
        display_name=display_name,
        subscription_tier=tier.value,
        is_admin=is_admin,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, tier=tier.value)
    return user


async def update_subscription_tier(
    db: AsyncSession, user: User, tier: SubscriptionTier | str
) -> User:
    """Change a user's tier. The new allocation applies from the next monthly reset."""
    new_tier = parse_enum(SubscriptionTier, tier, "subscription tier")
    previous = user.subscription_tier
    user.subscription_tier = new_tier.value
    await db.flush()
    logger.info("subscription_tier_updated", user_id=user.id, previous=previous, new=new_tier.value)
    return user
