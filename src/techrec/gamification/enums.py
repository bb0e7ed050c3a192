"""Gamification enums and the reward/cost tables keyed by them."""

from __future__ import annotations

from enum import Enum

from techrec.gamification.errors import InvalidArgument


class XPSource(str, Enum):
    PROFILE_UPDATE = "PROFILE_UPDATE"
    CV_UPLOAD = "CV_UPLOAD"
    CV_ANALYSIS = "CV_ANALYSIS"
    CV_IMPROVEMENT = "CV_IMPROVEMENT"
    APPLICATION_SUBMIT = "APPLICATION_SUBMIT"
    SKILL_ADD = "SKILL_ADD"
    ACHIEVEMENT_ADD = "ACHIEVEMENT_ADD"
    DAILY_LOGIN = "DAILY_LOGIN"
    STREAK_BONUS = "STREAK_BONUS"
    CHALLENGE_COMPLETE = "CHALLENGE_COMPLETE"
    BADGE_EARNED = "BADGE_EARNED"
    ADMIN_GRANT = "ADMIN_GRANT"


class PointsSource(str, Enum):
    SUBSCRIPTION = "SUBSCRIPTION"
    ACHIEVEMENT_BONUS = "ACHIEVEMENT_BONUS"
    STREAK_BONUS = "STREAK_BONUS"
    LEVEL_BONUS = "LEVEL_BONUS"
    PROMOTIONAL = "PROMOTIONAL"
    REFUND = "REFUND"
    ADMIN_AWARD = "ADMIN_AWARD"
    ADMIN_SET = "ADMIN_SET"
    SPEND = "SPEND"


class PointsSpendType(str, Enum):
    JOB_QUERY = "JOB_QUERY"
    COVER_LETTER = "COVER_LETTER"
    OUTREACH_MESSAGE = "OUTREACH_MESSAGE"
    CV_SUGGESTION = "CV_SUGGESTION"
    BULK_APPLICATION = "BULK_APPLICATION"
    PREMIUM_ANALYSIS = "PREMIUM_ANALYSIS"
    ADVANCED_SEARCH = "ADVANCED_SEARCH"


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    STARTER = "STARTER"
    PRO = "PRO"
    EXPERT = "EXPERT"


class ProfileTier(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"


class GamificationEventType(str, Enum):
    CV_UPLOADED = "CV_UPLOADED"
    CV_ANALYSIS_COMPLETED = "CV_ANALYSIS_COMPLETED"
    CV_IMPROVEMENT_APPLIED = "CV_IMPROVEMENT_APPLIED"
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    PROFILE_SECTION_UPDATED = "PROFILE_SECTION_UPDATED"
    SKILL_ADDED = "SKILL_ADDED"
    DAILY_LOGIN = "DAILY_LOGIN"


# Standard XP per source. BADGE_EARNED uses the badge's own reward.
XP_REWARDS: dict[XPSource, int] = {
    XPSource.PROFILE_UPDATE: 15,
    XPSource.CV_UPLOAD: 25,
    XPSource.CV_ANALYSIS: 50,
    XPSource.CV_IMPROVEMENT: 75,
    XPSource.APPLICATION_SUBMIT: 100,
    XPSource.SKILL_ADD: 10,
    XPSource.ACHIEVEMENT_ADD: 20,
    XPSource.DAILY_LOGIN: 5,
    XPSource.STREAK_BONUS: 25,
    XPSource.CHALLENGE_COMPLETE: 50,
    XPSource.BADGE_EARNED: 0,
    XPSource.ADMIN_GRANT: 0,
}

REPEATABLE_XP_SOURCES = frozenset({
    XPSource.PROFILE_UPDATE,
    XPSource.SKILL_ADD,
    XPSource.DAILY_LOGIN,
    XPSource.STREAK_BONUS,
    XPSource.ADMIN_GRANT,
})

SOURCE_ID_REQUIRED_XP_SOURCES = frozenset({
    XPSource.CV_ANALYSIS,
    XPSource.APPLICATION_SUBMIT,
})

# Sources whose amounts are fixed elsewhere and skip the subscription multiplier.
UNMULTIPLIED_XP_SOURCES = frozenset({
    XPSource.BADGE_EARNED,
    XPSource.ADMIN_GRANT,
})

TIER_XP_MULTIPLIERS: dict[SubscriptionTier, float] = {
    SubscriptionTier.FREE: 1.0,
    SubscriptionTier.BASIC: 1.1,
    SubscriptionTier.STARTER: 1.2,
    SubscriptionTier.PRO: 1.35,
    SubscriptionTier.EXPERT: 1.5,
}

TIER_MONTHLY_POINTS: dict[SubscriptionTier, int] = {
    SubscriptionTier.FREE: 50,
    SubscriptionTier.BASIC: 150,
    SubscriptionTier.STARTER: 300,
    SubscriptionTier.PRO: 750,
    SubscriptionTier.EXPERT: 2000,
}

# Fraction of the base cost actually charged per tier.
TIER_SPEND_EFFICIENCY: dict[SubscriptionTier, float] = {
    SubscriptionTier.FREE: 1.0,
    SubscriptionTier.BASIC: 0.95,
    SubscriptionTier.STARTER: 0.90,
    SubscriptionTier.PRO: 0.85,
    SubscriptionTier.EXPERT: 0.80,
}

SPEND_COSTS: dict[PointsSpendType, int] = {
    PointsSpendType.JOB_QUERY: 1,
    PointsSpendType.COVER_LETTER: 5,
    PointsSpendType.OUTREACH_MESSAGE: 3,
    PointsSpendType.CV_SUGGESTION: 2,
    PointsSpendType.BULK_APPLICATION: 10,
    PointsSpendType.PREMIUM_ANALYSIS: 15,
    PointsSpendType.ADVANCED_SEARCH: 2,
}

SOURCE_ID_REQUIRED_SPEND_TYPES = frozenset({
    PointsSpendType.COVER_LETTER,
    PointsSpendType.OUTREACH_MESSAGE,
    PointsSpendType.CV_SUGGESTION,
})

# Upper bounds for a single award or points adjustment. Ledger amounts and the
# points columns are 32-bit integers.
MAX_XP_AWARD = 100_000
MAX_POINTS_AMOUNT = 1_000_000

# Per-award ceilings for bonus credits. Admin sources are uncapped.
BONUS_POINT_CAPS: dict[PointsSource, int] = {
    PointsSource.ACHIEVEMENT_BONUS: 100,
    PointsSource.STREAK_BONUS: 50,
    PointsSource.LEVEL_BONUS: 25,
    PointsSource.PROMOTIONAL: 100,
    PointsSource.REFUND: 100,
    PointsSource.SUBSCRIPTION: 100,
}

PROFILE_TIER_THRESHOLDS: list[tuple[ProfileTier, int]] = [
    (ProfileTier.BRONZE, 0),
    (ProfileTier.SILVER, 200),
    (ProfileTier.GOLD, 500),
    (ProfileTier.PLATINUM, 1000),
    (ProfileTier.DIAMOND, 2000),
]


def parse_enum(enum_cls: type[Enum], value: object, field: str):
    """Coerce ``value`` into ``enum_cls`` or raise InvalidArgument."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgument(f"Unknown {field}: {value!r}") from None
