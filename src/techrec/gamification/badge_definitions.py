"""Static badge catalogue and requirement evaluation.

Each badge carries one requirement variant. ``requirement_progress`` is the
only place that knows how to turn a variant plus the user's activity stats
into a 0-100 progress value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Union


class BadgeCategory(str, Enum):
    PROFILE_COMPLETION = "PROFILE_COMPLETION"
    CV_ANALYSIS = "CV_ANALYSIS"
    AI_INTERACTION = "AI_INTERACTION"
    APPLICATION_ACTIVITY = "APPLICATION_ACTIVITY"
    ENGAGEMENT = "ENGAGEMENT"
    CHALLENGES = "CHALLENGES"
    LEVEL_PROGRESSION = "LEVEL_PROGRESSION"
    SPECIAL = "SPECIAL"
    SEASONAL = "SEASONAL"


class BadgeTier(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"


class BadgeRarity(str, Enum):
    COMMON = "COMMON"
    UNCOMMON = "UNCOMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"


@dataclass(frozen=True)
class CountRequirement:
    """A counter must reach ``minimum``; progress is proportional."""

    field: str
    minimum: int
    kind: Literal["count"] = "count"


@dataclass(frozen=True)
class FlagRequirement:
    """A boolean stat must be set."""

    field: str
    kind: Literal["flag"] = "flag"


@dataclass(frozen=True)
class RankRequirement:
    """A 1-based rank must be at or below ``maximum``."""

    field: str
    maximum: int
    kind: Literal["rank"] = "rank"


Requirement = Union[CountRequirement, FlagRequirement, RankRequirement]


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    tier: BadgeTier
    xp_reward: int
    requirement: Requirement
    rarity: BadgeRarity
    is_hidden: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category.value,
            "tier": self.tier.value,
            "xp_reward": self.xp_reward,
            "rarity": self.rarity.value,
            "is_hidden": self.is_hidden,
        }


def requirement_progress(requirement: Requirement, stats: dict) -> int:
    """Progress towards a requirement, 0-100. Missing stats count as zero."""
    value = stats.get(requirement.field)

    if isinstance(requirement, CountRequirement):
        if requirement.minimum <= 0:
            return 100
        count = int(value or 0)
        if count <= 0:
            return 0
        return min(100, count * 100 // requirement.minimum)

    if isinstance(requirement, FlagRequirement):
        return 100 if value else 0

    if isinstance(requirement, RankRequirement):
        if value is None or value < 1:
            return 0
        return 100 if value <= requirement.maximum else 0

    raise TypeError(f"Unknown requirement type: {type(requirement).__name__}")


BADGE_DEFINITIONS: list[BadgeDefinition] = [
    # --- Profile completion ---
    BadgeDefinition(
        id="profile_starter",
        name="Profile Pioneer",
        description="Complete your basic profile information",
        icon="👤",
        category=BadgeCategory.PROFILE_COMPLETION,
        tier=BadgeTier.BRONZE,
        xp_reward=50,
        requirement=CountRequirement("profile_completeness", 25),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="profile_complete",
        name="Profile Master",
        description="Complete all profile sections with detailed information",
        icon="🏆",
        category=BadgeCategory.PROFILE_COMPLETION,
        tier=BadgeTier.GOLD,
        xp_reward=200,
        requirement=CountRequirement("profile_completeness", 100),
        rarity=BadgeRarity.RARE,
    ),
    BadgeDefinition(
        id="contact_complete",
        name="Well Connected",
        description="Add all contact information including LinkedIn and GitHub",
        icon="📞",
        category=BadgeCategory.PROFILE_COMPLETION,
        tier=BadgeTier.BRONZE,
        xp_reward=75,
        requirement=FlagRequirement("contact_info_complete"),
        rarity=BadgeRarity.COMMON,
    ),
    # --- CV analysis ---
    BadgeDefinition(
        id="first_analysis",
        name="CV Analyzer",
        description="Complete your first CV analysis",
        icon="📄",
        category=BadgeCategory.CV_ANALYSIS,
        tier=BadgeTier.BRONZE,
        xp_reward=100,
        requirement=CountRequirement("cv_analyses_completed", 1),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="analysis_veteran",
        name="Analysis Veteran",
        description="Complete 10 CV analyses",
        icon="📊",
        category=BadgeCategory.CV_ANALYSIS,
        tier=BadgeTier.SILVER,
        xp_reward=250,
        requirement=CountRequirement("cv_analyses_completed", 10),
        rarity=BadgeRarity.UNCOMMON,
    ),
    BadgeDefinition(
        id="perfectionist",
        name="CV Perfectionist",
        description="Achieve a 95+ overall CV score",
        icon="💎",
        category=BadgeCategory.CV_ANALYSIS,
        tier=BadgeTier.DIAMOND,
        xp_reward=500,
        requirement=CountRequirement("best_cv_score", 95),
        rarity=BadgeRarity.LEGENDARY,
    ),
    # --- AI interaction ---
    BadgeDefinition(
        id="ai_collaborator",
        name="AI Collaborator",
        description="Accept 5 AI suggestions",
        icon="🤖",
        category=BadgeCategory.AI_INTERACTION,
        tier=BadgeTier.BRONZE,
        xp_reward=100,
        requirement=CountRequirement("suggestions_accepted", 5),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="ai_power_user",
        name="AI Power User",
        description="Accept 25 AI suggestions",
        icon="🚀",
        category=BadgeCategory.AI_INTERACTION,
        tier=BadgeTier.GOLD,
        xp_reward=300,
        requirement=CountRequirement("suggestions_accepted", 25),
        rarity=BadgeRarity.RARE,
    ),
    BadgeDefinition(
        id="suggestion_master",
        name="Suggestion Master",
        description="Generate and review 50+ AI suggestions",
        icon="✨",
        category=BadgeCategory.AI_INTERACTION,
        tier=BadgeTier.PLATINUM,
        xp_reward=400,
        requirement=CountRequirement("suggestions_generated", 50),
        rarity=BadgeRarity.EPIC,
    ),
    # --- Applications ---
    BadgeDefinition(
        id="first_application",
        name="Career Starter",
        description="Submit your first job application",
        icon="📝",
        category=BadgeCategory.APPLICATION_ACTIVITY,
        tier=BadgeTier.BRONZE,
        xp_reward=150,
        requirement=CountRequirement("applications_submitted", 1),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="application_spree",
        name="Application Dynamo",
        description="Submit 10 applications in a single day",
        icon="⚡",
        category=BadgeCategory.APPLICATION_ACTIVITY,
        tier=BadgeTier.GOLD,
        xp_reward=350,
        requirement=CountRequirement("applications_today", 10),
        rarity=BadgeRarity.RARE,
    ),
    BadgeDefinition(
        id="quality_applicant",
        name="Quality Over Quantity",
        description="Submit 20 applications with an 80%+ relevance score",
        icon="🎯",
        category=BadgeCategory.APPLICATION_ACTIVITY,
        tier=BadgeTier.DIAMOND,
        xp_reward=500,
        requirement=CountRequirement("relevant_applications", 20),
        rarity=BadgeRarity.LEGENDARY,
    ),
    # --- Engagement ---
    BadgeDefinition(
        id="streak_starter",
        name="Consistency King",
        description="Maintain a 7-day activity streak",
        icon="🔥",
        category=BadgeCategory.ENGAGEMENT,
        tier=BadgeTier.BRONZE,
        xp_reward=100,
        requirement=CountRequirement("streak", 7),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="streak_champion",
        name="Streak Champion",
        description="Maintain a 30-day activity streak",
        icon="🔥",
        category=BadgeCategory.ENGAGEMENT,
        tier=BadgeTier.GOLD,
        xp_reward=400,
        requirement=CountRequirement("streak", 30),
        rarity=BadgeRarity.RARE,
    ),
    BadgeDefinition(
        id="dedication_legend",
        name="Dedication Legend",
        description="Maintain a 100-day activity streak",
        icon="🏅",
        category=BadgeCategory.ENGAGEMENT,
        tier=BadgeTier.DIAMOND,
        xp_reward=1000,
        requirement=CountRequirement("streak", 100),
        rarity=BadgeRarity.LEGENDARY,
    ),
    BadgeDefinition(
        id="weekend_warrior",
        name="Weekend Warrior",
        description="Complete 20+ actions on weekends",
        icon="⚔️",
        category=BadgeCategory.ENGAGEMENT,
        tier=BadgeTier.SILVER,
        xp_reward=250,
        requirement=CountRequirement("weekend_actions", 20),
        rarity=BadgeRarity.UNCOMMON,
    ),
    # --- Challenges ---
    BadgeDefinition(
        id="challenge_rookie",
        name="Challenge Rookie",
        description="Complete your first daily challenge",
        icon="🎯",
        category=BadgeCategory.CHALLENGES,
        tier=BadgeTier.BRONZE,
        xp_reward=75,
        requirement=CountRequirement("challenges_completed", 1),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="challenge_hunter",
        name="Challenge Hunter",
        description="Complete 50 daily challenges",
        icon="🏹",
        category=BadgeCategory.CHALLENGES,
        tier=BadgeTier.SILVER,
        xp_reward=300,
        requirement=CountRequirement("challenges_completed", 50),
        rarity=BadgeRarity.UNCOMMON,
    ),
    BadgeDefinition(
        id="perfectionist_challenger",
        name="Perfect Week",
        description="Complete all daily challenges for 7 consecutive days",
        icon="⭐",
        category=BadgeCategory.CHALLENGES,
        tier=BadgeTier.GOLD,
        xp_reward=500,
        requirement=CountRequirement("perfect_challenge_streak", 7),
        rarity=BadgeRarity.RARE,
    ),
    # --- Levels ---
    BadgeDefinition(
        id="level_10",
        name="Rising Star",
        description="Reach level 10",
        icon="⭐",
        category=BadgeCategory.LEVEL_PROGRESSION,
        tier=BadgeTier.BRONZE,
        xp_reward=200,
        requirement=CountRequirement("current_level", 10),
        rarity=BadgeRarity.COMMON,
    ),
    BadgeDefinition(
        id="level_25",
        name="Skilled Professional",
        description="Reach level 25",
        icon="💼",
        category=BadgeCategory.LEVEL_PROGRESSION,
        tier=BadgeTier.SILVER,
        xp_reward=400,
        requirement=CountRequirement("current_level", 25),
        rarity=BadgeRarity.UNCOMMON,
    ),
    BadgeDefinition(
        id="level_50",
        name="Career Master",
        description="Reach level 50",
        icon="👑",
        category=BadgeCategory.LEVEL_PROGRESSION,
        tier=BadgeTier.DIAMOND,
        xp_reward=1000,
        requirement=CountRequirement("current_level", 50),
        rarity=BadgeRarity.LEGENDARY,
    ),
    # --- Special ---
    BadgeDefinition(
        id="early_adopter",
        name="Early Adopter",
        description="One of the first 1000 users to join the platform",
        icon="🚀",
        category=BadgeCategory.SPECIAL,
        tier=BadgeTier.PLATINUM,
        xp_reward=750,
        requirement=RankRequirement("signup_rank", 1000),
        rarity=BadgeRarity.EPIC,
    ),
    BadgeDefinition(
        id="beta_tester",
        name="Beta Tester",
        description="Provided valuable feedback during beta testing",
        icon="🧪",
        category=BadgeCategory.SPECIAL,
        tier=BadgeTier.GOLD,
        xp_reward=500,
        requirement=FlagRequirement("beta_participant"),
        rarity=BadgeRarity.RARE,
    ),
    BadgeDefinition(
        id="feedback_champion",
        name="Feedback Champion",
        description="Submit 10+ valuable improvement suggestions",
        icon="💡",
        category=BadgeCategory.SPECIAL,
        tier=BadgeTier.PLATINUM,
        xp_reward=600,
        requirement=CountRequirement("feedback_submitted", 10),
        rarity=BadgeRarity.EPIC,
    ),
    # --- Seasonal ---
    BadgeDefinition(
        id="new_year_resolution",
        name="New Year, New Career",
        description="Complete 5 actions in the first week of January",
        icon="🎊",
        category=BadgeCategory.SEASONAL,
        tier=BadgeTier.GOLD,
        xp_reward=300,
        requirement=CountRequirement("new_year_actions", 5),
        rarity=BadgeRarity.RARE,
    ),
]

_BY_ID = {badge.id: badge for badge in BADGE_DEFINITIONS}


def get_badge(badge_id: str) -> BadgeDefinition | None:
    return _BY_ID.get(badge_id)


def visible_badges() -> list[BadgeDefinition]:
    return [badge for badge in BADGE_DEFINITIONS if not badge.is_hidden]


def badges_by_category(category: BadgeCategory | str) -> list[BadgeDefinition]:
    return [badge for badge in BADGE_DEFINITIONS if badge.category == category]
