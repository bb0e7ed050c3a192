"""Pydantic request/response models for gamification endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Levels ---


class LevelEntry(CamelModel):
    level: int
    title: str
    xp_required: int
    cumulative: int


class AllLevelsResponse(CamelModel):
    levels: list[LevelEntry]
    base: float
    exponent: float
    max_level: int


class MilestoneResponse(CamelModel):
    type: str
    target: int
    xp_needed: int
    description: str


# --- Badges ---


class BadgeDefinitionResponse(CamelModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    tier: str
    xp_reward: int
    rarity: str
    is_hidden: bool = False


class BadgeProgressResponse(BadgeDefinitionResponse):
    is_earned: bool
    progress: int
    is_in_progress: bool
    earned_at: datetime | None = None


class AllBadgesResponse(CamelModel):
    badges: list[BadgeDefinitionResponse]
    total: int


# --- XP ---


class AwardXPRequest(CamelModel):
    user_id: int
    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None


class AwardXPResponse(CamelModel):
    success: bool
    xp_awarded: int = 0
    new_level: int | None = None
    total_xp: int | None = Field(default=None, alias="totalXP")
    error: str | None = None


class XPTransactionResponse(CamelModel):
    id: int
    amount: int
    source: str
    source_id: str | None = None
    description: str | None = None
    earned_at: datetime


class XPHistoryResponse(CamelModel):
    data: list[XPTransactionResponse]
    total: int
    page: int
    per_page: int


# --- Points ---


class PointsTransactionResponse(CamelModel):
    id: int
    amount: int
    source: str
    spend_type: str | None = None
    source_id: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime


class BalanceResponse(CamelModel):
    monthly_points: int
    points_used: int
    points_earned: int
    available: int
    reset_date: datetime | None = None


class UsageStatsResponse(CamelModel):
    total_spent: int
    total_earned: int
    spent_by_type: dict[str, int]
    earned_by_source: dict[str, int]


class PointsOverviewResponse(CamelModel):
    balance: BalanceResponse
    recent_transactions: list[PointsTransactionResponse]
    usage: UsageStatsResponse


class SpendRequest(CamelModel):
    spend_type: str
    source_id: str | None = None
    metadata: dict[str, Any] = {}


class SpendResponse(BalanceResponse):
    spent: int
    remaining: int


class AdminAwardPointsRequest(CamelModel):
    user_id: int
    amount: int
    source: str = "ADMIN_AWARD"
    description: str | None = None
    source_id: str | None = None


class AdminSetPointsRequest(CamelModel):
    user_id: int
    target: int
    description: str | None = None


class AdminPointsResponse(BalanceResponse):
    success: bool = True
    credited: int | None = None
    delta: int | None = None


# --- Events ---


class TriggerEventRequest(CamelModel):
    event_type: str
    data: dict[str, Any] = {}


class StreakUpdateResponse(CamelModel):
    streak: int
    longest_streak: int
    streak_broken: bool
    bonus_awarded: bool
    bonus_xp: int


class TriggerEventResponse(CamelModel):
    event: str
    xp_awarded: int = 0
    new_level: int | None = None
    streak: StreakUpdateResponse | None = None
    badges_earned: list[str] = []


# --- Profile ---


class GamificationProfileResponse(CamelModel):
    user_id: int
    total_xp: int = Field(alias="totalXP")
    current_level: int
    level_title: str
    level_progress: float
    tier: str
    next_milestone: MilestoneResponse
    streak: int
    longest_streak: int
    last_activity_date: datetime | None = None
    monthly_points: int
    points_used: int
    points_earned: int
    available_points: int
    points_reset_date: datetime | None = None
    badges: list[BadgeProgressResponse]
    badges_earned: int
    recent_transactions: list[XPTransactionResponse]
    recent_points_transactions: list[PointsTransactionResponse]


# --- Leaderboard ---


class LeaderboardEntry(CamelModel):
    rank: int
    display_name: str
    total_xp: int = Field(alias="totalXP")
    level: int
    title: str
    tier: str
    is_current_user: bool = False


class LeaderboardResponse(CamelModel):
    entries: list[LeaderboardEntry]
    total: int
