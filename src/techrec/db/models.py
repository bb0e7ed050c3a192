"""ORM models for the gamification engine.

The users table belongs to the wider platform; only the columns the engine
reads are mapped here.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from techrec.db.base import Base, BigIntPK, JSONType


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the platform's 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    subscription_tier: Mapped[str] = mapped_column(String(16), nullable=False, server_default="FREE")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    gamification: Mapped[UserGamification | None] = relationship(
        "UserGamification", back_populates="user", uselist=False
    )


# ---------------------------------------------------------------------------
# Gamification state
# ---------------------------------------------------------------------------


class UserGamification(Base):
    """Aggregate XP, points and streak state: one row per user.

    ``version`` is the optimistic-concurrency counter; a flush against a
    stale version raises ``StaleDataError``.
    """

    __tablename__ = "user_gamification"
    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="user_gamification_total_xp_check"),
        CheckConstraint(
            "points_used <= monthly_points + points_earned",
            name="user_gamification_points_check",
        ),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    level_progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="BRONZE", server_default="BRONZE")

    monthly_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    points_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    points_reset_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_activity_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012

    user: Mapped[User] = relationship("User", back_populates="gamification")


class UserActivityStats(Base):
    """Platform activity counters that badge requirements are evaluated against."""

    __tablename__ = "user_activity_stats"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    profile_completeness: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    contact_info_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    cv_analyses_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    best_cv_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    suggestions_accepted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    suggestions_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    applications_submitted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    applications_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    applications_day: Mapped[date | None] = mapped_column(Date, nullable=True)
    relevant_applications: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    skills_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    challenges_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    perfect_challenge_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    feedback_submitted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    beta_participant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    new_year_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    weekend_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Ledgers (append-only)
# ---------------------------------------------------------------------------


class XPTransaction(Base):
    """Immutable XP award record."""

    __tablename__ = "xp_transactions"
    __table_args__ = (
        Index("idx_xp_transactions_user", "user_id"),
        Index("idx_xp_transactions_source", "user_id", "source", "source_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PointsTransaction(Base):
    """Immutable points record. Negative amounts are spends."""

    __tablename__ = "points_transactions"
    __table_args__ = (Index("idx_points_transactions_user", "user_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    spend_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


class UserBadge(Base):
    """Badges earned by users. UNIQUE(user_id, badge_id) prevents duplicates."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="user_badges_user_id_badge_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
