"""Gamification tables.

Creates user_gamification, user_activity_stats, xp_transactions,
points_transactions and user_badges.

Revision ID: 002_gamification_tables
Revises: 001_baseline
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_gamification_tables"
down_revision: str | None = "001_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- User Gamification ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_gamification (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            total_xp BIGINT NOT NULL DEFAULT 0,
            current_level INTEGER NOT NULL DEFAULT 1,
            level_progress DOUBLE PRECISION NOT NULL DEFAULT 0,
            tier VARCHAR(16) NOT NULL DEFAULT 'BRONZE',
            monthly_points INTEGER NOT NULL DEFAULT 0,
            points_used INTEGER NOT NULL DEFAULT 0,
            points_earned INTEGER NOT NULL DEFAULT 0,
            points_reset_date TIMESTAMPTZ,
            streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_gamification_total_xp_check CHECK (total_xp >= 0),
            CONSTRAINT user_gamification_points_check
                CHECK (points_used <= monthly_points + points_earned)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_gamification_xp
        ON user_gamification(total_xp DESC)
    """)

    # --- Activity Stats ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_activity_stats (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            profile_completeness INTEGER NOT NULL DEFAULT 0,
            contact_info_complete BOOLEAN NOT NULL DEFAULT false,
            cv_analyses_completed INTEGER NOT NULL DEFAULT 0,
            best_cv_score INTEGER NOT NULL DEFAULT 0,
            suggestions_accepted INTEGER NOT NULL DEFAULT 0,
            suggestions_generated INTEGER NOT NULL DEFAULT 0,
            applications_submitted INTEGER NOT NULL DEFAULT 0,
            applications_today INTEGER NOT NULL DEFAULT 0,
            applications_day DATE,
            relevant_applications INTEGER NOT NULL DEFAULT 0,
            skills_count INTEGER NOT NULL DEFAULT 0,
            challenges_completed INTEGER NOT NULL DEFAULT 0,
            perfect_challenge_streak INTEGER NOT NULL DEFAULT 0,
            feedback_submitted INTEGER NOT NULL DEFAULT 0,
            beta_participant BOOLEAN NOT NULL DEFAULT false,
            new_year_actions INTEGER NOT NULL DEFAULT 0,
            weekend_actions INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- XP Transactions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL CHECK (amount > 0),
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_user
        ON xp_transactions(user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_source
        ON xp_transactions(user_id, source, source_id)
    """)

    # --- Points Transactions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS points_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(32) NOT NULL,
            spend_type VARCHAR(32),
            source_id VARCHAR(128),
            description TEXT,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_points_transactions_user
        ON points_transactions(user_id)
    """)

    # --- User Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id VARCHAR(64) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_badges_user_id_badge_id_key UNIQUE (user_id, badge_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS points_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_activity_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS user_gamification CASCADE")
