"""Baseline: the platform's users table.

Accounts are owned by the platform; this creates the subset of columns the
engine reads when the service runs against its own database.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            display_name VARCHAR(64),
            subscription_tier VARCHAR(16) NOT NULL DEFAULT 'FREE',
            is_admin BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_created
        ON users(created_at, id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE")
