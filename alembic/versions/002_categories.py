"""Badge categories.

Revision ID: 002_categories
Revises: 001_badge_pipeline
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_categories"
down_revision: str | None = "001_badge_pipeline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            color VARCHAR(32) NOT NULL DEFAULT 'purple',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_categories_name UNIQUE (name)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_badges_category ON badges(category)")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_badges_category")
    op.execute("DROP TABLE IF EXISTS categories CASCADE")
