"""Badge pipeline schema.

Creates users, badges, submissions, submission_comments, earned_badges and the
user_earned_badges set. UNIQUE(student_id, badge_id) on earned_badges is what
makes concurrent approvals safe.

Revision ID: 001_badge_pipeline
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_badge_pipeline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) NOT NULL,
            name VARCHAR(128) NOT NULL,
            role VARCHAR(16) NOT NULL DEFAULT 'student',
            password_hash VARCHAR(256),
            require_password_change BOOLEAN NOT NULL DEFAULT false,
            image_url TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_users_email UNIQUE (email)
        )
    """)

    # --- Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            criteria TEXT NOT NULL,
            difficulty INTEGER NOT NULL,
            category VARCHAR(64) NOT NULL,
            image_url TEXT,
            is_public BOOLEAN NOT NULL DEFAULT false,
            creator_id BIGINT NOT NULL REFERENCES users(id),
            reactions JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_badges_difficulty_range CHECK (difficulty BETWEEN 1 AND 5)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_badges_creator ON badges(creator_id)")

    # --- Submissions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id BIGSERIAL PRIMARY KEY,
            badge_id BIGINT NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            student_id BIGINT NOT NULL REFERENCES users(id),
            teacher_id BIGINT NOT NULL REFERENCES users(id),
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            evidence TEXT NOT NULL,
            is_visible BOOLEAN NOT NULL DEFAULT true,
            show_evidence BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_submissions_status_valid CHECK (status IN ('pending', 'approved', 'rejected'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_submissions_student_id ON submissions(student_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_submissions_teacher_id ON submissions(teacher_id)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_submissions_pending
        ON submissions(teacher_id, created_at) WHERE status = 'pending'
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS submission_comments (
            id BIGSERIAL PRIMARY KEY,
            submission_id BIGINT NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
            author_id BIGINT NOT NULL REFERENCES users(id),
            content TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_submission_comments_submission_id ON submission_comments(submission_id)"
    )

    # --- Earned badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS earned_badges (
            id BIGSERIAL PRIMARY KEY,
            badge_id BIGINT NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            student_id BIGINT NOT NULL REFERENCES users(id),
            is_visible BOOLEAN NOT NULL DEFAULT true,
            reactions JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_earned_badges_student_badge UNIQUE (student_id, badge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_earned_badges_feed
        ON earned_badges(created_at DESC) WHERE is_visible
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_earned_badges (
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id BIGINT NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            added_at TIMESTAMPTZ DEFAULT NOW(),
            PRIMARY KEY (user_id, badge_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_earned_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS earned_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS submission_comments CASCADE")
    op.execute("DROP TABLE IF EXISTS submissions CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
