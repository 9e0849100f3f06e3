"""Initial schema: users, sessions, habits, content and feature flags.

Creates users, refresh_tokens, habits, habit_logs, milestones, books,
challenges, feature_flags and feature_flag_audit.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    """Create all tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("is_admin", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("timezone", sa.String(64), server_default="UTC", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # --- refresh_tokens (sessions) ---
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        _timestamp("created_at"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])
    op.create_index("ix_refresh_tokens_expires_at", "refresh_tokens", ["expires_at"])

    # --- habits ---
    op.create_table(
        "habits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(16), server_default="DAILY", nullable=False),
        sa.Column("habit_type", sa.String(16), server_default="BOOLEAN", nullable=False),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("color", sa.String(16), server_default="#3b82f6", nullable=False),
        sa.Column("icon", sa.String(16), nullable=True),
        sa.Column("goal", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("is_archived", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("current_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("longest_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_completions", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_habits_user_id", "habits", ["user_id"])

    # --- habit_logs ---
    op.create_table(
        "habit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("habit_id", sa.String(36), sa.ForeignKey("habits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("habit_id", "date", name="uq_habit_logs_habit_date"),
    )
    op.create_index("ix_habit_logs_user_id", "habit_logs", ["user_id"])
    op.create_index("ix_habit_logs_date", "habit_logs", ["date"])

    # --- milestones ---
    op.create_table(
        "milestones",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("habit_id", sa.String(36), sa.ForeignKey("habits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("milestone_type", sa.String(32), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        _timestamp("achieved_at"),
    )

    # --- books ---
    op.create_table(
        "books",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("author", sa.String(256), nullable=True),
        sa.Column("status", sa.String(16), server_default="WANT_TO_READ"),
        sa.Column("rating", sa.Integer(), nullable=True),
        _timestamp("created_at"),
    )

    # --- challenges ---
    op.create_table(
        "challenges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), server_default="ACTIVE"),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("completion_rate", sa.Integer(), server_default="0"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        _timestamp("created_at"),
    )

    # --- feature_flags ---
    op.create_table(
        "feature_flags",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(64), server_default="general", nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("metadata", _JSON, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    # --- feature_flag_audit (no FKs: outlives flags and users) ---
    op.create_table(
        "feature_flag_audit",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("flag_key", sa.String(64), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("changes", _JSON, nullable=False),
        sa.Column("performed_by", sa.String(36), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_feature_flag_audit_flag_key", "feature_flag_audit", ["flag_key"])
    op.create_index("ix_feature_flag_audit_created_at", "feature_flag_audit", ["created_at"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("feature_flag_audit")
    op.drop_table("feature_flags")
    op.drop_table("challenges")
    op.drop_table("books")
    op.drop_table("milestones")
    op.drop_table("habit_logs")
    op.drop_table("habits")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
