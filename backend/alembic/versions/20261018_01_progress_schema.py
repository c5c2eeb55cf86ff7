"""User profiles, lesson catalog, and lesson progress tables."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261018_01_progress_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_lessons_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("selected_topics", sa.JSON(), nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notification_time", sa.String(length=5), nullable=True),
        sa.Column("last_completion_date", sa.Date(), nullable=True),
        sa.Column("cached_daily_lesson_id", sa.String(length=128), nullable=True),
        sa.Column("cached_daily_lesson_date", sa.Date(), nullable=True),
        sa.CheckConstraint("xp >= 0", name="ck_user_profiles_xp_non_negative"),
        sa.CheckConstraint("longest_streak >= current_streak", name="ck_user_profiles_longest_streak"),
    )

    op.create_table(
        "lessons",
        sa.Column("id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("topic_id", sa.String(length=128), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("difficulty", sa.String(length=16), nullable=False, server_default="beginner"),
        sa.Column("xp_reward", sa.Integer(), nullable=False),
        sa.Column("estimated_minutes", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=True),
    )
    op.create_index("ix_lessons_topic", "lessons", ["topic_id"])

    op.create_table(
        "user_lesson_progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("user_id", sa.String(length=128), sa.ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("lesson_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="not_started"),
        sa.Column("xp_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "lesson_id", name="uq_user_lesson_progress"),
    )
    op.create_index("ix_user_lesson_progress_user", "user_lesson_progress", ["user_id"])

    op.create_table(
        "persistence_audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), sa.ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("actor", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_persistence_audit_events_user", "persistence_audit_events", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_persistence_audit_events_user", table_name="persistence_audit_events")
    op.drop_table("persistence_audit_events")
    op.drop_index("ix_user_lesson_progress_user", table_name="user_lesson_progress")
    op.drop_table("user_lesson_progress")
    op.drop_index("ix_lessons_topic", table_name="lessons")
    op.drop_table("lessons")
    op.drop_table("user_profiles")
