"""notification engine schema

Revision ID: 20261017_01
Revises: None
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261017_01"
down_revision = None
branch_labels = None
depends_on = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("has_completed_onboarding", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("billing_status", sa.String(length=32), nullable=True),
        sa.Column("billing_current_period_end", TS, nullable=True),
    )
    op.create_index("ix_users_onboarding", "users", ["has_completed_onboarding"])

    op.create_table(
        "daily_completions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("local_date", sa.String(length=10), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("completed_at", TS, nullable=True),
        sa.UniqueConstraint("user_id", "local_date", "kind", name="uq_daily_completion"),
    )

    op.create_table(
        "weekly_completions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("week_id", sa.String(length=10), nullable=False),
        sa.Column("completed_at", TS, nullable=True),
        sa.UniqueConstraint("user_id", "week_id", name="uq_weekly_completion"),
    )

    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("action_route", sa.String(), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "squads",
        sa.Column("squad_id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("chat_channel_id", sa.String(), nullable=True),
        sa.Column("next_call_datetime", TS, nullable=True),
        sa.Column("next_call_timezone", sa.String(), nullable=True),
        sa.Column("next_call_location", sa.String(), nullable=True),
        sa.Column("next_call_title", sa.String(), nullable=True),
    )

    op.create_table(
        "squad_calls",
        sa.Column("call_id", sa.String(), primary_key=True),
        sa.Column("squad_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("start_datetime_utc", TS, nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
    )

    op.create_table(
        "coaching_clients",
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("coach_name", sa.String(), nullable=True),
        sa.Column("chat_channel_id", sa.String(), nullable=True),
        sa.Column("next_call_datetime", TS, nullable=True),
        sa.Column("next_call_timezone", sa.String(), nullable=True),
        sa.Column("next_call_location", sa.String(), nullable=True),
        sa.Column("next_call_title", sa.String(), nullable=True),
    )

    op.create_table(
        "call_reminder_jobs",
        sa.Column("job_id", sa.String(), primary_key=True),
        sa.Column("owner_type", sa.String(length=16), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("call_id", sa.String(), nullable=True),
        sa.Column("call_datetime", TS, nullable=False),
        sa.Column("call_timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("call_location", sa.String(), nullable=True),
        sa.Column("call_title", sa.String(), nullable=True),
        sa.Column("chat_channel_id", sa.String(), nullable=True),
        sa.Column("reminder_time", TS, nullable=False),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sent_at", TS, nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("failed_at", TS, nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("last_error_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=True),
        sa.Column("updated_at", TS, nullable=True),
    )
    op.create_index("ix_call_reminder_jobs_due", "call_reminder_jobs", ["sent", "failed", "reminder_time"])


def downgrade() -> None:
    op.drop_index("ix_call_reminder_jobs_due", table_name="call_reminder_jobs")
    op.drop_table("call_reminder_jobs")
    op.drop_table("coaching_clients")
    op.drop_table("squad_calls")
    op.drop_table("squads")
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("weekly_completions")
    op.drop_table("daily_completions")
    op.drop_index("ix_users_onboarding", table_name="users")
    op.drop_table("users")
