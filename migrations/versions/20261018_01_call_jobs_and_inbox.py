"""call stage jobs, squad members, email preferences, notification dedup key

Revision ID: 20261018_01
Revises: 20261017_01
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = "20261017_01"
branch_labels = None
depends_on = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    with op.batch_alter_table("users") as batch:
        batch.add_column(sa.Column("email", sa.String(), nullable=True))
        batch.add_column(sa.Column("email_preferences", sa.JSON(), nullable=True))

    with op.batch_alter_table("notifications") as batch:
        batch.add_column(sa.Column("dedup_key", sa.String(), nullable=True))
        batch.create_unique_constraint("uq_notifications_dedup_key", ["dedup_key"])

    op.create_table(
        "squad_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("squad_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.UniqueConstraint("squad_id", "user_id", name="uq_squad_member"),
    )

    op.create_table(
        "call_scheduled_jobs",
        sa.Column("job_id", sa.String(), primary_key=True),
        sa.Column("owner_type", sa.String(length=16), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("owner_name", sa.String(), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("call_id", sa.String(), nullable=True),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("scheduled_time", TS, nullable=False),
        sa.Column("call_datetime", TS, nullable=False),
        sa.Column("call_timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("call_location", sa.String(), nullable=True),
        sa.Column("call_title", sa.String(), nullable=True),
        sa.Column("executed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("executed_at", TS, nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("failed_at", TS, nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("last_error_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=True),
        sa.Column("updated_at", TS, nullable=True),
    )
    op.create_index("ix_call_scheduled_jobs_due", "call_scheduled_jobs", ["executed", "failed", "scheduled_time"])


def downgrade() -> None:
    op.drop_index("ix_call_scheduled_jobs_due", table_name="call_scheduled_jobs")
    op.drop_table("call_scheduled_jobs")
    op.drop_table("squad_members")
    with op.batch_alter_table("notifications") as batch:
        batch.drop_constraint("uq_notifications_dedup_key", type_="unique")
        batch.drop_column("dedup_key")
    with op.batch_alter_table("users") as batch:
        batch.drop_column("email_preferences")
        batch.drop_column("email")
