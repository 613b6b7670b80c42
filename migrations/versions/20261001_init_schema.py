"""init schema: users, usage_counters, events

Revision ID: 20261001_init
Revises:
Create Date: 2026-10-01

"""
from alembic import op
import sqlalchemy as sa


revision = '20261001_init'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create profile, usage and audit tables."""

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("company_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_company_id", "users", ["company_id"], unique=False)

    op.create_table(
        "usage_counters",
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),  # YYYY-MM
        sa.Column("used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("company_id", "period"),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("event", sa.String(length=64), nullable=False),
        sa.Column("detail", sa.String(length=255), nullable=True),
        sa.Column("ts", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_events_company_id", "events", ["company_id"], unique=False)


def downgrade() -> None:
    """Drop profile, usage and audit tables."""

    op.drop_index("ix_events_company_id", table_name="events")
    op.drop_table("events")
    op.drop_table("usage_counters")
    op.drop_index("ix_users_company_id", table_name="users")
    op.drop_table("users")
