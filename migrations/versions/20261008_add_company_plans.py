"""add company_plans with single active plan per company

Revision ID: 20261008_company_plans
Revises: 20261001_init
Create Date: 2026-10-08

"""
from alembic import op
import sqlalchemy as sa


revision = '20261008_company_plans'
down_revision = '20261001_init'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create company_plans and the partial unique index on active rows."""

    op.create_table(
        "company_plans",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("tier", sa.String(length=32), nullable=False),
        sa.Column("monthly_company_cap", sa.Integer, nullable=False),
        sa.Column("provider_transaction_id", sa.String(length=128), nullable=False),
        sa.Column("product_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # Conflict target for the purchase upsert.
    op.create_index(
        "uq_company_plans_active",
        "company_plans",
        ["company_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )


def downgrade() -> None:
    """Drop company_plans."""

    op.drop_index("uq_company_plans_active", table_name="company_plans")
    op.drop_table("company_plans")
