"""add purchase_transactions ledger of applied store transactions

Revision ID: 20261015_purchase_txns
Revises: 20261008_company_plans
Create Date: 2026-10-15

"""
from alembic import op
import sqlalchemy as sa


revision = '20261015_purchase_txns'
down_revision = '20261008_company_plans'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create purchase_transactions and seed it from existing plans."""

    op.create_table(
        "purchase_transactions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("provider_transaction_id", sa.String(length=128), nullable=False),
        sa.Column("product_id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "uq_purchase_transactions_company_txn",
        "purchase_transactions",
        ["company_id", "provider_transaction_id"],
        unique=True,
    )
    op.execute(
        "INSERT INTO purchase_transactions "
        "(company_id, provider_transaction_id, product_id, created_at) "
        "SELECT company_id, provider_transaction_id, product_id, updated_at "
        "FROM company_plans"
    )


def downgrade() -> None:
    """Drop purchase_transactions."""

    op.drop_index(
        "uq_purchase_transactions_company_txn", table_name="purchase_transactions"
    )
    op.drop_table("purchase_transactions")
