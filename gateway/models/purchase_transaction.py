from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from .base import Base


class PurchaseTransaction(Base):
    """Store transaction already applied to a company plan."""

    __tablename__ = "purchase_transactions"

    id = Column(Integer, primary_key=True)
    company_id = Column(String(64), nullable=False)
    provider_transaction_id = Column(String(128), nullable=False)
    product_id = Column(String(128), nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index(
            "uq_purchase_transactions_company_txn",
            "company_id",
            "provider_transaction_id",
            unique=True,
        ),
    )


__all__ = ["PurchaseTransaction"]
