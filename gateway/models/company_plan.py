"""Company subscription plans.

A company has at most one ``active`` plan. The partial unique index below is
the conflict target of the purchase upsert.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, text

from .base import Base


class CompanyPlan(Base):
    __tablename__ = "company_plans"

    id = Column(Integer, primary_key=True)
    company_id = Column(String(64), nullable=False)
    tier = Column(String(32), nullable=False)
    monthly_company_cap = Column(Integer, nullable=False)
    provider_transaction_id = Column(String(128), nullable=False)
    product_id = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, server_default="active")
    started_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index(
            "uq_company_plans_active",
            "company_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )


__all__ = ["CompanyPlan"]
