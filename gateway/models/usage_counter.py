from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from .base import Base


class UsageCounter(Base):
    """Monthly metered usage per company."""

    __tablename__ = "usage_counters"

    company_id = Column(String(64), primary_key=True)
    period = Column(String(7), primary_key=True)  # YYYY-MM
    used = Column(Integer, nullable=False, server_default="0")
    updated_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


__all__ = ["UsageCounter"]
