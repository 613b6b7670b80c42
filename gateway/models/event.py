from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from .base import Base


class Event(Base):
    """Audit event."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    company_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=True)
    event = Column(String(64), nullable=False)
    detail = Column(String(255), nullable=True)
    ts = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
