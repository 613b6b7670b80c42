from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from gateway.models.base import Base


class UserProfile(Base):
    """Profile row linking a token subject to its company."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    company_id = Column(String(64), nullable=True, index=True)
    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


__all__ = ["UserProfile"]
