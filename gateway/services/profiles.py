"""Organization lookup for verified callers."""
from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from gateway import db as db_module


class ProfileLookupError(Exception):
    """The profile store failed."""


def get_company_id_sync(user_id: str) -> str | None:
    """Return the company the user belongs to, or ``None`` if unknown."""
    try:
        with db_module.SessionLocal() as db:
            company_id = db.execute(
                text("SELECT company_id FROM users WHERE id = :uid"),
                {"uid": user_id},
            ).scalar()
    except SQLAlchemyError as exc:
        raise ProfileLookupError(str(exc)) from exc
    return company_id or None


__all__ = ["ProfileLookupError", "get_company_id_sync"]
