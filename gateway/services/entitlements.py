"""Subscription lifecycle driven by purchase events.

Each company has at most one ``active`` row in ``company_plans``. A purchase
either creates that row or rewrites it in place (tier, cap, product,
transaction id and validity window), so the row id survives renewals,
upgrades and downgrades. Both cases are one ``INSERT ... ON CONFLICT``
statement against the partial unique index on active rows, which keeps
concurrent purchases for the same company from creating two active plans.

Every applied store transaction is recorded in ``purchase_transactions``
in the same database transaction. With ``IGNORE_DUPLICATE_TRANSACTIONS`` on,
a transaction the company has already seen leaves the plan untouched, even
when a later purchase has replaced it on the active row.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from gateway import db as db_module
from gateway.config import Settings
from gateway.metrics import purchase_applied_total, purchase_duplicate_total
from gateway.services.catalog import get_product

settings = Settings()
logger = logging.getLogger(__name__)

_PLAN_COLUMNS = (
    "id, company_id, tier, monthly_company_cap, provider_transaction_id, "
    "product_id, status, started_at, ends_at, updated_at"
)


class PersistenceError(Exception):
    """The plan store failed; nothing was written."""


@dataclass(frozen=True)
class SubscriptionSnapshot:
    id: int
    company_id: str
    tier: str
    monthly_company_cap: int
    provider_transaction_id: str
    product_id: str
    status: str
    started_at: datetime
    ends_at: datetime
    updated_at: datetime | None
    duplicate: bool = False


def as_utc(value: Any) -> datetime | None:
    """Normalize DB datetimes (SQLite returns strings or naive values) to UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _snapshot(row: Any, *, duplicate: bool = False) -> SubscriptionSnapshot:
    data = row._mapping
    return SubscriptionSnapshot(
        id=data["id"],
        company_id=data["company_id"],
        tier=data["tier"],
        monthly_company_cap=data["monthly_company_cap"],
        provider_transaction_id=data["provider_transaction_id"],
        product_id=data["product_id"],
        status=data["status"],
        started_at=as_utc(data["started_at"]),
        ends_at=as_utc(data["ends_at"]),
        updated_at=as_utc(data["updated_at"]),
        duplicate=duplicate,
    )


_UPSERT_PLAN = text(
    "INSERT INTO company_plans (company_id, tier, monthly_company_cap, "
    "provider_transaction_id, product_id, status, started_at, ends_at, "
    "created_at, updated_at) "
    "VALUES (:company_id, :tier, :cap, :txn, :product_id, 'active', "
    ":now, :ends_at, :now, :now) "
    "ON CONFLICT (company_id) WHERE status = 'active' DO UPDATE SET "
    "tier = excluded.tier, "
    "monthly_company_cap = excluded.monthly_company_cap, "
    "provider_transaction_id = excluded.provider_transaction_id, "
    "product_id = excluded.product_id, "
    "started_at = excluded.started_at, "
    "ends_at = excluded.ends_at, "
    "updated_at = excluded.updated_at "
    f"RETURNING {_PLAN_COLUMNS}"
).bindparams(
    bindparam("now", type_=DateTime(timezone=True)),
    bindparam("ends_at", type_=DateTime(timezone=True)),
)

# Returns no row when the company has already seen this transaction.
_RECORD_TRANSACTION = text(
    "INSERT INTO purchase_transactions "
    "(company_id, provider_transaction_id, product_id, created_at) "
    "VALUES (:company_id, :txn, :product_id, :now) "
    "ON CONFLICT (company_id, provider_transaction_id) DO NOTHING "
    "RETURNING id"
).bindparams(bindparam("now", type_=DateTime(timezone=True)))

_SELECT_ACTIVE = text(
    f"SELECT {_PLAN_COLUMNS} FROM company_plans "
    "WHERE company_id = :company_id AND status = 'active'"
)

_SELECT_CURRENT = text(
    f"SELECT {_PLAN_COLUMNS} FROM company_plans "
    "WHERE company_id = :company_id "
    "ORDER BY CASE WHEN status = 'active' THEN 0 ELSE 1 END, id DESC "
    "LIMIT 1"
)


_INSERT_EVENT = text(
    "INSERT INTO events (company_id, user_id, event, detail, ts) "
    "VALUES (:company_id, :user_id, :event, :detail, :ts)"
).bindparams(bindparam("ts", type_=DateTime(timezone=True)))


def apply_purchase_sync(
    company_id: str,
    product_id: str,
    provider_transaction_id: str,
    *,
    user_id: str | None = None,
    now: datetime | None = None,
) -> SubscriptionSnapshot:
    """Create or update the company's active plan from a purchase.

    Raises :class:`~gateway.services.catalog.UnknownProduct` before touching
    the store and :class:`PersistenceError` if the transaction fails.
    """
    product = get_product(product_id)
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    ends_at = product.period_end(now)

    try:
        with db_module.SessionLocal() as db:
            recorded = db.execute(
                _RECORD_TRANSACTION,
                {
                    "company_id": company_id,
                    "txn": provider_transaction_id,
                    "product_id": product.product_id,
                    "now": now,
                },
            ).first()
            duplicate = recorded is None and settings.ignore_duplicate_transactions
            if duplicate:
                row = db.execute(_SELECT_CURRENT, {"company_id": company_id}).one()
            else:
                row = db.execute(
                    _UPSERT_PLAN,
                    {
                        "company_id": company_id,
                        "tier": product.tier,
                        "cap": product.monthly_cap,
                        "txn": provider_transaction_id,
                        "product_id": product.product_id,
                        "now": now,
                        "ends_at": ends_at,
                    },
                ).one()

            db.execute(
                _INSERT_EVENT,
                {
                    "company_id": company_id,
                    "user_id": user_id,
                    "event": "purchase_duplicate" if duplicate else "plan_applied",
                    "detail": f"{product_id}:{provider_transaction_id}"[:255],
                    "ts": now,
                },
            )
            db.commit()
    except SQLAlchemyError as exc:
        logger.exception(
            "Failed to apply purchase",
            extra={"company_id": company_id, "product_id": product_id},
        )
        raise PersistenceError(str(exc)) from exc

    snapshot = _snapshot(row, duplicate=duplicate)
    if duplicate:
        purchase_duplicate_total.inc()
        logger.warning(
            "audit: duplicate transaction ignored",
            extra={"company_id": company_id, "transaction_id": provider_transaction_id},
        )
    else:
        purchase_applied_total.inc()
        logger.info(
            "Plan %s applied until %s",
            snapshot.tier,
            snapshot.ends_at.isoformat(),
            extra={"company_id": company_id, "product_id": product_id},
        )
    return snapshot


def get_active_plan_sync(company_id: str) -> SubscriptionSnapshot | None:
    """Return the company's active plan, if any."""
    try:
        with db_module.SessionLocal() as db:
            row = db.execute(_SELECT_ACTIVE, {"company_id": company_id}).first()
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc
    return _snapshot(row) if row is not None else None


__all__ = [
    "PersistenceError",
    "SubscriptionSnapshot",
    "apply_purchase_sync",
    "as_utc",
    "get_active_plan_sync",
]
