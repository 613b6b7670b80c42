"""Per-company metered usage accounting.

Usage is counted per calendar month in ``settings.quota_timezone`` and keyed
``YYYY-MM``, so the counter resets at local midnight on the 1st regardless of
when the plan started or was renewed. The cap is the ``monthly_company_cap``
of the company's active, unexpired plan; without one every call is denied.

Check and increment are a single conditional upsert: the row is only
inserted when a usable plan exists and only incremented while
``used < cap``. The database serializes writers on the counter row, so two
concurrent callers can never both take the last unit.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, NamedTuple
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta
from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from gateway import db as db_module
from gateway.config import Settings
from gateway.metrics import ledger_error_total, quota_reject_total
from gateway.services.entitlements import as_utc

settings = Settings()
logger = logging.getLogger(__name__)

REASON_LIMIT_REACHED = "limit_reached"
REASON_NO_ACTIVE_PLAN = "no_active_plan"
REASON_PLAN_EXPIRED = "plan_expired"


class LedgerUnavailable(Exception):
    """The usage store failed; the caller may retry."""


class UsageSnapshot(NamedTuple):
    """Usage state for the current period, returned on allow and deny."""

    allowed: bool
    used: int
    cap: int
    remaining: int
    period: str
    resets_at: datetime
    tier: str | None
    plan_ends_at: datetime | None
    reason: str | None

    def as_dict(self) -> dict[str, Any]:
        data = self._asdict()
        data["resets_at"] = self.resets_at.isoformat()
        data["plan_ends_at"] = self.plan_ends_at.isoformat() if self.plan_ends_at else None
        return data


def period_bounds(now: datetime | None = None, tz: str | None = None) -> tuple[str, datetime]:
    """Return the ``YYYY-MM`` key of the period containing ``now`` and its end."""
    if now is None:
        now = datetime.now(timezone.utc)
    local = now.astimezone(ZoneInfo(tz or settings.quota_timezone))
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    resets_at = (start + relativedelta(months=1)).astimezone(timezone.utc)
    return local.strftime("%Y-%m"), resets_at


_CONSUME = text(
    "INSERT INTO usage_counters (company_id, period, used, updated_at) "
    "SELECT :company_id, :period, 1, :now FROM company_plans "
    "WHERE company_id = :company_id AND status = 'active' "
    "AND ends_at > :now AND monthly_company_cap > 0 "
    "ON CONFLICT (company_id, period) DO UPDATE "
    "SET used = usage_counters.used + 1, updated_at = excluded.updated_at "
    "WHERE usage_counters.used < ("
    "SELECT monthly_company_cap FROM company_plans "
    "WHERE company_id = :company_id AND status = 'active' AND ends_at > :now"
    ") "
    "RETURNING used"
).bindparams(bindparam("now", type_=DateTime(timezone=True)))

_SELECT_PLAN = text(
    "SELECT tier, monthly_company_cap, ends_at FROM company_plans "
    "WHERE company_id = :company_id AND status = 'active'"
)

_SELECT_USED = text(
    "SELECT used FROM usage_counters WHERE company_id = :company_id AND period = :period"
)

_INSERT_EVENT = text(
    "INSERT INTO events (company_id, user_id, event, detail, ts) "
    "VALUES (:company_id, :user_id, 'analysis_consumed', :period, :ts)"
).bindparams(bindparam("ts", type_=DateTime(timezone=True)))


def _build_snapshot(
    *,
    allowed: bool,
    used: int,
    plan: Any,
    period: str,
    resets_at: datetime,
    now: datetime,
) -> UsageSnapshot:
    cap = plan.monthly_company_cap if plan is not None else 0
    plan_ends_at = as_utc(plan.ends_at) if plan is not None else None
    reason = None
    if not allowed:
        if plan is None:
            reason = REASON_NO_ACTIVE_PLAN
        elif plan_ends_at <= now:
            reason = REASON_PLAN_EXPIRED
        else:
            reason = REASON_LIMIT_REACHED
    return UsageSnapshot(
        allowed=allowed,
        used=used,
        cap=cap,
        remaining=max(cap - used, 0),
        period=period,
        resets_at=resets_at,
        tier=plan.tier if plan is not None else None,
        plan_ends_at=plan_ends_at,
        reason=reason,
    )


def try_consume_sync(
    company_id: str, user_id: str, *, now: datetime | None = None
) -> UsageSnapshot:
    """Consume one metered unit for ``company_id`` if its plan allows it.

    Denials are reported through ``UsageSnapshot.allowed``; only store
    failures raise (:class:`LedgerUnavailable`).
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    period, resets_at = period_bounds(now)

    try:
        with db_module.SessionLocal() as db:
            consumed = db.execute(
                _CONSUME, {"company_id": company_id, "period": period, "now": now}
            ).scalar()
            allowed = consumed is not None
            plan = db.execute(_SELECT_PLAN, {"company_id": company_id}).first()
            if allowed:
                used = consumed
                db.execute(
                    _INSERT_EVENT,
                    {
                        "company_id": company_id,
                        "user_id": user_id,
                        "period": period,
                        "ts": now,
                    },
                )
                db.commit()
            else:
                used = db.execute(
                    _SELECT_USED, {"company_id": company_id, "period": period}
                ).scalar() or 0
                db.rollback()
    except SQLAlchemyError as exc:
        ledger_error_total.inc()
        logger.exception("Usage ledger unavailable", extra={"company_id": company_id})
        raise LedgerUnavailable(str(exc)) from exc

    snapshot = _build_snapshot(
        allowed=allowed, used=used, plan=plan, period=period, resets_at=resets_at, now=now
    )
    if not allowed:
        quota_reject_total.inc()
        logger.info(
            "Usage denied: %s (%s/%s)",
            snapshot.reason,
            snapshot.used,
            snapshot.cap,
            extra={"company_id": company_id, "user_id": user_id},
        )
    return snapshot


def get_usage_sync(company_id: str, *, now: datetime | None = None) -> UsageSnapshot:
    """Report current-period usage without consuming."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    period, resets_at = period_bounds(now)

    try:
        with db_module.SessionLocal() as db:
            plan = db.execute(_SELECT_PLAN, {"company_id": company_id}).first()
            used = db.execute(
                _SELECT_USED, {"company_id": company_id, "period": period}
            ).scalar() or 0
    except SQLAlchemyError as exc:
        ledger_error_total.inc()
        raise LedgerUnavailable(str(exc)) from exc

    allowed = (
        plan is not None
        and as_utc(plan.ends_at) > now
        and used < plan.monthly_company_cap
    )
    return _build_snapshot(
        allowed=allowed, used=used, plan=plan, period=period, resets_at=resets_at, now=now
    )


__all__ = [
    "LedgerUnavailable",
    "REASON_LIMIT_REACHED",
    "REASON_NO_ACTIVE_PLAN",
    "REASON_PLAN_EXPIRED",
    "UsageSnapshot",
    "get_usage_sync",
    "period_bounds",
    "try_consume_sync",
]
