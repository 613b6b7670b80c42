from __future__ import annotations

import asyncio
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from gateway.dependencies import CallerContext, require_company
from gateway.errors import DependencyError, ErrorResponse
from gateway.services.entitlements import PersistenceError, get_active_plan_sync
from gateway.services.quota import LedgerUnavailable, get_usage_sync

router = APIRouter()


class PlanResponse(BaseModel):
    tier: str
    monthly_company_cap: int
    product_id: str
    started_at: datetime
    ends_at: datetime


class UsageResponse(BaseModel):
    company_id: str
    period: str
    used: int
    cap: int
    remaining: int
    resets_at: datetime
    allowed: bool
    reason: str | None = None
    plan: PlanResponse | None = None


@router.get(
    "/usage",
    response_model=UsageResponse,
    responses={401: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)
async def usage(caller: CallerContext = Depends(require_company)):
    """Current plan and period usage for the caller's company."""
    try:
        snapshot = await asyncio.to_thread(get_usage_sync, caller.company_id)
        plan = await asyncio.to_thread(get_active_plan_sync, caller.company_id)
    except (LedgerUnavailable, PersistenceError) as exc:
        raise DependencyError("Usage lookup failed", details=str(exc)) from exc

    return UsageResponse(
        company_id=caller.company_id,
        period=snapshot.period,
        used=snapshot.used,
        cap=snapshot.cap,
        remaining=snapshot.remaining,
        resets_at=snapshot.resets_at,
        allowed=snapshot.allowed,
        reason=snapshot.reason,
        plan=PlanResponse(
            tier=plan.tier,
            monthly_company_cap=plan.monthly_company_cap,
            product_id=plan.product_id,
            started_at=plan.started_at,
            ends_at=plan.ends_at,
        )
        if plan
        else None,
    )
