from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gateway.dependencies import rate_limit, resolve_company_id
from gateway.errors import (
    ClientInputError,
    DependencyError,
    ErrorResponse,
    ForbiddenError,
)
from gateway.models import ErrorCode
from gateway.services.auth import CallerIdentity
from gateway.services.catalog import UnknownProduct, get_product
from gateway.services.entitlements import PersistenceError, apply_purchase_sync
from gateway.services.receipts import (
    ReceiptRejected,
    ReceiptServiceError,
    verify_receipt,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/receipts")


class ReceiptValidationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    receipt: str = Field(min_length=1)
    company_id: str = Field(alias="companyId", min_length=1)
    product_id: str = Field(alias="productId", min_length=1)
    transaction_id: str = Field(alias="transactionId", min_length=1)


class ReceiptValidationResponse(BaseModel):
    success: bool
    tier: str
    monthly_cap: int
    ends_at: datetime
    duplicate: bool = False


@router.post(
    "/validate",
    response_model=ReceiptValidationResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def validate_receipt(
    request: Request, identity: CallerIdentity = Depends(rate_limit)
):
    try:
        payload = await request.json()
    except json.JSONDecodeError as exc:
        raise ClientInputError("Invalid JSON payload") from exc

    try:
        body = ReceiptValidationRequest.model_validate(payload)
    except ValidationError as exc:
        raise ClientInputError("Missing required fields") from exc

    try:
        get_product(body.product_id)
    except UnknownProduct as exc:
        raise ClientInputError(str(exc), code=ErrorCode.UNKNOWN_PRODUCT) from exc

    company_id = await resolve_company_id(identity)
    if company_id != body.company_id:
        logger.warning(
            "audit: purchase for foreign company",
            extra={"company_id": body.company_id, "user_id": identity.subject},
        )
        raise ForbiddenError("Company does not match caller profile")

    try:
        await verify_receipt(
            body.receipt,
            product_id=body.product_id,
            transaction_id=body.transaction_id,
        )
    except ReceiptRejected as exc:
        logger.warning(
            "audit: receipt rejected: %s",
            exc,
            extra={"company_id": body.company_id, "transaction_id": body.transaction_id},
        )
        raise ClientInputError(
            "Receipt rejected", code=ErrorCode.RECEIPT_REJECTED, details=str(exc)
        ) from exc
    except ReceiptServiceError as exc:
        raise DependencyError("Receipt verification failed", details=str(exc)) from exc

    try:
        plan = await asyncio.to_thread(
            apply_purchase_sync,
            body.company_id,
            body.product_id,
            body.transaction_id,
            user_id=identity.subject,
        )
    except PersistenceError as exc:
        raise DependencyError("Failed to update subscription", details=str(exc)) from exc

    return ReceiptValidationResponse(
        success=True,
        tier=plan.tier,
        monthly_cap=plan.monthly_company_cap,
        ends_at=plan.ends_at,
        duplicate=plan.duplicate,
    )
