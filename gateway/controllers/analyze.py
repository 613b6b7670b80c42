from __future__ import annotations

import asyncio
import json
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gateway.config import Settings
from gateway.dependencies import CallerContext, require_company
from gateway.errors import (
    ClientInputError,
    DependencyError,
    ErrorResponse,
    QuotaExceededError,
)
from gateway.metrics import analysis_requests_total
from gateway.services.quota import LedgerUnavailable, try_consume_sync
from gateway.services.vision import VisionError, forward_analysis

settings = Settings()
logger = logging.getLogger(__name__)

router = APIRouter()


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(alias="imageBase64")
    prompt: str
    model: str | None = None
    media_type: Literal["image/jpeg", "image/png", "image/gif", "image/webp"] = Field(
        "image/jpeg", alias="mediaType"
    )

    @field_validator("image_base64", "prompt")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("image_base64")
    @classmethod
    def within_size_limit(cls, v: str) -> str:
        if len(v) > settings.max_image_base64_bytes:
            raise ValueError("image too large")
        return v


@router.post(
    "/analyze",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def analyze(request: Request, caller: CallerContext = Depends(require_company)):
    """Meter one analysis for the caller's company and forward it upstream."""
    try:
        payload = await request.json()
    except json.JSONDecodeError as exc:
        raise ClientInputError("Invalid JSON payload") from exc

    try:
        body = AnalyzeRequest.model_validate(payload)
    except ValidationError as exc:
        raise ClientInputError("Missing image or prompt") from exc

    analysis_requests_total.inc()
    try:
        usage = await asyncio.to_thread(
            try_consume_sync, caller.company_id, caller.identity.subject
        )
    except LedgerUnavailable as exc:
        raise DependencyError("Usage check failed", details=str(exc)) from exc

    if not usage.allowed:
        raise QuotaExceededError("Usage limit reached", usage=usage.as_dict())

    try:
        upstream = await forward_analysis(
            body.image_base64,
            body.prompt,
            model=body.model,
            media_type=body.media_type,
        )
    except VisionError as exc:
        raise DependencyError("Vision request failed", details=str(exc)) from exc

    return Response(
        content=upstream.body,
        status_code=upstream.status_code,
        media_type="application/json",
        headers={
            "X-Usage-Used": str(usage.used),
            "X-Usage-Cap": str(usage.cap),
        },
    )
