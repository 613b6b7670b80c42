"""Error taxonomy and JSON rendering shared by all endpoints."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gateway.models import ErrorCode

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: str | None = None
    usage: dict[str, Any] | None = None


class ServiceError(Exception):
    """Terminal error for the current request, rendered as ``ErrorResponse``."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        details: str | None = None,
        usage: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        self.usage = usage

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            code=str(self.code),
            message=self.message,
            details=self.details,
            usage=self.usage,
        )


class ClientInputError(ServiceError):
    status_code = 400
    code = ErrorCode.BAD_REQUEST


class AuthenticationError(ServiceError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED


class QuotaExceededError(ServiceError):
    status_code = 402
    code = ErrorCode.LIMIT_REACHED


class ForbiddenError(ServiceError):
    status_code = 403
    code = ErrorCode.FORBIDDEN


class RateLimitedError(ServiceError):
    status_code = 429
    code = ErrorCode.TOO_MANY_REQUESTS


class UnavailableError(ServiceError):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE


class DependencyError(ServiceError):
    status_code = 500
    code = ErrorCode.SERVICE_UNAVAILABLE


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    body = exc.to_response().model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = ErrorResponse(
        code=str(ErrorCode.INTERNAL_ERROR),
        message="Unexpected error",
        details=str(exc),
    )
    return JSONResponse(status_code=500, content=err.model_dump(exclude_none=True))


__all__ = [
    "ErrorResponse",
    "ServiceError",
    "ClientInputError",
    "AuthenticationError",
    "QuotaExceededError",
    "ForbiddenError",
    "RateLimitedError",
    "UnavailableError",
    "DependencyError",
    "service_error_handler",
    "unhandled_error_handler",
]
