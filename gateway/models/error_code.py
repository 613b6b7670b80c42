from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    """Error codes returned in ``ErrorResponse.code``."""

    BAD_REQUEST = "BAD_REQUEST"
    UNKNOWN_PRODUCT = "UNKNOWN_PRODUCT"
    PROFILE_MISSING_COMPANY = "PROFILE_MISSING_COMPANY"
    RECEIPT_REJECTED = "RECEIPT_REJECTED"
    UNAUTHORIZED = "UNAUTHORIZED"
    MISSING_TOKEN = "MISSING_TOKEN"
    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    MISSING_SUBJECT = "MISSING_SUBJECT"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    FORBIDDEN = "FORBIDDEN"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


__all__ = ["ErrorCode"]
