from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple

import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi import Depends, Header, Request

from gateway.config import Settings
from gateway.errors import (
    AuthenticationError,
    ClientInputError,
    DependencyError,
    RateLimitedError,
    UnavailableError,
)
from gateway.metrics import auth_reject_total
from gateway.models import ErrorCode
from gateway.services.auth import CallerIdentity, TokenError, verify_bearer
from gateway.services.profiles import ProfileLookupError, get_company_id_sync

settings = Settings()
redis_client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)


logger = logging.getLogger(__name__)


class CallerContext(NamedTuple):
    identity: CallerIdentity
    company_id: str


async def require_identity(
    authorization: str | None = Header(None, alias="Authorization"),
) -> CallerIdentity:
    try:
        return verify_bearer(authorization)
    except TokenError as exc:
        auth_reject_total.inc()
        logger.warning("audit: token rejected (%s)", exc.code)
        raise AuthenticationError(exc.message, code=exc.code) from exc


async def rate_limit(
    request: Request, identity: CallerIdentity = Depends(require_identity)
) -> CallerIdentity:
    """Throttle requests by IP and subject via Redis."""
    client_host = request.client.host if request.client else ""
    ip = client_host
    xff = request.headers.get("X-Forwarded-For")
    if xff and client_host in settings.trusted_proxies:
        forwarded = [h.strip() for h in xff.split(",") if h.strip()]
        proxies = forwarded[1:] + [client_host]
        if forwarded and all(p in settings.trusted_proxies for p in proxies):
            ip = forwarded[0]
    ip_key = f"rate:ip:{ip}"
    user_key = f"rate:user:{identity.subject}"

    try:
        pipe = redis_client.pipeline()
        pipe.incr(ip_key)
        pipe.expire(ip_key, 60)
        pipe.incr(user_key)
        pipe.expire(user_key, 60)
        ip_count, _, user_count, _ = await pipe.execute()
    except RedisError as exc:
        logger.exception("Redis unavailable for rate limiting: %s", exc)
        raise UnavailableError("Rate limiter unavailable") from exc
    if (
        ip_count > settings.rate_limit_ip_per_min
        or user_count > settings.rate_limit_user_per_min
    ):
        raise RateLimitedError("Rate limit exceeded")

    return identity


async def resolve_company_id(identity: CallerIdentity) -> str:
    """Map a verified subject to its company or fail the request."""
    try:
        company_id = await asyncio.to_thread(get_company_id_sync, identity.subject)
    except ProfileLookupError as exc:
        raise DependencyError("Profile lookup failed", details=str(exc)) from exc
    if not company_id:
        raise ClientInputError(
            "User profile missing company", code=ErrorCode.PROFILE_MISSING_COMPANY
        )
    return company_id


async def require_company(
    identity: CallerIdentity = Depends(rate_limit),
) -> CallerContext:
    company_id = await resolve_company_id(identity)
    return CallerContext(identity=identity, company_id=company_id)
