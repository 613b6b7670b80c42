"""Bearer token verification.

Tokens are JWTs issued by the identity provider. The signature is checked
with PyJWT against the configured secret; ``exp`` is compared against the
verification time in seconds since the epoch, so a token whose ``exp``
equals "now" is already expired.

With ``JWT_VERIFY_SIGNATURE`` off, only the claims segment is decoded; the
header and signature segments are not inspected.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from jwt.utils import base64url_decode

from gateway.config import Settings
from gateway.models import ErrorCode

settings = Settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    subject: str
    expires_at: datetime | None = None


class TokenError(Exception):
    """Raised when a bearer token cannot be turned into a ``CallerIdentity``."""

    code = ErrorCode.UNAUTHORIZED
    message = "Invalid token"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class MissingToken(TokenError):
    code = ErrorCode.MISSING_TOKEN
    message = "Missing auth token"


class MalformedToken(TokenError):
    code = ErrorCode.MALFORMED_TOKEN
    message = "Malformed auth token"


class InvalidSignature(TokenError):
    code = ErrorCode.INVALID_SIGNATURE
    message = "Invalid token signature"


class MissingSubject(TokenError):
    code = ErrorCode.MISSING_SUBJECT
    message = "Token has no subject"


class TokenExpired(TokenError):
    code = ErrorCode.TOKEN_EXPIRED
    message = "Token expired"


def extract_bearer_token(raw_header_value: str | None) -> str:
    """Return the token part of ``"Bearer <token>"`` or raise ``MissingToken``."""
    if not raw_header_value:
        raise MissingToken()
    scheme, _, token = raw_header_value.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise MissingToken()
    return token


def _decode_unverified(token: str) -> dict:
    # Structural mode: only the claims segment has to decode.
    segments = token.split(".")
    try:
        claims = json.loads(base64url_decode(segments[1]))
    except ValueError as exc:
        raise MalformedToken("Token claims are not base64url JSON") from exc
    if not isinstance(claims, dict):
        raise MalformedToken("Token claims must be a JSON object")
    return claims


def _decode_claims(token: str, cfg: Settings) -> dict:
    if token.count(".") < 1:
        raise MalformedToken("Token must have at least two segments")
    if not cfg.jwt_verify_signature:
        return _decode_unverified(token)

    options = {
        "verify_exp": False,
        "verify_sub": False,
        "verify_aud": cfg.jwt_audience is not None,
    }
    try:
        return jwt.decode(
            token,
            cfg.jwt_secret,
            algorithms=cfg.jwt_algorithms,
            audience=cfg.jwt_audience,
            options=options,
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
        raise InvalidSignature() from exc
    except jwt.InvalidAudienceError as exc:
        raise InvalidSignature("Token audience mismatch") from exc
    except jwt.PyJWTError as exc:
        raise MalformedToken() from exc


def verify_bearer(
    raw_header_value: str | None,
    *,
    now: datetime | None = None,
    cfg: Settings | None = None,
) -> CallerIdentity:
    """Verify an ``Authorization`` header value and return the caller identity."""
    cfg = cfg or settings
    token = extract_bearer_token(raw_header_value)
    claims = _decode_claims(token, cfg)

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise MissingSubject()

    expires_at = None
    exp = claims.get("exp")
    if exp is not None:
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise MalformedToken("Token exp claim must be numeric")
        now = now or datetime.now(timezone.utc)
        if exp <= now.timestamp():
            raise TokenExpired()
        expires_at = datetime.fromtimestamp(exp, timezone.utc)

    return CallerIdentity(subject=subject, expires_at=expires_at)


__all__ = [
    "CallerIdentity",
    "TokenError",
    "MissingToken",
    "MalformedToken",
    "InvalidSignature",
    "MissingSubject",
    "TokenExpired",
    "extract_bearer_token",
    "verify_bearer",
]
