from __future__ import annotations

import base64
import json
from datetime import datetime, timezone

import jwt
import pytest

from gateway.config import Settings
from gateway.services.auth import (
    InvalidSignature,
    MalformedToken,
    MissingSubject,
    MissingToken,
    TokenExpired,
    extract_bearer_token,
    verify_bearer,
)
from tests.utils.auth import make_token

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
NOW_TS = int(NOW.timestamp())
SECRET = Settings().jwt_secret


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def test_verify_bearer_returns_identity():
    token = make_token("user-42", exp=NOW_TS + 60)
    identity = verify_bearer(f"Bearer {token}", now=NOW)
    assert identity.subject == "user-42"
    assert identity.expires_at == datetime.fromtimestamp(NOW_TS + 60, timezone.utc)


def test_verify_bearer_without_exp():
    token = make_token("user-42", ttl=None)
    identity = verify_bearer(f"Bearer {token}", now=NOW)
    assert identity.expires_at is None


def test_bearer_scheme_is_case_insensitive():
    token = make_token("user-42", exp=NOW_TS + 60)
    assert verify_bearer(f"bearer {token}", now=NOW).subject == "user-42"


@pytest.mark.parametrize("raw", [None, "", "Bearer", "Bearer    ", "Basic abc.def.ghi"])
def test_missing_token(raw):
    with pytest.raises(MissingToken):
        verify_bearer(raw, now=NOW)


def test_extract_bearer_token_strips_whitespace():
    assert extract_bearer_token("  Bearer   abc.def.ghi ") == "abc.def.ghi"


@pytest.mark.parametrize(
    "token",
    [
        "onlyonesegment",
        "abc.@@@not-base64@@@.def",
    ],
)
def test_malformed_token(token):
    with pytest.raises(MalformedToken):
        verify_bearer(f"Bearer {token}", now=NOW)


def test_claims_must_be_json_object():
    token = jwt.PyJWS().encode(b'["sub", "user-1"]', SECRET, algorithm="HS256")
    with pytest.raises(MalformedToken):
        verify_bearer(f"Bearer {token}", now=NOW)


def test_claims_must_be_json():
    token = jwt.PyJWS().encode(b"not json", SECRET, algorithm="HS256")
    with pytest.raises(MalformedToken):
        verify_bearer(f"Bearer {token}", now=NOW)


def test_signature_checked():
    token = make_token("user-1", exp=NOW_TS + 60, secret="another-secret-of-sufficient-length")
    with pytest.raises(InvalidSignature):
        verify_bearer(f"Bearer {token}", now=NOW)


def test_unsigned_token_rejected():
    header = _b64(json.dumps({"alg": "none", "typ": "JWT"}).encode())
    claims = _b64(json.dumps({"sub": "user-1"}).encode())
    with pytest.raises(InvalidSignature):
        verify_bearer(f"Bearer {header}.{claims}.", now=NOW)


@pytest.mark.parametrize("claims", [{}, {"sub": ""}, {"sub": "   "}, {"sub": 123}])
def test_missing_subject(claims):
    token = jwt.encode({**claims, "exp": NOW_TS + 60}, SECRET, algorithm="HS256")
    with pytest.raises(MissingSubject):
        verify_bearer(f"Bearer {token}", now=NOW)


@pytest.mark.parametrize("exp", [NOW_TS - 3600, NOW_TS - 1, NOW_TS])
def test_expired_token(exp):
    token = make_token("user-1", exp=exp)
    with pytest.raises(TokenExpired):
        verify_bearer(f"Bearer {token}", now=NOW)


def test_non_numeric_exp_is_malformed():
    token = jwt.encode({"sub": "user-1", "exp": "tomorrow"}, SECRET, algorithm="HS256")
    with pytest.raises(MalformedToken):
        verify_bearer(f"Bearer {token}", now=NOW)


def test_audience_enforced_when_configured():
    cfg = Settings(jwt_audience="authenticated")
    good = make_token("user-1", exp=NOW_TS + 60, aud="authenticated")
    bad = make_token("user-1", exp=NOW_TS + 60, aud="anon")
    assert verify_bearer(f"Bearer {good}", now=NOW, cfg=cfg).subject == "user-1"
    with pytest.raises(InvalidSignature):
        verify_bearer(f"Bearer {bad}", now=NOW, cfg=cfg)


def test_audience_ignored_when_not_configured():
    token = make_token("user-1", exp=NOW_TS + 60, aud="authenticated")
    assert verify_bearer(f"Bearer {token}", now=NOW).subject == "user-1"


def test_structural_decoding_when_signature_check_disabled():
    cfg = Settings(jwt_verify_signature=False)
    token = make_token("user-1", exp=NOW_TS + 60, secret="issuer-secret-we-do-not-know-here")
    assert verify_bearer(f"Bearer {token}", now=NOW, cfg=cfg).subject == "user-1"

    expired = make_token("user-1", exp=NOW_TS - 1, secret="issuer-secret-we-do-not-know-here")
    with pytest.raises(TokenExpired):
        verify_bearer(f"Bearer {expired}", now=NOW, cfg=cfg)


@pytest.mark.parametrize(
    "header",
    [
        _b64(json.dumps({"alg": "none"}).encode()),
        "xx",
        "",
    ],
)
def test_structural_decoding_ignores_header_and_signature(header):
    cfg = Settings(jwt_verify_signature=False)
    claims = _b64(json.dumps({"sub": "user-1", "exp": NOW_TS + 60}).encode())

    two_segments = verify_bearer(f"Bearer {header}.{claims}", now=NOW, cfg=cfg)
    with_signature = verify_bearer(f"Bearer {header}.{claims}.sig", now=NOW, cfg=cfg)

    assert two_segments.subject == with_signature.subject == "user-1"


@pytest.mark.parametrize(
    "claims",
    [
        "@@@not-base64@@@",
        _b64(b"not json"),
        _b64(b'["sub", "user-1"]'),
        "",
    ],
)
def test_structural_decoding_requires_claims_object(claims):
    cfg = Settings(jwt_verify_signature=False)
    with pytest.raises(MalformedToken):
        verify_bearer(f"Bearer header.{claims}", now=NOW, cfg=cfg)


def test_structural_decoding_requires_two_segments():
    cfg = Settings(jwt_verify_signature=False)
    with pytest.raises(MalformedToken):
        verify_bearer("Bearer onlyonesegment", now=NOW, cfg=cfg)
