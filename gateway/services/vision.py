"""Vision model forwarding over the messages API."""

from __future__ import annotations

import logging
import os
import time
from typing import NamedTuple

import httpx

from gateway.config import Settings
from gateway.metrics import analysis_latency_seconds, vision_error_total

settings = Settings()
logger = logging.getLogger(__name__)

_client: httpx.AsyncClient | None = None


class VisionError(RuntimeError):
    """The vision model could not be reached."""


class VisionResponse(NamedTuple):
    status_code: int
    body: bytes


def _get_client() -> httpx.AsyncClient:
    """Lazily build and cache the HTTP client."""

    global _client
    if _client is None:
        mounts: dict[str, httpx.AsyncHTTPTransport] = {}
        http_proxy = os.environ.get("HTTP_PROXY")
        https_proxy = os.environ.get("HTTPS_PROXY")
        if http_proxy:
            mounts["http://"] = httpx.AsyncHTTPTransport(proxy=http_proxy)
        if https_proxy:
            mounts["https://"] = httpx.AsyncHTTPTransport(proxy=https_proxy)
        _client = httpx.AsyncClient(
            mounts=mounts or None,
            timeout=httpx.Timeout(settings.vision_timeout_s),
        )
    return _client


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
    _client = None


def build_request_body(
    image_base64: str,
    prompt: str,
    *,
    model: str | None = None,
    media_type: str = "image/jpeg",
) -> dict:
    return {
        "model": model or settings.vision_default_model,
        "max_tokens": settings.vision_max_tokens,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": media_type,
                            "data": image_base64,
                        },
                    },
                    {"type": "text", "text": prompt},
                ],
            }
        ],
    }


async def forward_analysis(
    image_base64: str,
    prompt: str,
    *,
    model: str | None = None,
    media_type: str = "image/jpeg",
) -> VisionResponse:
    """Send the analysis request upstream and return its status and raw body.

    The upstream response is not interpreted; non-2xx statuses are returned
    as-is for the caller to pass through.
    """
    if not settings.anthropic_api_key:
        vision_error_total.inc()
        raise VisionError("ANTHROPIC_API_KEY is not set")

    payload = build_request_body(image_base64, prompt, model=model, media_type=media_type)
    headers = {
        "content-type": "application/json",
        "x-api-key": settings.anthropic_api_key,
        "anthropic-version": settings.vision_api_version,
    }
    start = time.perf_counter()
    try:
        resp = await _get_client().post(
            settings.vision_api_url, json=payload, headers=headers
        )
    except httpx.HTTPError as exc:
        vision_error_total.inc()
        logger.exception("Vision request failed")
        raise VisionError(str(exc) or exc.__class__.__name__) from exc
    finally:
        analysis_latency_seconds.observe(time.perf_counter() - start)

    if resp.status_code >= 400:
        logger.warning("Vision upstream returned %s", resp.status_code)
    return VisionResponse(status_code=resp.status_code, body=resp.content)


__all__ = [
    "VisionError",
    "VisionResponse",
    "build_request_body",
    "close_client",
    "forward_analysis",
]
