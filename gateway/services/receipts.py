"""App Store receipt verification.

When ``APPSTORE_VERIFY_RECEIPTS`` is off the client-reported transaction is
trusted as-is. When on, the receipt is posted to ``verifyReceipt`` and the
reported transaction must appear in it with the reported product.
"""
from __future__ import annotations

import logging

import httpx

from gateway.config import Settings
from gateway.metrics import receipt_reject_total

settings = Settings()
logger = logging.getLogger(__name__)

STATUS_OK = 0
STATUS_SANDBOX_RECEIPT = 21007

_client: httpx.AsyncClient | None = None


class ReceiptError(Exception):
    pass


class ReceiptRejected(ReceiptError):
    """The store does not vouch for this transaction."""


class ReceiptServiceError(ReceiptError):
    """The store could not be reached or answered garbage."""


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=httpx.Timeout(settings.appstore_timeout_s))
    return _client


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
    _client = None


async def _post_receipt(url: str, receipt: str) -> dict:
    payload = {"receipt-data": receipt}
    if settings.appstore_shared_secret:
        payload["password"] = settings.appstore_shared_secret
    try:
        resp = await _get_client().post(url, json=payload)
    except httpx.HTTPError as exc:
        raise ReceiptServiceError(f"verifyReceipt request failed: {exc}") from exc
    if resp.status_code != 200:
        raise ReceiptServiceError(f"verifyReceipt returned HTTP {resp.status_code}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise ReceiptServiceError("verifyReceipt returned non-JSON body") from exc
    if not isinstance(data, dict) or "status" not in data:
        raise ReceiptServiceError("verifyReceipt response missing status")
    return data


def _transactions(data: dict) -> list[dict]:
    latest = data.get("latest_receipt_info") or []
    receipt = data.get("receipt") or {}
    if not isinstance(receipt, dict):
        raise ReceiptServiceError("verifyReceipt response has unexpected shape")
    in_app = receipt.get("in_app") or []
    if not isinstance(latest, list) or not isinstance(in_app, list):
        raise ReceiptServiceError("verifyReceipt response has unexpected shape")
    return [t for t in latest + in_app if isinstance(t, dict)]


async def verify_receipt(receipt: str, *, product_id: str, transaction_id: str) -> None:
    """Raise unless the store confirms ``transaction_id`` for ``product_id``."""
    if not settings.appstore_verify_receipts:
        logger.info(
            "Receipt verification disabled; trusting client transaction",
            extra={"transaction_id": transaction_id, "product_id": product_id},
        )
        return

    data = await _post_receipt(settings.appstore_production_url, receipt)
    if data["status"] == STATUS_SANDBOX_RECEIPT:
        data = await _post_receipt(settings.appstore_sandbox_url, receipt)

    if data["status"] != STATUS_OK:
        receipt_reject_total.inc()
        raise ReceiptRejected(f"verifyReceipt status {data['status']}")

    for txn in _transactions(data):
        if (
            str(txn.get("transaction_id")) == transaction_id
            and txn.get("product_id") == product_id
        ):
            return

    receipt_reject_total.inc()
    raise ReceiptRejected("Transaction not found in receipt")


__all__ = [
    "ReceiptError",
    "ReceiptRejected",
    "ReceiptServiceError",
    "close_client",
    "verify_receipt",
]
