import json

import httpx
import pytest

from gateway.services import receipts
from gateway.services.receipts import (
    ReceiptRejected,
    ReceiptServiceError,
    verify_receipt,
)

PRODUCT = "com.skininsightpro.starter.monthly"


@pytest.fixture
def store(monkeypatch):
    """Route verifyReceipt calls to a scripted handler."""
    monkeypatch.setattr(receipts.settings, "appstore_verify_receipts", True)
    monkeypatch.setattr(receipts.settings, "appstore_shared_secret", "shared")
    calls = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((str(request.url), json.loads(request.content)))
        return responses[str(request.url)]

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(receipts, "_client", client)
    return calls, responses


def _ok(*txns, status=0):
    return httpx.Response(
        200,
        json={
            "status": status,
            "receipt": {"in_app": [{"transaction_id": t, "product_id": p} for t, p in txns]},
        },
    )


@pytest.mark.asyncio
async def test_disabled_verification_trusts_client(monkeypatch):
    monkeypatch.setattr(receipts.settings, "appstore_verify_receipts", False)

    def handler(request):
        raise AssertionError("store must not be called")

    monkeypatch.setattr(
        receipts, "_client", httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    await verify_receipt("anything", product_id=PRODUCT, transaction_id="1")


@pytest.mark.asyncio
async def test_confirmed_transaction(store):
    calls, responses = store
    responses[receipts.settings.appstore_production_url] = _ok(("1000", PRODUCT))

    await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")

    assert calls == [
        (
            receipts.settings.appstore_production_url,
            {"receipt-data": "rcpt", "password": "shared"},
        )
    ]


@pytest.mark.asyncio
async def test_latest_receipt_info_is_searched(store):
    _, responses = store
    responses[receipts.settings.appstore_production_url] = httpx.Response(
        200,
        json={
            "status": 0,
            "latest_receipt_info": [{"transaction_id": 2000, "product_id": PRODUCT}],
        },
    )
    await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="2000")


@pytest.mark.asyncio
async def test_sandbox_receipt_is_retried(store):
    calls, responses = store
    responses[receipts.settings.appstore_production_url] = httpx.Response(
        200, json={"status": 21007}
    )
    responses[receipts.settings.appstore_sandbox_url] = _ok(("1000", PRODUCT))

    await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")

    assert [url for url, _ in calls] == [
        receipts.settings.appstore_production_url,
        receipts.settings.appstore_sandbox_url,
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "txns",
    [
        [("9999", PRODUCT)],
        [("1000", "com.skininsightpro.enterprise.monthly")],
        [],
    ],
)
async def test_transaction_mismatch_rejected(store, txns):
    _, responses = store
    responses[receipts.settings.appstore_production_url] = _ok(*txns)
    with pytest.raises(ReceiptRejected):
        await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")


@pytest.mark.asyncio
async def test_store_status_rejected(store):
    _, responses = store
    responses[receipts.settings.appstore_production_url] = httpx.Response(
        200, json={"status": 21003}
    )
    with pytest.raises(ReceiptRejected, match="21003"):
        await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"unexpected": True}),
    ],
)
async def test_store_errors(store, response):
    _, responses = store
    responses[receipts.settings.appstore_production_url] = response
    with pytest.raises(ReceiptServiceError):
        await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"status": 0, "receipt": "not-an-object"},
        {"status": 0, "receipt": {"in_app": {"transaction_id": "1000"}}},
        {"status": 0, "latest_receipt_info": {"transaction_id": "1000"}},
    ],
)
async def test_unexpected_receipt_shape(store, payload):
    _, responses = store
    responses[receipts.settings.appstore_production_url] = httpx.Response(200, json=payload)
    with pytest.raises(ReceiptServiceError):
        await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")


@pytest.mark.asyncio
async def test_store_unreachable(monkeypatch):
    monkeypatch.setattr(receipts.settings, "appstore_verify_receipts", True)

    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    monkeypatch.setattr(
        receipts, "_client", httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(ReceiptServiceError):
        await verify_receipt("rcpt", product_id=PRODUCT, transaction_id="1000")
