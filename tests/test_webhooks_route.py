from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import (
    RAZORPAY_WEBHOOK_SECRET,
    hmac_hex,
    make_principal,
    seed_application,
    seed_payment,
    stripe_signature_header,
    stub_stripe_client,
)
from api import webhooks_route
from api.v1 import payments_route
from core.payments.types import PaymentMethod
from core.settings import get_settings
from security.auth import verify_any_token


def _build_app(*, principal=None) -> FastAPI:
    app = FastAPI()
    app.include_router(payments_route.router, prefix="/v1")
    app.include_router(webhooks_route.router)
    if principal is not None:
        app.dependency_overrides[verify_any_token] = lambda: principal
    return app


def _stripe_event(event_type: str, intent_id: str = "pi_123", event_id: str = "evt_1") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": {"id": intent_id, "object": "payment_intent", "status": "succeeded"}},
        }
    ).encode()


def _razorpay_event(event: str, order_id: str = "order_9") -> bytes:
    return json.dumps(
        {"event": event, "payload": {"payment": {"entity": {"id": "pay_1", "order_id": order_id}}}}
    ).encode()


@pytest.mark.asyncio
async def test_stripe_payment_is_created_then_completed_by_webhook(
    fake_db, payment_manager, queue_provider, monkeypatch
):
    seed_application(fake_db, application_id=42, user_id=7)
    stub_stripe_client(
        monkeypatch,
        create=lambda **kwargs: SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc", status="requires_payment_method"),
    )
    transport = httpx.ASGITransport(app=_build_app(principal=make_principal(user_id=7)))

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        created = await client.post(
            "/v1/payments",
            json={"application_id": 42, "amount": "160.00", "currency": "USD", "method": "stripe"},
        )
        assert created.status_code == 201
        data = created.json()["data"]
        assert data["status"] == "processing"
        assert data["payment_intent_id"] == "pi_123"
        assert data["client_secret"]

        body = _stripe_event("payment_intent.succeeded")
        for _ in range(2):
            response = await client.post(
                "/webhooks/stripe",
                content=body,
                headers={"Stripe-Signature": stripe_signature_header(body), "Content-Type": "application/json"},
            )
            assert response.status_code == 200
            assert response.json() == {"received": True}

        await queue_provider.drain()

        fetched = await client.get(f"/v1/payments/{data['payment_id']}")

    payment = fetched.json()["data"]
    assert payment["status"] == "completed"
    assert payment["transaction_id"] == "pi_123"
    assert len(fake_db.audit_logs.rows) == 1
    assert fake_db.audit_logs.rows[0]["user_id"] == 7
    assert fake_db.audit_logs.rows[0]["description"] == "Payment completed: 160.00 USD"
    assert len(fake_db.notifications.rows) == 1
    assert fake_db.notifications.rows[0]["user_id"] == 7


@pytest.mark.asyncio
async def test_stripe_payment_failed_webhook_fails_processing_payment(fake_db, payment_manager, queue_provider):
    seed_payment(fake_db, user_id=7)
    body = _stripe_event("payment_intent.payment_failed")
    transport = httpx.ASGITransport(app=_build_app(principal=make_principal(user_id=7)))

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            "/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": stripe_signature_header(body), "Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}

        await queue_provider.drain()
        fetched = await client.get("/v1/payments/1")

    payment = fetched.json()["data"]
    assert payment["status"] == "failed"
    assert payment.get("transaction_id") is None
    assert fake_db.payments.rows[0].get("transaction_id") is None
    assert len(fake_db.audit_logs.rows) == 1
    assert fake_db.audit_logs.rows[0]["user_id"] == 7
    assert fake_db.audit_logs.rows[0]["description"] == "Payment failed: 160.00 USD"
    assert len(fake_db.notifications.rows) == 1
    assert fake_db.notifications.rows[0]["user_id"] == 7


def test_razorpay_webhook_signed_with_wrong_secret_is_rejected(fake_db, payment_manager, queue_provider):
    seed_payment(fake_db, method=PaymentMethod.RAZORPAY, payment_intent_id=None, razorpay_order_id="order_9")
    body = _razorpay_event("payment.captured")
    client = TestClient(_build_app())

    response = client.post(
        "/webhooks/razorpay",
        content=body,
        headers={"X-Razorpay-Signature": hmac_hex(body, "wrong-secret")},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "PAYMENT_WEBHOOK_INVALID"
    assert fake_db.payments.rows[0]["status"] == "processing"
    assert fake_db.audit_logs.rows == []
    assert fake_db.notifications.rows == []


def test_stripe_webhook_without_signature_is_rejected(fake_db, payment_manager):
    seed_payment(fake_db)
    client = TestClient(_build_app())

    response = client.post("/webhooks/stripe", content=_stripe_event("payment_intent.succeeded"))

    assert response.status_code == 400
    assert fake_db.payments.rows[0]["status"] == "processing"


def test_signed_webhook_with_malformed_body_is_invalid_payload(fake_db, payment_manager):
    body = b'{"event":"payment.captured","payload":{"payment":{}}}'
    client = TestClient(_build_app())

    response = client.post(
        "/webhooks/razorpay",
        content=body,
        headers={"X-Razorpay-Signature": hmac_hex(body, RAZORPAY_WEBHOOK_SECRET)},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Invalid payload"


def test_signed_webhook_for_unknown_order_is_not_found(fake_db, payment_manager):
    body = _razorpay_event("payment.captured", order_id="order_missing")
    client = TestClient(_build_app())

    response = client.post(
        "/webhooks/razorpay",
        content=body,
        headers={"X-Razorpay-Signature": hmac_hex(body, RAZORPAY_WEBHOOK_SECRET)},
    )

    assert response.status_code == 404


def test_webhook_for_pending_payment_is_acknowledged_without_change(fake_db, payment_manager):
    seed_payment(
        fake_db,
        method=PaymentMethod.RAZORPAY,
        status="pending",
        payment_intent_id=None,
        razorpay_order_id="order_9",
    )
    body = _razorpay_event("payment.captured")
    client = TestClient(_build_app())

    response = client.post(
        "/webhooks/razorpay",
        content=body,
        headers={"X-Razorpay-Signature": hmac_hex(body, RAZORPAY_WEBHOOK_SECRET)},
    )

    assert response.status_code == 200
    assert fake_db.payments.rows[0]["status"] == "pending"


def test_oversized_webhook_body_is_rejected(fake_db, payment_manager):
    limit = get_settings().webhook_max_body_bytes
    body = b'{"event":"payment.captured","padding":"' + b"x" * limit + b'"}'
    client = TestClient(_build_app())

    response = client.post(
        "/webhooks/razorpay",
        content=body,
        headers={"X-Razorpay-Signature": hmac_hex(body, RAZORPAY_WEBHOOK_SECRET)},
    )

    assert response.status_code == 413
    assert response.json()["detail"]["code"] == "WEBHOOK_BODY_TOO_LARGE"
