from __future__ import annotations

from typing import Any

import requests
import structlog
from requests.auth import HTTPBasicAuth

from core.errors import provider_request_failed, provider_response_invalid, provider_unconfigured
from core.payments.events import RazorpayWebhookEvent, decode_razorpay_event
from core.payments.provider import PaymentProvider
from core.payments.signatures import compute_hmac_sha256, signatures_match, verify_hmac_webhook
from core.payments.types import (
    IntentRequest,
    IntentResult,
    PaymentMethod,
    ProviderPaymentStatus,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"


class RazorpayPaymentProvider(PaymentProvider):
    method = PaymentMethod.RAZORPAY

    def __init__(
        self,
        *,
        key_id: str | None,
        key_secret: str | None,
        webhook_secret: str | None = None,
        timeout_seconds: float = 15.0,
        base_url: str = "https://api.razorpay.com/v1",
    ) -> None:
        self._key_id = key_id
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self._timeout = timeout_seconds
        self._base_url = base_url.rstrip("/")

    @property
    def key_id(self) -> str | None:
        return self._key_id

    def _auth(self) -> HTTPBasicAuth:
        if not self._key_id or not self._key_secret:
            raise provider_unconfigured(self.method.value)
        return HTTPBasicAuth(self._key_id, self._key_secret)

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        auth = self._auth()
        try:
            response = requests.request(
                method,
                f"{self._base_url}{path}",
                auth=auth,
                timeout=self._timeout,
                **kwargs,
            )
        except requests.RequestException as err:
            logger.warning("razorpay_request_failed", path=path, error=str(err))
            raise provider_request_failed(self.method.value, details=str(err)) from err

        if not response.ok:
            logger.warning("razorpay_request_rejected", path=path, status_code=response.status_code)
            raise provider_request_failed(
                self.method.value,
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            data = response.json()
        except ValueError as err:
            raise provider_response_invalid(self.method.value, details="response body is not JSON") from err
        if not isinstance(data, dict):
            raise provider_response_invalid(self.method.value, details="response body is not an object")
        return data

    def create_intent(self, payload: IntentRequest) -> IntentResult:
        notes = payload.metadata or {}
        body: dict[str, Any] = {
            "amount": payload.amount_minor,
            "currency": payload.currency.upper(),
            "notes": notes,
        }
        if notes.get("payment_id"):
            body["receipt"] = f"payment-{notes['payment_id']}"

        data = self._request("POST", "/orders", json=body)
        order_id = data.get("id")
        if not isinstance(order_id, str) or not order_id:
            raise provider_response_invalid(self.method.value, details="order has no id")

        return IntentResult(
            method=self.method,
            external_ref=order_id,
            client_secret=None,
            provider_payload=data,
        )

    def fetch_status(self, external_ref: str) -> ProviderPaymentStatus:
        data = self._request("GET", f"/orders/{external_ref}/payments")
        items = data.get("items")
        if not isinstance(items, list):
            raise provider_response_invalid(self.method.value, details="payments list missing")

        statuses = [str(item.get("status", "")).lower() for item in items if isinstance(item, dict)]
        if "captured" in statuses:
            return ProviderPaymentStatus.COMPLETED
        if statuses and all(value == "failed" for value in statuses):
            return ProviderPaymentStatus.FAILED
        return ProviderPaymentStatus.PROCESSING

    @staticmethod
    def compute_signature(payload: bytes | str, secret: str) -> str:
        return compute_hmac_sha256(payload, secret)

    def verify_payment_signature(self, *, order_id: str, payment_id: str, signature: str | None) -> bool:
        if not self._key_secret:
            raise provider_unconfigured(self.method.value)
        expected = self.compute_signature(f"{order_id}|{payment_id}", self._key_secret)
        return signatures_match(expected, signature)

    def parse_webhook(self, *, body: bytes, headers: dict[str, str]) -> RazorpayWebhookEvent | None:
        signature = headers.get(SIGNATURE_HEADER) or headers.get("X-Razorpay-Signature")
        verify_hmac_webhook(body=body, signature=signature, secret=self._webhook_secret)
        return decode_razorpay_event(body)
