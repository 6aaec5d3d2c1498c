from __future__ import annotations

import stripe
import structlog

from core.errors import provider_request_failed, provider_response_invalid, provider_unconfigured
from core.payments.events import StripeWebhookEvent, decode_stripe_event
from core.payments.provider import PaymentProvider
from core.payments.signatures import verify_stripe_webhook
from core.payments.types import (
    IntentRequest,
    IntentResult,
    PaymentMethod,
    ProviderPaymentStatus,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "stripe-signature"


def map_intent_status(raw_status: str | None) -> ProviderPaymentStatus:
    value = (raw_status or "").strip().lower()
    if value == "succeeded":
        return ProviderPaymentStatus.COMPLETED
    if value == "canceled":
        return ProviderPaymentStatus.FAILED
    return ProviderPaymentStatus.PROCESSING


class StripePaymentProvider(PaymentProvider):
    method = PaymentMethod.STRIPE

    def __init__(
        self,
        *,
        secret_key: str | None,
        webhook_secret: str | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._timeout_seconds = timeout_seconds
        self._client: stripe.StripeClient | None = None

    def _get_client(self) -> stripe.StripeClient:
        if not self._secret_key:
            raise provider_unconfigured(self.method.value)
        if self._client is None:
            self._client = stripe.StripeClient(
                self._secret_key,
                http_client=stripe.RequestsClient(timeout=self._timeout_seconds),
                max_network_retries=0,
            )
        return self._client

    def create_intent(self, payload: IntentRequest) -> IntentResult:
        client = self._get_client()
        try:
            intent = client.payment_intents.create(
                params={
                    "amount": payload.amount_minor,
                    "currency": payload.currency.lower(),
                    "metadata": payload.metadata or {},
                    "automatic_payment_methods": {"enabled": True},
                }
            )
        except Exception as err:
            logger.warning("stripe_intent_create_failed", error=str(err))
            raise provider_request_failed(self.method.value, details=str(err)) from err

        intent_id = getattr(intent, "id", None)
        if not intent_id:
            raise provider_response_invalid(self.method.value, details="payment intent has no id")

        return IntentResult(
            method=self.method,
            external_ref=intent_id,
            client_secret=getattr(intent, "client_secret", None),
            provider_payload={"id": intent_id, "status": getattr(intent, "status", None)},
        )

    def fetch_status(self, external_ref: str) -> ProviderPaymentStatus:
        client = self._get_client()
        try:
            intent = client.payment_intents.retrieve(external_ref)
        except Exception as err:
            logger.warning("stripe_intent_fetch_failed", payment_intent_id=external_ref, error=str(err))
            raise provider_request_failed(self.method.value, details=str(err)) from err

        raw_status = getattr(intent, "status", None)
        if raw_status is None:
            raise provider_response_invalid(self.method.value, details="payment intent has no status")
        return map_intent_status(raw_status)

    def parse_webhook(self, *, body: bytes, headers: dict[str, str]) -> StripeWebhookEvent | None:
        signature = headers.get(SIGNATURE_HEADER) or headers.get("Stripe-Signature")
        verify_stripe_webhook(body=body, signature=signature, secret=self._webhook_secret)
        return decode_stripe_event(body)
