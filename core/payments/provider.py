from __future__ import annotations

from typing import Any, Protocol

from core.payments.types import IntentRequest, IntentResult, PaymentMethod, ProviderPaymentStatus


class PaymentProvider(Protocol):
    method: PaymentMethod

    def create_intent(self, payload: IntentRequest) -> IntentResult:
        ...

    def fetch_status(self, external_ref: str) -> ProviderPaymentStatus:
        ...

    def parse_webhook(self, *, body: bytes, headers: dict[str, str]) -> Any | None:
        ...
