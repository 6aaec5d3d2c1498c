from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

_CENT = Decimal("0.01")


class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    RAZORPAY = "razorpay"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ProviderPaymentStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a major-unit amount to the provider's integer minor units.

    Every currency is treated as two-decimal (x100); amounts with more
    precision are rounded half-up to the cent first.
    """
    return int(amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100)


@dataclass(frozen=True)
class IntentRequest:
    amount: Decimal
    currency: str
    metadata: dict[str, str] | None = None

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.amount)


@dataclass(frozen=True)
class IntentResult:
    method: PaymentMethod
    external_ref: str
    client_secret: str | None
    provider_payload: dict[str, Any]
