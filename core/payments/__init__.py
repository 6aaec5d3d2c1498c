from core.payments.manager import PaymentManager
from core.payments.types import (
    IntentRequest,
    IntentResult,
    PaymentMethod,
    PaymentStatus,
    ProviderPaymentStatus,
    to_minor_units,
)

__all__ = [
    "IntentRequest",
    "IntentResult",
    "PaymentManager",
    "PaymentMethod",
    "PaymentStatus",
    "ProviderPaymentStatus",
    "to_minor_units",
]
