from __future__ import annotations

from threading import Lock

from core.payments.provider import PaymentProvider
from core.payments.razorpay_provider import RazorpayPaymentProvider
from core.payments.stripe_provider import StripePaymentProvider
from core.payments.types import PaymentMethod
from core.settings import get_settings


class PaymentManager:
    _instance: "PaymentManager | None" = None
    _lock = Lock()

    def __init__(self, providers: dict[PaymentMethod, PaymentProvider]) -> None:
        self._providers = providers

    @classmethod
    def configure(cls, providers: dict[PaymentMethod, PaymentProvider]) -> "PaymentManager":
        with cls._lock:
            cls._instance = cls(providers=providers)
            return cls._instance

    @classmethod
    def configure_from_settings(cls) -> "PaymentManager":
        settings = get_settings()
        # Both providers are always registered; missing credentials surface as
        # PAYMENT_PROVIDER_UNCONFIGURED when the provider is actually used.
        providers: dict[PaymentMethod, PaymentProvider] = {
            PaymentMethod.STRIPE: StripePaymentProvider(
                secret_key=settings.stripe_secret_key,
                webhook_secret=settings.stripe_webhook_secret,
                timeout_seconds=settings.payment_provider_timeout_seconds,
            ),
            PaymentMethod.RAZORPAY: RazorpayPaymentProvider(
                key_id=settings.razorpay_key_id,
                key_secret=settings.razorpay_key_secret,
                webhook_secret=settings.razorpay_webhook_secret,
                timeout_seconds=settings.payment_provider_timeout_seconds,
            ),
        }
        return cls.configure(providers)

    @classmethod
    def get_instance(cls) -> "PaymentManager":
        if cls._instance is None:
            return cls.configure_from_settings()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    def get_provider(self, method: PaymentMethod | str) -> PaymentProvider:
        key = PaymentMethod(method)
        if key not in self._providers:
            raise ValueError(f"Unsupported payment method '{method}'")
        return self._providers[key]

    @property
    def stripe(self) -> StripePaymentProvider:
        return self.get_provider(PaymentMethod.STRIPE)  # type: ignore[return-value]

    @property
    def razorpay(self) -> RazorpayPaymentProvider:
        return self.get_provider(PaymentMethod.RAZORPAY)  # type: ignore[return-value]
