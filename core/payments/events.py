"""
Webhook event payloads, decoded as tagged variants.

Decoding happens in two steps: a loose envelope check that tells a missing or
non-string event type apart from a broken payload, then a discriminated-union
decode into the concrete event model. Event types we do not act on decode to
``None`` and are acknowledged without touching any payment.
"""
from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from core.errors import AppException, webhook_invalid_event_type, webhook_invalid_payload
from core.payments.types import PaymentStatus


class _EventModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# --- Stripe -----------------------------------------------------------------


class StripeEventEnvelope(_EventModel):
    type: str
    data: dict[str, Any]


class StripePaymentIntentObject(_EventModel):
    id: str = Field(min_length=1)
    status: str | None = None


class StripeEventData(_EventModel):
    object: StripePaymentIntentObject


class _StripeIntentEvent(_EventModel):
    target_status: ClassVar[PaymentStatus]

    id: str
    data: StripeEventData

    @property
    def event_type(self) -> str:
        return self.type  # type: ignore[attr-defined]

    @property
    def event_id(self) -> str | None:
        return self.id

    @property
    def external_ref(self) -> str:
        return self.data.object.id

    @property
    def transaction_ref(self) -> str:
        return self.data.object.id


class StripePaymentIntentSucceeded(_StripeIntentEvent):
    target_status: ClassVar[PaymentStatus] = PaymentStatus.COMPLETED
    type: Literal["payment_intent.succeeded"]


class StripePaymentIntentFailed(_StripeIntentEvent):
    target_status: ClassVar[PaymentStatus] = PaymentStatus.FAILED
    type: Literal["payment_intent.payment_failed"]


class StripePaymentIntentCanceled(_StripeIntentEvent):
    target_status: ClassVar[PaymentStatus] = PaymentStatus.FAILED
    type: Literal["payment_intent.canceled"]


StripeWebhookEvent = Annotated[
    Union[StripePaymentIntentSucceeded, StripePaymentIntentFailed, StripePaymentIntentCanceled],
    Field(discriminator="type"),
]
STRIPE_HANDLED_EVENTS = frozenset(
    {"payment_intent.succeeded", "payment_intent.payment_failed", "payment_intent.canceled"}
)
_STRIPE_EVENT_ADAPTER: TypeAdapter[StripeWebhookEvent] = TypeAdapter(StripeWebhookEvent)


# --- Razorpay ---------------------------------------------------------------


class RazorpayEventEnvelope(_EventModel):
    event: str
    payload: dict[str, Any]


class RazorpayPaymentEntity(_EventModel):
    id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    status: str | None = None


class RazorpayPaymentPayload(_EventModel):
    payment: RazorpayPaymentEntity

    @field_validator("payment", mode="before")
    @classmethod
    def unwrap_entity(cls, value: Any) -> Any:
        # Razorpay nests the payment under "entity"; accept the flat shape too.
        if isinstance(value, dict) and isinstance(value.get("entity"), dict):
            return value["entity"]
        return value


class _RazorpayPaymentEvent(_EventModel):
    target_status: ClassVar[PaymentStatus]

    payload: RazorpayPaymentPayload

    @property
    def event_type(self) -> str:
        return self.event  # type: ignore[attr-defined]

    @property
    def event_id(self) -> str | None:
        return None

    @property
    def external_ref(self) -> str:
        return self.payload.payment.order_id

    @property
    def transaction_ref(self) -> str:
        return self.payload.payment.id


class RazorpayPaymentCaptured(_RazorpayPaymentEvent):
    target_status: ClassVar[PaymentStatus] = PaymentStatus.COMPLETED
    event: Literal["payment.captured"]


class RazorpayPaymentFailed(_RazorpayPaymentEvent):
    target_status: ClassVar[PaymentStatus] = PaymentStatus.FAILED
    event: Literal["payment.failed"]


RazorpayWebhookEvent = Annotated[
    Union[RazorpayPaymentCaptured, RazorpayPaymentFailed],
    Field(discriminator="event"),
]
RAZORPAY_HANDLED_EVENTS = frozenset({"payment.captured", "payment.failed"})
_RAZORPAY_EVENT_ADAPTER: TypeAdapter[RazorpayWebhookEvent] = TypeAdapter(RazorpayWebhookEvent)


# --- decoding ---------------------------------------------------------------


def _envelope_error(err: ValidationError, *, type_field: str) -> AppException:
    for error in err.errors():
        loc = error.get("loc") or ()
        if loc and loc[0] == type_field:
            return webhook_invalid_event_type()
    return webhook_invalid_payload()


def decode_stripe_event(body: bytes) -> StripeWebhookEvent | None:
    try:
        envelope = StripeEventEnvelope.model_validate_json(body)
    except ValidationError as err:
        raise _envelope_error(err, type_field="type") from err

    if envelope.type not in STRIPE_HANDLED_EVENTS:
        return None

    try:
        return _STRIPE_EVENT_ADAPTER.validate_json(body)
    except ValidationError as err:
        raise webhook_invalid_payload() from err


def decode_razorpay_event(body: bytes) -> RazorpayWebhookEvent | None:
    try:
        envelope = RazorpayEventEnvelope.model_validate_json(body)
    except ValidationError as err:
        raise _envelope_error(err, type_field="event") from err

    if envelope.event not in RAZORPAY_HANDLED_EVENTS:
        return None

    try:
        return _RAZORPAY_EVENT_ADAPTER.validate_json(body)
    except ValidationError as err:
        raise webhook_invalid_payload() from err
