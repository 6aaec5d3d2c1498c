from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from bson import Decimal128
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from core.payments.types import PaymentMethod, PaymentStatus


class PaymentCreateIn(BaseModel):
    application_id: int = Field(gt=0)
    amount: Decimal = Field(gt=0, max_digits=14)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    method: PaymentMethod

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("currency must be an ISO 4217 code")
        return value.upper()

    @field_validator("amount")
    @classmethod
    def round_to_cents(cls, value: Decimal) -> Decimal:
        rounded = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if rounded <= 0:
            raise ValueError("amount must be at least 0.01")
        return rounded


class PaymentConfirmIn(BaseModel):
    payment_intent_id: str | None = None
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None

    def missing_fields_for(self, method: PaymentMethod) -> list[str]:
        required = (
            ("payment_intent_id",)
            if method == PaymentMethod.STRIPE
            else ("razorpay_order_id", "razorpay_payment_id", "razorpay_signature")
        )
        return [name for name in required if not getattr(self, name)]


class PaymentCreate(BaseModel):
    id: int
    application_id: int
    user_id: int
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    payment_intent_id: str | None = None
    razorpay_order_id: str | None = None
    transaction_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: int
    updated_at: int

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump(mode="python", exclude={"id"})
        document["_id"] = self.id
        document["amount"] = Decimal128(self.amount)
        document["method"] = self.method.value
        document["status"] = self.status.value
        return document


class PaymentOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(
        validation_alias=AliasChoices("_id", "id"),
        serialization_alias="id",
    )
    application_id: int
    user_id: int
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    payment_intent_id: str | None = None
    razorpay_order_id: str | None = None
    transaction_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: int
    updated_at: int

    @model_validator(mode="before")
    @classmethod
    def convert_decimal128(cls, values):
        if isinstance(values, dict) and isinstance(values.get("amount"), Decimal128):
            values = {**values, "amount": values["amount"].to_decimal()}
        return values

    @model_validator(mode="after")
    def check_provider_reference(self) -> "PaymentOut":
        if self.method == PaymentMethod.STRIPE and self.razorpay_order_id:
            raise ValueError("stripe payment cannot carry a razorpay_order_id")
        if self.method == PaymentMethod.RAZORPAY and self.payment_intent_id:
            raise ValueError("razorpay payment cannot carry a payment_intent_id")
        if self.transaction_id and self.status not in {PaymentStatus.COMPLETED, PaymentStatus.REFUNDED}:
            raise ValueError("transaction_id is only set on completed payments")
        return self


class PaymentCreatedOut(BaseModel):
    payment_id: int
    amount: Decimal
    currency: str
    status: PaymentStatus
    payment_intent_id: str | None = None
    client_secret: str | None = None
    razorpay_order_id: str | None = None
    razorpay_key_id: str | None = None
