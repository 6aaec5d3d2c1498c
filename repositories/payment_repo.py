from __future__ import annotations

from pymongo import ReturnDocument

from core.database import db
from core.payments.types import PaymentMethod
from schemas.payment_schema import PaymentCreate, PaymentOut

_PAYMENT_INDEXES_READY = False

_EXTERNAL_REF_FIELDS = {
    PaymentMethod.STRIPE: "payment_intent_id",
    PaymentMethod.RAZORPAY: "razorpay_order_id",
}


async def _ensure_payment_indexes() -> None:
    global _PAYMENT_INDEXES_READY
    if _PAYMENT_INDEXES_READY:
        return
    await db.payments.create_index(
        "payment_intent_id",
        name="idx_payment_intent_id_unique",
        unique=True,
        partialFilterExpression={"payment_intent_id": {"$type": "string"}},
    )
    await db.payments.create_index(
        "razorpay_order_id",
        name="idx_payment_razorpay_order_id_unique",
        unique=True,
        partialFilterExpression={"razorpay_order_id": {"$type": "string"}},
    )
    await db.payments.create_index("user_id", name="idx_payment_user_id")
    await db.payments.create_index("application_id", name="idx_payment_application_id")
    _PAYMENT_INDEXES_READY = True


def external_ref_field(method: PaymentMethod) -> str:
    return _EXTERNAL_REF_FIELDS[method]


async def next_payment_id() -> int:
    row = await db.counters.find_one_and_update(
        {"_id": "payments"},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(row["seq"])


async def create_payment(payload: PaymentCreate) -> PaymentOut:
    await _ensure_payment_indexes()
    result = await db.payments.insert_one(payload.to_document())
    stored = await db.payments.find_one({"_id": result.inserted_id})
    return PaymentOut(**stored)  # type: ignore


async def get_payment_by_id(payment_id: int) -> PaymentOut | None:
    await _ensure_payment_indexes()
    row = await db.payments.find_one({"_id": payment_id})
    if row is None:
        return None
    return PaymentOut(**row)


async def get_payment_by_external_ref(method: PaymentMethod, external_ref: str) -> PaymentOut | None:
    await _ensure_payment_indexes()
    row = await db.payments.find_one(
        {"method": method.value, external_ref_field(method): external_ref}
    )
    if row is None:
        return None
    return PaymentOut(**row)


async def get_payments(
    *,
    filter_dict: dict | None = None,
    start: int = 0,
    stop: int = 100,
) -> list[PaymentOut]:
    if stop <= start:
        return []
    await _ensure_payment_indexes()
    query = filter_dict or {}
    cursor = db.payments.find(query).sort("_id", -1).skip(start).limit(stop - start)
    items: list[PaymentOut] = []
    async for row in cursor:
        items.append(PaymentOut(**row))
    return items


async def transition_payment_status(
    *,
    payment_id: int,
    expected_status: str,
    update_dict: dict,
) -> PaymentOut | None:
    await _ensure_payment_indexes()
    row = await db.payments.find_one_and_update(
        {"_id": payment_id, "status": expected_status},
        {"$set": update_dict},
        return_document=ReturnDocument.AFTER,
    )
    if row is None:
        return None
    return PaymentOut(**row)
