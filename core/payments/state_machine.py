"""
Payment status transitions.

This module is the only writer of ``payments.status``. Each transition is a
single conditional update keyed on the status the caller observed, so two
racing deliveries for the same payment can never both apply a terminal
transition.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog

from core.payments.types import PaymentStatus
from repositories.payment_repo import get_payment_by_id, transition_payment_status
from schemas.payment_schema import PaymentOut

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}
NOTIFYING_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED})


@dataclass(frozen=True)
class TransitionOutcome:
    payment: PaymentOut
    applied: bool


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _epoch() -> int:
    return int(time.time())


async def apply_transition(
    *,
    payment: PaymentOut,
    target: PaymentStatus,
    fields: dict[str, Any] | None = None,
) -> TransitionOutcome:
    """
    Move ``payment`` to ``target`` if the state machine allows it.

    Returns ``applied=False`` without writing when the payment is already in
    ``target``, when the move is not allowed, or when another writer changed
    the status first; in the last case the returned payment is re-read.
    """
    extra = dict(fields or {})
    if "transaction_id" in extra and target != PaymentStatus.COMPLETED:
        raise ValueError("transaction_id can only be set when completing a payment")

    current = payment.status
    if current == target:
        logger.info("payment_transition_duplicate", payment_id=payment.id, status=target.value)
        return TransitionOutcome(payment=payment, applied=False)

    if not can_transition(current, target):
        logger.warning(
            "payment_transition_rejected",
            payment_id=payment.id,
            current_status=current.value,
            target_status=target.value,
        )
        return TransitionOutcome(payment=payment, applied=False)

    updated = await transition_payment_status(
        payment_id=payment.id,
        expected_status=current.value,
        update_dict={**extra, "status": target.value, "updated_at": _epoch()},
    )
    if updated is None:
        latest = await get_payment_by_id(payment.id)
        logger.info(
            "payment_transition_lost_race",
            payment_id=payment.id,
            expected_status=current.value,
            actual_status=latest.status.value if latest else None,
        )
        return TransitionOutcome(payment=latest or payment, applied=False)

    logger.info(
        "payment_transition_applied",
        payment_id=payment.id,
        from_status=current.value,
        to_status=target.value,
    )
    return TransitionOutcome(payment=updated, applied=True)
