from __future__ import annotations

import structlog

from core.payments.state_machine import NOTIFYING_STATUSES
from core.queue.manager import QueueManager
from core.task import PAYMENT_AUDIT_TASK, PAYMENT_NOTIFICATION_TASK
from schemas.payment_schema import PaymentOut

logger = structlog.get_logger(__name__)


def dispatch_payment_side_effects(payment: PaymentOut) -> None:
    """
    Queue the audit entry and user notification for a payment that just
    reached a notifying status.

    Never raises: a payment transition that already happened must not be
    reported as failed because a side effect could not be queued.
    """
    if payment.status not in NOTIFYING_STATUSES:
        return

    payload = {
        "user_id": payment.user_id,
        "payment_id": payment.id,
        "amount": str(payment.amount),
        "currency": payment.currency,
        "status": payment.status.value,
    }
    try:
        queue = QueueManager.get_instance()
    except RuntimeError:
        logger.error("payment_side_effects_unqueued", payment_id=payment.id, reason="queue not configured")
        return

    for task_key in (PAYMENT_AUDIT_TASK, PAYMENT_NOTIFICATION_TASK):
        try:
            job = queue.enqueue(task_key, payload)
        except Exception:
            logger.exception("payment_side_effect_enqueue_failed", payment_id=payment.id, task_key=task_key)
            continue
        logger.info(
            "payment_side_effect_enqueued",
            payment_id=payment.id,
            task_key=task_key,
            task_id=job.task_id,
            status=payment.status.value,
        )
