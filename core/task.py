from __future__ import annotations

import time
from decimal import Decimal

from core.queue.tasks import task
from repositories.audit_repo import create_audit_log
from repositories.notification_repo import create_notification
from schemas.audit_schema import AuditAction, AuditLogCreate
from schemas.notification_schema import NotificationCreate, NotificationType

PAYMENT_AUDIT_TASK = "payment_audit_log"
PAYMENT_NOTIFICATION_TASK = "payment_notification"


@task(PAYMENT_AUDIT_TASK)
async def log_payment_audit_task(user_id: int, payment_id: int, amount: str, currency: str, status: str) -> str:
    value = Decimal(amount)
    return await create_audit_log(
        AuditLogCreate(
            user_id=user_id,
            action=AuditAction.PAYMENT,
            resource="payment",
            resource_id=payment_id,
            description=f"Payment {status}: {value:.2f} {currency}",
            metadata={"payment_id": payment_id, "amount": amount, "currency": currency, "status": status},
            created_at=int(time.time()),
        )
    )


@task(PAYMENT_NOTIFICATION_TASK)
async def send_payment_notification_task(
    user_id: int, payment_id: int, amount: str, currency: str, status: str
) -> str:
    value = Decimal(amount)
    return await create_notification(
        NotificationCreate(
            user_id=user_id,
            type=NotificationType.PAYMENT,
            title="Payment Update",
            message=f"Payment of {value:.2f} {currency} has been {status}",
            metadata={"payment_id": payment_id, "amount": amount, "currency": currency, "status": status},
            created_at=int(time.time()),
        )
    )
