from __future__ import annotations

from core.database import db
from schemas.notification_schema import NotificationCreate

_NOTIFICATION_INDEXES_READY = False


async def _ensure_notification_indexes() -> None:
    global _NOTIFICATION_INDEXES_READY
    if _NOTIFICATION_INDEXES_READY:
        return
    await db.notifications.create_index([("user_id", 1), ("read", 1)], name="idx_notification_user_read")
    _NOTIFICATION_INDEXES_READY = True


async def create_notification(payload: NotificationCreate) -> str:
    await _ensure_notification_indexes()
    result = await db.notifications.insert_one(payload.model_dump(mode="json"))
    return str(result.inserted_id)
