from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    PAYMENT = "payment"


class NotificationCreate(BaseModel):
    user_id: int
    type: NotificationType
    title: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: int
