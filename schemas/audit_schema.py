from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    PAYMENT = "payment"


class AuditLogCreate(BaseModel):
    user_id: int | None
    action: AuditAction
    resource: str
    resource_id: int | None = None
    description: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: int
