from __future__ import annotations

from core.database import db
from schemas.audit_schema import AuditLogCreate


async def create_audit_log(payload: AuditLogCreate) -> str:
    result = await db.audit_logs.insert_one(payload.model_dump(mode="json"))
    return str(result.inserted_id)
