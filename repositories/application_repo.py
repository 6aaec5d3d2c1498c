from __future__ import annotations

from core.database import db
from schemas.application_schema import ApplicationOut


async def get_application_by_id(application_id: int) -> ApplicationOut | None:
    row = await db.visa_applications.find_one({"_id": application_id, "deleted_at": None})
    if row is None:
        return None
    return ApplicationOut(**row)
