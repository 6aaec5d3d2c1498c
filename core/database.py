from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorClient

from core.settings import get_settings

settings = get_settings()

client = AsyncIOMotorClient(settings.mongo_url, serverSelectionTimeoutMS=2000, tz_aware=True)
db = client[settings.db_name]
