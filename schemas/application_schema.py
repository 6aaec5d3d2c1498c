from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ApplicationOut(BaseModel):
    """Payment-relevant view of a visa application owned by the CRUD side."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(alias="_id")
    user_id: int
    consultant_id: int | None = None
    status: str | None = None
