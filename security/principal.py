from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class AuthPrincipal(BaseModel):
    user_id: int
    role: Literal['applicant', 'consultant', 'admin']
    jwt_token: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_consultant(self) -> bool:
        return self.role == "consultant"

    @property
    def is_applicant(self) -> bool:
        return self.role == "applicant"

    @property
    def is_staff(self) -> bool:
        return self.role in {"admin", "consultant"}

    def can_access_user_resource(self, owner_id: int) -> bool:
        return self.is_staff or self.user_id == owner_id
