# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leave_engine.models.enums import APPROVER_ROLES, Role


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    tenant_id: uuid.UUID
    user_id: uuid.UUID
    role: Role = Role.WORKER

    @property
    def is_hr_admin(self) -> bool:
        return self.role == Role.HR_ADMIN

    @property
    def can_approve(self) -> bool:
        return self.role in APPROVER_ROLES
