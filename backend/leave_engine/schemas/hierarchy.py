# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class CreateDepartmentRequest(BaseModel):
    """Request body for creating a department."""

    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    fallback_approver_id: uuid.UUID | None = None


class UpdateDepartmentRequest(BaseModel):
    """Partial update for a department."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    fallback_approver_id: uuid.UUID | None = None
    is_active: bool | None = None


class DepartmentResponse(BaseModel):
    """Response schema for a department."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    code: str
    name: str
    fallback_approver_id: uuid.UUID | None
    is_active: bool
    created_at: datetime


class DepartmentListResponse(BaseModel):
    """List of departments."""

    items: list[DepartmentResponse]
    total: int


# ---------------------------------------------------------------------------
# Hierarchy nodes
# ---------------------------------------------------------------------------


class UpsertHierarchyRequest(BaseModel):
    """Reporting line for one employee."""

    reports_to_id: uuid.UUID | None = None
    department_id: uuid.UUID | None = None
    position_title: str | None = Field(default=None, max_length=100)
    hierarchy_level: int = Field(default=99, ge=0)
    can_approve_leave: bool = False


class HierarchyNodeResponse(BaseModel):
    """Response schema for a hierarchy node."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    employee_id: uuid.UUID
    reports_to_id: uuid.UUID | None
    department_id: uuid.UUID | None
    position_title: str | None
    hierarchy_level: int
    can_approve_leave: bool
    is_active: bool


class ApproverResponse(BaseModel):
    """Resolved approver plus the routing context frozen onto new requests."""

    employee_id: uuid.UUID
    approver_id: uuid.UUID
    approver_name: str | None
    hierarchy_level: int | None
    routed_via: str
    snapshot: dict[str, Any]
