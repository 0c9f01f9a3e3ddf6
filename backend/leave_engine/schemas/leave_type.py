# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateLeaveTypeRequest(BaseModel):
    """Request body for creating a leave type."""

    code: str = Field(min_length=1, max_length=20, pattern=r"^[A-Za-z0-9_]+$")
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    max_days_per_year: float = Field(default=0, ge=0)
    carry_forward_allowed: bool = False
    max_carry_forward_days: float = Field(default=0, ge=0)
    carry_forward_expiry_months: int | None = Field(default=None, ge=1, le=24)
    requires_approval: bool = True
    requires_document: bool = False
    is_paid: bool = True
    min_notice_days: int = Field(default=0, ge=0)
    max_consecutive_days: float | None = Field(default=None, gt=0)
    sort_order: int = 0


class UpdateLeaveTypeRequest(BaseModel):
    """Partial update for a leave type. The code is immutable."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    max_days_per_year: float | None = Field(default=None, ge=0)
    carry_forward_allowed: bool | None = None
    max_carry_forward_days: float | None = Field(default=None, ge=0)
    carry_forward_expiry_months: int | None = Field(default=None, ge=1, le=24)
    requires_approval: bool | None = None
    requires_document: bool | None = None
    is_paid: bool | None = None
    min_notice_days: int | None = Field(default=None, ge=0)
    max_consecutive_days: float | None = Field(default=None, gt=0)
    sort_order: int | None = None
    is_active: bool | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveTypeResponse(BaseModel):
    """Response schema for a leave type."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    code: str
    name: str
    description: str | None
    is_active: bool
    max_days_per_year: float
    carry_forward_allowed: bool
    max_carry_forward_days: float
    carry_forward_expiry_months: int | None
    requires_approval: bool
    requires_document: bool
    is_paid: bool
    min_notice_days: int
    max_consecutive_days: float | None
    sort_order: int
    created_at: datetime


class LeaveTypeListResponse(BaseModel):
    """List of leave types."""

    items: list[LeaveTypeResponse]
    total: int


class DeleteLeaveTypeResponse(BaseModel):
    """Outcome of a delete: referenced types are deactivated instead of removed."""

    id: uuid.UUID
    deleted: bool
    deactivated: bool
