# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Rule payloads
# ---------------------------------------------------------------------------


class CreateEntitlementRuleRequest(BaseModel):
    """Request body for creating an entitlement rule."""

    leave_type_id: uuid.UUID
    rule_name: str | None = Field(default=None, max_length=200)
    rule_description: str | None = None
    min_tenure_months: int = Field(default=0, ge=0)
    max_tenure_months: int | None = Field(default=None, ge=0)
    employee_grade: str | None = Field(default=None, max_length=50)
    department: str | None = Field(default=None, max_length=100)
    designation: str | None = Field(default=None, max_length=100)
    allocated_days: float = Field(ge=0)
    effective_from: date
    effective_to: date | None = None
    priority: int = 100
    change_reason: str | None = None

    @model_validator(mode="after")
    def _validate_ranges(self) -> Self:
        if self.max_tenure_months is not None and self.max_tenure_months <= self.min_tenure_months:
            msg = "max_tenure_months must be greater than min_tenure_months"
            raise ValueError(msg)
        if self.effective_to is not None and self.effective_to < self.effective_from:
            msg = "effective_to must not precede effective_from"
            raise ValueError(msg)
        return self


class UpdateEntitlementRuleRequest(BaseModel):
    """Partial update for an entitlement rule."""

    rule_name: str | None = Field(default=None, max_length=200)
    rule_description: str | None = None
    min_tenure_months: int | None = Field(default=None, ge=0)
    max_tenure_months: int | None = Field(default=None, ge=0)
    employee_grade: str | None = Field(default=None, max_length=50)
    department: str | None = Field(default=None, max_length=100)
    designation: str | None = Field(default=None, max_length=100)
    allocated_days: float | None = Field(default=None, ge=0)
    effective_from: date | None = None
    effective_to: date | None = None
    priority: int | None = None
    is_active: bool | None = None
    change_reason: str | None = None


class EntitlementRuleResponse(BaseModel):
    """Response schema for an entitlement rule."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    leave_type_id: uuid.UUID
    rule_name: str | None
    rule_description: str | None
    min_tenure_months: int
    max_tenure_months: int | None
    employee_grade: str | None
    department: str | None
    designation: str | None
    allocated_days: float
    effective_from: date
    effective_to: date | None
    priority: int
    is_active: bool
    created_by: uuid.UUID | None
    change_reason: str | None
    created_at: datetime


class EntitlementRuleListResponse(BaseModel):
    """List of entitlement rules."""

    items: list[EntitlementRuleResponse]
    total: int


# ---------------------------------------------------------------------------
# Exception payloads
# ---------------------------------------------------------------------------


class CreateEntitlementExceptionRequest(BaseModel):
    """Request body for granting an individual entitlement override."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    effective_year: int = Field(ge=2000, le=2100)
    allocated_days: float = Field(ge=0)
    reason: str = Field(min_length=1)


class EntitlementExceptionResponse(BaseModel):
    """Response schema for an entitlement exception."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    effective_year: int
    allocated_days: float
    reason: str
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    is_active: bool
    created_at: datetime


class EntitlementExceptionListResponse(BaseModel):
    """List of entitlement exceptions."""

    items: list[EntitlementExceptionResponse]
    total: int


class DeactivatePayload(BaseModel):
    """Optional reason recorded with a deactivation."""

    reason: str | None = None


# ---------------------------------------------------------------------------
# Resolution result
# ---------------------------------------------------------------------------


class EntitlementResult(BaseModel):
    """Outcome of resolving an entitlement, with its provenance."""

    days: float
    rule_type: str
    rule_name: str
    rule_id: uuid.UUID | None = None
    breakdown: dict[str, Any]


class EntitlementPreviewResponse(BaseModel):
    """Entitlement resolved for an employee without touching the ledger."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_code: str
    year: int
    entitlement: EntitlementResult
