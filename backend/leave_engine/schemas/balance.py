# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """One (employee, leave type, year) balance."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_code: str
    leave_type_name: str
    year: int
    allocated_days: float
    taken_days: float
    pending_days: float
    carry_forward_days: float
    remaining_days: float
    carry_forward_expiry: date | None
    entitlement_source: str | None
    entitlement_rule_id: uuid.UUID | None
    calculation_breakdown: dict[str, Any] | None
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    """Balances for an employee or a tenant year."""

    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Administrative payloads
# ---------------------------------------------------------------------------


class AdjustBalanceRequest(BaseModel):
    """Absolute correction of a balance's allocation or carry-forward."""

    allocated_days: float | None = Field(default=None, ge=0)
    carry_forward_days: float | None = Field(default=None, ge=0)
    reason: str = Field(min_length=1)


class CarryForwardRequest(BaseModel):
    """Year whose unused days roll into the following year."""

    from_year: int = Field(ge=2000, le=2100)


class CarryForwardResponse(BaseModel):
    """Summary of a carry-forward run."""

    from_year: int
    to_year: int
    processed: int
    skipped: int
    total_days: float
