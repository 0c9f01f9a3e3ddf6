# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from leave_engine.models.enums import HistoryAction, RequestStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for applying for leave. The applicant is the caller."""

    leave_type_code: str = Field(min_length=1, max_length=20)
    start_date: date
    end_date: date
    half_day_start: bool = False
    half_day_end: bool = False
    reason: str | None = Field(default=None, max_length=1000)


class DecisionPayload(BaseModel):
    """Request body for approve/reject actions."""

    note: str | None = Field(default=None, max_length=1000)


class OverridePayload(BaseModel):
    """HR decision that bypasses the assigned approver."""

    decision: Literal["approve", "reject"]
    justification: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    balance_id: uuid.UUID
    start_date: date
    end_date: date
    days_requested: float
    half_day_start: bool
    half_day_end: bool
    reason: str | None
    status: RequestStatus
    current_approver_id: uuid.UUID | None
    approver_name: str | None
    hierarchy_snapshot: dict[str, Any] | None
    submitted_at: datetime | None
    approved_at: datetime | None
    rejected_at: datetime | None
    withdrawn_at: datetime | None
    decided_by: uuid.UUID | None
    decision_note: str | None
    is_override: bool
    override_reason: str | None
    created_at: datetime


class LeaveRequestListResponse(BaseModel):
    """List of leave requests."""

    items: list[LeaveRequestResponse]
    total: int


class HistoryEntryResponse(BaseModel):
    """One approval-history row."""

    id: uuid.UUID
    leave_request_id: uuid.UUID
    actor_id: uuid.UUID
    action: HistoryAction
    from_status: RequestStatus | None
    to_status: RequestStatus
    note: str | None
    created_at: datetime


class LeaveRequestDetailResponse(LeaveRequestResponse):
    """A leave request together with its approval history."""

    history: list[HistoryEntryResponse]
