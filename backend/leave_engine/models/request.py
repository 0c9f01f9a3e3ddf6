# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase, days_column
from leave_engine.models.enums import RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave request with approval workflow state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_tenant_status", "tenant_id", "status"),
        sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),
        sa.Index("ix_leave_request_approver", "tenant_id", "current_approver_id", "status"),
    )

    tenant_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    balance_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_balance.id", ondelete="CASCADE"), nullable=False),
    )
    start_date: date
    end_date: date
    days_requested: float = Field(sa_column=days_column())
    half_day_start: bool = False
    half_day_end: bool = False
    reason: str | None = None
    status: str = Field(
        default=RequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    current_approver_id: uuid.UUID | None = None
    hierarchy_snapshot: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    submitted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rejected_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    withdrawn_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    decided_by: uuid.UUID | None = None
    decision_note: str | None = None
    is_override: bool = False
    override_reason: str | None = None


class ApprovalHistoryEntry(UUIDBase, TimestampMixin, table=True):
    """Append-only trail of every transition a leave request went through."""

    __tablename__ = "leave_approval_history"
    __table_args__ = (sa.Index("ix_approval_history_request", "leave_request_id", "created_at"),)

    tenant_id: uuid.UUID = Field(index=True)
    leave_request_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False),
    )
    actor_id: uuid.UUID
    action: str = Field(max_length=20)
    from_status: str | None = Field(default=None, max_length=20)
    to_status: str = Field(max_length=20)
    note: str | None = None
