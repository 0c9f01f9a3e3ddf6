# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import UUIDBase, days_column


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveBalance(UUIDBase, table=True):
    """Per (employee, leave type, year) counters. Mutated only through relative updates."""

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "employee_id", "leave_type_id", "year", name="uq_leave_balance_key"),
        sa.Index("ix_leave_balance_tenant_year", "tenant_id", "year"),
    )

    tenant_id: uuid.UUID
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    year: int
    allocated_days: float = Field(default=0, sa_column=days_column())
    taken_days: float = Field(default=0, sa_column=days_column())
    pending_days: float = Field(default=0, sa_column=days_column())
    carry_forward_days: float = Field(default=0, sa_column=days_column())
    carry_forward_expiry: date | None = None
    entitlement_source: str | None = Field(default=None, max_length=50)
    entitlement_rule_id: uuid.UUID | None = None
    calculation_breakdown: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    last_recalculated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )

    @property
    def remaining_days(self) -> float:
        return self.allocated_days + self.carry_forward_days - self.taken_days - self.pending_days
