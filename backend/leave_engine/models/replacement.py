# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase, days_column, optional_days_column
from leave_engine.models.enums import CreditStatus, CreditType


class ReplacementLeaveRule(UUIDBase, TimestampMixin, table=True):
    """How many replacement days a trigger event earns, and under which limits."""

    __tablename__ = "replacement_leave_rule"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "rule_code", name="uq_replacement_rule_code"),
        sa.Index("ix_replacement_rule_trigger", "tenant_id", "trigger_type", "is_active"),
    )

    tenant_id: uuid.UUID = Field(index=True)
    rule_code: str = Field(max_length=50)
    rule_name: str = Field(max_length=200)
    description: str | None = None
    trigger_type: str = Field(max_length=30)
    credit_type: str = Field(default=CreditType.FIXED, max_length=10)
    credit_days: float = Field(default=1, sa_column=days_column(1))
    hours_per_day: float | None = Field(default=None, sa_column=optional_days_column())
    min_hours_required: float | None = Field(default=None, sa_column=optional_days_column())
    max_days_per_event: float | None = Field(default=None, sa_column=optional_days_column())
    max_days_per_month: float | None = Field(default=None, sa_column=optional_days_column())
    max_days_per_year: float | None = Field(default=None, sa_column=optional_days_column())
    expiry_days: int | None = None
    eligible_departments: list[str] | None = Field(default=None, sa_type=sa.JSON)
    eligible_grades: list[str] | None = Field(default=None, sa_type=sa.JSON)
    requires_approval: bool = True
    auto_credit_on_approval: bool = True
    effective_from: date
    effective_to: date | None = None
    is_active: bool = True
    created_by: uuid.UUID | None = None


class ReplacementLeaveCredit(UUIDBase, TimestampMixin, table=True):
    """Days earned by one trigger event. trigger_reference makes creation idempotent."""

    __tablename__ = "replacement_leave_credit"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "trigger_reference", name="uq_replacement_credit_reference"),
        sa.Index("ix_replacement_credit_employee", "tenant_id", "employee_id", "status"),
    )

    tenant_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    rule_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("replacement_leave_rule.id", ondelete="SET NULL"), nullable=True
        ),
    )
    trigger_type: str = Field(max_length=30)
    trigger_date: date
    trigger_reference: str = Field(max_length=200)
    trigger_description: str | None = None
    source_record_id: uuid.UUID | None = None
    hours_worked: float | None = Field(default=None, sa_column=optional_days_column())
    calculated_days: float = Field(sa_column=days_column())
    days_credited: float = Field(sa_column=days_column())
    days_used: float = Field(default=0, sa_column=days_column())
    days_remaining: float = Field(sa_column=days_column())
    status: str = Field(default=CreditStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "PENDING"})
    expiry_date: date | None = None
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rejection_reason: str | None = None
    balance_id: uuid.UUID | None = None
    credited_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    created_by: uuid.UUID | None = None


class ReplacementCreditHistory(UUIDBase, TimestampMixin, table=True):
    """Append-only trail of a credit's status changes."""

    __tablename__ = "replacement_credit_history"

    tenant_id: uuid.UUID = Field(index=True)
    credit_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("replacement_leave_credit.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    actor_id: uuid.UUID
    action: str = Field(max_length=20)
    from_status: str | None = Field(default=None, max_length=20)
    to_status: str = Field(max_length=20)
    days_affected: float | None = Field(default=None, sa_column=optional_days_column())
    note: str | None = None
