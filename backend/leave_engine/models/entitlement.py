# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase, days_column


class EntitlementRule(UUIDBase, TimestampMixin, table=True):
    """One candidate allocation for a leave type, gated by optional employee filters."""

    __tablename__ = "leave_entitlement_rule"
    __table_args__ = (
        sa.Index("ix_entitlement_rule_lookup", "tenant_id", "leave_type_id", "is_active"),
        sa.Index("ix_entitlement_rule_effective", "effective_from", "effective_to"),
    )

    tenant_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    rule_name: str | None = Field(default=None, max_length=200)
    rule_description: str | None = None
    min_tenure_months: int = 0
    max_tenure_months: int | None = None
    employee_grade: str | None = Field(default=None, max_length=50)
    department: str | None = Field(default=None, max_length=100)
    designation: str | None = Field(default=None, max_length=100)
    allocated_days: float = Field(sa_column=days_column())
    effective_from: date
    effective_to: date | None = None
    priority: int = 100
    is_active: bool = True
    created_by: uuid.UUID | None = None
    change_reason: str | None = None


class EntitlementException(UUIDBase, TimestampMixin, table=True):
    """Per-employee override for one leave type and year. Outranks every rule."""

    __tablename__ = "leave_entitlement_exception"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id", "employee_id", "leave_type_id", "effective_year", name="uq_entitlement_exception"
        ),
    )

    tenant_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    effective_year: int
    allocated_days: float = Field(sa_column=days_column())
    reason: str
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    is_active: bool = True
