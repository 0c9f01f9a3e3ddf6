# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase, days_column, optional_days_column


class LeaveType(UUIDBase, TimestampMixin, table=True):
    """Tenant-configured leave type (Annual, Medical, Replacement, ...)."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("tenant_id", "code", name="uq_leave_type_tenant_code"),)

    tenant_id: uuid.UUID = Field(index=True)
    code: str = Field(max_length=20)
    name: str = Field(max_length=100)
    description: str | None = None
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    max_days_per_year: float = Field(default=0, sa_column=days_column())
    carry_forward_allowed: bool = False
    max_carry_forward_days: float = Field(default=0, sa_column=days_column())
    carry_forward_expiry_months: int | None = None
    requires_approval: bool = True
    requires_document: bool = False
    is_paid: bool = True
    min_notice_days: int = 0
    max_consecutive_days: float | None = Field(default=None, sa_column=optional_days_column())
    sort_order: int = 0
    created_by: uuid.UUID | None = None
