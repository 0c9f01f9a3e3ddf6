# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase


class Department(UUIDBase, TimestampMixin, table=True):
    """Organisational unit. Its fallback approver catches employees with no usable supervisor."""

    __tablename__ = "department"
    __table_args__ = (sa.UniqueConstraint("tenant_id", "code", name="uq_department_tenant_code"),)

    tenant_id: uuid.UUID = Field(index=True)
    code: str = Field(max_length=20)
    name: str = Field(max_length=100)
    fallback_approver_id: uuid.UUID | None = None
    is_active: bool = True


class OrgHierarchyNode(UUIDBase, TimestampMixin, table=True):
    """Reporting line for one employee."""

    __tablename__ = "org_hierarchy"
    __table_args__ = (sa.UniqueConstraint("tenant_id", "employee_id", name="uq_org_hierarchy_employee"),)

    tenant_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID
    reports_to_id: uuid.UUID | None = Field(default=None, index=True)
    department_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("department.id", ondelete="SET NULL"), nullable=True),
    )
    position_title: str | None = Field(default=None, max_length=100)
    hierarchy_level: int = 99
    can_approve_leave: bool = False
    is_active: bool = True
