# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the stub directory."""

    full_name: str = Field(min_length=1, max_length=200)
    join_date: date | None = None
    grade: str | None = Field(default=None, max_length=50)
    department: str | None = Field(default=None, max_length=100)
    designation: str | None = Field(default=None, max_length=100)
    employment_type: str = Field(default="FULL_TIME", max_length=30)


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    full_name: str
    join_date: date | None
    grade: str | None
    department: str | None
    designation: str | None
    employment_type: str


class EmployeeListResponse(BaseModel):
    """List of employees."""

    items: list[EmployeeResponse]
    total: int
