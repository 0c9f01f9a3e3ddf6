# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leave_engine.exceptions import NotFound


class EmployeeInfo(BaseModel):
    """Employee attributes from the Employee Service."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    full_name: str
    join_date: date | None = None  # drives tenure bands
    grade: str | None = None
    department: str | None = None  # department code or name as used by entitlement rules
    designation: str | None = None
    employment_type: str = "FULL_TIME"


@runtime_checkable
class EmployeeService(Protocol):
    """Interface for the Employee Service."""

    async def get_employee(self, tenant_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee attributes. Returns None if not found."""
        ...

    async def list_employees(self, tenant_id: uuid.UUID) -> list[EmployeeInfo]:
        """List all employees for a tenant."""
        ...


class InMemoryEmployeeService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[tuple[uuid.UUID, uuid.UUID], EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[(employee.tenant_id, employee.id)] = employee

    async def get_employee(self, tenant_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee attributes. Returns None if not found."""
        return self._employees.get((tenant_id, employee_id))

    async def list_employees(self, tenant_id: uuid.UUID) -> list[EmployeeInfo]:
        """List all employees for a tenant."""
        return [e for e in self._employees.values() if e.tenant_id == tenant_id]


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """FastAPI dependency for the Employee Service."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the service (for testing or production wiring)."""
    global _employee_service
    _employee_service = service


async def get_employee_or_404(tenant_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo:
    """Fetch an employee from the configured service. Raises 404 if unknown."""
    employee = await get_employee_service().get_employee(tenant_id, employee_id)
    if employee is None:
        raise NotFound("Employee not found")
    return employee
