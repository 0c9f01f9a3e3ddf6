# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable


@runtime_checkable
class AttendanceService(Protocol):
    """Interface for the Attendance Service."""

    async def mark_on_leave(
        self,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
        day: date,
        leave_request_id: uuid.UUID,
    ) -> None:
        """Upsert an on-leave marker for one employee and day. Idempotent."""
        ...


class InMemoryAttendanceService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._marks: dict[tuple[uuid.UUID, uuid.UUID, date], uuid.UUID] = {}

    async def mark_on_leave(
        self,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
        day: date,
        leave_request_id: uuid.UUID,
    ) -> None:
        """Upsert an on-leave marker for one employee and day. Idempotent."""
        self._marks[(tenant_id, employee_id, day)] = leave_request_id

    def marked_days(self, tenant_id: uuid.UUID, employee_id: uuid.UUID) -> list[date]:
        """Days marked on leave for an employee, in order."""
        return sorted(d for (t, e, d) in self._marks if t == tenant_id and e == employee_id)


_attendance_service: AttendanceService = InMemoryAttendanceService()


def get_attendance_service() -> AttendanceService:
    """Return the configured Attendance Service."""
    return _attendance_service


def set_attendance_service(service: AttendanceService) -> None:
    """Override the service (for testing or production wiring)."""
    global _attendance_service
    _attendance_service = service
