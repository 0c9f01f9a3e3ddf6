# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.db import SessionDep
from leave_engine.schemas.leave_type import (
    CreateLeaveTypeRequest,
    DeleteLeaveTypeResponse,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from leave_engine.services import leave_type as leave_type_service

router = APIRouter(
    prefix="/tenants/{tenant_id}/leave-types",
    tags=["leave-types"],
    dependencies=[Depends(validate_tenant_scope)],
)


@router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
) -> LeaveTypeListResponse:
    """List leave types. Inactive types are only visible to HR."""
    return await leave_type_service.list_leave_types(session, auth, include_inactive)


@router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> LeaveTypeResponse:
    """Create a leave type (HR only)."""
    return await leave_type_service.create_leave_type(session, auth, payload)


@router.patch("/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> LeaveTypeResponse:
    """Update a leave type (HR only)."""
    return await leave_type_service.update_leave_type(session, auth, leave_type_id, payload)


@router.delete("/{leave_type_id}", response_model=DeleteLeaveTypeResponse)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: HRAdminDep,
) -> DeleteLeaveTypeResponse:
    """Delete a leave type, or deactivate it when requests reference it."""
    return await leave_type_service.delete_leave_type(session, auth, leave_type_id)
