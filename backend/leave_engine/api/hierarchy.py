# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.db import SessionDep
from leave_engine.schemas.hierarchy import (
    ApproverResponse,
    CreateDepartmentRequest,
    DepartmentListResponse,
    DepartmentResponse,
    HierarchyNodeResponse,
    UpdateDepartmentRequest,
    UpsertHierarchyRequest,
)
from leave_engine.services import approver as approver_service
from leave_engine.services import hierarchy as hierarchy_service

departments_router = APIRouter(
    prefix="/tenants/{tenant_id}/departments",
    tags=["hierarchy"],
    dependencies=[Depends(validate_tenant_scope)],
)

hierarchy_router = APIRouter(
    prefix="/tenants/{tenant_id}/hierarchy",
    tags=["hierarchy"],
    dependencies=[Depends(validate_tenant_scope)],
)


@departments_router.get("", response_model=DepartmentListResponse)
async def list_departments(
    session: SessionDep,
    auth: AuthDep,
) -> DepartmentListResponse:
    """List departments."""
    return await hierarchy_service.list_departments(session, auth.tenant_id)


@departments_router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    payload: CreateDepartmentRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> DepartmentResponse:
    """Create a department (HR only)."""
    return await hierarchy_service.create_department(session, auth, payload)


@departments_router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    payload: UpdateDepartmentRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> DepartmentResponse:
    """Update a department, including its fallback approver (HR only)."""
    return await hierarchy_service.update_department(session, auth, department_id, payload)


@hierarchy_router.put("/{employee_id}", response_model=HierarchyNodeResponse)
async def upsert_node(
    employee_id: uuid.UUID,
    payload: UpsertHierarchyRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> HierarchyNodeResponse:
    """Set an employee's reporting line (HR only)."""
    return await hierarchy_service.upsert_node(session, auth, employee_id, payload)


@hierarchy_router.get("/{employee_id}", response_model=HierarchyNodeResponse)
async def get_node(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> HierarchyNodeResponse:
    """Get an employee's reporting line."""
    return await hierarchy_service.get_node(session, auth.tenant_id, employee_id)


@hierarchy_router.get("/{employee_id}/approver", response_model=ApproverResponse)
async def preview_approver(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApproverResponse:
    """Resolve who would approve a request from this employee today."""
    return await approver_service.preview_approver(session, auth.tenant_id, employee_id)
