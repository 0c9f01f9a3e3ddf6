# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from leave_engine.services.employee import EmployeeInfo, get_employee_or_404, get_employee_service

employees_router = APIRouter(
    prefix="/tenants/{tenant_id}/employees",
    tags=["employees"],
    dependencies=[Depends(validate_tenant_scope)],
)


def _build_employee_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(**employee.model_dump())


@employees_router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
async def upsert_employee(
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    auth: HRAdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub directory (HR only)."""
    employee = EmployeeInfo(id=employee_id, tenant_id=tenant_id, **payload.model_dump())
    get_employee_service().seed(employee)  # ty: ignore[unresolved-attribute]
    return _build_employee_response(employee)


@employees_router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
async def get_employee(
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get employee attributes from the directory."""
    employee = await get_employee_or_404(tenant_id, employee_id)
    return _build_employee_response(employee)


@employees_router.get(
    "",
    response_model=EmployeeListResponse,
)
async def list_employees(
    tenant_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeListResponse:
    """List all employees of a tenant from the directory."""
    employees = await get_employee_service().list_employees(tenant_id)
    items = [_build_employee_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))
