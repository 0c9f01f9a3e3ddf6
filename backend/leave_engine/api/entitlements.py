# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.db import SessionDep
from leave_engine.exceptions import AuthorizationFailure
from leave_engine.schemas.entitlement import (
    CreateEntitlementExceptionRequest,
    CreateEntitlementRuleRequest,
    DeactivatePayload,
    EntitlementExceptionListResponse,
    EntitlementExceptionResponse,
    EntitlementPreviewResponse,
    EntitlementRuleListResponse,
    EntitlementRuleResponse,
    UpdateEntitlementRuleRequest,
)
from leave_engine.services import entitlement as entitlement_service

rules_router = APIRouter(
    prefix="/tenants/{tenant_id}/entitlement-rules",
    tags=["entitlements"],
    dependencies=[Depends(validate_tenant_scope)],
)

exceptions_router = APIRouter(
    prefix="/tenants/{tenant_id}/entitlement-exceptions",
    tags=["entitlements"],
    dependencies=[Depends(validate_tenant_scope)],
)

preview_router = APIRouter(
    prefix="/tenants/{tenant_id}/employees/{employee_id}/entitlements",
    tags=["entitlements"],
    dependencies=[Depends(validate_tenant_scope)],
)


@rules_router.get("", response_model=EntitlementRuleListResponse)
async def list_rules(
    session: SessionDep,
    auth: HRAdminDep,
    leave_type_id: uuid.UUID | None = Query(default=None),
    include_inactive: bool = Query(default=False),
) -> EntitlementRuleListResponse:
    """List entitlement rules, optionally for one leave type."""
    return await entitlement_service.list_rules(session, auth.tenant_id, leave_type_id, include_inactive)


@rules_router.post("", response_model=EntitlementRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: CreateEntitlementRuleRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> EntitlementRuleResponse:
    """Create an entitlement rule."""
    return await entitlement_service.create_rule(session, auth, payload)


@rules_router.patch("/{rule_id}", response_model=EntitlementRuleResponse)
async def update_rule(
    rule_id: uuid.UUID,
    payload: UpdateEntitlementRuleRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> EntitlementRuleResponse:
    """Update an entitlement rule. Existing balances keep their allocation."""
    return await entitlement_service.update_rule(session, auth, rule_id, payload)


@rules_router.delete("/{rule_id}", response_model=EntitlementRuleResponse)
async def deactivate_rule(
    rule_id: uuid.UUID,
    session: SessionDep,
    auth: HRAdminDep,
    payload: DeactivatePayload | None = None,
) -> EntitlementRuleResponse:
    """Deactivate an entitlement rule."""
    return await entitlement_service.deactivate_rule(session, auth, rule_id, payload)


@exceptions_router.get("", response_model=EntitlementExceptionListResponse)
async def list_exceptions(
    session: SessionDep,
    auth: HRAdminDep,
    employee_id: uuid.UUID | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> EntitlementExceptionListResponse:
    """List per-employee entitlement exceptions."""
    return await entitlement_service.list_exceptions(session, auth.tenant_id, employee_id, year)


@exceptions_router.post("", response_model=EntitlementExceptionResponse, status_code=status.HTTP_201_CREATED)
async def upsert_exception(
    payload: CreateEntitlementExceptionRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> EntitlementExceptionResponse:
    """Create or replace an employee's exception for a leave type and year."""
    return await entitlement_service.upsert_exception(session, auth, payload)


@exceptions_router.delete("/{exception_id}", response_model=EntitlementExceptionResponse)
async def deactivate_exception(
    exception_id: uuid.UUID,
    session: SessionDep,
    auth: HRAdminDep,
) -> EntitlementExceptionResponse:
    """Deactivate an entitlement exception."""
    return await entitlement_service.deactivate_exception(session, auth, exception_id)


@preview_router.get("/{leave_type_id}", response_model=EntitlementPreviewResponse)
async def preview_entitlement(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> EntitlementPreviewResponse:
    """Show which rule would allocate the employee's days, without writing a balance."""
    if employee_id != auth.user_id and not auth.can_approve:
        raise AuthorizationFailure("Not authorized to view this employee's entitlement")
    return await entitlement_service.preview_entitlement(session, auth.tenant_id, employee_id, leave_type_id, year)
