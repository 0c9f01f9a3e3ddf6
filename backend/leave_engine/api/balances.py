# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.db import SessionDep
from leave_engine.schemas.balance import (
    AdjustBalanceRequest,
    BalanceListResponse,
    BalanceResponse,
    CarryForwardRequest,
    CarryForwardResponse,
)
from leave_engine.services import balance as balance_service

employee_balance_router = APIRouter(
    prefix="/tenants/{tenant_id}/employees/{employee_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_tenant_scope)],
)

balances_router = APIRouter(
    prefix="/tenants/{tenant_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_tenant_scope)],
)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> BalanceListResponse:
    """Get the employee's balance for every active leave type in a year."""
    return await balance_service.get_employee_balances(session, auth, employee_id, year)


@balances_router.get("", response_model=BalanceListResponse)
async def list_balances(
    session: SessionDep,
    auth: HRAdminDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    employee_id: uuid.UUID | None = Query(default=None),
) -> BalanceListResponse:
    """List stored balances (HR only)."""
    return await balance_service.list_balances(session, auth.tenant_id, year, employee_id)


@balances_router.post("/carry-forward", response_model=CarryForwardResponse)
async def carry_forward(
    payload: CarryForwardRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> CarryForwardResponse:
    """Carry unused days of a year into the next (HR only)."""
    return await balance_service.carry_forward(session, auth, payload.from_year)


@balances_router.patch("/{balance_id}", response_model=BalanceResponse)
async def adjust_balance(
    balance_id: uuid.UUID,
    payload: AdjustBalanceRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> BalanceResponse:
    """Manually set a balance's allocation or carry-forward (HR only)."""
    return await balance_service.adjust_balance(session, auth, balance_id, payload)
