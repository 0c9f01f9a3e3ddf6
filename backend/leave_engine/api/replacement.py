# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.db import SessionDep
from leave_engine.models.enums import CreditStatus
from leave_engine.schemas.replacement import (
    ApproveCreditPayload,
    CreateReplacementRuleRequest,
    CreditReplacementPayload,
    ExpireCreditsPayload,
    ExpireCreditsResponse,
    RejectCreditPayload,
    ReplacementCreditDetailResponse,
    ReplacementCreditListResponse,
    ReplacementCreditResponse,
    ReplacementRuleListResponse,
    ReplacementRuleResponse,
    ReplacementSummaryResponse,
    TrainingCompletionPayload,
    UpdateReplacementRuleRequest,
)
from leave_engine.services import replacement as replacement_service

rules_router = APIRouter(
    prefix="/tenants/{tenant_id}/replacement-rules",
    tags=["replacement-leave"],
    dependencies=[Depends(validate_tenant_scope)],
)

credits_router = APIRouter(
    prefix="/tenants/{tenant_id}/replacement-credits",
    tags=["replacement-leave"],
    dependencies=[Depends(validate_tenant_scope)],
)

training_router = APIRouter(
    prefix="/tenants/{tenant_id}/training-completions",
    tags=["replacement-leave"],
    dependencies=[Depends(validate_tenant_scope)],
)


@rules_router.get("", response_model=ReplacementRuleListResponse)
async def list_rules(
    session: SessionDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
) -> ReplacementRuleListResponse:
    """List replacement leave rules."""
    return await replacement_service.list_rules(session, auth, include_inactive)


@rules_router.post("", response_model=ReplacementRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: CreateReplacementRuleRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> ReplacementRuleResponse:
    """Create a replacement leave rule (HR only)."""
    return await replacement_service.create_rule(session, auth, payload)


@rules_router.patch("/{rule_id}", response_model=ReplacementRuleResponse)
async def update_rule(
    rule_id: uuid.UUID,
    payload: UpdateReplacementRuleRequest,
    session: SessionDep,
    auth: HRAdminDep,
) -> ReplacementRuleResponse:
    """Update a replacement leave rule (HR only)."""
    return await replacement_service.update_rule(session, auth, rule_id, payload)


@rules_router.delete("/{rule_id}", response_model=ReplacementRuleResponse)
async def deactivate_rule(
    rule_id: uuid.UUID,
    session: SessionDep,
    auth: HRAdminDep,
) -> ReplacementRuleResponse:
    """Deactivate a replacement leave rule (HR only)."""
    return await replacement_service.deactivate_rule(session, auth, rule_id)


@credits_router.post("", response_model=ReplacementCreditResponse, status_code=status.HTTP_201_CREATED)
async def credit_replacement_leave(
    payload: CreditReplacementPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ReplacementCreditResponse:
    """Credit replacement leave for a qualifying event."""
    return await replacement_service.credit_replacement_leave(session, auth, payload)


@credits_router.get("", response_model=ReplacementCreditListResponse)
async def list_credits(
    session: SessionDep,
    auth: AuthDep,
    status_filter: CreditStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
) -> ReplacementCreditListResponse:
    """List replacement leave credits."""
    return await replacement_service.list_credits(session, auth, status_filter, employee_id)


@credits_router.get("/summary", response_model=ReplacementSummaryResponse)
async def replacement_summary(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
) -> ReplacementSummaryResponse:
    """Earned, used and available replacement leave."""
    return await replacement_service.replacement_summary(session, auth, employee_id)


@credits_router.post("/expire", response_model=ExpireCreditsResponse)
async def expire_credits(
    session: SessionDep,
    auth: HRAdminDep,
    payload: ExpireCreditsPayload | None = None,
) -> ExpireCreditsResponse:
    """Expire approved credits past their expiry date (HR only)."""
    return await replacement_service.expire_credits(session, auth, payload.as_of if payload else None)


@credits_router.get("/{credit_id}", response_model=ReplacementCreditDetailResponse)
async def get_credit(
    credit_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ReplacementCreditDetailResponse:
    """Get a credit with its history."""
    return await replacement_service.get_credit(session, auth, credit_id)


@credits_router.post("/{credit_id}/approve", response_model=ReplacementCreditResponse)
async def approve_credit(
    credit_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApproveCreditPayload | None = None,
) -> ReplacementCreditResponse:
    """Approve a pending credit."""
    return await replacement_service.approve_credit(session, auth, credit_id, payload)


@credits_router.post("/{credit_id}/reject", response_model=ReplacementCreditResponse)
async def reject_credit(
    credit_id: uuid.UUID,
    payload: RejectCreditPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ReplacementCreditResponse:
    """Reject a pending credit."""
    return await replacement_service.reject_credit(session, auth, credit_id, payload)


@training_router.post("", response_model=ReplacementCreditResponse, status_code=status.HTTP_201_CREATED)
async def record_training_completion(
    payload: TrainingCompletionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ReplacementCreditResponse:
    """Confirm a training attendance and credit the replacement leave it earns."""
    return await replacement_service.record_training_completion(session, auth, payload)
