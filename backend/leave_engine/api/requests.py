# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leave_engine.api.deps import AuthDep, HRAdminDep, validate_tenant_scope
from leave_engine.db import SessionDep
from leave_engine.models.enums import RequestStatus
from leave_engine.schemas.request import (
    DecisionPayload,
    LeaveRequestDetailResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    OverridePayload,
    SubmitLeavePayload,
)
from leave_engine.services import request as request_service

requests_router = APIRouter(
    prefix="/tenants/{tenant_id}/leave-requests",
    tags=["leave-requests"],
    dependencies=[Depends(validate_tenant_scope)],
)


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_leave(
    payload: SubmitLeavePayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a leave request for the caller."""
    return await request_service.submit_leave(session, auth, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_my_requests(
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
) -> LeaveRequestListResponse:
    """List the caller's own leave requests."""
    return await request_service.list_my_requests(session, auth, year, status_filter)


@requests_router.get("/pending", response_model=LeaveRequestListResponse)
async def list_pending(
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestListResponse:
    """List requests waiting on the caller (all pending requests for HR)."""
    return await request_service.list_pending(session, auth)


@requests_router.get("/{request_id}", response_model=LeaveRequestDetailResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestDetailResponse:
    """Get a single leave request with its approval history."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.post("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> LeaveRequestResponse:
    """Approve a pending request (assigned approver only)."""
    return await request_service.approve_request(session, auth, request_id, payload)


@requests_router.post("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> LeaveRequestResponse:
    """Reject a pending request (assigned approver only)."""
    return await request_service.reject_request(session, auth, request_id, payload)


@requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Withdraw one of the caller's pending requests."""
    return await request_service.cancel_request(session, auth, request_id)


@requests_router.post("/{request_id}/override", response_model=LeaveRequestResponse)
async def override_request(
    request_id: uuid.UUID,
    payload: OverridePayload,
    session: SessionDep,
    auth: HRAdminDep,
) -> LeaveRequestResponse:
    """Decide a pending request in place of the assigned approver (HR only)."""
    return await request_service.override_request(session, auth, request_id, payload)
