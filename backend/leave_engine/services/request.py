# ruff: noqa: TC003
"""Leave request workflow: submit, approve, reject, cancel and HR override."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import extract, select
from sqlmodel import col

from leave_engine.exceptions import AuthorizationFailure, NotFound, PolicyViolation, StateConflict
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.enums import HistoryAction, RequestStatus
from leave_engine.models.request import ApprovalHistoryEntry, LeaveRequest
from leave_engine.schemas.request import (
    HistoryEntryResponse,
    LeaveRequestDetailResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
)
from leave_engine.services import balance as ledger
from leave_engine.services.approver import resolve_approver
from leave_engine.services.attendance import get_attendance_service
from leave_engine.services.duration import calculate_leave_days, iter_weekdays
from leave_engine.services.leave_type import get_active_leave_type_by_code

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.request import DecisionPayload, OverridePayload, SubmitLeavePayload

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = [RequestStatus.PENDING.value, RequestStatus.APPROVED.value]
OVERRIDE_NOTE_PREFIX = "[HR ADMIN OVERRIDE]"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request model to its response schema."""
    approver = (request.hierarchy_snapshot or {}).get("approver") or {}
    return LeaveRequestResponse(
        id=request.id,
        tenant_id=request.tenant_id,
        employee_id=request.employee_id,
        leave_type_id=request.leave_type_id,
        balance_id=request.balance_id,
        start_date=request.start_date,
        end_date=request.end_date,
        days_requested=request.days_requested,
        half_day_start=request.half_day_start,
        half_day_end=request.half_day_end,
        reason=request.reason,
        status=RequestStatus(request.status),
        current_approver_id=request.current_approver_id,
        approver_name=approver.get("name"),
        hierarchy_snapshot=request.hierarchy_snapshot,
        submitted_at=request.submitted_at,
        approved_at=request.approved_at,
        rejected_at=request.rejected_at,
        withdrawn_at=request.withdrawn_at,
        decided_by=request.decided_by,
        decision_note=request.decision_note,
        is_override=request.is_override,
        override_reason=request.override_reason,
        created_at=request.created_at,
    )


def _build_history_response(entry: ApprovalHistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        leave_request_id=entry.leave_request_id,
        actor_id=entry.actor_id,
        action=HistoryAction(entry.action),
        from_status=RequestStatus(entry.from_status) if entry.from_status else None,
        to_status=RequestStatus(entry.to_status),
        note=entry.note,
        created_at=entry.created_at,
    )


async def _get_request_or_404(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    request_id: uuid.UUID,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID scoped to tenant. Raises 404 if not found."""
    query = select(LeaveRequest).where(
        col(LeaveRequest.id) == request_id,
        col(LeaveRequest.tenant_id) == tenant_id,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query.execution_options(populate_existing=True))
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound("Leave request not found")
    return request


async def _lock_balance(session: AsyncSession, balance_id: uuid.UUID) -> None:
    await session.execute(select(col(LeaveBalance.id)).where(col(LeaveBalance.id) == balance_id).with_for_update())


async def _check_overlap(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> None:
    """Raise if a pending or approved request of the employee shares any date with the range."""
    result = await session.execute(
        select(col(LeaveRequest.id))
        .where(
            col(LeaveRequest.tenant_id) == tenant_id,
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.status).in_(_ACTIVE_STATUSES),
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise PolicyViolation("Leave dates overlap with an existing pending or approved request")


def _add_history(
    session: AsyncSession,
    request: LeaveRequest,
    actor_id: uuid.UUID,
    action: HistoryAction,
    from_status: RequestStatus | None,
    note: str | None = None,
) -> ApprovalHistoryEntry:
    entry = ApprovalHistoryEntry(
        tenant_id=request.tenant_id,
        leave_request_id=request.id,
        actor_id=actor_id,
        action=action.value,
        from_status=from_status.value if from_status else None,
        to_status=request.status,
        note=note,
    )
    session.add(entry)
    return entry


async def _mark_attendance(request: LeaveRequest) -> None:
    """Best effort: failures are logged and never undo the committed approval."""
    attendance = get_attendance_service()
    try:
        for day in iter_weekdays(request.start_date, request.end_date):
            await attendance.mark_on_leave(request.tenant_id, request.employee_id, day, request.id)
    except Exception:
        logger.exception("Failed to mark attendance for approved leave request %s", request.id)


def _ensure_pending(request: LeaveRequest) -> None:
    if request.status != RequestStatus.PENDING.value:
        raise StateConflict(f"Leave request is already {request.status}")


async def _decide(
    session: AsyncSession,
    auth: AuthContext,
    request: LeaveRequest,
    approve: bool,
    note: str | None,
    override_reason: str | None = None,
) -> LeaveRequestResponse:
    """Shared transition for approve, reject and override.

    1. Lock the balance row.
    2. Approve: pending -> taken. Reject: release pending.
    3. Update request status and decision fields.
    4. Append history (OVERRIDDEN for overrides).
    5. Commit, then mark attendance for approvals.
    """
    await _lock_balance(session, request.balance_id)

    now = datetime.now(UTC)
    if approve:
        await ledger.commit(session, request.balance_id, request.days_requested)
        request.status = RequestStatus.APPROVED.value
        request.approved_at = now
        action = HistoryAction.APPROVED
    else:
        await ledger.release(session, request.balance_id, request.days_requested)
        request.status = RequestStatus.REJECTED.value
        request.rejected_at = now
        action = HistoryAction.REJECTED

    request.decided_by = auth.user_id
    request.decision_note = note
    if override_reason is not None:
        request.is_override = True
        request.override_reason = override_reason
        action = HistoryAction.OVERRIDDEN

    _add_history(session, request, auth.user_id, action, RequestStatus.PENDING, note)

    await session.commit()
    await session.refresh(request)
    logger.info(
        "Leave request %s %s by %s%s (tenant %s, %s days)",
        request.id,
        request.status,
        auth.user_id,
        " via override" if override_reason is not None else "",
        request.tenant_id,
        request.days_requested,
    )

    if approve:
        await _mark_attendance(request)
    return _build_request_response(request)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_leave(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitLeavePayload,
) -> LeaveRequestResponse:
    """Apply for leave on behalf of the caller.

    Flow:
    1. Resolve the active leave type by code
    2. Count working days (weekends excluded, half days 0.5)
    3. Enforce max consecutive days and minimum notice
    4. Get or create the start year's balance, then lock all of the
       employee's balances for that year FOR UPDATE in id order
    5. Enforce available balance
    6. Reject overlaps with pending/approved requests
    7. Resolve the approver; routing failures create nothing
    8. Insert the request, reserve the days, append SUBMITTED history
    9. Commit
    """
    employee_id = auth.user_id
    today = date.today()

    # 1. Leave type.
    leave_type = await get_active_leave_type_by_code(session, auth.tenant_id, payload.leave_type_code)

    # 2. Duration.
    days = calculate_leave_days(payload.start_date, payload.end_date, payload.half_day_start, payload.half_day_end)

    # 3. Leave type limits.
    if leave_type.max_consecutive_days and days > leave_type.max_consecutive_days:
        raise PolicyViolation(f"Maximum {leave_type.max_consecutive_days:g} consecutive days allowed")
    notice_days = (payload.start_date - today).days
    if notice_days < leave_type.min_notice_days:
        raise PolicyViolation(f"Minimum {leave_type.min_notice_days} days notice required")

    # 4. Lock all of the employee's balances for the year, this one included.
    balance = await ledger.get_or_create_balance(
        session, auth.tenant_id, employee_id, leave_type.id, payload.start_date.year
    )
    await ledger.lock_employee_balances(session, auth.tenant_id, employee_id, payload.start_date.year)

    # 5. Availability.
    available = balance.remaining_days
    if available < days:
        raise PolicyViolation(f"Insufficient balance. Available: {available:g} days, Requested: {days:g} days")

    # 6. Overlap.
    await _check_overlap(session, auth.tenant_id, employee_id, payload.start_date, payload.end_date)

    # 7. Approver.
    decision = await resolve_approver(session, auth.tenant_id, employee_id)

    # 8. Request, reservation, history.
    leave_request = LeaveRequest(
        tenant_id=auth.tenant_id,
        employee_id=employee_id,
        leave_type_id=leave_type.id,
        balance_id=balance.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days_requested=days,
        half_day_start=payload.half_day_start,
        half_day_end=payload.half_day_end,
        reason=payload.reason,
        status=RequestStatus.PENDING.value,
        current_approver_id=decision.approver_id,
        hierarchy_snapshot=decision.snapshot,
        submitted_at=datetime.now(UTC),
    )
    session.add(leave_request)
    await session.flush()

    await ledger.reserve(session, balance.id, days)
    _add_history(session, leave_request, employee_id, HistoryAction.SUBMITTED, None, payload.reason)

    # 9. Commit.
    await session.commit()
    await session.refresh(leave_request)
    logger.info(
        "Leave request %s submitted by %s (tenant %s, %s days, approver %s)",
        leave_request.id,
        employee_id,
        auth.tenant_id,
        days,
        decision.approver_id,
    )
    return _build_request_response(leave_request)


async def approve_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: DecisionPayload | None = None,
) -> LeaveRequestResponse:
    """Approve a pending request as its assigned approver."""
    leave_request = await _get_request_or_404(session, auth.tenant_id, request_id, for_update=True)
    _authorize_decision(auth, leave_request)
    _ensure_pending(leave_request)
    return await _decide(session, auth, leave_request, approve=True, note=payload.note if payload else None)


async def reject_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: DecisionPayload | None = None,
) -> LeaveRequestResponse:
    """Reject a pending request as its assigned approver, releasing the held days."""
    leave_request = await _get_request_or_404(session, auth.tenant_id, request_id, for_update=True)
    _authorize_decision(auth, leave_request)
    _ensure_pending(leave_request)
    return await _decide(session, auth, leave_request, approve=False, note=payload.note if payload else None)


async def override_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: OverridePayload,
) -> LeaveRequestResponse:
    """HR decision on a pending request regardless of the assigned approver."""
    if not auth.is_hr_admin:
        raise AuthorizationFailure("Only HR admins can override leave decisions")

    leave_request = await _get_request_or_404(session, auth.tenant_id, request_id, for_update=True)
    if leave_request.employee_id == auth.user_id:
        raise AuthorizationFailure("Cannot override a decision on your own leave request")
    _ensure_pending(leave_request)

    return await _decide(
        session,
        auth,
        leave_request,
        approve=payload.decision == "approve",
        note=f"{OVERRIDE_NOTE_PREFIX} {payload.justification}",
        override_reason=payload.justification,
    )


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Withdraw one's own pending request, releasing the held days."""
    leave_request = await _get_request_or_404(session, auth.tenant_id, request_id, for_update=True)
    if leave_request.employee_id != auth.user_id:
        raise AuthorizationFailure("Only the requesting employee can cancel a leave request")
    _ensure_pending(leave_request)

    await _lock_balance(session, leave_request.balance_id)
    await ledger.release(session, leave_request.balance_id, leave_request.days_requested)

    leave_request.status = RequestStatus.WITHDRAWN.value
    leave_request.withdrawn_at = datetime.now(UTC)
    _add_history(session, leave_request, auth.user_id, HistoryAction.CANCELLED, RequestStatus.PENDING)

    await session.commit()
    await session.refresh(leave_request)
    logger.info("Leave request %s withdrawn by %s", leave_request.id, auth.user_id)
    return _build_request_response(leave_request)


def _authorize_decision(auth: AuthContext, leave_request: LeaveRequest) -> None:
    """Approve/reject need an approver role, no self-decisions, and the assigned approver."""
    if not auth.can_approve:
        raise AuthorizationFailure("Insufficient permissions to decide on leave requests")
    if leave_request.employee_id == auth.user_id:
        raise AuthorizationFailure("Cannot approve or reject your own leave request")
    if leave_request.current_approver_id != auth.user_id:
        raise AuthorizationFailure("Only the assigned approver can decide on this request; HR may override")


async def list_history(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    request_id: uuid.UUID,
) -> list[HistoryEntryResponse]:
    """Approval history of a request, oldest first."""
    result = await session.execute(
        select(ApprovalHistoryEntry)
        .where(
            col(ApprovalHistoryEntry.tenant_id) == tenant_id,
            col(ApprovalHistoryEntry.leave_request_id) == request_id,
        )
        .order_by(col(ApprovalHistoryEntry.created_at), col(ApprovalHistoryEntry.id))
    )
    return [_build_history_response(e) for e in result.scalars().all()]


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestDetailResponse:
    """A request with its history. Visible to its employee and to approvers."""
    leave_request = await _get_request_or_404(session, auth.tenant_id, request_id)
    if leave_request.employee_id != auth.user_id and not auth.can_approve:
        raise AuthorizationFailure("Not authorized to view this leave request")

    history = await list_history(session, auth.tenant_id, request_id)
    return LeaveRequestDetailResponse(
        **_build_request_response(leave_request).model_dump(),
        history=history,
    )


async def list_my_requests(
    session: AsyncSession,
    auth: AuthContext,
    year: int | None = None,
    status_filter: RequestStatus | None = None,
) -> LeaveRequestListResponse:
    """The caller's own requests, most recent start date first."""
    query = select(LeaveRequest).where(
        col(LeaveRequest.tenant_id) == auth.tenant_id,
        col(LeaveRequest.employee_id) == auth.user_id,
    )
    if year is not None:
        query = query.where(extract("year", col(LeaveRequest.start_date)) == year)
    if status_filter is not None:
        query = query.where(col(LeaveRequest.status) == status_filter.value)

    result = await session.execute(query.order_by(col(LeaveRequest.start_date).desc()))
    requests = list(result.scalars().all())
    return LeaveRequestListResponse(items=[_build_request_response(r) for r in requests], total=len(requests))


async def list_pending(
    session: AsyncSession,
    auth: AuthContext,
) -> LeaveRequestListResponse:
    """Pending requests, oldest first: all of them for HR, otherwise those routed to the caller."""
    if not auth.can_approve:
        raise AuthorizationFailure("Insufficient permissions to view pending approvals")

    query = select(LeaveRequest).where(
        col(LeaveRequest.tenant_id) == auth.tenant_id,
        col(LeaveRequest.status) == RequestStatus.PENDING.value,
    )
    if not auth.is_hr_admin:
        query = query.where(col(LeaveRequest.current_approver_id) == auth.user_id)

    result = await session.execute(query.order_by(col(LeaveRequest.submitted_at), col(LeaveRequest.created_at)))
    requests = list(result.scalars().all())
    return LeaveRequestListResponse(items=[_build_request_response(r) for r in requests], total=len(requests))
