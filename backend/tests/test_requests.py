"""Integration tests for the leave request workflow: submit, approve, reject, cancel,
override, routing failures, balance invariants and authorization.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from leave_engine.models.balance import LeaveBalance
from leave_engine.models.request import LeaveRequest
from leave_engine.services.attendance import set_attendance_service
from leave_engine.services.employee import EmployeeInfo

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.services.attendance import InMemoryAttendanceService
    from leave_engine.services.employee import InMemoryEmployeeService

TENANT_ID = uuid.uuid4()
HR_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
OTHER_MANAGER_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
COLLEAGUE_ID = uuid.uuid4()

BASE_URL = f"/tenants/{TENANT_ID}"
REQUESTS_URL = f"{BASE_URL}/leave-requests"


def _headers(user_id: uuid.UUID, role: str = "WORKER") -> dict[str, str]:
    return {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(user_id), "X-Role": role}


HR_HEADERS = _headers(HR_ID, "HR_ADMIN")
MANAGER_HEADERS = _headers(MANAGER_ID, "MANAGER")
EMPLOYEE_HEADERS = _headers(EMPLOYEE_ID)


def _next_monday(weeks_ahead: int = 2) -> date:
    today = date.today()
    return today + timedelta(days=7 - today.weekday() + 7 * (weeks_ahead - 1))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _directory(employee_service: InMemoryEmployeeService) -> None:
    """Seed the employee directory for every test."""
    for employee_id, name in [
        (HR_ID, "Hana Rahman"),
        (MANAGER_ID, "Malik Tan"),
        (OTHER_MANAGER_ID, "Mei Wong"),
        (EMPLOYEE_ID, "Evan Lee"),
        (COLLEAGUE_ID, "Cara Ng"),
    ]:
        employee_service.seed(
            EmployeeInfo(
                id=employee_id,
                tenant_id=TENANT_ID,
                full_name=name,
                join_date=date(2020, 1, 1),
                grade="G3",
                department="ENG",
            )
        )


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


async def _create_leave_type(client: AsyncClient, code: str = "AL", **overrides: Any) -> str:
    """Create a leave type as HR and return its ID."""
    body: dict[str, Any] = {"code": code, "name": f"{code} leave", "max_days_per_year": 14}
    body.update(overrides)
    resp = await client.post(f"{BASE_URL}/leave-types", json=body, headers=HR_HEADERS)
    assert resp.status_code == 201
    result: str = resp.json()["id"]
    return result


async def _set_reports_to(
    client: AsyncClient,
    employee_id: uuid.UUID,
    reports_to_id: uuid.UUID | None,
    department_id: str | None = None,
) -> None:
    resp = await client.put(
        f"{BASE_URL}/hierarchy/{employee_id}",
        json={"reports_to_id": str(reports_to_id) if reports_to_id else None, "department_id": department_id},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 200


async def _submit(
    client: AsyncClient,
    start: date,
    end: date,
    headers: dict[str, str] = EMPLOYEE_HEADERS,
    code: str = "AL",
    **extra: Any,
) -> Any:
    return await client.post(
        REQUESTS_URL,
        json={"leave_type_code": code, "start_date": start.isoformat(), "end_date": end.isoformat(), **extra},
        headers=headers,
    )


async def _submit_ok(client: AsyncClient, start: date, end: date, **extra: Any) -> dict[str, Any]:
    resp = await _submit(client, start, end, **extra)
    assert resp.status_code == 201, resp.text
    result: dict[str, Any] = resp.json()
    return result


async def _balance(client: AsyncClient, year: int, code: str = "AL") -> dict[str, Any]:
    resp = await client.get(f"{BASE_URL}/employees/{EMPLOYEE_ID}/balances?year={year}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    return next(b for b in resp.json()["items"] if b["leave_type_code"] == code)


@pytest.fixture
async def routed(async_client: AsyncClient) -> AsyncClient:
    """Leave type AL plus an employee reporting to MANAGER_ID."""
    await _create_leave_type(async_client)
    await _set_reports_to(async_client, EMPLOYEE_ID, MANAGER_ID)
    return async_client


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def test_submit_routes_to_supervisor_and_reserves_days(routed: AsyncClient) -> None:
    monday = _next_monday()
    data = await _submit_ok(routed, monday, monday + timedelta(days=4), half_day_end=True)

    assert data["status"] == "pending"
    assert data["days_requested"] == 4.5
    assert data["current_approver_id"] == str(MANAGER_ID)
    assert data["approver_name"] == "Malik Tan"
    assert data["hierarchy_snapshot"]["routed_via"] == "SUPERVISOR"

    balance = await _balance(routed, monday.year)
    assert balance["allocated_days"] == 14
    assert balance["pending_days"] == 4.5
    assert balance["remaining_days"] == 9.5


async def test_submit_without_hierarchy_fails_routing(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _create_leave_type(async_client)
    monday = _next_monday()

    resp = await _submit(async_client, monday, monday)

    assert resp.status_code == 422
    assert resp.json()["code"] == "NO_HIERARCHY"
    count = await db_session.execute(select(func.count()).select_from(LeaveRequest))
    assert count.scalar_one() == 0


async def test_submit_insufficient_balance_changes_nothing(routed: AsyncClient, db_session: AsyncSession) -> None:
    monday = _next_monday()
    leave_type_resp = await routed.get(f"{BASE_URL}/leave-types", headers=EMPLOYEE_HEADERS)
    leave_type_id = uuid.UUID(leave_type_resp.json()["items"][0]["id"])
    db_session.add(
        LeaveBalance(
            tenant_id=TENANT_ID,
            employee_id=EMPLOYEE_ID,
            leave_type_id=leave_type_id,
            year=monday.year,
            allocated_days=14,
            taken_days=10,
            pending_days=2,
        )
    )
    await db_session.commit()

    resp = await _submit(routed, monday, monday + timedelta(days=2))

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Insufficient balance. Available: 2 days, Requested: 3 days"
    balance = await _balance(routed, monday.year)
    assert (balance["allocated_days"], balance["taken_days"], balance["pending_days"]) == (14, 10, 2)


async def test_submit_unknown_leave_type(routed: AsyncClient) -> None:
    monday = _next_monday()
    resp = await _submit(routed, monday, monday, code="NOPE")
    assert resp.status_code == 422


async def test_submit_end_before_start(routed: AsyncClient) -> None:
    monday = _next_monday()
    resp = await _submit(routed, monday, monday - timedelta(days=1))
    assert resp.status_code == 422


async def test_submit_weekend_only(routed: AsyncClient) -> None:
    saturday = _next_monday() - timedelta(days=2)
    resp = await _submit(routed, saturday, saturday + timedelta(days=1))
    assert resp.status_code == 400


async def test_submit_overlap_rejected(routed: AsyncClient) -> None:
    monday = _next_monday()
    await _submit_ok(routed, monday, monday + timedelta(days=2))

    resp = await _submit(routed, monday + timedelta(days=2), monday + timedelta(days=3))

    assert resp.status_code == 400
    assert "overlap" in resp.json()["detail"]


async def test_submit_after_withdrawal_does_not_overlap(routed: AsyncClient) -> None:
    monday = _next_monday()
    first = await _submit_ok(routed, monday, monday)
    resp = await routed.post(f"{REQUESTS_URL}/{first['id']}/cancel", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200

    await _submit_ok(routed, monday, monday)


async def test_submit_min_notice(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client, min_notice_days=30)
    await _set_reports_to(async_client, EMPLOYEE_ID, MANAGER_ID)
    monday = _next_monday()

    resp = await _submit(async_client, monday, monday)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Minimum 30 days notice required"


async def test_submit_max_consecutive_days(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client, max_consecutive_days=3)
    await _set_reports_to(async_client, EMPLOYEE_ID, MANAGER_ID)
    monday = _next_monday()

    resp = await _submit(async_client, monday, monday + timedelta(days=4))

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Maximum 3 consecutive days allowed"


async def test_submit_routes_to_department_fallback(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client)
    dept = await async_client.post(
        f"{BASE_URL}/departments",
        json={"code": "eng", "name": "Engineering", "fallback_approver_id": str(OTHER_MANAGER_ID)},
        headers=HR_HEADERS,
    )
    assert dept.status_code == 201
    await _set_reports_to(async_client, EMPLOYEE_ID, None, dept.json()["id"])
    monday = _next_monday()

    data = await _submit_ok(async_client, monday, monday)

    assert data["current_approver_id"] == str(OTHER_MANAGER_ID)
    assert data["hierarchy_snapshot"]["routed_via"] == "FALLBACK"
    assert data["hierarchy_snapshot"]["employee"]["department_name"] == "Engineering"


async def test_submit_without_any_approver(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client)
    await _set_reports_to(async_client, EMPLOYEE_ID, None)
    monday = _next_monday()

    resp = await _submit(async_client, monday, monday)

    assert resp.status_code == 422
    assert resp.json()["code"] == "NO_APPROVER"


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


async def test_approve_moves_pending_to_taken(
    routed: AsyncClient,
    attendance_service: InMemoryAttendanceService,
) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday + timedelta(days=1))

    resp = await routed.post(
        f"{REQUESTS_URL}/{request['id']}/approve", json={"note": "Enjoy"}, headers=MANAGER_HEADERS
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "approved"
    assert data["decided_by"] == str(MANAGER_ID)
    assert data["decision_note"] == "Enjoy"
    balance = await _balance(routed, monday.year)
    assert balance["pending_days"] == 0
    assert balance["taken_days"] == 2
    assert attendance_service.marked_days(TENANT_ID, EMPLOYEE_ID) == [monday, monday + timedelta(days=1)]


class _BrokenAttendanceService:
    async def mark_on_leave(
        self,
        tenant_id: uuid.UUID,
        employee_id: uuid.UUID,
        day: date,
        leave_request_id: uuid.UUID,
    ) -> None:
        raise ConnectionError("attendance service unavailable")


async def test_attendance_failure_keeps_approval(
    routed: AsyncClient,
    attendance_service: InMemoryAttendanceService,
) -> None:
    set_attendance_service(_BrokenAttendanceService())
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday + timedelta(days=2))

    resp = await routed.post(f"{REQUESTS_URL}/{request['id']}/approve", headers=MANAGER_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    stored = await routed.get(f"{REQUESTS_URL}/{request['id']}", headers=EMPLOYEE_HEADERS)
    assert stored.json()["status"] == "approved"
    balance = await _balance(routed, monday.year)
    assert balance["taken_days"] == 3
    assert balance["pending_days"] == 0
    assert attendance_service.marked_days(TENANT_ID, EMPLOYEE_ID) == []


async def test_reject_releases_pending(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday + timedelta(days=2))

    resp = await routed.post(f"{REQUESTS_URL}/{request['id']}/reject", headers=MANAGER_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    balance = await _balance(routed, monday.year)
    assert balance["pending_days"] == 0
    assert balance["taken_days"] == 0
    assert balance["remaining_days"] == 14


async def test_approve_twice_conflicts(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)
    url = f"{REQUESTS_URL}/{request['id']}/approve"
    assert (await routed.post(url, headers=MANAGER_HEADERS)).status_code == 200

    resp = await routed.post(url, headers=MANAGER_HEADERS)

    assert resp.status_code == 409
    balance = await _balance(routed, monday.year)
    assert balance["taken_days"] == 1


async def test_only_assigned_approver_may_decide(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.post(
        f"{REQUESTS_URL}/{request['id']}/approve", headers=_headers(OTHER_MANAGER_ID, "MANAGER")
    )

    assert resp.status_code == 403


async def test_worker_cannot_approve(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.post(f"{REQUESTS_URL}/{request['id']}/approve", headers=_headers(MANAGER_ID))

    assert resp.status_code == 403


async def test_self_approval_forbidden(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client)
    dept = await async_client.post(
        f"{BASE_URL}/departments",
        json={"code": "OPS", "name": "Operations", "fallback_approver_id": str(HR_ID)},
        headers=HR_HEADERS,
    )
    await _set_reports_to(async_client, MANAGER_ID, None, dept.json()["id"])
    monday = _next_monday()
    request = await _submit_ok(async_client, monday, monday, headers=MANAGER_HEADERS)

    resp = await async_client.post(f"{REQUESTS_URL}/{request['id']}/approve", headers=MANAGER_HEADERS)

    assert resp.status_code == 403


async def test_hr_override_approves_with_justification(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.post(
        f"{REQUESTS_URL}/{request['id']}/override",
        json={"decision": "approve", "justification": "Manager on leave"},
        headers=HR_HEADERS,
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "approved"
    assert data["is_override"] is True
    assert data["override_reason"] == "Manager on leave"
    assert data["decision_note"] == "[HR ADMIN OVERRIDE] Manager on leave"

    detail = await routed.get(f"{REQUESTS_URL}/{request['id']}", headers=EMPLOYEE_HEADERS)
    assert [h["action"] for h in detail.json()["history"]] == ["SUBMITTED", "OVERRIDDEN"]


async def test_override_requires_justification(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.post(
        f"{REQUESTS_URL}/{request['id']}/override", json={"decision": "reject"}, headers=HR_HEADERS
    )

    assert resp.status_code == 422


async def test_override_requires_hr(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.post(
        f"{REQUESTS_URL}/{request['id']}/override",
        json={"decision": "approve", "justification": "Because"},
        headers=MANAGER_HEADERS,
    )

    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


async def test_cancel_releases_and_withdraws(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday + timedelta(days=1))

    resp = await routed.post(f"{REQUESTS_URL}/{request['id']}/cancel", headers=EMPLOYEE_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["status"] == "withdrawn"
    assert resp.json()["withdrawn_at"] is not None
    balance = await _balance(routed, monday.year)
    assert balance["pending_days"] == 0


async def test_cancel_someone_elses_request(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.post(f"{REQUESTS_URL}/{request['id']}/cancel", headers=_headers(COLLEAGUE_ID))

    assert resp.status_code == 403


async def test_cancel_approved_request_conflicts(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)
    await routed.post(f"{REQUESTS_URL}/{request['id']}/approve", headers=MANAGER_HEADERS)

    resp = await routed.post(f"{REQUESTS_URL}/{request['id']}/cancel", headers=EMPLOYEE_HEADERS)

    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def test_get_request_with_history(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday, reason="Family")
    await routed.post(f"{REQUESTS_URL}/{request['id']}/reject", json={"note": "Busy week"}, headers=MANAGER_HEADERS)

    resp = await routed.get(f"{REQUESTS_URL}/{request['id']}", headers=EMPLOYEE_HEADERS)

    assert resp.status_code == 200
    history = resp.json()["history"]
    assert [(h["action"], h["from_status"], h["to_status"]) for h in history] == [
        ("SUBMITTED", None, "pending"),
        ("REJECTED", "pending", "rejected"),
    ]
    assert history[1]["note"] == "Busy week"


async def test_colleague_cannot_view_request(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    resp = await routed.get(f"{REQUESTS_URL}/{request['id']}", headers=_headers(COLLEAGUE_ID))

    assert resp.status_code == 403


async def test_get_unknown_request(routed: AsyncClient) -> None:
    resp = await routed.get(f"{REQUESTS_URL}/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 404


async def test_list_my_requests_filters(routed: AsyncClient) -> None:
    monday = _next_monday()
    first = await _submit_ok(routed, monday, monday)
    await _submit_ok(routed, monday + timedelta(days=7), monday + timedelta(days=7))
    await routed.post(f"{REQUESTS_URL}/{first['id']}/cancel", headers=EMPLOYEE_HEADERS)

    all_resp = await routed.get(REQUESTS_URL, headers=EMPLOYEE_HEADERS)
    withdrawn = await routed.get(f"{REQUESTS_URL}?status=withdrawn", headers=EMPLOYEE_HEADERS)

    assert all_resp.json()["total"] == 2
    assert [r["id"] for r in withdrawn.json()["items"]] == [first["id"]]


async def test_pending_queue(routed: AsyncClient) -> None:
    monday = _next_monday()
    request = await _submit_ok(routed, monday, monday)

    mine = await routed.get(f"{REQUESTS_URL}/pending", headers=MANAGER_HEADERS)
    other = await routed.get(f"{REQUESTS_URL}/pending", headers=_headers(OTHER_MANAGER_ID, "MANAGER"))
    hr = await routed.get(f"{REQUESTS_URL}/pending", headers=HR_HEADERS)
    worker = await routed.get(f"{REQUESTS_URL}/pending", headers=EMPLOYEE_HEADERS)

    assert [r["id"] for r in mine.json()["items"]] == [request["id"]]
    assert other.json()["total"] == 0
    assert hr.json()["total"] == 1
    assert worker.status_code == 403


async def test_tenant_mismatch_forbidden(routed: AsyncClient) -> None:
    resp = await routed.get(REQUESTS_URL, headers={**EMPLOYEE_HEADERS, "X-Tenant-Id": str(uuid.uuid4())})
    assert resp.status_code == 403


async def test_missing_auth_headers(routed: AsyncClient) -> None:
    resp = await routed.get(REQUESTS_URL)
    assert resp.status_code == 422


async def test_unchanged_balance_row_count_after_submissions(routed: AsyncClient, db_session: AsyncSession) -> None:
    monday = _next_monday()
    await _submit_ok(routed, monday, monday)
    await _submit_ok(routed, monday + timedelta(days=1), monday + timedelta(days=1))

    count = await db_session.execute(
        select(func.count()).select_from(LeaveBalance).where(col(LeaveBalance.employee_id) == EMPLOYEE_ID)
    )
    assert count.scalar_one() == 1
