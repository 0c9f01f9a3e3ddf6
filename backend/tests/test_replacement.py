"""Tests for replacement leave: credit computation, rules, credits and the training trigger."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest

from leave_engine.exceptions import PolicyViolation, ValidationError
from leave_engine.models.enums import CreditType, TriggerType
from leave_engine.models.replacement import ReplacementLeaveRule
from leave_engine.services.employee import EmployeeInfo
from leave_engine.services.replacement import check_eligibility, compute_credit_days

if TYPE_CHECKING:
    from httpx import AsyncClient

    from leave_engine.services.employee import InMemoryEmployeeService

TENANT_ID = uuid.uuid4()
HR_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()

HR_HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(HR_ID), "X-Role": "HR_ADMIN"}
MANAGER_HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(MANAGER_ID), "X-Role": "MANAGER"}
EMPLOYEE_HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(EMPLOYEE_ID)}
BASE_URL = f"/tenants/{TENANT_ID}"
RULES_URL = f"{BASE_URL}/replacement-rules"
CREDITS_URL = f"{BASE_URL}/replacement-credits"


def _rule(**overrides: Any) -> ReplacementLeaveRule:
    fields: dict[str, Any] = {
        "tenant_id": TENANT_ID,
        "rule_code": "OT",
        "rule_name": "Overtime",
        "trigger_type": TriggerType.OVERTIME.value,
        "credit_type": CreditType.FIXED.value,
        "credit_days": 1,
        "effective_from": date(2025, 1, 1),
        **overrides,
    }
    return ReplacementLeaveRule(**fields)


# ---------------------------------------------------------------------------
# Pure credit computation
# ---------------------------------------------------------------------------


def test_fixed_rule_pays_credit_days() -> None:
    assert compute_credit_days(_rule(credit_days=1.5), hours_worked=3) == 1.5


def test_ratio_rule_scales_with_hours() -> None:
    rule = _rule(credit_type=CreditType.RATIO.value, credit_days=1, hours_per_day=8)
    assert compute_credit_days(rule, hours_worked=4) == 0.5


def test_ratio_rule_uses_default_hours_per_day() -> None:
    rule = _rule(credit_type=CreditType.RATIO.value, credit_days=1)
    assert compute_credit_days(rule, hours_worked=6, default_hours_per_day=6) == 1


def test_ratio_rule_needs_hours() -> None:
    with pytest.raises(ValidationError):
        compute_credit_days(_rule(credit_type=CreditType.RATIO.value))


def test_minimum_hours_enforced() -> None:
    with pytest.raises(PolicyViolation, match="At least 4 hours"):
        compute_credit_days(_rule(min_hours_required=4), hours_worked=2)


def test_per_event_cap_and_explicit_days() -> None:
    rule = _rule(max_days_per_event=2)
    assert compute_credit_days(rule, explicit_days=3) == 2
    assert compute_credit_days(rule, explicit_days=0.5) == 0.5


def test_no_rule_defaults_to_one_day() -> None:
    assert compute_credit_days(None) == 1
    assert compute_credit_days(None, explicit_days=2) == 2


def test_eligibility_filters() -> None:
    employee = EmployeeInfo(id=EMPLOYEE_ID, tenant_id=TENANT_ID, full_name="Evan", department="ENG", grade="G5")

    check_eligibility(_rule(eligible_departments=["ENG"], eligible_grades=["G5", "G6"]), employee)
    with pytest.raises(PolicyViolation, match="Department ENG"):
        check_eligibility(_rule(eligible_departments=["FIN"]), employee)
    with pytest.raises(PolicyViolation, match="Grade G5"):
        check_eligibility(_rule(eligible_grades=["G1"]), employee)


# ---------------------------------------------------------------------------
# API fixtures and helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _directory(employee_service: InMemoryEmployeeService) -> None:
    employee_service.seed(EmployeeInfo(id=EMPLOYEE_ID, tenant_id=TENANT_ID, full_name="Evan Lee", department="ENG"))
    employee_service.seed(EmployeeInfo(id=MANAGER_ID, tenant_id=TENANT_ID, full_name="Mia Manager"))


@pytest.fixture
async def replacement_type_id(async_client: AsyncClient) -> str:
    resp = await async_client.post(
        f"{BASE_URL}/leave-types",
        json={"code": "REPLACEMENT", "name": "Replacement leave", "max_days_per_year": 0},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 201
    result: str = resp.json()["id"]
    return result


async def _create_rule(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "rule_code": "ot",
        "rule_name": "Overtime",
        "trigger_type": "OVERTIME",
        "credit_days": 1,
        "effective_from": "2020-01-01",
        **overrides,
    }
    resp = await client.post(RULES_URL, json=body, headers=HR_HEADERS)
    assert resp.status_code == 201
    result: dict[str, Any] = resp.json()
    return result


async def _credit(
    client: AsyncClient,
    headers: dict[str, str],
    reference: str = "OT-1",
    trigger_date: str = "2025-03-01",
    **overrides: Any,
) -> Any:
    body: dict[str, Any] = {
        "employee_id": str(EMPLOYEE_ID),
        "trigger_type": "OVERTIME",
        "trigger_date": trigger_date,
        "trigger_reference": reference,
        **overrides,
    }
    return await client.post(CREDITS_URL, json=body, headers=headers)


async def _replacement_balance(client: AsyncClient, year: int = 2025) -> dict[str, Any]:
    resp = await client.get(f"{BASE_URL}/employees/{EMPLOYEE_ID}/balances?year={year}", headers=EMPLOYEE_HEADERS)
    [balance] = [b for b in resp.json()["items"] if b["leave_type_code"] == "REPLACEMENT"]
    return balance


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


async def test_rule_lifecycle(async_client: AsyncClient) -> None:
    rule = await _create_rule(async_client)
    assert rule["rule_code"] == "OT"
    assert rule["credit_type"] == "FIXED"

    updated = await async_client.patch(f"{RULES_URL}/{rule['id']}", json={"credit_days": 2}, headers=HR_HEADERS)
    assert updated.json()["credit_days"] == 2

    deactivated = await async_client.delete(f"{RULES_URL}/{rule['id']}", headers=HR_HEADERS)
    assert deactivated.json()["is_active"] is False

    active = await async_client.get(RULES_URL, headers=HR_HEADERS)
    everything = await async_client.get(f"{RULES_URL}?include_inactive=true", headers=HR_HEADERS)
    assert active.json()["total"] == 0
    assert everything.json()["total"] == 1


async def test_duplicate_rule_code(async_client: AsyncClient) -> None:
    await _create_rule(async_client)
    resp = await async_client.post(
        RULES_URL,
        json={"rule_code": "OT", "rule_name": "Again", "trigger_type": "OVERTIME", "effective_from": "2025-01-01"},
        headers=HR_HEADERS,
    )
    assert resp.status_code == 409


async def test_workers_see_rules_in_effect(async_client: AsyncClient) -> None:
    await _create_rule(async_client)
    await _create_rule(async_client, rule_code="OLD", effective_from="2019-01-01", effective_to="2019-12-31")

    resp = await async_client.get(RULES_URL, headers=EMPLOYEE_HEADERS)
    create = await async_client.post(
        RULES_URL,
        json={"rule_code": "X", "rule_name": "X", "trigger_type": "CUSTOM", "effective_from": "2025-01-01"},
        headers=EMPLOYEE_HEADERS,
    )

    assert [r["rule_code"] for r in resp.json()["items"]] == ["OT"]
    assert create.status_code == 403


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("replacement_type_id")
async def test_manager_credit_is_approved_and_fed_to_balance(async_client: AsyncClient) -> None:
    rule = await _create_rule(async_client, credit_days=1.5, expiry_days=90)

    resp = await _credit(async_client, MANAGER_HEADERS)

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "APPROVED"
    assert data["rule_id"] == rule["id"]
    assert data["days_credited"] == 1.5
    assert data["expiry_date"] == "2025-05-30"
    assert data["approved_by"] == str(MANAGER_ID)
    balance = await _replacement_balance(async_client)
    assert data["balance_id"] == balance["id"]
    assert balance["allocated_days"] == 1.5


@pytest.mark.usefixtures("replacement_type_id")
async def test_self_credit_waits_for_approval(async_client: AsyncClient) -> None:
    await _create_rule(async_client)

    resp = await _credit(async_client, EMPLOYEE_HEADERS, trigger_description="Release weekend")

    assert resp.json()["status"] == "PENDING"
    assert resp.json()["balance_id"] is None
    balance = await _replacement_balance(async_client)
    assert balance["allocated_days"] == 0


@pytest.mark.usefixtures("replacement_type_id")
async def test_rule_without_approval_auto_approves(async_client: AsyncClient) -> None:
    await _create_rule(async_client, requires_approval=False)

    resp = await _credit(async_client, EMPLOYEE_HEADERS)

    assert resp.json()["status"] == "APPROVED"


async def test_credit_without_type_is_approved_but_not_fed(async_client: AsyncClient) -> None:
    resp = await _credit(async_client, MANAGER_HEADERS, explicit_days=2)

    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["rule_id"] is None
    assert resp.json()["days_credited"] == 2
    assert resp.json()["balance_id"] is None


async def test_duplicate_reference_rejected(async_client: AsyncClient) -> None:
    await _credit(async_client, MANAGER_HEADERS)
    resp = await _credit(async_client, MANAGER_HEADERS)
    assert resp.status_code == 409


async def test_unknown_employee(async_client: AsyncClient) -> None:
    resp = await _credit(async_client, MANAGER_HEADERS, employee_id=str(uuid.uuid4()))
    assert resp.status_code == 404


async def test_ineligible_department(async_client: AsyncClient) -> None:
    await _create_rule(async_client, eligible_departments=["FIN"])
    resp = await _credit(async_client, MANAGER_HEADERS)
    assert resp.status_code == 400


async def test_monthly_cap_clamps_then_blocks(async_client: AsyncClient) -> None:
    await _create_rule(async_client, max_days_per_month=1.5)

    first = await _credit(async_client, MANAGER_HEADERS, "OT-1", "2025-03-03")
    second = await _credit(async_client, MANAGER_HEADERS, "OT-2", "2025-03-10")
    third = await _credit(async_client, MANAGER_HEADERS, "OT-3", "2025-03-17")
    next_month = await _credit(async_client, MANAGER_HEADERS, "OT-4", "2025-04-07")

    assert first.json()["days_credited"] == 1
    assert second.json()["days_credited"] == 0.5
    assert third.status_code == 400
    assert "monthly" in third.json()["detail"]
    assert next_month.json()["days_credited"] == 1


async def test_rejected_credits_do_not_count_toward_caps(async_client: AsyncClient) -> None:
    await _create_rule(async_client, max_days_per_year=1)
    pending = await _credit(async_client, EMPLOYEE_HEADERS, "OT-1")
    await async_client.post(
        f"{CREDITS_URL}/{pending.json()['id']}/reject", json={"reason": "Not overtime"}, headers=MANAGER_HEADERS
    )

    resp = await _credit(async_client, MANAGER_HEADERS, "OT-2")

    assert resp.json()["days_credited"] == 1


# ---------------------------------------------------------------------------
# Approval and rejection
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("replacement_type_id")
async def test_approve_with_adjusted_days(async_client: AsyncClient) -> None:
    await _create_rule(async_client)
    pending = (await _credit(async_client, EMPLOYEE_HEADERS)).json()

    resp = await async_client.post(
        f"{CREDITS_URL}/{pending['id']}/approve",
        json={"adjusted_days": 0.5, "note": "Half day only"},
        headers=MANAGER_HEADERS,
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["days_credited"] == 0.5
    assert resp.json()["days_remaining"] == 0.5
    balance = await _replacement_balance(async_client)
    assert balance["allocated_days"] == 0.5

    detail = await async_client.get(f"{CREDITS_URL}/{pending['id']}", headers=EMPLOYEE_HEADERS)
    assert [h["action"] for h in detail.json()["history"]] == ["CREATED", "APPROVED"]

    again = await async_client.post(f"{CREDITS_URL}/{pending['id']}/approve", headers=MANAGER_HEADERS)
    assert again.status_code == 409


async def test_approval_permissions(async_client: AsyncClient) -> None:
    pending = (await _credit(async_client, EMPLOYEE_HEADERS)).json()
    url = f"{CREDITS_URL}/{pending['id']}/approve"

    own = await async_client.post(url, headers=EMPLOYEE_HEADERS)
    manager_own = await _credit(async_client, MANAGER_HEADERS, "OT-M", employee_id=str(MANAGER_ID))
    self_approve = await async_client.post(f"{CREDITS_URL}/{manager_own.json()['id']}/approve", headers=MANAGER_HEADERS)

    assert own.status_code == 403
    assert manager_own.json()["status"] == "PENDING"
    assert self_approve.status_code == 403


async def test_reject_requires_reason(async_client: AsyncClient) -> None:
    pending = (await _credit(async_client, EMPLOYEE_HEADERS)).json()
    url = f"{CREDITS_URL}/{pending['id']}/reject"

    missing = await async_client.post(url, json={}, headers=MANAGER_HEADERS)
    resp = await async_client.post(url, json={"reason": "No timesheet"}, headers=MANAGER_HEADERS)

    assert missing.status_code == 422
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["rejection_reason"] == "No timesheet"
    assert resp.json()["days_remaining"] == 0


async def test_colleague_cannot_view_credit(async_client: AsyncClient) -> None:
    credit = (await _credit(async_client, MANAGER_HEADERS)).json()
    colleague = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(uuid.uuid4())}

    resp = await async_client.get(f"{CREDITS_URL}/{credit['id']}", headers=colleague)

    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Listing, summary and expiry
# ---------------------------------------------------------------------------


async def test_list_credits_scoped_to_caller(async_client: AsyncClient) -> None:
    await _credit(async_client, MANAGER_HEADERS, "OT-1")
    await _credit(async_client, EMPLOYEE_HEADERS, "OT-2")
    await _credit(async_client, HR_HEADERS, "OT-3", employee_id=str(MANAGER_ID))

    mine = await async_client.get(CREDITS_URL, headers=EMPLOYEE_HEADERS)
    pending = await async_client.get(f"{CREDITS_URL}?status=PENDING", headers=EMPLOYEE_HEADERS)
    everyone = await async_client.get(CREDITS_URL, headers=HR_HEADERS)
    managers = await async_client.get(f"{CREDITS_URL}?employee_id={MANAGER_ID}", headers=HR_HEADERS)

    assert mine.json()["total"] == 2
    assert pending.json()["total"] == 1
    assert everyone.json()["total"] == 3
    assert managers.json()["total"] == 1


async def test_summary(async_client: AsyncClient) -> None:
    await _credit(async_client, MANAGER_HEADERS, "OT-1", explicit_days=2)
    await _credit(async_client, EMPLOYEE_HEADERS, "OT-2")

    resp = await async_client.get(f"{CREDITS_URL}/summary", headers=EMPLOYEE_HEADERS)
    other = await async_client.get(f"{CREDITS_URL}/summary?employee_id={MANAGER_ID}", headers=EMPLOYEE_HEADERS)

    data = resp.json()
    assert data["total_earned"] == 2
    assert data["available"] == 2
    assert data["pending_count"] == 1
    assert data["pending_approval_days"] == 1
    assert other.status_code == 403


@pytest.mark.usefixtures("replacement_type_id")
async def test_expire_withdraws_unused_days(async_client: AsyncClient) -> None:
    await _create_rule(async_client, expiry_days=10)
    credit = (await _credit(async_client, MANAGER_HEADERS, trigger_date="2025-01-06")).json()
    assert credit["expiry_date"] == "2025-01-16"

    early = await async_client.post(f"{CREDITS_URL}/expire", json={"as_of": "2025-01-16"}, headers=HR_HEADERS)
    resp = await async_client.post(f"{CREDITS_URL}/expire", json={"as_of": "2025-01-17"}, headers=HR_HEADERS)

    assert early.json()["expired_count"] == 0
    assert resp.json() == {"as_of": "2025-01-17", "expired_count": 1, "expired_days": 1}
    detail = await async_client.get(f"{CREDITS_URL}/{credit['id']}", headers=HR_HEADERS)
    assert detail.json()["status"] == "EXPIRED"
    assert detail.json()["days_remaining"] == 0
    balance = await _replacement_balance(async_client)
    assert balance["allocated_days"] == 0


async def test_expire_is_hr_only(async_client: AsyncClient) -> None:
    resp = await async_client.post(f"{CREDITS_URL}/expire", headers=MANAGER_HEADERS)
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Training completion
# ---------------------------------------------------------------------------


async def test_training_completion_credits_leave(async_client: AsyncClient) -> None:
    await _create_rule(async_client, rule_code="TRN", trigger_type="TRAINING", credit_days=1)
    allocation_id = uuid.uuid4()
    body = {
        "employee_id": str(EMPLOYEE_ID),
        "training_code": "SAFE-01",
        "training_title": "Site safety",
        "event_date": "2025-06-07",
        "allocation_id": str(allocation_id),
    }

    resp = await async_client.post(f"{BASE_URL}/training-completions", json=body, headers=MANAGER_HEADERS)
    repeat = await async_client.post(f"{BASE_URL}/training-completions", json=body, headers=MANAGER_HEADERS)

    assert resp.status_code == 201
    data = resp.json()
    assert data["trigger_type"] == "TRAINING"
    assert data["trigger_reference"] == f"TRAINING-SAFE-01-{allocation_id}"
    assert data["trigger_description"] == "Training: Site safety (SAFE-01)"
    assert data["source_record_id"] == str(allocation_id)
    assert repeat.status_code == 409


async def test_training_completion_permissions(async_client: AsyncClient) -> None:
    body = {
        "employee_id": str(MANAGER_ID),
        "training_code": "SAFE-01",
        "training_title": "Site safety",
        "event_date": "2025-06-07",
        "allocation_id": str(uuid.uuid4()),
    }

    own = await async_client.post(f"{BASE_URL}/training-completions", json=body, headers=MANAGER_HEADERS)
    worker = await async_client.post(f"{BASE_URL}/training-completions", json=body, headers=EMPLOYEE_HEADERS)

    assert own.status_code == 403
    assert worker.status_code == 403
