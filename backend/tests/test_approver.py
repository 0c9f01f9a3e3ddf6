"""Tests for approver resolution: supervisor walk, department fallback and routing failures."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from leave_engine.models.hierarchy import Department, OrgHierarchyNode
from leave_engine.services.approver import HierarchyCycleError, walk_to_supervisor
from leave_engine.services.employee import EmployeeInfo

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.services.employee import InMemoryEmployeeService

TENANT_ID = uuid.uuid4()
HR_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
SUPERVISOR_ID = uuid.uuid4()
FALLBACK_ID = uuid.uuid4()

HR_HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(HR_ID), "X-Role": "HR_ADMIN"}
HIERARCHY_URL = f"/tenants/{TENANT_ID}/hierarchy"


@pytest.fixture(autouse=True)
def _directory(employee_service: InMemoryEmployeeService) -> None:
    employee_service.seed(EmployeeInfo(id=SUPERVISOR_ID, tenant_id=TENANT_ID, full_name="Sam Supervisor"))
    employee_service.seed(EmployeeInfo(id=FALLBACK_ID, tenant_id=TENANT_ID, full_name="Fay Fallback"))


async def _add_node(
    session: AsyncSession,
    employee_id: uuid.UUID,
    reports_to_id: uuid.UUID | None,
    department_id: uuid.UUID | None = None,
    hierarchy_level: int = 5,
) -> None:
    """Insert a node directly, bypassing the API's self-report validation."""
    session.add(
        OrgHierarchyNode(
            tenant_id=TENANT_ID,
            employee_id=employee_id,
            reports_to_id=reports_to_id,
            department_id=department_id,
            hierarchy_level=hierarchy_level,
        )
    )
    await session.commit()


async def _add_department(session: AsyncSession, fallback_approver_id: uuid.UUID | None) -> uuid.UUID:
    department = Department(
        tenant_id=TENANT_ID, code="FIN", name="Finance", fallback_approver_id=fallback_approver_id
    )
    session.add(department)
    await session.commit()
    return department.id


# ---------------------------------------------------------------------------
# Pure supervisor walk
# ---------------------------------------------------------------------------


def test_walk_returns_direct_supervisor() -> None:
    a, b = uuid.uuid4(), uuid.uuid4()
    assert walk_to_supervisor(a, {a: b}.get, max_hops=3) == b


def test_walk_returns_none_when_chain_ends() -> None:
    a = uuid.uuid4()
    assert walk_to_supervisor(a, {a: None}.get, max_hops=3) is None
    assert walk_to_supervisor(a, {}.get, max_hops=3) is None


def test_walk_self_report_is_bounded() -> None:
    a = uuid.uuid4()
    calls: list[uuid.UUID] = []

    def supervisor_of(employee_id: uuid.UUID) -> uuid.UUID | None:
        calls.append(employee_id)
        return a

    with pytest.raises(HierarchyCycleError):
        walk_to_supervisor(a, supervisor_of, max_hops=3)
    assert len(calls) == 3


# ---------------------------------------------------------------------------
# Resolution against the store
# ---------------------------------------------------------------------------


async def test_supervisor_route(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _add_node(db_session, SUPERVISOR_ID, None, hierarchy_level=2)
    await _add_node(db_session, EMPLOYEE_ID, SUPERVISOR_ID)

    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert data["approver_id"] == str(SUPERVISOR_ID)
    assert data["approver_name"] == "Sam Supervisor"
    assert data["hierarchy_level"] == 2
    assert data["routed_via"] == "SUPERVISOR"
    assert data["snapshot"]["approver"]["id"] == str(SUPERVISOR_ID)


async def test_supervisor_without_node_uses_level_above(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _add_node(db_session, EMPLOYEE_ID, SUPERVISOR_ID, hierarchy_level=5)

    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.json()["hierarchy_level"] == 4


async def test_no_hierarchy(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.status_code == 422
    assert resp.json()["code"] == "NO_HIERARCHY"


async def test_self_report_falls_back_to_department(async_client: AsyncClient, db_session: AsyncSession) -> None:
    department_id = await _add_department(db_session, FALLBACK_ID)
    await _add_node(db_session, EMPLOYEE_ID, EMPLOYEE_ID, department_id)

    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["approver_id"] == str(FALLBACK_ID)
    assert resp.json()["routed_via"] == "FALLBACK"
    assert resp.json()["hierarchy_level"] is None


async def test_self_report_without_fallback_is_a_cycle(async_client: AsyncClient, db_session: AsyncSession) -> None:
    await _add_node(db_session, EMPLOYEE_ID, EMPLOYEE_ID)

    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.status_code == 422
    assert resp.json()["code"] == "HIERARCHY_CYCLE"


async def test_fallback_equal_to_employee_is_unusable(async_client: AsyncClient, db_session: AsyncSession) -> None:
    department_id = await _add_department(db_session, EMPLOYEE_ID)
    await _add_node(db_session, EMPLOYEE_ID, None, department_id)

    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.status_code == 422
    assert resp.json()["code"] == "NO_APPROVER"


async def test_inactive_node_counts_as_missing(async_client: AsyncClient, db_session: AsyncSession) -> None:
    db_session.add(
        OrgHierarchyNode(tenant_id=TENANT_ID, employee_id=EMPLOYEE_ID, reports_to_id=SUPERVISOR_ID, is_active=False)
    )
    await db_session.commit()

    resp = await async_client.get(f"{HIERARCHY_URL}/{EMPLOYEE_ID}/approver", headers=HR_HEADERS)

    assert resp.json()["code"] == "NO_HIERARCHY"
