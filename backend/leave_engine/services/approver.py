"""Approver resolution: who a new leave request is routed to."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from leave_engine.config import get_settings
from leave_engine.exceptions import RoutingFailure
from leave_engine.models.hierarchy import Department, OrgHierarchyNode
from leave_engine.schemas.hierarchy import ApproverResponse
from leave_engine.services.employee import get_employee_service

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

ROUTED_VIA_SUPERVISOR = "SUPERVISOR"
ROUTED_VIA_FALLBACK = "FALLBACK"


@dataclass
class ApproverDecision:
    """Resolved approver and the routing context captured at submission time."""

    approver_id: uuid.UUID
    approver_name: str | None
    hierarchy_level: int | None
    routed_via: str
    snapshot: dict[str, Any] = field(default_factory=dict)


class HierarchyCycleError(Exception):
    """The supervisor walk kept returning to the employee."""


# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def walk_to_supervisor(
    employee_id: uuid.UUID,
    supervisor_of: Callable[[uuid.UUID], uuid.UUID | None],
    max_hops: int,
) -> uuid.UUID | None:
    """Follow reports-to links until they lead to someone other than the employee.

    Returns None when the chain ends without a supervisor. Raises
    HierarchyCycleError when every link within max_hops points back at the
    employee, so corrupt data can never loop forever.
    """
    current = employee_id
    for _ in range(max_hops):
        supervisor = supervisor_of(current)
        if supervisor is None:
            return None
        if supervisor != employee_id:
            return supervisor
        current = supervisor
    raise HierarchyCycleError


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _get_node(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
) -> OrgHierarchyNode | None:
    result = await session.execute(
        select(OrgHierarchyNode).where(
            col(OrgHierarchyNode.tenant_id) == tenant_id,
            col(OrgHierarchyNode.employee_id) == employee_id,
            col(OrgHierarchyNode.is_active).is_(True),
        )
    )
    return result.scalar_one_or_none()


async def _get_department(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    department_id: uuid.UUID | None,
) -> Department | None:
    if department_id is None:
        return None
    result = await session.execute(
        select(Department).where(
            col(Department.id) == department_id,
            col(Department.tenant_id) == tenant_id,
        )
    )
    return result.scalar_one_or_none()


async def _load_reports_to(session: AsyncSession, tenant_id: uuid.UUID) -> dict[uuid.UUID, uuid.UUID | None]:
    """Adjacency map employee -> supervisor for the tenant's active nodes."""
    result = await session.execute(
        select(col(OrgHierarchyNode.employee_id), col(OrgHierarchyNode.reports_to_id)).where(
            col(OrgHierarchyNode.tenant_id) == tenant_id,
            col(OrgHierarchyNode.is_active).is_(True),
        )
    )
    return {row[0]: row[1] for row in result.all()}


async def _employee_name(tenant_id: uuid.UUID, employee_id: uuid.UUID) -> str | None:
    employee = await get_employee_service().get_employee(tenant_id, employee_id)
    return employee.full_name if employee else None


def _node_snapshot(node: OrgHierarchyNode, department: Department | None) -> dict[str, Any]:
    return {
        "reports_to_id": str(node.reports_to_id) if node.reports_to_id else None,
        "department_id": str(node.department_id) if node.department_id else None,
        "department_name": department.name if department else None,
        "position_title": node.position_title,
        "hierarchy_level": node.hierarchy_level,
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def resolve_approver(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
) -> ApproverDecision:
    """Find who must approve a new request from this employee.

    1. No hierarchy node -> RoutingFailure NO_HIERARCHY.
    2. A supervisor other than the employee is the approver.
    3. A self-reporting link is walked upward, at most max_hierarchy_hops links.
    4. Without a usable supervisor, the department's fallback approver is used
       unless it is the employee.
    5. Otherwise RoutingFailure NO_APPROVER, or HIERARCHY_CYCLE when step 3
       ran out of hops.
    """
    node = await _get_node(session, tenant_id, employee_id)
    if node is None:
        logger.warning("No hierarchy configured for employee %s (tenant %s)", employee_id, tenant_id)
        raise RoutingFailure("No hierarchy configured for this employee", code=RoutingFailure.NO_HIERARCHY)

    department = await _get_department(session, tenant_id, node.department_id)

    approver_id: uuid.UUID | None = None
    cyclic = False
    if node.reports_to_id is not None and node.reports_to_id != employee_id:
        approver_id = node.reports_to_id
    elif node.reports_to_id == employee_id:
        reports_to = await _load_reports_to(session, tenant_id)
        try:
            approver_id = walk_to_supervisor(employee_id, reports_to.get, get_settings().max_hierarchy_hops)
        except HierarchyCycleError:
            cyclic = True
            logger.warning("Employee %s reports to themself; trying department fallback", employee_id)

    routed_via = ROUTED_VIA_SUPERVISOR
    if approver_id is None:
        fallback_id = department.fallback_approver_id if department else None
        if fallback_id is None or fallback_id == employee_id:
            if cyclic:
                raise RoutingFailure(
                    "Reporting line loops back to the employee and no fallback approver is configured",
                    code=RoutingFailure.HIERARCHY_CYCLE,
                )
            logger.warning("No approver for employee %s (tenant %s)", employee_id, tenant_id)
            raise RoutingFailure(
                "No supervisor or fallback approver configured",
                code=RoutingFailure.NO_APPROVER,
            )
        approver_id = fallback_id
        routed_via = ROUTED_VIA_FALLBACK

    approver_node = await _get_node(session, tenant_id, approver_id)
    if approver_node is not None:
        hierarchy_level: int | None = approver_node.hierarchy_level
    elif routed_via == ROUTED_VIA_SUPERVISOR:
        hierarchy_level = node.hierarchy_level - 1
    else:
        hierarchy_level = None

    approver_name = await _employee_name(tenant_id, approver_id)
    snapshot: dict[str, Any] = {
        "captured_at": datetime.now(UTC).isoformat(),
        "employee_id": str(employee_id),
        "employee": _node_snapshot(node, department),
        "approver": {
            "id": str(approver_id),
            "name": approver_name,
            "position_title": approver_node.position_title if approver_node else None,
            "hierarchy_level": hierarchy_level,
        },
        "routed_via": routed_via,
    }

    return ApproverDecision(
        approver_id=approver_id,
        approver_name=approver_name,
        hierarchy_level=hierarchy_level,
        routed_via=routed_via,
        snapshot=snapshot,
    )


async def preview_approver(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
) -> ApproverResponse:
    """Run the resolver for an employee without submitting anything."""
    decision = await resolve_approver(session, tenant_id, employee_id)
    return ApproverResponse(
        employee_id=employee_id,
        approver_id=decision.approver_id,
        approver_name=decision.approver_name,
        hierarchy_level=decision.hierarchy_level,
        routed_via=decision.routed_via,
        snapshot=decision.snapshot,
    )
