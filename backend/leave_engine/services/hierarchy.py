from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_engine.exceptions import NotFound, StateConflict, ValidationError
from leave_engine.models.enums import AuditAction, AuditEntityType
from leave_engine.models.hierarchy import Department, OrgHierarchyNode
from leave_engine.schemas.hierarchy import DepartmentListResponse, DepartmentResponse, HierarchyNodeResponse
from leave_engine.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.hierarchy import (
        CreateDepartmentRequest,
        UpdateDepartmentRequest,
        UpsertHierarchyRequest,
    )


def _build_department_response(department: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=department.id,
        tenant_id=department.tenant_id,
        code=department.code,
        name=department.name,
        fallback_approver_id=department.fallback_approver_id,
        is_active=department.is_active,
        created_at=department.created_at,
    )


def _build_node_response(node: OrgHierarchyNode) -> HierarchyNodeResponse:
    return HierarchyNodeResponse(
        id=node.id,
        tenant_id=node.tenant_id,
        employee_id=node.employee_id,
        reports_to_id=node.reports_to_id,
        department_id=node.department_id,
        position_title=node.position_title,
        hierarchy_level=node.hierarchy_level,
        can_approve_leave=node.can_approve_leave,
        is_active=node.is_active,
    )


async def _get_department_or_404(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    department_id: uuid.UUID,
) -> Department:
    result = await session.execute(
        select(Department).where(
            col(Department.id) == department_id,
            col(Department.tenant_id) == tenant_id,
        )
    )
    department = result.scalar_one_or_none()
    if department is None:
        raise NotFound("Department not found")
    return department


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


async def create_department(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateDepartmentRequest,
) -> DepartmentResponse:
    """Create a department with an optional fallback approver."""
    code = payload.code.upper()
    existing = await session.execute(
        select(Department).where(
            col(Department.tenant_id) == auth.tenant_id,
            col(Department.code) == code,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise StateConflict(f"Department code '{code}' already exists")

    department = Department(
        tenant_id=auth.tenant_id,
        code=code,
        name=payload.name,
        fallback_approver_id=payload.fallback_approver_id,
    )
    session.add(department)
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEPARTMENT,
        entity_id=department.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(department),
    )

    await session.commit()
    await session.refresh(department)
    return _build_department_response(department)


async def list_departments(session: AsyncSession, tenant_id: uuid.UUID) -> DepartmentListResponse:
    """List departments by name."""
    result = await session.execute(
        select(Department).where(col(Department.tenant_id) == tenant_id).order_by(col(Department.name))
    )
    departments = list(result.scalars().all())
    return DepartmentListResponse(
        items=[_build_department_response(d) for d in departments],
        total=len(departments),
    )


async def update_department(
    session: AsyncSession,
    auth: AuthContext,
    department_id: uuid.UUID,
    payload: UpdateDepartmentRequest,
) -> DepartmentResponse:
    """Partial update. An explicit null fallback_approver_id clears it."""
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    department = await _get_department_or_404(session, auth.tenant_id, department_id)
    before_dict = model_to_audit_dict(department)

    for field, value in changes.items():
        setattr(department, field, value)
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEPARTMENT,
        entity_id=department.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(department),
    )

    await session.commit()
    await session.refresh(department)
    return _build_department_response(department)


# ---------------------------------------------------------------------------
# Hierarchy nodes
# ---------------------------------------------------------------------------


async def get_node(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
) -> HierarchyNodeResponse:
    """Get an employee's reporting line."""
    result = await session.execute(
        select(OrgHierarchyNode).where(
            col(OrgHierarchyNode.tenant_id) == tenant_id,
            col(OrgHierarchyNode.employee_id) == employee_id,
        )
    )
    node = result.scalar_one_or_none()
    if node is None:
        raise NotFound("No hierarchy configured for this employee")
    return _build_node_response(node)


async def upsert_node(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    payload: UpsertHierarchyRequest,
) -> HierarchyNodeResponse:
    """Create or replace an employee's reporting line."""
    if payload.reports_to_id == employee_id:
        raise ValidationError("An employee cannot report to themself")
    if payload.department_id is not None:
        await _get_department_or_404(session, auth.tenant_id, payload.department_id)

    result = await session.execute(
        select(OrgHierarchyNode).where(
            col(OrgHierarchyNode.tenant_id) == auth.tenant_id,
            col(OrgHierarchyNode.employee_id) == employee_id,
        )
    )
    node = result.scalar_one_or_none()

    if node is None:
        before_dict = None
        node = OrgHierarchyNode(tenant_id=auth.tenant_id, employee_id=employee_id, **payload.model_dump())
        session.add(node)
        action = AuditAction.CREATE
    else:
        before_dict = model_to_audit_dict(node)
        for field, value in payload.model_dump().items():
            setattr(node, field, value)
        node.is_active = True
        action = AuditAction.UPDATE

    await session.flush()
    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.HIERARCHY,
        entity_id=node.id,
        action=action,
        before_json=before_dict,
        after_json=model_to_audit_dict(node),
    )

    await session.commit()
    await session.refresh(node)
    return _build_node_response(node)
