from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_engine.exceptions import NotFound, StateConflict, ValidationError
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.entitlement import EntitlementException, EntitlementRule
from leave_engine.models.enums import AuditAction, AuditEntityType
from leave_engine.models.leave_type import LeaveType
from leave_engine.models.request import LeaveRequest
from leave_engine.schemas.leave_type import DeleteLeaveTypeResponse, LeaveTypeListResponse, LeaveTypeResponse
from leave_engine.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.leave_type import CreateLeaveTypeRequest, UpdateLeaveTypeRequest

logger = logging.getLogger(__name__)


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        tenant_id=leave_type.tenant_id,
        code=leave_type.code,
        name=leave_type.name,
        description=leave_type.description,
        is_active=leave_type.is_active,
        max_days_per_year=leave_type.max_days_per_year,
        carry_forward_allowed=leave_type.carry_forward_allowed,
        max_carry_forward_days=leave_type.max_carry_forward_days,
        carry_forward_expiry_months=leave_type.carry_forward_expiry_months,
        requires_approval=leave_type.requires_approval,
        requires_document=leave_type.requires_document,
        is_paid=leave_type.is_paid,
        min_notice_days=leave_type.min_notice_days,
        max_consecutive_days=leave_type.max_consecutive_days,
        sort_order=leave_type.sort_order,
        created_at=leave_type.created_at,
    )


async def get_leave_type_or_404(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveType:
    """Fetch a leave type scoped to tenant. Raises 404 if not found."""
    result = await session.execute(
        select(LeaveType).where(
            col(LeaveType.id) == leave_type_id,
            col(LeaveType.tenant_id) == tenant_id,
        )
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFound("Leave type not found")
    return leave_type


async def find_leave_type_by_code(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    code: str,
) -> LeaveType | None:
    """Look up a leave type by its tenant-unique code (case-insensitive)."""
    result = await session.execute(
        select(LeaveType).where(
            col(LeaveType.tenant_id) == tenant_id,
            col(LeaveType.code) == code.upper(),
        )
    )
    return result.scalar_one_or_none()


async def get_active_leave_type_by_code(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    code: str,
) -> LeaveType:
    """Resolve a leave type code for a new application. Unknown and inactive codes are invalid input."""
    leave_type = await find_leave_type_by_code(session, tenant_id, code)
    if leave_type is None or not leave_type.is_active:
        raise ValidationError(f"Invalid or inactive leave type: {code}")
    return leave_type


async def list_active_leave_types(session: AsyncSession, tenant_id: uuid.UUID) -> list[LeaveType]:
    """Active leave types in display order."""
    result = await session.execute(
        select(LeaveType)
        .where(col(LeaveType.tenant_id) == tenant_id, col(LeaveType.is_active).is_(True))
        .order_by(col(LeaveType.sort_order), col(LeaveType.name))
    )
    return list(result.scalars().all())


async def _is_referenced(session: AsyncSession, leave_type_id: uuid.UUID) -> bool:
    """True when balances, requests, rules or exceptions point at the leave type."""
    for model in (LeaveBalance, LeaveRequest, EntitlementRule, EntitlementException):
        result = await session.execute(
            select(func.count()).select_from(model).where(col(model.leave_type_id) == leave_type_id)
        )
        if result.scalar_one() > 0:
            return True
    return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_leave_types(
    session: AsyncSession,
    auth: AuthContext,
    include_inactive: bool = False,
) -> LeaveTypeListResponse:
    """List leave types. Only HR admins ever see inactive types."""
    query = select(LeaveType).where(col(LeaveType.tenant_id) == auth.tenant_id)
    if not (include_inactive and auth.is_hr_admin):
        query = query.where(col(LeaveType.is_active).is_(True))

    result = await session.execute(query.order_by(col(LeaveType.sort_order), col(LeaveType.name)))
    leave_types = list(result.scalars().all())
    return LeaveTypeListResponse(
        items=[_build_leave_type_response(lt) for lt in leave_types],
        total=len(leave_types),
    )


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Create a leave type. Codes are stored upper-cased and unique per tenant."""
    code = payload.code.upper()
    if await find_leave_type_by_code(session, auth.tenant_id, code) is not None:
        raise StateConflict(f"Leave type code '{code}' already exists")

    leave_type = LeaveType(
        tenant_id=auth.tenant_id,
        created_by=auth.user_id,
        **payload.model_dump(exclude={"code"}),
        code=code,
    )
    session.add(leave_type)
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    logger.info("Leave type %s created for tenant %s", leave_type.code, auth.tenant_id)
    return _build_leave_type_response(leave_type)


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Apply a partial update to a leave type."""
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    leave_type = await get_leave_type_or_404(session, auth.tenant_id, leave_type_id)
    before_dict = model_to_audit_dict(leave_type)

    for field, value in changes.items():
        setattr(leave_type, field, value)
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def delete_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
) -> DeleteLeaveTypeResponse:
    """Delete a leave type, or deactivate it when anything already references it."""
    leave_type = await get_leave_type_or_404(session, auth.tenant_id, leave_type_id)
    before_dict = model_to_audit_dict(leave_type)

    in_use = await _is_referenced(session, leave_type_id)

    if in_use:
        leave_type.is_active = False
        action = AuditAction.DEACTIVATE
        after_json = model_to_audit_dict(leave_type)
    else:
        await session.delete(leave_type)
        action = AuditAction.DELETE
        after_json = None

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type_id,
        action=action,
        before_json=before_dict,
        after_json=after_json,
    )

    await session.commit()
    return DeleteLeaveTypeResponse(id=leave_type_id, deleted=not in_use, deactivated=in_use)
