"""Leave balance ledger: per (employee, leave type, year) counters."""

from __future__ import annotations

import logging
import uuid
from calendar import monthrange
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import col

from leave_engine.exceptions import AuthorizationFailure, NotFound, PolicyViolation, ValidationError
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.enums import AuditAction, AuditEntityType, EntitlementSource
from leave_engine.models.leave_type import LeaveType
from leave_engine.schemas.balance import BalanceListResponse, BalanceResponse, CarryForwardResponse
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.entitlement import resolve_entitlement
from leave_engine.services.leave_type import get_leave_type_or_404, list_active_leave_types

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.balance import AdjustBalanceRequest

logger = logging.getLogger(__name__)

_BALANCE_KEY = ["tenant_id", "employee_id", "leave_type_id", "year"]


@dataclass
class CarryForwardResult:
    """Summary of a carry-forward run."""

    from_year: int
    processed: int = 0
    skipped: int = 0
    total_days: float = 0.0


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance, leave_type: LeaveType) -> BalanceResponse:
    """Map a balance model to its response schema."""
    return BalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        leave_type_code=leave_type.code,
        leave_type_name=leave_type.name,
        year=balance.year,
        allocated_days=balance.allocated_days,
        taken_days=balance.taken_days,
        pending_days=balance.pending_days,
        carry_forward_days=balance.carry_forward_days,
        remaining_days=balance.remaining_days,
        carry_forward_expiry=balance.carry_forward_expiry,
        entitlement_source=balance.entitlement_source,
        entitlement_rule_id=balance.entitlement_rule_id,
        calculation_breakdown=balance.calculation_breakdown,
        updated_at=balance.updated_at,
    )


def _dialect_insert(session: AsyncSession):  # noqa: ANN202
    """Return the insert construct of the bound dialect (both support ON CONFLICT)."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(start.day, monthrange(year, month)[1]))


async def _select_balance(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    for_update: bool,
) -> LeaveBalance | None:
    query = select(LeaveBalance).where(
        col(LeaveBalance.tenant_id) == tenant_id,
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.leave_type_id) == leave_type_id,
        col(LeaveBalance.year) == year,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def lock_employee_balances(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int,
) -> list[LeaveBalance]:
    """Lock every balance an employee holds for the year, in id order.

    Serializes checks that span leave types, such as request overlap.
    """
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.tenant_id) == tenant_id,
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.year) == year,
        )
        .order_by(col(LeaveBalance.id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _get_balance_or_404(session: AsyncSession, tenant_id: uuid.UUID, balance_id: uuid.UUID) -> LeaveBalance:
    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.id) == balance_id, col(LeaveBalance.tenant_id) == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFound("Balance not found")
    return balance


async def _apply_delta(session: AsyncSession, balance_id: uuid.UUID, **deltas: float) -> None:
    """Single relative UPDATE: each named counter is incremented by the store, not by Python."""
    values = {name: getattr(LeaveBalance, name) + delta for name, delta in deltas.items()}
    values["updated_at"] = datetime.now(UTC)
    await session.execute(update(LeaveBalance).where(col(LeaveBalance.id) == balance_id).values(**values))


# ---------------------------------------------------------------------------
# Ledger operations (run inside the caller's transaction, never commit)
# ---------------------------------------------------------------------------


async def get_or_create_balance(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    *,
    for_update: bool = False,
    allocated_days: float | None = None,
) -> LeaveBalance:
    """Return the balance for the key, materializing it from the entitlement engine if absent.

    Creation is an INSERT .. ON CONFLICT DO NOTHING on the balance key, so two
    concurrent first accesses end up reading the same row. With for_update the
    returned row is locked until the transaction ends. An explicit
    allocated_days skips the engine and records a MANUAL allocation.
    """
    balance = await _select_balance(session, tenant_id, employee_id, leave_type_id, year, for_update)
    if balance is not None:
        return balance

    if allocated_days is None:
        entitlement = await resolve_entitlement(session, tenant_id, employee_id, leave_type_id, year)
        allocated_days = entitlement.days
        source = entitlement.rule_type
        rule_id = entitlement.rule_id if entitlement.rule_type != EntitlementSource.EXCEPTION else None
        breakdown = entitlement.breakdown
    else:
        source = EntitlementSource.MANUAL.value
        rule_id = None
        breakdown = {}

    insert = _dialect_insert(session)
    now = datetime.now(UTC)
    stmt = (
        insert(LeaveBalance)
        .values(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            allocated_days=allocated_days,
            taken_days=0,
            pending_days=0,
            carry_forward_days=0,
            entitlement_source=source,
            entitlement_rule_id=rule_id,
            calculation_breakdown=breakdown,
            last_recalculated_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=_BALANCE_KEY)
    )
    await session.execute(stmt)

    balance = await _select_balance(session, tenant_id, employee_id, leave_type_id, year, for_update)
    if balance is None:
        raise RuntimeError("Balance row missing after upsert")
    logger.info(
        "Balance materialized: employee %s, leave type %s, year %s, %s days (%s)",
        employee_id,
        leave_type_id,
        year,
        balance.allocated_days,
        balance.entitlement_source,
    )
    return balance


async def reserve(session: AsyncSession, balance_id: uuid.UUID, days: float) -> None:
    """Hold days for a pending request. The caller has already checked availability."""
    await _apply_delta(session, balance_id, pending_days=days)


async def commit(session: AsyncSession, balance_id: uuid.UUID, days: float) -> None:
    """Move held days from pending to taken."""
    await _apply_delta(session, balance_id, pending_days=-days, taken_days=days)


async def release(session: AsyncSession, balance_id: uuid.UUID, days: float) -> None:
    """Drop held days without taking them."""
    await _apply_delta(session, balance_id, pending_days=-days)


async def grant(session: AsyncSession, balance_id: uuid.UUID, days: float) -> None:
    """Add days to the allocation (replacement-leave credits)."""
    await _apply_delta(session, balance_id, allocated_days=days)


async def refresh_balance(session: AsyncSession, balance: LeaveBalance) -> LeaveBalance:
    """Reload counters after relative updates."""
    await session.refresh(balance)
    return balance


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_employee_balances(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    year: int | None = None,
) -> BalanceListResponse:
    """One balance per active leave type for the year, materializing missing rows.

    Employees may read their own balances; approvers and HR may read anyone's.
    """
    if employee_id != auth.user_id and not auth.can_approve:
        raise AuthorizationFailure("Not authorized to view this employee's balances")

    year = year or date.today().year
    leave_types = await list_active_leave_types(session, auth.tenant_id)

    pairs: list[tuple[LeaveBalance, LeaveType]] = []
    for leave_type in leave_types:
        balance = await get_or_create_balance(session, auth.tenant_id, employee_id, leave_type.id, year)
        pairs.append((balance, leave_type))

    await session.commit()
    items = [_build_balance_response(b, lt) for b, lt in pairs]
    return BalanceListResponse(items=items, total=len(items))


async def list_balances(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    year: int | None = None,
    employee_id: uuid.UUID | None = None,
) -> BalanceListResponse:
    """All materialized balances for a tenant year."""
    year = year or date.today().year
    query = (
        select(LeaveBalance, LeaveType)
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(col(LeaveBalance.tenant_id) == tenant_id, col(LeaveBalance.year) == year)
    )
    if employee_id is not None:
        query = query.where(col(LeaveBalance.employee_id) == employee_id)

    result = await session.execute(
        query.order_by(col(LeaveBalance.employee_id), col(LeaveType.sort_order), col(LeaveType.name))
    )
    items = [_build_balance_response(balance, leave_type) for balance, leave_type in result.all()]
    return BalanceListResponse(items=items, total=len(items))


# ---------------------------------------------------------------------------
# Write path: admin operations
# ---------------------------------------------------------------------------


async def adjust_balance(
    session: AsyncSession,
    auth: AuthContext,
    balance_id: uuid.UUID,
    payload: AdjustBalanceRequest,
) -> BalanceResponse:
    """Set a balance's allocation and/or carry-forward to new absolute values.

    Flow:
    1. Lock the balance row
    2. Reject when the new figures would leave remaining below zero
    3. Apply the change as a relative update of the difference
    4. Audit with the reason
    5. Commit
    """
    if payload.allocated_days is None and payload.carry_forward_days is None:
        raise ValidationError("Nothing to adjust")

    balance = await _get_balance_or_404(session, auth.tenant_id, balance_id)
    leave_type = await get_leave_type_or_404(session, auth.tenant_id, balance.leave_type_id)
    before_dict = model_to_audit_dict(balance)

    allocated = payload.allocated_days if payload.allocated_days is not None else balance.allocated_days
    carry_forward = (
        payload.carry_forward_days if payload.carry_forward_days is not None else balance.carry_forward_days
    )
    remaining = allocated + carry_forward - balance.taken_days - balance.pending_days
    if remaining < 0:
        raise PolicyViolation(
            f"Adjustment would leave a negative balance ({remaining:g} days); "
            f"{balance.taken_days:g} taken and {balance.pending_days:g} pending"
        )

    await _apply_delta(
        session,
        balance.id,
        allocated_days=allocated - balance.allocated_days,
        carry_forward_days=carry_forward - balance.carry_forward_days,
    )
    await session.execute(
        update(LeaveBalance)
        .where(col(LeaveBalance.id) == balance.id)
        .values(entitlement_source=EntitlementSource.MANUAL.value, last_recalculated_at=datetime.now(UTC))
    )
    balance = await refresh_balance(session, balance)

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.BALANCE,
        entity_id=balance.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(balance),
        reason=payload.reason,
    )

    await session.commit()
    await session.refresh(balance)
    logger.info("Balance %s adjusted by %s: %s", balance.id, auth.user_id, payload.reason)
    return _build_balance_response(balance, leave_type)


async def carry_forward(
    session: AsyncSession,
    auth: AuthContext,
    from_year: int,
) -> CarryForwardResponse:
    """Roll unused days of from_year into the next year's balances.

    Only leave types with carry_forward_allowed take part. Each balance moves
    min(remaining, max_carry_forward_days); targets that already carry days
    are skipped, so reruns are harmless.
    """
    to_year = from_year + 1
    result_summary = CarryForwardResult(from_year=from_year)

    leave_types_result = await session.execute(
        select(LeaveType).where(
            col(LeaveType.tenant_id) == auth.tenant_id,
            col(LeaveType.is_active).is_(True),
            col(LeaveType.carry_forward_allowed).is_(True),
        )
    )
    for leave_type in leave_types_result.scalars().all():
        expiry = (
            _add_months(date(to_year, 1, 1), leave_type.carry_forward_expiry_months)
            if leave_type.carry_forward_expiry_months
            else None
        )
        balances_result = await session.execute(
            select(LeaveBalance).where(
                col(LeaveBalance.tenant_id) == auth.tenant_id,
                col(LeaveBalance.leave_type_id) == leave_type.id,
                col(LeaveBalance.year) == from_year,
            )
        )
        for source in balances_result.scalars().all():
            days = min(source.remaining_days, leave_type.max_carry_forward_days)
            if days <= 0:
                result_summary.skipped += 1
                continue

            try:
                target = await get_or_create_balance(
                    session, auth.tenant_id, source.employee_id, leave_type.id, to_year, for_update=True
                )
            except NotFound:
                logger.warning(
                    "Carry-forward skipped for employee %s: not in the employee directory", source.employee_id
                )
                result_summary.skipped += 1
                continue

            if target.carry_forward_days > 0:
                result_summary.skipped += 1
                continue

            before_dict = model_to_audit_dict(target)
            await _apply_delta(session, target.id, carry_forward_days=days)
            await session.execute(
                update(LeaveBalance).where(col(LeaveBalance.id) == target.id).values(carry_forward_expiry=expiry)
            )
            target = await refresh_balance(session, target)

            await write_audit_log(
                session,
                tenant_id=auth.tenant_id,
                actor_id=auth.user_id,
                entity_type=AuditEntityType.BALANCE,
                entity_id=target.id,
                action=AuditAction.CARRY_FORWARD,
                before_json=before_dict,
                after_json=model_to_audit_dict(target),
                reason=f"Carry forward from {from_year}",
            )
            result_summary.processed += 1
            result_summary.total_days += days

    await session.commit()
    logger.info(
        "Carry-forward %s -> %s for tenant %s: %s processed, %s skipped, %s days",
        from_year,
        to_year,
        auth.tenant_id,
        result_summary.processed,
        result_summary.skipped,
        result_summary.total_days,
    )
    return CarryForwardResponse(
        from_year=from_year,
        to_year=to_year,
        processed=result_summary.processed,
        skipped=result_summary.skipped,
        total_days=result_summary.total_days,
    )
