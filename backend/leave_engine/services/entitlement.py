"""Entitlement rule engine: how many days an employee is owed for a leave type and year."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlmodel import col

from leave_engine.exceptions import NotFound, ValidationError
from leave_engine.models.entitlement import EntitlementException, EntitlementRule
from leave_engine.models.enums import AuditAction, AuditEntityType, EntitlementSource
from leave_engine.models.leave_type import LeaveType
from leave_engine.schemas.entitlement import (
    EntitlementExceptionListResponse,
    EntitlementExceptionResponse,
    EntitlementPreviewResponse,
    EntitlementResult,
    EntitlementRuleListResponse,
    EntitlementRuleResponse,
)
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.duration import tenure_months
from leave_engine.services.employee import get_employee_or_404
from leave_engine.services.leave_type import get_leave_type_or_404

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.entitlement import (
        CreateEntitlementExceptionRequest,
        CreateEntitlementRuleRequest,
        DeactivatePayload,
        UpdateEntitlementRuleRequest,
    )
    from leave_engine.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

# Specificity weights; subtracted from a rule's priority to rank matches.
TENURE_SCORE = 100
GRADE_SCORE = 50
DEPARTMENT_SCORE = 25

EXCEPTION_PRIORITY = 10
DEFAULT_PRIORITY = 100

# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmployeeAttributes:
    """The attribute vector rules are matched against."""

    tenure_months: int
    grade: str | None = None
    department: str | None = None
    designation: str | None = None

    @classmethod
    def from_employee(cls, employee: EmployeeInfo, as_of: date) -> EmployeeAttributes:
        return cls(
            tenure_months=tenure_months(employee.join_date, as_of),
            grade=employee.grade,
            department=employee.department,
            designation=employee.designation,
        )


@dataclass(frozen=True)
class RuleMatch:
    """A rule that matched, with its specificity score and label."""

    rule: EntitlementRule
    score: int
    rule_type: str

    @property
    def effective_priority(self) -> int:
        return self.rule.priority - self.score


def _match_rule(rule: EntitlementRule, attributes: EmployeeAttributes) -> RuleMatch | None:
    """Score a rule against the attributes. Returns None when any specified filter fails."""
    score = 0
    dimensions: list[str] = []

    if rule.min_tenure_months > 0:
        if attributes.tenure_months < rule.min_tenure_months:
            return None
        if rule.max_tenure_months is not None and attributes.tenure_months >= rule.max_tenure_months:
            return None
        score += TENURE_SCORE
        dimensions.append("TENURE")

    if rule.employee_grade:
        if rule.employee_grade != attributes.grade:
            return None
        score += GRADE_SCORE
        dimensions.append("GRADE")

    if rule.department:
        if rule.department != attributes.department:
            return None
        score += DEPARTMENT_SCORE
        dimensions.append("DEPT")

    # Designation is descriptive only; it neither filters nor scores.
    rule_type = "_".join(dimensions) if dimensions else EntitlementSource.GENERAL.value
    return RuleMatch(rule=rule, score=score, rule_type=rule_type)


def rank_rules(rules: Iterable[EntitlementRule], attributes: EmployeeAttributes) -> list[RuleMatch]:
    """Return the matching rules, best first.

    Candidates are first put in storage order (priority ascending, then most
    recent effective_from). Matches are then ranked by effective priority
    (priority minus score); the sort is stable, so equal effective priorities
    keep storage order.
    """
    ordered = sorted(rules, key=lambda r: (r.priority, -r.effective_from.toordinal()))
    matches = [m for m in (_match_rule(rule, attributes) for rule in ordered) if m is not None]
    return sorted(matches, key=lambda m: m.effective_priority)


def describe_rule(rule: EntitlementRule) -> str:
    """Human-readable description of the band a rule covers."""
    max_tenure = rule.max_tenure_months if rule.max_tenure_months is not None else "∞"
    description = f"Tenure: {rule.min_tenure_months}-{max_tenure} months"
    if rule.employee_grade:
        description += f", Grade: {rule.employee_grade}"
    if rule.department:
        description += f", Dept: {rule.department}"
    if rule.designation:
        description += f", Designation: {rule.designation}"
    return description


def select_entitlement(
    attributes: EmployeeAttributes,
    leave_type: LeaveType,
    rules: Iterable[EntitlementRule],
    exception: EntitlementException | None = None,
) -> EntitlementResult:
    """Pick the allocation: an active exception, else the best rule, else the leave type default."""
    base = {
        "tenure_months": attributes.tenure_months,
        "grade": attributes.grade,
        "department": attributes.department,
    }

    if exception is not None:
        return EntitlementResult(
            days=exception.allocated_days,
            rule_type=EntitlementSource.EXCEPTION.value,
            rule_id=exception.id,
            rule_name=f"Individual Exception: {exception.reason}",
            breakdown={
                **base,
                "matched_rule": "Individual exception override",
                "effective_from": None,
                "priority": EXCEPTION_PRIORITY,
            },
        )

    ranked = rank_rules(rules, attributes)
    if ranked:
        best = ranked[0]
        return EntitlementResult(
            days=best.rule.allocated_days,
            rule_type=best.rule_type,
            rule_id=best.rule.id,
            rule_name=best.rule.rule_name or f"{best.rule_type} Rule",
            breakdown={
                **base,
                "matched_rule": describe_rule(best.rule),
                "effective_from": best.rule.effective_from.isoformat(),
                "priority": best.rule.priority,
                "score": best.score,
            },
        )

    return EntitlementResult(
        days=leave_type.max_days_per_year,
        rule_type=EntitlementSource.DEFAULT.value,
        rule_id=None,
        rule_name=f"Default from {leave_type.name}",
        breakdown={
            **base,
            "matched_rule": "No specific rule matched, using leave type default",
            "effective_from": None,
            "priority": DEFAULT_PRIORITY,
        },
    )


# ---------------------------------------------------------------------------
# Resolution against the store
# ---------------------------------------------------------------------------


async def _get_active_exception(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> EntitlementException | None:
    result = await session.execute(
        select(EntitlementException).where(
            col(EntitlementException.tenant_id) == tenant_id,
            col(EntitlementException.employee_id) == employee_id,
            col(EntitlementException.leave_type_id) == leave_type_id,
            col(EntitlementException.effective_year) == year,
            col(EntitlementException.is_active).is_(True),
        )
    )
    return result.scalar_one_or_none()


async def _get_effective_rules(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    as_of: date,
) -> list[EntitlementRule]:
    """Active rules for a leave type whose validity window covers as_of."""
    result = await session.execute(
        select(EntitlementRule)
        .where(
            col(EntitlementRule.tenant_id) == tenant_id,
            col(EntitlementRule.leave_type_id) == leave_type_id,
            col(EntitlementRule.is_active).is_(True),
            col(EntitlementRule.effective_from) <= as_of,
            or_(col(EntitlementRule.effective_to).is_(None), col(EntitlementRule.effective_to) >= as_of),
        )
        .order_by(col(EntitlementRule.priority), col(EntitlementRule.effective_from).desc())
    )
    return list(result.scalars().all())


async def resolve_entitlement(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    as_of: date | None = None,
) -> EntitlementResult:
    """Compute an employee's allocation for a leave type and year.

    Read-only; safe to call repeatedly for previews. Tenure and the rule
    validity window are evaluated at as_of (today by default).
    """
    as_of = as_of or date.today()
    employee = await get_employee_or_404(tenant_id, employee_id)
    leave_type = await get_leave_type_or_404(session, tenant_id, leave_type_id)

    attributes = EmployeeAttributes.from_employee(employee, as_of)
    exception = await _get_active_exception(session, tenant_id, employee_id, leave_type_id, year)
    rules = [] if exception is not None else await _get_effective_rules(session, tenant_id, leave_type_id, as_of)

    return select_entitlement(attributes, leave_type, rules, exception)


async def preview_entitlement(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int | None = None,
) -> EntitlementPreviewResponse:
    """Resolve an entitlement without creating or touching a balance."""
    year = year or date.today().year
    leave_type = await get_leave_type_or_404(session, tenant_id, leave_type_id)
    entitlement = await resolve_entitlement(session, tenant_id, employee_id, leave_type_id, year)
    return EntitlementPreviewResponse(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        leave_type_code=leave_type.code,
        year=year,
        entitlement=entitlement,
    )


# ---------------------------------------------------------------------------
# Rule administration
# ---------------------------------------------------------------------------


def _build_rule_response(rule: EntitlementRule) -> EntitlementRuleResponse:
    return EntitlementRuleResponse(
        id=rule.id,
        tenant_id=rule.tenant_id,
        leave_type_id=rule.leave_type_id,
        rule_name=rule.rule_name,
        rule_description=rule.rule_description,
        min_tenure_months=rule.min_tenure_months,
        max_tenure_months=rule.max_tenure_months,
        employee_grade=rule.employee_grade,
        department=rule.department,
        designation=rule.designation,
        allocated_days=rule.allocated_days,
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        priority=rule.priority,
        is_active=rule.is_active,
        created_by=rule.created_by,
        change_reason=rule.change_reason,
        created_at=rule.created_at,
    )


async def _get_rule_or_404(session: AsyncSession, tenant_id: uuid.UUID, rule_id: uuid.UUID) -> EntitlementRule:
    result = await session.execute(
        select(EntitlementRule).where(
            col(EntitlementRule.id) == rule_id,
            col(EntitlementRule.tenant_id) == tenant_id,
        )
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFound("Entitlement rule not found")
    return rule


async def list_rules(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    leave_type_id: uuid.UUID | None = None,
    include_inactive: bool = False,
) -> EntitlementRuleListResponse:
    """List rules grouped by leave type display order, then priority and tenure band."""
    query = (
        select(EntitlementRule)
        .join(LeaveType, col(LeaveType.id) == col(EntitlementRule.leave_type_id))
        .where(col(EntitlementRule.tenant_id) == tenant_id)
    )
    if leave_type_id is not None:
        query = query.where(col(EntitlementRule.leave_type_id) == leave_type_id)
    if not include_inactive:
        query = query.where(col(EntitlementRule.is_active).is_(True))

    result = await session.execute(
        query.order_by(
            col(LeaveType.sort_order),
            col(EntitlementRule.priority),
            col(EntitlementRule.min_tenure_months),
        )
    )
    rules = list(result.scalars().all())
    return EntitlementRuleListResponse(items=[_build_rule_response(r) for r in rules], total=len(rules))


async def create_rule(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateEntitlementRuleRequest,
) -> EntitlementRuleResponse:
    """Create an entitlement rule for one of the tenant's leave types."""
    await get_leave_type_or_404(session, auth.tenant_id, payload.leave_type_id)

    rule = EntitlementRule(
        tenant_id=auth.tenant_id,
        created_by=auth.user_id,
        **payload.model_dump(),
    )
    session.add(rule)
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.ENTITLEMENT_RULE,
        entity_id=rule.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(rule),
        reason=payload.change_reason,
    )

    await session.commit()
    await session.refresh(rule)
    logger.info("Entitlement rule %s created for leave type %s", rule.id, rule.leave_type_id)
    return _build_rule_response(rule)


async def update_rule(
    session: AsyncSession,
    auth: AuthContext,
    rule_id: uuid.UUID,
    payload: UpdateEntitlementRuleRequest,
) -> EntitlementRuleResponse:
    """Apply a partial update to a rule. Existing balances keep their allocation."""
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    rule = await _get_rule_or_404(session, auth.tenant_id, rule_id)
    before_dict = model_to_audit_dict(rule)

    for field, value in changes.items():
        setattr(rule, field, value)

    if rule.max_tenure_months is not None and rule.max_tenure_months <= rule.min_tenure_months:
        raise ValidationError("max_tenure_months must be greater than min_tenure_months")
    if rule.effective_to is not None and rule.effective_to < rule.effective_from:
        raise ValidationError("effective_to must not precede effective_from")

    await session.flush()
    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.ENTITLEMENT_RULE,
        entity_id=rule.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(rule),
        reason=payload.change_reason,
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


async def deactivate_rule(
    session: AsyncSession,
    auth: AuthContext,
    rule_id: uuid.UUID,
    payload: DeactivatePayload | None = None,
) -> EntitlementRuleResponse:
    """Soft-delete a rule so it no longer matches."""
    rule = await _get_rule_or_404(session, auth.tenant_id, rule_id)
    before_dict = model_to_audit_dict(rule)
    reason = payload.reason if payload else None

    rule.is_active = False
    rule.change_reason = reason or rule.change_reason
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.ENTITLEMENT_RULE,
        entity_id=rule.id,
        action=AuditAction.DEACTIVATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(rule),
        reason=reason,
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


# ---------------------------------------------------------------------------
# Exception administration
# ---------------------------------------------------------------------------


def _build_exception_response(exception: EntitlementException) -> EntitlementExceptionResponse:
    return EntitlementExceptionResponse(
        id=exception.id,
        tenant_id=exception.tenant_id,
        employee_id=exception.employee_id,
        leave_type_id=exception.leave_type_id,
        effective_year=exception.effective_year,
        allocated_days=exception.allocated_days,
        reason=exception.reason,
        approved_by=exception.approved_by,
        approved_at=exception.approved_at,
        is_active=exception.is_active,
        created_at=exception.created_at,
    )


async def list_exceptions(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID | None = None,
    year: int | None = None,
) -> EntitlementExceptionListResponse:
    """List active exceptions, newest year first."""
    query = select(EntitlementException).where(
        col(EntitlementException.tenant_id) == tenant_id,
        col(EntitlementException.is_active).is_(True),
    )
    if employee_id is not None:
        query = query.where(col(EntitlementException.employee_id) == employee_id)
    if year is not None:
        query = query.where(col(EntitlementException.effective_year) == year)

    result = await session.execute(
        query.order_by(col(EntitlementException.effective_year).desc(), col(EntitlementException.created_at))
    )
    exceptions = list(result.scalars().all())
    return EntitlementExceptionListResponse(
        items=[_build_exception_response(e) for e in exceptions],
        total=len(exceptions),
    )


async def upsert_exception(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateEntitlementExceptionRequest,
) -> EntitlementExceptionResponse:
    """Grant an individual override, replacing any existing one for the same year."""
    await get_employee_or_404(auth.tenant_id, payload.employee_id)
    await get_leave_type_or_404(session, auth.tenant_id, payload.leave_type_id)

    result = await session.execute(
        select(EntitlementException).where(
            col(EntitlementException.tenant_id) == auth.tenant_id,
            col(EntitlementException.employee_id) == payload.employee_id,
            col(EntitlementException.leave_type_id) == payload.leave_type_id,
            col(EntitlementException.effective_year) == payload.effective_year,
        )
    )
    exception = result.scalar_one_or_none()
    now = datetime.now(UTC)

    if exception is None:
        before_dict = None
        exception = EntitlementException(
            tenant_id=auth.tenant_id,
            **payload.model_dump(),
            approved_by=auth.user_id,
            approved_at=now,
        )
        session.add(exception)
        action = AuditAction.CREATE
    else:
        before_dict = model_to_audit_dict(exception)
        exception.allocated_days = payload.allocated_days
        exception.reason = payload.reason
        exception.approved_by = auth.user_id
        exception.approved_at = now
        exception.is_active = True
        action = AuditAction.UPDATE

    await session.flush()
    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.ENTITLEMENT_EXCEPTION,
        entity_id=exception.id,
        action=action,
        before_json=before_dict,
        after_json=model_to_audit_dict(exception),
        reason=payload.reason,
    )

    await session.commit()
    await session.refresh(exception)
    logger.info(
        "Entitlement exception for employee %s, leave type %s, year %s set to %s days",
        exception.employee_id,
        exception.leave_type_id,
        exception.effective_year,
        exception.allocated_days,
    )
    return _build_exception_response(exception)


async def deactivate_exception(
    session: AsyncSession,
    auth: AuthContext,
    exception_id: uuid.UUID,
) -> EntitlementExceptionResponse:
    """Soft-delete an exception. Balances already created keep their allocation."""
    result = await session.execute(
        select(EntitlementException).where(
            col(EntitlementException.id) == exception_id,
            col(EntitlementException.tenant_id) == auth.tenant_id,
        )
    )
    exception = result.scalar_one_or_none()
    if exception is None:
        raise NotFound("Entitlement exception not found")

    before_dict = model_to_audit_dict(exception)
    exception.is_active = False
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.ENTITLEMENT_EXCEPTION,
        entity_id=exception.id,
        action=AuditAction.DEACTIVATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(exception),
    )

    await session.commit()
    await session.refresh(exception)
    return _build_exception_response(exception)
