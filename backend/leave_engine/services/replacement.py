"""Replacement leave (time off in lieu): rules, credits and the training trigger."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import extract, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_engine.config import get_settings
from leave_engine.exceptions import AuthorizationFailure, NotFound, PolicyViolation, StateConflict, ValidationError
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.enums import AuditAction, AuditEntityType, CreditAction, CreditStatus, CreditType, TriggerType
from leave_engine.models.replacement import ReplacementCreditHistory, ReplacementLeaveCredit, ReplacementLeaveRule
from leave_engine.schemas.replacement import (
    CreditHistoryResponse,
    CreditReplacementPayload,
    ExpireCreditsResponse,
    ReplacementCreditDetailResponse,
    ReplacementCreditListResponse,
    ReplacementCreditResponse,
    ReplacementRuleListResponse,
    ReplacementRuleResponse,
    ReplacementSummaryResponse,
)
from leave_engine.services import balance as ledger
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.employee import get_employee_or_404
from leave_engine.services.leave_type import find_leave_type_by_code

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.replacement import (
        ApproveCreditPayload,
        CreateReplacementRuleRequest,
        RejectCreditPayload,
        TrainingCompletionPayload,
        UpdateReplacementRuleRequest,
    )
    from leave_engine.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

_COUNTED_STATUSES = [CreditStatus.PENDING.value, CreditStatus.APPROVED.value]
_EXPIRY_WARNING_DAYS = 30
_DEFAULT_CREDIT_DAYS = 1.0

# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def compute_credit_days(
    rule: ReplacementLeaveRule | None,
    hours_worked: float | None = None,
    explicit_days: float | None = None,
    default_hours_per_day: float = 8.0,
) -> float:
    """Days an event earns under a rule, before monthly and yearly caps.

    Explicit days win over the rule's formula. FIXED rules pay credit_days;
    RATIO rules pay (hours_worked / hours_per_day) * credit_days. The result
    is clamped to max_days_per_event when the rule sets one.
    """
    if rule is None:
        return explicit_days if explicit_days is not None else _DEFAULT_CREDIT_DAYS

    if rule.min_hours_required and hours_worked is not None and hours_worked < rule.min_hours_required:
        raise PolicyViolation(f"At least {rule.min_hours_required:g} hours are required for this credit")

    if explicit_days is not None:
        days = explicit_days
    elif rule.credit_type == CreditType.RATIO:
        if hours_worked is None:
            raise ValidationError("hours_worked is required for ratio-based credits")
        hours_per_day = rule.hours_per_day or default_hours_per_day
        days = hours_worked / hours_per_day * rule.credit_days
    else:
        days = rule.credit_days

    if rule.max_days_per_event is not None:
        days = min(days, rule.max_days_per_event)
    return round(days, 2)


def check_eligibility(rule: ReplacementLeaveRule, employee: EmployeeInfo) -> None:
    """Raise when the rule restricts departments or grades and the employee is outside them."""
    if rule.eligible_departments and employee.department not in rule.eligible_departments:
        raise PolicyViolation(f"Department {employee.department or '-'} is not eligible under rule {rule.rule_code}")
    if rule.eligible_grades and employee.grade not in rule.eligible_grades:
        raise PolicyViolation(f"Grade {employee.grade or '-'} is not eligible under rule {rule.rule_code}")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_rule_response(rule: ReplacementLeaveRule) -> ReplacementRuleResponse:
    return ReplacementRuleResponse(
        id=rule.id,
        tenant_id=rule.tenant_id,
        rule_code=rule.rule_code,
        rule_name=rule.rule_name,
        description=rule.description,
        trigger_type=TriggerType(rule.trigger_type),
        credit_type=CreditType(rule.credit_type),
        credit_days=rule.credit_days,
        hours_per_day=rule.hours_per_day,
        min_hours_required=rule.min_hours_required,
        max_days_per_event=rule.max_days_per_event,
        max_days_per_month=rule.max_days_per_month,
        max_days_per_year=rule.max_days_per_year,
        expiry_days=rule.expiry_days,
        eligible_departments=rule.eligible_departments,
        eligible_grades=rule.eligible_grades,
        requires_approval=rule.requires_approval,
        auto_credit_on_approval=rule.auto_credit_on_approval,
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        is_active=rule.is_active,
        created_at=rule.created_at,
    )


def _build_credit_response(credit: ReplacementLeaveCredit) -> ReplacementCreditResponse:
    return ReplacementCreditResponse(
        id=credit.id,
        tenant_id=credit.tenant_id,
        employee_id=credit.employee_id,
        rule_id=credit.rule_id,
        trigger_type=TriggerType(credit.trigger_type),
        trigger_date=credit.trigger_date,
        trigger_reference=credit.trigger_reference,
        trigger_description=credit.trigger_description,
        source_record_id=credit.source_record_id,
        hours_worked=credit.hours_worked,
        calculated_days=credit.calculated_days,
        days_credited=credit.days_credited,
        days_used=credit.days_used,
        days_remaining=credit.days_remaining,
        status=CreditStatus(credit.status),
        expiry_date=credit.expiry_date,
        approved_by=credit.approved_by,
        approved_at=credit.approved_at,
        rejection_reason=credit.rejection_reason,
        balance_id=credit.balance_id,
        credited_at=credit.credited_at,
        created_at=credit.created_at,
    )


def _build_history_response(entry: ReplacementCreditHistory) -> CreditHistoryResponse:
    return CreditHistoryResponse(
        id=entry.id,
        actor_id=entry.actor_id,
        action=CreditAction(entry.action),
        from_status=CreditStatus(entry.from_status) if entry.from_status else None,
        to_status=CreditStatus(entry.to_status),
        days_affected=entry.days_affected,
        note=entry.note,
        created_at=entry.created_at,
    )


def _add_history(
    session: AsyncSession,
    credit: ReplacementLeaveCredit,
    actor_id: uuid.UUID,
    action: CreditAction,
    from_status: CreditStatus | None,
    days_affected: float | None,
    note: str | None = None,
) -> None:
    session.add(
        ReplacementCreditHistory(
            tenant_id=credit.tenant_id,
            credit_id=credit.id,
            actor_id=actor_id,
            action=action.value,
            from_status=from_status.value if from_status else None,
            to_status=credit.status,
            days_affected=days_affected,
            note=note,
        )
    )


async def _get_rule_or_404(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    rule_id: uuid.UUID,
) -> ReplacementLeaveRule:
    result = await session.execute(
        select(ReplacementLeaveRule).where(
            col(ReplacementLeaveRule.id) == rule_id,
            col(ReplacementLeaveRule.tenant_id) == tenant_id,
        )
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFound("Replacement leave rule not found")
    return rule


async def _get_credit_or_404(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    credit_id: uuid.UUID,
    for_update: bool = False,
) -> ReplacementLeaveCredit:
    query = select(ReplacementLeaveCredit).where(
        col(ReplacementLeaveCredit.id) == credit_id,
        col(ReplacementLeaveCredit.tenant_id) == tenant_id,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query.execution_options(populate_existing=True))
    credit = result.scalar_one_or_none()
    if credit is None:
        raise NotFound("Replacement leave credit not found")
    return credit


async def find_applicable_rule(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    trigger_type: TriggerType,
    trigger_date: date,
) -> ReplacementLeaveRule | None:
    """Most recent active rule for the trigger type whose window covers trigger_date."""
    result = await session.execute(
        select(ReplacementLeaveRule)
        .where(
            col(ReplacementLeaveRule.tenant_id) == tenant_id,
            col(ReplacementLeaveRule.trigger_type) == trigger_type.value,
            col(ReplacementLeaveRule.is_active).is_(True),
            col(ReplacementLeaveRule.effective_from) <= trigger_date,
            or_(
                col(ReplacementLeaveRule.effective_to).is_(None),
                col(ReplacementLeaveRule.effective_to) >= trigger_date,
            ),
        )
        .order_by(col(ReplacementLeaveRule.effective_from).desc(), col(ReplacementLeaveRule.created_at).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _credited_in_period(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    rule_id: uuid.UUID,
    year: int,
    month: int | None = None,
) -> float:
    """Days already pending or approved under a rule for the employee in a year or month."""
    query = select(func.coalesce(func.sum(col(ReplacementLeaveCredit.days_credited)), 0)).where(
        col(ReplacementLeaveCredit.tenant_id) == tenant_id,
        col(ReplacementLeaveCredit.employee_id) == employee_id,
        col(ReplacementLeaveCredit.rule_id) == rule_id,
        col(ReplacementLeaveCredit.status).in_(_COUNTED_STATUSES),
        extract("year", col(ReplacementLeaveCredit.trigger_date)) == year,
    )
    if month is not None:
        query = query.where(extract("month", col(ReplacementLeaveCredit.trigger_date)) == month)
    result = await session.execute(query)
    return float(result.scalar_one())


async def _apply_period_caps(
    session: AsyncSession,
    rule: ReplacementLeaveRule,
    employee_id: uuid.UUID,
    trigger_date: date,
    days: float,
) -> float:
    """Clamp days to what is left under the rule's monthly and yearly caps."""
    caps = [
        (rule.max_days_per_month, trigger_date.month, "monthly"),
        (rule.max_days_per_year, None, "yearly"),
    ]
    for cap, month, label in caps:
        if cap is None:
            continue
        used = await _credited_in_period(session, rule.tenant_id, employee_id, rule.id, trigger_date.year, month)
        room = cap - used
        if room <= 0:
            raise PolicyViolation(f"The {label} replacement leave cap of {cap:g} days has been reached")
        days = min(days, room)
    return round(days, 2)


async def _feed_balance(
    session: AsyncSession,
    credit: ReplacementLeaveCredit,
    rule: ReplacementLeaveRule | None,
) -> None:
    """Grant an approved credit's days to the replacement leave balance of the trigger year."""
    if rule is not None and not rule.auto_credit_on_approval:
        return

    code = get_settings().replacement_leave_type_code
    leave_type = await find_leave_type_by_code(session, credit.tenant_id, code)
    if leave_type is None or not leave_type.is_active:
        logger.warning("No active %s leave type; credit %s not added to a balance", code, credit.id)
        return

    balance = await ledger.get_or_create_balance(
        session, credit.tenant_id, credit.employee_id, leave_type.id, credit.trigger_date.year, for_update=True
    )
    await ledger.grant(session, balance.id, credit.days_credited)
    credit.balance_id = balance.id
    credit.credited_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# Rule administration
# ---------------------------------------------------------------------------


async def create_rule(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateReplacementRuleRequest,
) -> ReplacementRuleResponse:
    """Create a replacement leave rule. Codes are upper-cased and unique per tenant."""
    code = payload.rule_code.upper()
    existing = await session.execute(
        select(ReplacementLeaveRule).where(
            col(ReplacementLeaveRule.tenant_id) == auth.tenant_id,
            col(ReplacementLeaveRule.rule_code) == code,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise StateConflict(f"Replacement leave rule '{code}' already exists")

    rule = ReplacementLeaveRule(
        tenant_id=auth.tenant_id,
        created_by=auth.user_id,
        **payload.model_dump(exclude={"rule_code"}),
        rule_code=code,
    )
    session.add(rule)
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.REPLACEMENT_RULE,
        entity_id=rule.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(rule),
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


async def list_rules(
    session: AsyncSession,
    auth: AuthContext,
    include_inactive: bool = False,
) -> ReplacementRuleListResponse:
    """HR sees every rule; everyone else only active rules in effect today."""
    query = select(ReplacementLeaveRule).where(col(ReplacementLeaveRule.tenant_id) == auth.tenant_id)
    if not auth.is_hr_admin:
        today = date.today()
        query = query.where(
            col(ReplacementLeaveRule.is_active).is_(True),
            col(ReplacementLeaveRule.effective_from) <= today,
            or_(col(ReplacementLeaveRule.effective_to).is_(None), col(ReplacementLeaveRule.effective_to) >= today),
        )
    elif not include_inactive:
        query = query.where(col(ReplacementLeaveRule.is_active).is_(True))

    result = await session.execute(
        query.order_by(col(ReplacementLeaveRule.trigger_type), col(ReplacementLeaveRule.rule_code))
    )
    rules = list(result.scalars().all())
    return ReplacementRuleListResponse(items=[_build_rule_response(r) for r in rules], total=len(rules))


async def update_rule(
    session: AsyncSession,
    auth: AuthContext,
    rule_id: uuid.UUID,
    payload: UpdateReplacementRuleRequest,
) -> ReplacementRuleResponse:
    """Partial update of a rule. Existing credits are not recalculated."""
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    rule = await _get_rule_or_404(session, auth.tenant_id, rule_id)
    before_dict = model_to_audit_dict(rule)
    for field, value in changes.items():
        setattr(rule, field, value)
    if rule.effective_to is not None and rule.effective_to < rule.effective_from:
        raise ValidationError("effective_to must not precede effective_from")
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.REPLACEMENT_RULE,
        entity_id=rule.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(rule),
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


async def deactivate_rule(
    session: AsyncSession,
    auth: AuthContext,
    rule_id: uuid.UUID,
) -> ReplacementRuleResponse:
    """Soft-delete a rule; credits already minted keep their reference."""
    rule = await _get_rule_or_404(session, auth.tenant_id, rule_id)
    before_dict = model_to_audit_dict(rule)
    rule.is_active = False
    await session.flush()

    await write_audit_log(
        session,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.REPLACEMENT_RULE,
        entity_id=rule.id,
        action=AuditAction.DEACTIVATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(rule),
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------


async def credit_replacement_leave(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreditReplacementPayload,
) -> ReplacementCreditResponse:
    """Mint a credit for a qualifying event.

    Flow:
    1. Reject a trigger_reference that was already credited
    2. Find the applicable rule (latest effective, active)
    3. Check eligibility, compute days, apply event/month/year caps
    4. Insert the credit; auto-approve for an approver acting on someone else,
       or when the rule needs no approval
    5. Feed the replacement leave balance when auto-approved
    6. Append history and commit
    """
    employee = await get_employee_or_404(auth.tenant_id, payload.employee_id)

    # 1. Idempotency.
    existing = await session.execute(
        select(col(ReplacementLeaveCredit.id)).where(
            col(ReplacementLeaveCredit.tenant_id) == auth.tenant_id,
            col(ReplacementLeaveCredit.trigger_reference) == payload.trigger_reference,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise StateConflict(f"Replacement leave already credited for reference {payload.trigger_reference}")

    # 2-3. Rule, eligibility and amount.
    rule = await find_applicable_rule(session, auth.tenant_id, payload.trigger_type, payload.trigger_date)
    if rule is not None:
        check_eligibility(rule, employee)
    days = compute_credit_days(
        rule,
        hours_worked=payload.hours_worked,
        explicit_days=payload.explicit_days,
        default_hours_per_day=get_settings().default_hours_per_day,
    )
    if rule is not None:
        days = await _apply_period_caps(session, rule, payload.employee_id, payload.trigger_date, days)
    if days <= 0:
        raise PolicyViolation("The event does not earn any replacement leave")

    # 4. Insert.
    auto_approve = (auth.can_approve and auth.user_id != payload.employee_id) or (
        rule is not None and not rule.requires_approval
    )
    now = datetime.now(UTC)
    credit = ReplacementLeaveCredit(
        tenant_id=auth.tenant_id,
        employee_id=payload.employee_id,
        rule_id=rule.id if rule else None,
        trigger_type=payload.trigger_type.value,
        trigger_date=payload.trigger_date,
        trigger_reference=payload.trigger_reference,
        trigger_description=payload.trigger_description,
        source_record_id=payload.source_record_id,
        hours_worked=payload.hours_worked,
        calculated_days=days,
        days_credited=days,
        days_remaining=days,
        status=CreditStatus.APPROVED.value if auto_approve else CreditStatus.PENDING.value,
        expiry_date=payload.trigger_date + timedelta(days=rule.expiry_days) if rule and rule.expiry_days else None,
        approved_by=auth.user_id if auto_approve else None,
        approved_at=now if auto_approve else None,
        created_by=auth.user_id,
    )
    session.add(credit)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise StateConflict(
            f"Replacement leave already credited for reference {payload.trigger_reference}"
        ) from None

    # 5. Balance.
    if auto_approve:
        await _feed_balance(session, credit, rule)

    # 6. History.
    _add_history(
        session,
        credit,
        auth.user_id,
        CreditAction.CREATED,
        None,
        days,
        "Auto-approved on creation" if auto_approve else payload.trigger_description,
    )

    await session.commit()
    await session.refresh(credit)
    logger.info(
        "Replacement credit %s (%s) for employee %s: %s days, %s",
        credit.id,
        credit.trigger_reference,
        credit.employee_id,
        credit.days_credited,
        credit.status,
    )
    return _build_credit_response(credit)


async def approve_credit(
    session: AsyncSession,
    auth: AuthContext,
    credit_id: uuid.UUID,
    payload: ApproveCreditPayload | None = None,
) -> ReplacementCreditResponse:
    """Approve a pending credit, optionally correcting its days, and feed the balance."""
    if not auth.can_approve:
        raise AuthorizationFailure("Insufficient permissions to approve replacement leave")

    credit = await _get_credit_or_404(session, auth.tenant_id, credit_id, for_update=True)
    if credit.employee_id == auth.user_id:
        raise AuthorizationFailure("Cannot approve your own replacement leave credit")
    if credit.status != CreditStatus.PENDING.value:
        raise StateConflict(f"Replacement leave credit is already {credit.status}")

    if payload is not None and payload.adjusted_days is not None:
        credit.days_credited = payload.adjusted_days
        credit.days_remaining = payload.adjusted_days - credit.days_used

    credit.status = CreditStatus.APPROVED.value
    credit.approved_by = auth.user_id
    credit.approved_at = datetime.now(UTC)

    rule = await _get_rule_or_404(session, auth.tenant_id, credit.rule_id) if credit.rule_id else None
    await _feed_balance(session, credit, rule)
    _add_history(
        session,
        credit,
        auth.user_id,
        CreditAction.APPROVED,
        CreditStatus.PENDING,
        credit.days_credited,
        payload.note if payload else None,
    )

    await session.commit()
    await session.refresh(credit)
    logger.info("Replacement credit %s approved by %s: %s days", credit.id, auth.user_id, credit.days_credited)
    return _build_credit_response(credit)


async def reject_credit(
    session: AsyncSession,
    auth: AuthContext,
    credit_id: uuid.UUID,
    payload: RejectCreditPayload,
) -> ReplacementCreditResponse:
    """Reject a pending credit with a reason."""
    if not auth.can_approve:
        raise AuthorizationFailure("Insufficient permissions to reject replacement leave")

    credit = await _get_credit_or_404(session, auth.tenant_id, credit_id, for_update=True)
    if credit.employee_id == auth.user_id:
        raise AuthorizationFailure("Cannot reject your own replacement leave credit")
    if credit.status != CreditStatus.PENDING.value:
        raise StateConflict(f"Replacement leave credit is already {credit.status}")

    credit.status = CreditStatus.REJECTED.value
    credit.rejection_reason = payload.reason
    credit.days_remaining = 0
    _add_history(
        session, credit, auth.user_id, CreditAction.REJECTED, CreditStatus.PENDING, credit.days_credited, payload.reason
    )

    await session.commit()
    await session.refresh(credit)
    logger.info("Replacement credit %s rejected by %s", credit.id, auth.user_id)
    return _build_credit_response(credit)


async def get_credit(
    session: AsyncSession,
    auth: AuthContext,
    credit_id: uuid.UUID,
) -> ReplacementCreditDetailResponse:
    """A credit and its history. Visible to its employee and to approvers."""
    credit = await _get_credit_or_404(session, auth.tenant_id, credit_id)
    if credit.employee_id != auth.user_id and not auth.can_approve:
        raise AuthorizationFailure("Not authorized to view this credit")

    result = await session.execute(
        select(ReplacementCreditHistory)
        .where(col(ReplacementCreditHistory.credit_id) == credit.id)
        .order_by(col(ReplacementCreditHistory.created_at))
    )
    history = [_build_history_response(h) for h in result.scalars().all()]
    return ReplacementCreditDetailResponse(**_build_credit_response(credit).model_dump(), history=history)


async def list_credits(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: CreditStatus | None = None,
    employee_id: uuid.UUID | None = None,
) -> ReplacementCreditListResponse:
    """The caller's credits; HR may list everyone's or filter by employee."""
    query = select(ReplacementLeaveCredit).where(col(ReplacementLeaveCredit.tenant_id) == auth.tenant_id)
    if not auth.is_hr_admin:
        query = query.where(col(ReplacementLeaveCredit.employee_id) == auth.user_id)
    elif employee_id is not None:
        query = query.where(col(ReplacementLeaveCredit.employee_id) == employee_id)
    if status_filter is not None:
        query = query.where(col(ReplacementLeaveCredit.status) == status_filter.value)

    result = await session.execute(query.order_by(col(ReplacementLeaveCredit.trigger_date).desc()))
    credits = list(result.scalars().all())
    return ReplacementCreditListResponse(items=[_build_credit_response(c) for c in credits], total=len(credits))


async def replacement_summary(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID | None = None,
) -> ReplacementSummaryResponse:
    """Earned, used and available replacement leave of an employee (the caller by default)."""
    employee_id = employee_id or auth.user_id
    if employee_id != auth.user_id and not auth.can_approve:
        raise AuthorizationFailure("Not authorized to view this employee's replacement leave")

    result = await session.execute(
        select(ReplacementLeaveCredit).where(
            col(ReplacementLeaveCredit.tenant_id) == auth.tenant_id,
            col(ReplacementLeaveCredit.employee_id) == employee_id,
        )
    )
    credits = list(result.scalars().all())

    earned = [c for c in credits if c.status in (CreditStatus.APPROVED.value, CreditStatus.EXPIRED.value)]
    approved = [c for c in credits if c.status == CreditStatus.APPROVED.value]
    pending = [c for c in credits if c.status == CreditStatus.PENDING.value]
    horizon = date.today() + timedelta(days=_EXPIRY_WARNING_DAYS)
    expiring = sorted(
        (c for c in approved if c.expiry_date is not None and c.expiry_date <= horizon and c.days_remaining > 0),
        key=lambda c: c.expiry_date or horizon,
    )

    return ReplacementSummaryResponse(
        employee_id=employee_id,
        total_earned=sum(c.days_credited for c in earned),
        total_used=sum(c.days_used for c in earned),
        available=sum(c.days_remaining for c in approved),
        pending_approval_days=sum(c.days_credited for c in pending),
        pending_count=len(pending),
        expiring_soon=[_build_credit_response(c) for c in expiring],
    )


async def expire_credits(
    session: AsyncSession,
    auth: AuthContext,
    as_of: date | None = None,
) -> ExpireCreditsResponse:
    """Mark approved credits past their expiry date as EXPIRED.

    Unused days that were fed to a balance are withdrawn from its allocation,
    never taking the balance below zero remaining.
    """
    as_of = as_of or date.today()
    result = await session.execute(
        select(ReplacementLeaveCredit)
        .where(
            col(ReplacementLeaveCredit.tenant_id) == auth.tenant_id,
            col(ReplacementLeaveCredit.status) == CreditStatus.APPROVED.value,
            col(ReplacementLeaveCredit.expiry_date) < as_of,
            col(ReplacementLeaveCredit.days_remaining) > 0,
        )
        .with_for_update()
    )
    credits = list(result.scalars().all())

    expired_days = 0.0
    for credit in credits:
        days = credit.days_remaining
        if credit.balance_id is not None:
            balance_result = await session.execute(
                select(LeaveBalance)
                .where(col(LeaveBalance.id) == credit.balance_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            balance = balance_result.scalar_one_or_none()
            if balance is not None:
                withdrawn = min(days, max(balance.remaining_days, 0))
                if withdrawn > 0:
                    await ledger.grant(session, balance.id, -withdrawn)

        credit.status = CreditStatus.EXPIRED.value
        credit.days_remaining = 0
        _add_history(
            session, credit, auth.user_id, CreditAction.EXPIRED, CreditStatus.APPROVED, days, f"Expired as of {as_of}"
        )
        expired_days += days

    await session.commit()
    logger.info("Expired %s replacement credits (%s days) for tenant %s", len(credits), expired_days, auth.tenant_id)
    return ExpireCreditsResponse(as_of=as_of, expired_count=len(credits), expired_days=expired_days)


async def record_training_completion(
    session: AsyncSession,
    auth: AuthContext,
    payload: TrainingCompletionPayload,
) -> ReplacementCreditResponse:
    """Confirm a training attendance and credit the replacement leave it earns."""
    if not auth.can_approve:
        raise AuthorizationFailure("Insufficient permissions to confirm training completion")
    if payload.employee_id == auth.user_id:
        raise AuthorizationFailure("You cannot confirm your own training completion")

    return await credit_replacement_leave(
        session,
        auth,
        CreditReplacementPayload(
            employee_id=payload.employee_id,
            trigger_type=TriggerType.TRAINING,
            trigger_date=payload.event_date,
            trigger_description=f"Training: {payload.training_title} ({payload.training_code})",
            trigger_reference=f"TRAINING-{payload.training_code}-{payload.allocation_id}",
            hours_worked=payload.hours_attended,
            source_record_id=payload.allocation_id,
        ),
    )
