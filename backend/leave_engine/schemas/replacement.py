# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_engine.models.enums import CreditAction, CreditStatus, CreditType, TriggerType

# ---------------------------------------------------------------------------
# Rule payloads
# ---------------------------------------------------------------------------


class CreateReplacementRuleRequest(BaseModel):
    """Request body for creating a replacement-leave rule."""

    rule_code: str = Field(min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    rule_name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    trigger_type: TriggerType
    credit_type: CreditType = CreditType.FIXED
    credit_days: float = Field(default=1, gt=0)
    hours_per_day: float | None = Field(default=None, gt=0)
    min_hours_required: float | None = Field(default=None, ge=0)
    max_days_per_event: float | None = Field(default=None, gt=0)
    max_days_per_month: float | None = Field(default=None, gt=0)
    max_days_per_year: float | None = Field(default=None, gt=0)
    expiry_days: int | None = Field(default=None, gt=0)
    eligible_departments: list[str] | None = None
    eligible_grades: list[str] | None = None
    requires_approval: bool = True
    auto_credit_on_approval: bool = True
    effective_from: date
    effective_to: date | None = None

    @model_validator(mode="after")
    def _validate_window(self) -> Self:
        if self.effective_to is not None and self.effective_to < self.effective_from:
            msg = "effective_to must not precede effective_from"
            raise ValueError(msg)
        return self


class UpdateReplacementRuleRequest(BaseModel):
    """Partial update for a replacement-leave rule. Code and trigger type are immutable."""

    rule_name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    credit_type: CreditType | None = None
    credit_days: float | None = Field(default=None, gt=0)
    hours_per_day: float | None = Field(default=None, gt=0)
    min_hours_required: float | None = Field(default=None, ge=0)
    max_days_per_event: float | None = Field(default=None, gt=0)
    max_days_per_month: float | None = Field(default=None, gt=0)
    max_days_per_year: float | None = Field(default=None, gt=0)
    expiry_days: int | None = Field(default=None, gt=0)
    eligible_departments: list[str] | None = None
    eligible_grades: list[str] | None = None
    requires_approval: bool | None = None
    auto_credit_on_approval: bool | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool | None = None


class ReplacementRuleResponse(BaseModel):
    """Response schema for a replacement-leave rule."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    rule_code: str
    rule_name: str
    description: str | None
    trigger_type: TriggerType
    credit_type: CreditType
    credit_days: float
    hours_per_day: float | None
    min_hours_required: float | None
    max_days_per_event: float | None
    max_days_per_month: float | None
    max_days_per_year: float | None
    expiry_days: int | None
    eligible_departments: list[str] | None
    eligible_grades: list[str] | None
    requires_approval: bool
    auto_credit_on_approval: bool
    effective_from: date
    effective_to: date | None
    is_active: bool
    created_at: datetime


class ReplacementRuleListResponse(BaseModel):
    """List of replacement-leave rules."""

    items: list[ReplacementRuleResponse]
    total: int


# ---------------------------------------------------------------------------
# Credit payloads
# ---------------------------------------------------------------------------


class CreditReplacementPayload(BaseModel):
    """A qualifying event to convert into replacement leave."""

    employee_id: uuid.UUID
    trigger_type: TriggerType
    trigger_date: date
    trigger_description: str | None = Field(default=None, max_length=1000)
    trigger_reference: str = Field(min_length=1, max_length=200)
    hours_worked: float | None = Field(default=None, gt=0, le=24)
    explicit_days: float | None = Field(default=None, gt=0)
    source_record_id: uuid.UUID | None = None


class ApproveCreditPayload(BaseModel):
    """Approval of a pending credit, optionally with a corrected day count."""

    note: str | None = Field(default=None, max_length=1000)
    adjusted_days: float | None = Field(default=None, gt=0)


class RejectCreditPayload(BaseModel):
    """Rejection of a pending credit."""

    reason: str = Field(min_length=1, max_length=1000)


class ExpireCreditsPayload(BaseModel):
    """Cut-off date for expiring approved credits (defaults to today)."""

    as_of: date | None = None


class TrainingCompletionPayload(BaseModel):
    """Confirmed attendance of a training session that earns replacement leave."""

    employee_id: uuid.UUID
    training_code: str = Field(min_length=1, max_length=50)
    training_title: str = Field(min_length=1, max_length=200)
    event_date: date
    allocation_id: uuid.UUID
    hours_attended: float | None = Field(default=None, gt=0, le=24)


# ---------------------------------------------------------------------------
# Credit responses
# ---------------------------------------------------------------------------


class CreditHistoryResponse(BaseModel):
    """One credit-history row."""

    id: uuid.UUID
    actor_id: uuid.UUID
    action: CreditAction
    from_status: CreditStatus | None
    to_status: CreditStatus
    days_affected: float | None
    note: str | None
    created_at: datetime


class ReplacementCreditResponse(BaseModel):
    """Response schema for a replacement-leave credit."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    employee_id: uuid.UUID
    rule_id: uuid.UUID | None
    trigger_type: TriggerType
    trigger_date: date
    trigger_reference: str
    trigger_description: str | None
    source_record_id: uuid.UUID | None
    hours_worked: float | None
    calculated_days: float
    days_credited: float
    days_used: float
    days_remaining: float
    status: CreditStatus
    expiry_date: date | None
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    balance_id: uuid.UUID | None
    credited_at: datetime | None
    created_at: datetime


class ReplacementCreditListResponse(BaseModel):
    """List of replacement-leave credits."""

    items: list[ReplacementCreditResponse]
    total: int


class ReplacementSummaryResponse(BaseModel):
    """Replacement-leave position of one employee."""

    employee_id: uuid.UUID
    total_earned: float
    total_used: float
    available: float
    pending_approval_days: float
    pending_count: int
    expiring_soon: list[ReplacementCreditResponse]


class ExpireCreditsResponse(BaseModel):
    """Outcome of an expiry run."""

    as_of: date
    expired_count: int
    expired_days: float


class ReplacementCreditDetailResponse(ReplacementCreditResponse):
    """A credit together with its history."""

    history: list[CreditHistoryResponse]
