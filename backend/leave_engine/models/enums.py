from __future__ import annotations

import enum


class Role(enum.StrEnum):
    """Role supplied by the identity layer."""

    HR_ADMIN = "HR_ADMIN"
    MANAGER = "MANAGER"
    WORKER = "WORKER"


# Roles allowed to approve or reject anything.
APPROVER_ROLES = frozenset({Role.HR_ADMIN, Role.MANAGER})


class RequestStatus(enum.StrEnum):
    """State machine for leave requests. Everything but PENDING is terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class HistoryAction(enum.StrEnum):
    """Action recorded in a leave request's approval history."""

    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    OVERRIDDEN = "OVERRIDDEN"


class EntitlementSource(enum.StrEnum):
    """Provenance labels that are not built from matched rule dimensions."""

    EXCEPTION = "EXCEPTION"
    DEFAULT = "DEFAULT"
    MANUAL = "MANUAL"
    GENERAL = "GENERAL"


class TriggerType(enum.StrEnum):
    """External events that can earn replacement leave."""

    TRAINING = "TRAINING"
    PUBLIC_HOLIDAY_WORK = "PUBLIC_HOLIDAY_WORK"
    REST_DAY_WORK = "REST_DAY_WORK"
    OVERTIME = "OVERTIME"
    OFFICIAL_DUTY = "OFFICIAL_DUTY"
    CUSTOM = "CUSTOM"


class CreditType(enum.StrEnum):
    """How a replacement-leave rule turns an event into days."""

    FIXED = "FIXED"
    RATIO = "RATIO"


class CreditStatus(enum.StrEnum):
    """Lifecycle of a replacement-leave credit."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class CreditAction(enum.StrEnum):
    """Action recorded in a credit's history."""

    CREATED = "CREATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_TYPE = "LEAVE_TYPE"
    ENTITLEMENT_RULE = "ENTITLEMENT_RULE"
    ENTITLEMENT_EXCEPTION = "ENTITLEMENT_EXCEPTION"
    DEPARTMENT = "DEPARTMENT"
    HIERARCHY = "HIERARCHY"
    BALANCE = "BALANCE"
    REPLACEMENT_RULE = "REPLACEMENT_RULE"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DEACTIVATE = "DEACTIVATE"
    CARRY_FORWARD = "CARRY_FORWARD"
