from sqlmodel import SQLModel

from leave_engine.models.audit import AuditLog
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.base import TimestampMixin, UUIDBase
from leave_engine.models.entitlement import EntitlementException, EntitlementRule
from leave_engine.models.enums import (
    APPROVER_ROLES,
    AuditAction,
    AuditEntityType,
    CreditAction,
    CreditStatus,
    CreditType,
    EntitlementSource,
    HistoryAction,
    RequestStatus,
    Role,
    TriggerType,
)
from leave_engine.models.hierarchy import Department, OrgHierarchyNode
from leave_engine.models.leave_type import LeaveType
from leave_engine.models.replacement import ReplacementCreditHistory, ReplacementLeaveCredit, ReplacementLeaveRule
from leave_engine.models.request import ApprovalHistoryEntry, LeaveRequest

__all__ = [
    "APPROVER_ROLES",
    "ApprovalHistoryEntry",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "CreditAction",
    "CreditStatus",
    "CreditType",
    "Department",
    "EntitlementException",
    "EntitlementRule",
    "EntitlementSource",
    "HistoryAction",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "OrgHierarchyNode",
    "ReplacementCreditHistory",
    "ReplacementLeaveCredit",
    "ReplacementLeaveRule",
    "RequestStatus",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "TriggerType",
    "UUIDBase",
]
