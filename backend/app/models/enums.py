from __future__ import annotations

import enum


class Role(enum.StrEnum):
    """Caller role carried by the authentication context."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class LeaveType(enum.StrEnum):
    """Closed set of leave types, each with a built-in annual entitlement."""

    SICK = "sick"
    CASUAL = "casual"

    @property
    def default_total(self) -> float:
        """Annual entitlement in days used when no policy override exists."""
        return _DEFAULT_LEAVE_TOTALS[self]


_DEFAULT_LEAVE_TOTALS: dict[LeaveType, float] = {
    LeaveType.SICK: 10.0,
    LeaveType.CASUAL: 7.0,
}


class RequestStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    SHIFT = "SHIFT"
    BREAK = "BREAK"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    LEAVE_POLICY = "LEAVE_POLICY"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    MARK_PENDING = "MARK_PENDING"
    AUTO_CLOSE = "AUTO_CLOSE"
