from sqlmodel import SQLModel

from app.models.audit import AuditLog
from app.models.balance import LeaveBalance
from app.models.base import TimestampMixin, UTCDateTime, UUIDBase
from app.models.enums import (
    AuditAction,
    AuditEntityType,
    LeaveType,
    RequestStatus,
    Role,
)
from app.models.policy import LeavePolicy
from app.models.request import LeaveRequest
from app.models.shift import Shift, ShiftBreak

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "LeaveBalance",
    "LeavePolicy",
    "LeaveRequest",
    "LeaveType",
    "RequestStatus",
    "Role",
    "SQLModel",
    "Shift",
    "ShiftBreak",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDBase",
]
