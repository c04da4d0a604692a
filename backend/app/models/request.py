# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UTCDateTime, UUIDBase, _now_utc
from app.models.enums import RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave request with its approval state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_date_order"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type: str = Field(max_length=50, index=True)
    start_date: date
    end_date: date
    days: float = Field(sa_type=sa.Numeric(6, 2, asdecimal=False))  # ty: ignore[invalid-argument-type]
    reason: str = Field(default="", max_length=500)
    status: str = Field(
        default=RequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    approver_id: uuid.UUID | None = None
    decided_at: datetime | None = Field(default=None, sa_type=UTCDateTime())  # ty: ignore[invalid-argument-type]
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=UTCDateTime(),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": _now_utc},
    )
