# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UTCDateTime, UUIDBase, _now_utc


class LeaveBalance(UUIDBase, TimestampMixin, table=True):
    """Derived per-(employee, year, type) entitlement and consumption counter."""

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "year", "leave_type", name="uq_leave_balance_employee_year_type"),
        sa.CheckConstraint("used >= 0", name="ck_leave_balance_used_non_negative"),
    )

    employee_id: uuid.UUID = Field(index=True)
    year: int = Field(index=True)
    leave_type: str = Field(max_length=50)
    total: float = Field(  # type: ignore[call-overload]
        default=0,
        sa_type=sa.Numeric(6, 2, asdecimal=False),
        sa_column_kwargs={"server_default": "0"},
    )
    used: float = Field(  # type: ignore[call-overload]
        default=0,
        sa_type=sa.Numeric(6, 2, asdecimal=False),
        sa_column_kwargs={"server_default": "0"},
    )
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=UTCDateTime(),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": _now_utc},
    )

    @property
    def available(self) -> float:
        return round(self.total - self.used, 2)
