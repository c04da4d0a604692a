from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UTCDateTime, UUIDBase, _now_utc


class LeavePolicy(UUIDBase, TimestampMixin, table=True):
    """Per-year override of a leave type's annual entitlement."""

    __tablename__ = "leave_policy"
    __table_args__ = (sa.UniqueConstraint("year", "leave_type", name="uq_leave_policy_year_type"),)

    year: int = Field(index=True)
    leave_type: str = Field(max_length=50)
    total: float = Field(sa_type=sa.Numeric(6, 2, asdecimal=False))  # ty: ignore[invalid-argument-type]
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=UTCDateTime(),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": _now_utc},
    )
