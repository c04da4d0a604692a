# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UTCDateTime, UUIDBase


class Shift(UUIDBase, TimestampMixin, table=True):
    """One continuous attendance record from check-in to check-out."""

    __tablename__ = "shift"
    __table_args__ = (
        sa.Index("ix_shift_employee_check_in", "employee_id", "check_in"),
        # At most one open shift per employee.
        sa.Index(
            "uq_shift_open_employee",
            "employee_id",
            unique=True,
            postgresql_where=sa.text("check_out IS NULL"),
            sqlite_where=sa.text("check_out IS NULL"),
        ),
    )

    employee_id: uuid.UUID = Field(index=True)
    check_in: datetime = Field(sa_type=UTCDateTime())  # ty: ignore[invalid-argument-type]
    check_out: datetime | None = Field(default=None, sa_type=UTCDateTime())  # ty: ignore[invalid-argument-type]


class ShiftBreak(UUIDBase, TimestampMixin, table=True):
    """A break interval nested inside a shift."""

    __tablename__ = "shift_break"
    __table_args__ = (
        # At most one open break per shift.
        sa.Index(
            "uq_break_open_shift",
            "shift_id",
            unique=True,
            postgresql_where=sa.text("break_end IS NULL"),
            sqlite_where=sa.text("break_end IS NULL"),
        ),
    )

    shift_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("shift.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    break_start: datetime = Field(sa_type=UTCDateTime())  # ty: ignore[invalid-argument-type]
    break_end: datetime | None = Field(default=None, sa_type=UTCDateTime())  # ty: ignore[invalid-argument-type]
