# ruff: noqa: TC003
from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator

from app.services.clock import local_today

_CLOCK_TIME_RE = re.compile(r"^(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)$")


def _parse_operator_time(value: Any) -> Any:
    """Accept a bare ``HH:MM`` as today's local wall time; leave ISO-8601 to pydantic."""
    if isinstance(value, str):
        match = _CLOCK_TIME_RE.match(value.strip())
        if match is not None:
            today = local_today()
            return datetime(today.year, today.month, today.day, int(match["hour"]), int(match["minute"]))
    return value


# Naive results are server-local wall time; see app.services.clock.to_instant.
OperatorTime = Annotated[datetime, BeforeValidator(_parse_operator_time)]


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CheckInPayload(BaseModel):
    """Request body for checking in.

    ``employee_id`` and ``check_in_at`` are honoured for admins and managers only.
    """

    employee_id: uuid.UUID | None = None
    check_in_at: OperatorTime | None = None


class CheckOutPayload(BaseModel):
    """Request body for checking out of an open shift."""

    shift_id: uuid.UUID | None = None
    employee_id: uuid.UUID | None = None
    check_out_at: OperatorTime | None = None


class BreakPayload(BaseModel):
    """Request body for starting or ending a break on an open shift."""

    shift_id: uuid.UUID | None = None
    employee_id: uuid.UUID | None = None


class ManualBreakPayload(BaseModel):
    """Request body for inserting a closed break into a shift (admin/manager)."""

    shift_id: uuid.UUID
    break_start_at: OperatorTime
    break_end_at: OperatorTime


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BreakResponse(BaseModel):
    """A break interval."""

    id: uuid.UUID
    shift_id: uuid.UUID
    break_start: datetime
    break_end: datetime | None
    created_at: datetime


class ShiftResponse(BaseModel):
    """A shift with its breaks ordered by start."""

    id: uuid.UUID
    employee_id: uuid.UUID
    check_in: datetime
    check_out: datetime | None
    created_at: datetime
    breaks: list[BreakResponse]


class ShiftListResponse(BaseModel):
    """List of shifts, newest first."""

    items: list[ShiftResponse]
    total: int


class DeleteShiftsResponse(BaseModel):
    """Number of shifts removed."""

    deleted: int
