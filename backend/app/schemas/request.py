# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from app.models.enums import LeaveType, RequestStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class LeaveRequestFields(BaseModel):
    """Fields shared by creating and editing a leave request."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(default="", max_length=500)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be >= start_date"
            raise ValueError(msg)
        if self.end_date.year != self.start_date.year:
            msg = "Leave cannot span two calendar years"
            raise ValueError(msg)
        return self


class CreateLeaveRequestPayload(LeaveRequestFields):
    """Request body for filing a leave request.

    ``employee_id`` is required for admins and managers and ignored otherwise.
    """

    employee_id: uuid.UUID | None = None


class UpdateLeaveRequestPayload(LeaveRequestFields):
    """Request body for editing a pending leave request."""


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: float
    reason: str
    status: RequestStatus
    approver_id: uuid.UUID | None
    decided_at: datetime | None
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    """List of leave requests, newest first."""

    items: list[LeaveRequestResponse]
    total: int
