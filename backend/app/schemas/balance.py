# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from app.models.enums import LeaveType


class BalanceResponse(BaseModel):
    """Entitlement and consumption for one (employee, year, leave type)."""

    id: uuid.UUID
    employee_id: uuid.UUID
    year: int
    leave_type: LeaveType
    total: float
    used: float
    available: float
    updated_at: datetime


class BalanceListResponse(BaseModel):
    """Balances grouped by employee, one row per leave type."""

    items: list[BalanceResponse]
    total: int
