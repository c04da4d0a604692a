# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from app.models.enums import LeaveType

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class PolicyEntry(BaseModel):
    """New annual entitlement for one leave type."""

    leave_type: LeaveType
    total: float = Field(ge=0, le=366)


class UpdatePoliciesPayload(BaseModel):
    """Request body for replacing entitlements for one year."""

    year: int = Field(ge=1970, le=9999)
    policies: list[PolicyEntry] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_unique_types(self) -> Self:
        types = [entry.leave_type for entry in self.policies]
        if len(types) != len(set(types)):
            msg = "Each leave type may appear only once"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PolicyResponse(BaseModel):
    """A stored entitlement override."""

    id: uuid.UUID
    year: int
    leave_type: LeaveType
    total: float
    created_at: datetime
    updated_at: datetime


class PolicyListResponse(BaseModel):
    """Stored entitlement overrides, newest year first."""

    items: list[PolicyResponse]
    total: int


class UpdatePoliciesResponse(BaseModel):
    """Result of a batch policy update."""

    year: int
    policies: list[PolicyResponse]
    balances_updated: int
