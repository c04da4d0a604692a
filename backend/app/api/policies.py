# ruff: noqa: B008, TC001
from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import PrivilegedDep
from app.db import SessionDep
from app.schemas.policy import PolicyListResponse, UpdatePoliciesPayload, UpdatePoliciesResponse
from app.services import policy as policy_service

policies_router = APIRouter(prefix="/leave/policies", tags=["leave policies"])


@policies_router.get("", response_model=PolicyListResponse)
async def list_policies(
    session: SessionDep,
    _auth: PrivilegedDep,
    year: int | None = Query(default=None, ge=1970, le=9999),
) -> PolicyListResponse:
    """List entitlement overrides (admin/manager)."""
    return await policy_service.list_policies(session, year)


@policies_router.put("", response_model=UpdatePoliciesResponse)
async def update_policies(
    payload: UpdatePoliciesPayload,
    session: SessionDep,
    auth: PrivilegedDep,
) -> UpdatePoliciesResponse:
    """Set a year's entitlements and re-prorate its balances (admin/manager)."""
    return await policy_service.update_policies(session, auth, payload)
