# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from app.api.deps import AuthDep
from app.db import SessionDep
from app.schemas.balance import BalanceListResponse
from app.services import balance as balance_service

balances_router = APIRouter(prefix="/leave/balances", tags=["leave balances"])


@balances_router.get("", response_model=BalanceListResponse)
async def list_balances(
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=1970, le=9999),
    employee_id: uuid.UUID | None = Query(default=None),
) -> BalanceListResponse:
    """Leave balances for the caller, one employee, or everyone (admin/manager)."""
    return await balance_service.list_balances(session, auth, year, employee_id)
