# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.exceptions import ConflictError, NotFoundError
from app.models.balance import LeaveBalance
from app.models.enums import LeaveType
from app.schemas.balance import BalanceListResponse, BalanceResponse
from app.services.clock import local_today
from app.services.employee import get_employee_service
from app.services.policy import parse_leave_type, prorate, resolve_entitlement, round2

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


def _build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    return BalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        year=balance.year,
        leave_type=LeaveType(balance.leave_type),
        total=balance.total,
        used=balance.used,
        available=balance.available,
        updated_at=balance.updated_at,
    )


async def ensure_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    leave_type: str,
    *,
    for_update: bool = False,
) -> LeaveBalance:
    """Load or create the balance row and read-repair its prorated total.

    With ``for_update`` the row is locked until the caller's transaction ends.
    ``used`` is never modified here.
    """
    kind = parse_leave_type(leave_type)
    entitlement = await resolve_entitlement(session, year, kind)

    employee = await get_employee_service().get_employee(employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    expected_total = prorate(entitlement, employee.hire_date, year)

    query = select(LeaveBalance).where(
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.year) == year,
        col(LeaveBalance.leave_type) == kind.value,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    balance = result.scalar_one_or_none()

    if balance is None:
        balance = LeaveBalance(
            employee_id=employee_id,
            year=year,
            leave_type=kind.value,
            total=expected_total,
            used=0,
        )
        session.add(balance)
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            raise ConflictError("Balance was created concurrently, retry the operation") from None
    elif balance.total != expected_total:
        logger.info(
            "Repairing balance %s total %.2f -> %.2f",
            balance.id,
            balance.total,
            expected_total,
        )
        balance.total = expected_total
        await session.flush()

    return balance


def consume(balance: LeaveBalance, days: float) -> None:
    """Charge approved days against a locked balance. Raises 409 if it would overdraw."""
    if balance.used + days > balance.total:
        raise ConflictError("Insufficient balance")
    balance.used = round2(balance.used + days)


def release(balance: LeaveBalance, days: float) -> None:
    """Return previously approved days to a locked balance."""
    balance.used = max(0.0, round2(balance.used - days))


async def list_balances(
    session: AsyncSession,
    auth: AuthContext,
    year: int | None = None,
    employee_id: uuid.UUID | None = None,
) -> BalanceListResponse:
    """Return every leave type's balance for the visible employees.

    Employees see their own balances; admins and managers see one employee
    when ``employee_id`` is given, else the whole directory. Missing rows are
    created and stale totals repaired along the way.
    """
    year = year or local_today().year
    if not auth.is_privileged:
        employee_ids = [auth.own_employee_id()]
    elif employee_id is not None:
        employee_ids = [employee_id]
    else:
        employee_ids = [e.id for e in await get_employee_service().list_employees()]

    balances: list[LeaveBalance] = []
    for target_id in employee_ids:
        for kind in LeaveType:
            balances.append(await ensure_balance(session, target_id, year, kind))

    await session.commit()
    return BalanceListResponse(
        items=[_build_balance_response(b) for b in balances],
        total=len(balances),
    )
