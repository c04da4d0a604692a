# ruff: noqa: TC003
from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.exceptions import NotFoundError
from app.models.balance import LeaveBalance
from app.models.enums import AuditAction, AuditEntityType, LeaveType
from app.models.policy import LeavePolicy
from app.schemas.policy import PolicyListResponse, PolicyResponse, UpdatePoliciesResponse
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.employee import get_employee_service

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.policy import UpdatePoliciesPayload

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round to two decimals, halves away from zero."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def parse_leave_type(value: str) -> LeaveType:
    """Validate a leave type against the closed set. Raises 404 for unknown types."""
    try:
        return LeaveType(value)
    except ValueError:
        raise NotFoundError(f"Unknown leave type '{value}'") from None


def prorate(entitlement: float, hire_date: date | None, year: int) -> float:
    """Scale an annual entitlement by the months remaining after the hire date.

    The hire month counts in full: joining in July leaves 6 of 12 months.
    """
    if hire_date is None or hire_date.year < year:
        return entitlement
    if hire_date.year > year:
        return 0.0
    months_remaining = min(max(12 - hire_date.month + 1, 0), 12)
    return round2(entitlement / 12 * months_remaining)


def _build_policy_response(policy: LeavePolicy) -> PolicyResponse:
    return PolicyResponse(
        id=policy.id,
        year=policy.year,
        leave_type=LeaveType(policy.leave_type),
        total=policy.total,
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )


async def _get_policy(
    session: AsyncSession,
    year: int,
    leave_type: LeaveType,
    *,
    for_update: bool = False,
) -> LeavePolicy | None:
    query = select(LeavePolicy).where(
        col(LeavePolicy.year) == year,
        col(LeavePolicy.leave_type) == leave_type.value,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def resolve_entitlement(session: AsyncSession, year: int, leave_type: str) -> float:
    """Annual entitlement for (year, type): the stored override, else the built-in default."""
    kind = parse_leave_type(leave_type)
    policy = await _get_policy(session, year, kind)
    if policy is None:
        return kind.default_total
    return policy.total


async def list_policies(session: AsyncSession, year: int | None = None) -> PolicyListResponse:
    """List stored overrides, newest year first."""
    query = select(LeavePolicy)
    if year is not None:
        query = query.where(col(LeavePolicy.year) == year)
    result = await session.execute(
        query.order_by(col(LeavePolicy.year).desc(), col(LeavePolicy.leave_type))
    )
    policies = list(result.scalars().all())
    return PolicyListResponse(
        items=[_build_policy_response(p) for p in policies],
        total=len(policies),
    )


async def update_policies(
    session: AsyncSession,
    auth: AuthContext,
    payload: UpdatePoliciesPayload,
) -> UpdatePoliciesResponse:
    """Upsert entitlements for a year and re-prorate every existing balance.

    Flow, per entry:
    1. Upsert the (year, type) override under a row lock.
    2. Lock every balance at (year, type).
    3. Recompute each balance total against the employee's hire date.
    4. Audit the policy change.
    Everything commits together; any failure leaves no policy applied.
    """
    auth.require_privileged()
    directory = get_employee_service()
    policies: list[LeavePolicy] = []
    balances_updated = 0

    try:
        for entry in payload.policies:
            # 1. Upsert.
            policy = await _get_policy(session, payload.year, entry.leave_type, for_update=True)
            before_dict = model_to_audit_dict(policy) if policy is not None else None
            if policy is None:
                policy = LeavePolicy(year=payload.year, leave_type=entry.leave_type.value, total=entry.total)
                session.add(policy)
            else:
                policy.total = entry.total
            await session.flush()

            # 2. Lock affected balances.
            result = await session.execute(
                select(LeaveBalance)
                .where(
                    col(LeaveBalance.year) == payload.year,
                    col(LeaveBalance.leave_type) == entry.leave_type.value,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )

            # 3. Re-prorate. ``used`` is left alone even if it now exceeds the total.
            for balance in result.scalars().all():
                employee = await directory.get_employee(balance.employee_id)
                if employee is None:
                    logger.warning(
                        "Skipping balance %s: employee %s not found in directory",
                        balance.id,
                        balance.employee_id,
                    )
                    continue
                new_total = prorate(entry.total, employee.hire_date, payload.year)
                if balance.total != new_total:
                    balance.total = new_total
                    balances_updated += 1
            await session.flush()

            # 4. Audit.
            await write_audit_log(
                session,
                actor_id=auth.user_id,
                entity_type=AuditEntityType.LEAVE_POLICY,
                entity_id=policy.id,
                action=AuditAction.CREATE if before_dict is None else AuditAction.UPDATE,
                before_json=before_dict,
                after_json=model_to_audit_dict(policy),
            )
            policies.append(policy)
    except Exception:
        await session.rollback()
        raise

    await session.commit()
    for policy in policies:
        await session.refresh(policy)

    logger.info(
        "Updated %d leave policies for %d; %d balances re-prorated",
        len(policies),
        payload.year,
        balances_updated,
    )
    return UpdatePoliciesResponse(
        year=payload.year,
        policies=[_build_policy_response(p) for p in policies],
        balances_updated=balances_updated,
    )
