# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from app.exceptions import ConflictError, InternalError, InvalidInputError, NotFoundError
from app.models.enums import AuditAction, AuditEntityType
from app.models.shift import Shift, ShiftBreak
from app.schemas.attendance import BreakResponse, DeleteShiftsResponse, ShiftListResponse, ShiftResponse
from app.services import clock
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.sweep import close_expired_shifts, close_if_expired, shift_cap

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.attendance import CheckInPayload, CheckOutPayload
    from app.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_break_response(shift_break: ShiftBreak) -> BreakResponse:
    return BreakResponse(
        id=shift_break.id,
        shift_id=shift_break.shift_id,
        break_start=shift_break.break_start,
        break_end=shift_break.break_end,
        created_at=shift_break.created_at,
    )


def build_shift_response(shift: Shift, breaks: list[ShiftBreak]) -> ShiftResponse:
    return ShiftResponse(
        id=shift.id,
        employee_id=shift.employee_id,
        check_in=shift.check_in,
        check_out=shift.check_out,
        created_at=shift.created_at,
        breaks=[build_break_response(b) for b in breaks],
    )


def operator_instant(value: datetime, now: datetime, field: str) -> datetime:
    """Convert an operator-supplied time to UTC, rejecting future instants."""
    instant = clock.to_instant(value)
    if instant > now:
        raise InvalidInputError(f"{field} cannot be in the future")
    return instant


async def get_shift_or_404(
    session: AsyncSession,
    shift_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Shift:
    query = select(Shift).where(col(Shift.id) == shift_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    shift = result.scalar_one_or_none()
    if shift is None:
        raise NotFoundError("Shift not found")
    return shift


async def _find_open_shift(
    session: AsyncSession,
    employee_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Shift | None:
    query = select(Shift).where(
        col(Shift.employee_id) == employee_id,
        col(Shift.check_out).is_(None),
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query.order_by(col(Shift.check_in).desc()).limit(1))
    return result.scalar_one_or_none()


async def get_breaks(
    session: AsyncSession,
    shift_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> list[ShiftBreak]:
    """Breaks of one shift ordered by start."""
    query = select(ShiftBreak).where(col(ShiftBreak.shift_id) == shift_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query.order_by(col(ShiftBreak.break_start)))
    return list(result.scalars().all())


async def _load_breaks(session: AsyncSession, shift_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[ShiftBreak]]:
    breaks: dict[uuid.UUID, list[ShiftBreak]] = defaultdict(list)
    if not shift_ids:
        return breaks
    result = await session.execute(
        select(ShiftBreak).where(col(ShiftBreak.shift_id).in_(shift_ids)).order_by(col(ShiftBreak.break_start))
    )
    for shift_break in result.scalars().all():
        breaks[shift_break.shift_id].append(shift_break)
    return breaks


async def resolve_open_shift(
    session: AsyncSession,
    auth: AuthContext,
    shift_id: uuid.UUID | None,
    employee_id: uuid.UUID | None,
) -> Shift:
    """Find the open shift an operation targets and lock it.

    Employees always resolve to their own open shift. Admins and managers
    may name the shift directly or the employee whose open shift to use.
    """
    if not auth.is_privileged:
        shift_id = None
        employee_id = auth.own_employee_id()

    if shift_id is not None:
        shift = await get_shift_or_404(session, shift_id, for_update=True)
        if shift.check_out is not None:
            raise ConflictError("Shift already checked out")
        return shift

    if employee_id is None:
        raise InvalidInputError("shift_id or employee_id is required")
    shift = await _find_open_shift(session, employee_id, for_update=True)
    if shift is None:
        raise NotFoundError("No open shift found")
    return shift


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def check_in(
    session: AsyncSession,
    auth: AuthContext,
    payload: CheckInPayload,
) -> ShiftResponse:
    """Open a new shift.

    Flow:
    1. Resolve the employee and check-in time (backdating is privileged).
    2. Auto-close an expired open shift; any other open shift is a conflict.
    3. Employees may check in once per local calendar day.
    4. Insert; the open-shift unique index settles concurrent check-ins.
    """
    # 1. Resolve.
    employee_id = auth.target_employee_id(payload.employee_id)
    now = clock.now_utc()
    check_in_at = now
    if auth.is_privileged and payload.check_in_at is not None:
        check_in_at = operator_instant(payload.check_in_at, now, "check_in_at")

    # 2. Existing open shift.
    open_shift = await _find_open_shift(session, employee_id, for_update=True)
    if open_shift is not None:
        try:
            closed = await close_if_expired(session, open_shift, now)
        except SQLAlchemyError as exc:
            raise InternalError("Failed to close expired shift") from exc
        if not closed:
            raise ConflictError("Open shift exists")
        await session.commit()

    # 3. Daily limit.
    if not auth.is_privileged:
        day_start, day_end = clock.local_day_bounds(check_in_at)
        result = await session.execute(
            select(func.count())
            .select_from(Shift)
            .where(
                col(Shift.employee_id) == employee_id,
                col(Shift.check_in) >= day_start,
                col(Shift.check_in) < day_end,
            )
        )
        if result.scalar_one() > 0:
            raise ConflictError("Already checked in today")

    # 4. Insert.
    shift = Shift(employee_id=employee_id, check_in=check_in_at)
    session.add(shift)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Open shift exists") from None

    await session.commit()
    await session.refresh(shift)
    logger.info("Employee %s checked in at %s (shift %s)", employee_id, check_in_at, shift.id)
    return build_shift_response(shift, [])


async def check_out(
    session: AsyncSession,
    auth: AuthContext,
    payload: CheckOutPayload,
) -> ShiftResponse:
    """Close an open shift.

    Flow:
    1. Resolve and lock the open shift.
    2. Resolve the check-out time (backdating is privileged), clamped to the cap.
    3. Close or pull back breaks so they end within the shift.
    4. Close the shift and commit.
    """
    # 1. Resolve.
    shift = await resolve_open_shift(session, auth, payload.shift_id, payload.employee_id)

    # 2. Check-out time.
    now = clock.now_utc()
    check_out_at = now
    if auth.is_privileged and payload.check_out_at is not None:
        check_out_at = operator_instant(payload.check_out_at, now, "check_out_at")
    if check_out_at < shift.check_in:
        raise InvalidInputError("check_out_at cannot be before check-in")
    check_out_at = min(check_out_at, shift_cap(shift))

    # 3. Breaks first, so no break is ever left outside a closed shift.
    breaks = await get_breaks(session, shift.id, for_update=True)
    for shift_break in breaks:
        if shift_break.break_start > check_out_at:
            shift_break.break_start = check_out_at
        if shift_break.break_end is None or shift_break.break_end > check_out_at:
            shift_break.break_end = check_out_at
    await session.flush()

    # 4. Close.
    shift.check_out = check_out_at
    await session.flush()
    await session.commit()
    await session.refresh(shift)
    logger.info("Shift %s checked out at %s", shift.id, check_out_at)
    return build_shift_response(shift, breaks)


async def list_shifts(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID | None = None,
) -> ShiftListResponse:
    """List shifts with their breaks, newest first.

    Expired open shifts in scope are auto-closed before reading.
    """
    if not auth.is_privileged:
        employee_id = auth.own_employee_id()

    await close_expired_shifts(session, employee_id=employee_id)
    await session.commit()

    query = select(Shift)
    if employee_id is not None:
        query = query.where(col(Shift.employee_id) == employee_id)
    result = await session.execute(query.order_by(col(Shift.check_in).desc(), col(Shift.created_at).desc()))
    shifts = list(result.scalars().all())

    breaks = await _load_breaks(session, [s.id for s in shifts])
    return ShiftListResponse(
        items=[build_shift_response(s, breaks[s.id]) for s in shifts],
        total=len(shifts),
    )


async def _delete_shifts(session: AsyncSession, auth: AuthContext, shifts: list[Shift]) -> None:
    shift_ids = [s.id for s in shifts]
    if not shift_ids:
        return
    for shift in shifts:
        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.SHIFT,
            entity_id=shift.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(shift),
        )
    await session.execute(delete(ShiftBreak).where(col(ShiftBreak.shift_id).in_(shift_ids)))
    await session.execute(delete(Shift).where(col(Shift.id).in_(shift_ids)))


async def delete_shift(session: AsyncSession, auth: AuthContext, shift_id: uuid.UUID) -> None:
    """Delete one shift and its breaks (admin/manager)."""
    auth.require_privileged()
    shift = await get_shift_or_404(session, shift_id, for_update=True)
    await _delete_shifts(session, auth, [shift])
    await session.commit()
    logger.info("Deleted shift %s for employee %s", shift_id, shift.employee_id)


async def delete_employee_shifts(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
) -> DeleteShiftsResponse:
    """Delete every shift of one employee (admin/manager)."""
    auth.require_privileged()
    result = await session.execute(
        select(Shift).where(col(Shift.employee_id) == employee_id).with_for_update()
    )
    shifts = list(result.scalars().all())
    await _delete_shifts(session, auth, shifts)
    await session.commit()
    logger.info("Deleted %d shifts for employee %s", len(shifts), employee_id)
    return DeleteShiftsResponse(deleted=len(shifts))
