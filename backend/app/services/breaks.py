# ruff: noqa: TC003
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.exceptions import ConflictError, InvalidInputError
from app.models.enums import AuditAction, AuditEntityType
from app.models.shift import ShiftBreak
from app.services import clock
from app.services.attendance import build_break_response, get_breaks, get_shift_or_404, resolve_open_shift
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.attendance import BreakPayload, BreakResponse, ManualBreakPayload
    from app.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


async def _find_open_break(session: AsyncSession, shift_id: uuid.UUID) -> ShiftBreak | None:
    result = await session.execute(
        select(ShiftBreak)
        .where(col(ShiftBreak.shift_id) == shift_id, col(ShiftBreak.break_end).is_(None))
        .order_by(col(ShiftBreak.created_at).desc())
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def start_break(
    session: AsyncSession,
    auth: AuthContext,
    payload: BreakPayload,
) -> BreakResponse:
    """Open a break on the caller's (or named) open shift."""
    shift = await resolve_open_shift(session, auth, payload.shift_id, payload.employee_id)
    if await _find_open_break(session, shift.id) is not None:
        raise ConflictError("Break already active")

    shift_break = ShiftBreak(shift_id=shift.id, break_start=max(clock.now_utc(), shift.check_in))
    session.add(shift_break)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Break already active") from None

    await session.commit()
    await session.refresh(shift_break)
    return build_break_response(shift_break)


async def end_break(
    session: AsyncSession,
    auth: AuthContext,
    payload: BreakPayload,
) -> BreakResponse:
    """Close the most recent open break on the caller's (or named) open shift."""
    shift = await resolve_open_shift(session, auth, payload.shift_id, payload.employee_id)
    shift_break = await _find_open_break(session, shift.id)
    if shift_break is None:
        raise ConflictError("No active break")

    shift_break.break_end = max(clock.now_utc(), shift_break.break_start)
    await session.flush()
    await session.commit()
    await session.refresh(shift_break)
    return build_break_response(shift_break)


async def add_manual_break(
    session: AsyncSession,
    auth: AuthContext,
    payload: ManualBreakPayload,
) -> BreakResponse:
    """Insert a closed break into a shift after the fact (admin/manager).

    The break must lie within the shift (or before now, for an open shift)
    and must not overlap another break. Open breaks block insertion.
    """
    auth.require_privileged()
    break_start = clock.to_instant(payload.break_start_at)
    break_end = clock.to_instant(payload.break_end_at)
    if break_end <= break_start:
        raise InvalidInputError("break_end_at must be after break_start_at")

    shift = await get_shift_or_404(session, payload.shift_id, for_update=True)
    if break_start < shift.check_in:
        raise InvalidInputError("Break cannot start before check-in")
    latest = shift.check_out or clock.now_utc()
    if break_end > latest:
        raise InvalidInputError("Break cannot end after the shift ends")

    existing = await get_breaks(session, shift.id, for_update=True)
    if any(b.break_end is None for b in existing):
        raise ConflictError("Active break exists, end it first")
    for other in existing:
        # Half-open intervals: touching breaks do not overlap.
        if break_start < other.break_end and break_end > other.break_start:  # type: ignore[operator]
            raise ConflictError("Break overlaps an existing break")

    shift_break = ShiftBreak(shift_id=shift.id, break_start=break_start, break_end=break_end)
    session.add(shift_break)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.BREAK,
        entity_id=shift_break.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(shift_break),
    )

    await session.commit()
    await session.refresh(shift_break)
    logger.info("Manual break %s added to shift %s", shift_break.id, shift.id)
    return build_break_response(shift_break)
