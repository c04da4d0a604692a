"""Auto-close shifts left open past the maximum shift length.

An expired shift is closed at ``check_in + MAX_SHIFT_HOURS``; any open break
on it is closed at the same instant and later breaks are pulled back to it.
The correction is recorded in the audit log with no actor.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from app.config import get_settings
from app.models.enums import AuditAction, AuditEntityType
from app.models.shift import Shift, ShiftBreak
from app.services import clock
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def max_shift_duration() -> timedelta:
    return timedelta(hours=get_settings().max_shift_hours)


def shift_cap(shift: Shift) -> datetime:
    """Latest instant a shift may end at."""
    return shift.check_in + max_shift_duration()


def is_expired(shift: Shift, now: datetime) -> bool:
    return shift.check_out is None and shift_cap(shift) < now


async def _close_at_cap(session: AsyncSession, shift: Shift) -> bool:
    """Close ``shift`` and its breaks at the cap.

    The shift is only closed while still open, so a checkout committed since
    it was read wins. Returns False in that case.
    """
    cap = shift_cap(shift)
    before_dict = model_to_audit_dict(shift)

    result = await session.execute(
        update(Shift)
        .where(col(Shift.id) == shift.id, col(Shift.check_out).is_(None))
        .values(check_out=cap)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        await session.refresh(shift)
        return False

    # Open breaks end at the cap; breaks started or ended past it are pulled back.
    await session.execute(
        update(ShiftBreak)
        .where(col(ShiftBreak.shift_id) == shift.id, col(ShiftBreak.break_start) > cap)
        .values(break_start=cap)
    )
    await session.execute(
        update(ShiftBreak)
        .where(
            col(ShiftBreak.shift_id) == shift.id,
            or_(col(ShiftBreak.break_end).is_(None), col(ShiftBreak.break_end) > cap),
        )
        .values(break_end=cap)
    )
    shift.check_out = cap
    await session.flush()

    await write_audit_log(
        session,
        actor_id=None,
        entity_type=AuditEntityType.SHIFT,
        entity_id=shift.id,
        action=AuditAction.AUTO_CLOSE,
        before_json=before_dict,
        after_json=model_to_audit_dict(shift),
    )
    await session.flush()
    return True


async def close_if_expired(session: AsyncSession, shift: Shift, now: datetime | None = None) -> bool:
    """Close ``shift`` at its cap when it has run too long.

    Returns True when the shift is closed afterwards. Errors propagate.
    """
    if shift.check_out is not None:
        return True
    now = now or clock.now_utc()
    if not is_expired(shift, now):
        return False
    if await _close_at_cap(session, shift):
        logger.info("Auto-closed shift %s for employee %s at %s", shift.id, shift.employee_id, shift.check_out)
    return True


async def close_expired_shifts(
    session: AsyncSession,
    employee_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> int:
    """Close every expired open shift, optionally for one employee.

    Each shift is corrected in its own savepoint. A shift that fails to close
    is logged and left for the next sweep. Returns the number closed.
    """
    now = now or clock.now_utc()
    query = select(Shift).where(
        col(Shift.check_out).is_(None),
        col(Shift.check_in) < now - max_shift_duration(),
    )
    if employee_id is not None:
        query = query.where(col(Shift.employee_id) == employee_id)
    # Shifts locked by a concurrent checkout are left to it.
    query = query.with_for_update(skip_locked=True).execution_options(populate_existing=True)
    result = await session.execute(query.order_by(col(Shift.check_in)))
    shifts = list(result.scalars().all())

    closed = 0
    for shift in shifts:
        shift_id = shift.id
        try:
            async with session.begin_nested():
                if await _close_at_cap(session, shift):
                    closed += 1
        except SQLAlchemyError:
            logger.exception("Failed to auto-close shift %s", shift_id)

    if closed:
        logger.info("Auto-closed %d expired shifts", closed)
    return closed
