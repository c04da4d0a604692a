# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.models.enums import AuditAction, AuditEntityType, LeaveType, RequestStatus
from app.models.request import LeaveRequest
from app.schemas.request import LeaveRequestListResponse, LeaveRequestResponse
from app.services import clock
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.balance import consume, ensure_balance, release

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.request import CreateLeaveRequestPayload, LeaveRequestFields, UpdateLeaveRequestPayload

logger = logging.getLogger(__name__)

_DECISION_ACTIONS = {
    RequestStatus.APPROVED: AuditAction.APPROVE,
    RequestStatus.REJECTED: AuditAction.REJECT,
    RequestStatus.PENDING: AuditAction.MARK_PENDING,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        leave_type=LeaveType(request.leave_type),
        start_date=request.start_date,
        end_date=request.end_date,
        days=request.days,
        reason=request.reason,
        status=RequestStatus(request.status),
        approver_id=request.approver_id,
        decided_at=request.decided_at,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def inclusive_days(start_date: date, end_date: date) -> int:
    """Number of calendar days in [start_date, end_date]."""
    return (end_date - start_date).days + 1


async def _get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID. Raises 404 if not found."""
    query = select(LeaveRequest).where(col(LeaveRequest.id) == request_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Leave request not found")
    return request


def _check_owner(auth: AuthContext, request: LeaveRequest) -> None:
    if not auth.is_privileged and request.employee_id != auth.employee_id:
        raise ForbiddenError("Not authorized to access this leave request")


async def _check_request_overlap(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> None:
    """Raise 409 if a non-rejected request shares any day with [start_date, end_date]."""
    query = select(LeaveRequest.id).where(
        col(LeaveRequest.employee_id) == employee_id,
        col(LeaveRequest.status) != RequestStatus.REJECTED.value,
        col(LeaveRequest.start_date) <= end_date,
        col(LeaveRequest.end_date) >= start_date,
    )
    if exclude_request_id is not None:
        query = query.where(col(LeaveRequest.id) != exclude_request_id)

    result = await session.execute(query.limit(1))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Leave request overlaps an existing request")


async def _validate_request(
    session: AsyncSession,
    employee_id: uuid.UUID,
    fields: LeaveRequestFields,
    exclude_request_id: uuid.UUID | None = None,
) -> int:
    """Check overlap and available balance. Returns the inclusive day count."""
    days = inclusive_days(fields.start_date, fields.end_date)
    await _check_request_overlap(session, employee_id, fields.start_date, fields.end_date, exclude_request_id)

    balance = await ensure_balance(session, employee_id, fields.start_date.year, fields.leave_type)
    if balance.total - balance.used < days:
        raise ConflictError("Insufficient balance")
    return days


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """File a pending leave request.

    Flow:
    1. Resolve the target employee (self for employees).
    2. Reject overlaps with non-rejected requests.
    3. Read-repair the balance and check it covers the span.
    4. Insert the request (pending), audit, commit.
    """
    employee_id = auth.target_employee_id(payload.employee_id)
    days = await _validate_request(session, employee_id, payload)

    leave_request = LeaveRequest(
        employee_id=employee_id,
        leave_type=payload.leave_type.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days=days,
        reason=payload.reason,
        status=RequestStatus.PENDING.value,
    )
    session.add(leave_request)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    return _build_request_response(leave_request)


async def update_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: UpdateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """Edit a pending request, re-validating it like a new one."""
    leave_request = await _get_request_or_404(session, request_id, for_update=True)
    _check_owner(auth, leave_request)
    if leave_request.status != RequestStatus.PENDING.value:
        raise ConflictError("Only pending leave requests can be edited")

    days = await _validate_request(session, leave_request.employee_id, payload, exclude_request_id=leave_request.id)

    before_dict = model_to_audit_dict(leave_request)
    leave_request.leave_type = payload.leave_type.value
    leave_request.start_date = payload.start_date
    leave_request.end_date = payload.end_date
    leave_request.days = days
    leave_request.reason = payload.reason
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    return _build_request_response(leave_request)


async def _decide(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    target: RequestStatus,
) -> LeaveRequestResponse:
    """Move a request to ``target`` and keep its balance consistent.

    1. Lock the request, then its balance row. Reinstating a rejected
       request re-checks overlap.
    2. Consume days when entering approved; release them when leaving it.
    3. Stamp or clear the decision fields.
    4. Audit, commit.
    Repeating a transition is a no-op for the balance.
    """
    auth.require_privileged()

    # 1. Lock.
    leave_request = await _get_request_or_404(session, request_id, for_update=True)
    previous = RequestStatus(leave_request.status)
    balance = await ensure_balance(
        session,
        leave_request.employee_id,
        leave_request.start_date.year,
        leave_request.leave_type,
        for_update=True,
    )
    before_dict = model_to_audit_dict(leave_request)

    # A rejected request becomes active again only if its dates are still free.
    if previous == RequestStatus.REJECTED and target != RequestStatus.REJECTED:
        await _check_request_overlap(
            session,
            leave_request.employee_id,
            leave_request.start_date,
            leave_request.end_date,
            exclude_request_id=leave_request.id,
        )

    # 2. Balance.
    if target == RequestStatus.APPROVED and previous != RequestStatus.APPROVED:
        consume(balance, leave_request.days)
    elif target != RequestStatus.APPROVED and previous == RequestStatus.APPROVED:
        release(balance, leave_request.days)

    # 3. Decision fields.
    if target == RequestStatus.APPROVED:
        leave_request.approver_id = auth.user_id
        leave_request.decided_at = clock.now_utc()
    elif target == RequestStatus.REJECTED:
        leave_request.approver_id = None
        leave_request.decided_at = clock.now_utc()
    else:
        leave_request.approver_id = None
        leave_request.decided_at = None
    leave_request.status = target.value
    await session.flush()

    # 4. Audit.
    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        action=_DECISION_ACTIONS[target],
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    logger.info("Leave request %s moved %s -> %s by %s", leave_request.id, previous, target, auth.user_id)
    return _build_request_response(leave_request)


async def approve_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> LeaveRequestResponse:
    """Approve a request, charging its days against the balance."""
    return await _decide(session, auth, request_id, RequestStatus.APPROVED)


async def reject_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> LeaveRequestResponse:
    """Reject a request, refunding its days if it was approved."""
    return await _decide(session, auth, request_id, RequestStatus.REJECTED)


async def mark_pending(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> LeaveRequestResponse:
    """Reopen a request, refunding its days if it was approved."""
    return await _decide(session, auth, request_id, RequestStatus.PENDING)


async def delete_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> None:
    """Delete a request that has not consumed balance.

    Owners may delete only pending requests; admins and managers may also
    delete rejected ones.
    """
    leave_request = await _get_request_or_404(session, request_id, for_update=True)
    _check_owner(auth, leave_request)
    if auth.is_privileged:
        if leave_request.status == RequestStatus.APPROVED.value:
            raise ConflictError("Approved leave requests cannot be deleted")
    elif leave_request.status != RequestStatus.PENDING.value:
        raise ConflictError("Only pending leave requests can be deleted")

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(leave_request),
    )
    await session.delete(leave_request)
    await session.commit()


async def get_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> LeaveRequestResponse:
    """Get a single request; employees may only read their own."""
    leave_request = await _get_request_or_404(session, request_id)
    _check_owner(auth, leave_request)
    return _build_request_response(leave_request)


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID | None = None,
    status_filter: RequestStatus | None = None,
    year: int | None = None,
) -> LeaveRequestListResponse:
    """List requests, newest first. Employees only see their own."""
    if not auth.is_privileged:
        employee_id = auth.own_employee_id()

    filters = []
    if employee_id is not None:
        filters.append(col(LeaveRequest.employee_id) == employee_id)
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if year is not None:
        filters.append(col(LeaveRequest.start_date) >= date(year, 1, 1))
        filters.append(col(LeaveRequest.start_date) <= date(year, 12, 31))

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.created_at).desc(), col(LeaveRequest.start_date).desc())
    )
    requests = list(result.scalars().all())
    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in requests],
        total=len(requests),
    )
