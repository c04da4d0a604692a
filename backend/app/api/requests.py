# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import AuthDep, PrivilegedDep
from app.db import SessionDep
from app.models.enums import RequestStatus
from app.schemas.request import (
    CreateLeaveRequestPayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    UpdateLeaveRequestPayload,
)
from app.services import request as request_service

requests_router = APIRouter(prefix="/leave/requests", tags=["leave requests"])


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateLeaveRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """File a leave request."""
    return await request_service.create_request(session, auth, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    year: int | None = Query(default=None, ge=1970, le=9999),
) -> LeaveRequestListResponse:
    """List leave requests with optional filters."""
    return await request_service.list_requests(session, auth, employee_id, status_filter, year)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.patch("/{request_id}", response_model=LeaveRequestResponse)
async def update_request(
    request_id: uuid.UUID,
    payload: UpdateLeaveRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Edit a pending leave request."""
    return await request_service.update_request(session, auth, request_id, payload)


@requests_router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> None:
    """Delete a leave request that has not been approved."""
    await request_service.delete_request(session, auth, request_id)


@requests_router.patch("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: PrivilegedDep,
) -> LeaveRequestResponse:
    """Approve a leave request (admin/manager)."""
    return await request_service.approve_request(session, auth, request_id)


@requests_router.patch("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: PrivilegedDep,
) -> LeaveRequestResponse:
    """Reject a leave request (admin/manager)."""
    return await request_service.reject_request(session, auth, request_id)


@requests_router.patch("/{request_id}/pending", response_model=LeaveRequestResponse)
async def mark_pending(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: PrivilegedDep,
) -> LeaveRequestResponse:
    """Return a leave request to pending (admin/manager)."""
    return await request_service.mark_pending(session, auth, request_id)
