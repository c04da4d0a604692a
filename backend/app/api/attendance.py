# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import AuthDep, PrivilegedDep
from app.db import SessionDep
from app.schemas.attendance import (
    BreakPayload,
    BreakResponse,
    CheckInPayload,
    CheckOutPayload,
    DeleteShiftsResponse,
    ManualBreakPayload,
    ShiftListResponse,
    ShiftResponse,
)
from app.services import attendance as attendance_service
from app.services import breaks as break_service

attendance_router = APIRouter(prefix="/attendance", tags=["attendance"])


@attendance_router.get("", response_model=ShiftListResponse)
async def list_shifts(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
) -> ShiftListResponse:
    """List shifts with their breaks. Employees only see their own."""
    return await attendance_service.list_shifts(session, auth, employee_id)


@attendance_router.post("/checkin", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
async def check_in(
    session: SessionDep,
    auth: AuthDep,
    payload: CheckInPayload | None = None,
) -> ShiftResponse:
    """Open a shift."""
    return await attendance_service.check_in(session, auth, payload or CheckInPayload())


@attendance_router.post("/checkout", response_model=ShiftResponse)
async def check_out(
    session: SessionDep,
    auth: AuthDep,
    payload: CheckOutPayload | None = None,
) -> ShiftResponse:
    """Close the open shift."""
    return await attendance_service.check_out(session, auth, payload or CheckOutPayload())


@attendance_router.post("/breaks/start", response_model=BreakResponse, status_code=status.HTTP_201_CREATED)
async def start_break(
    session: SessionDep,
    auth: AuthDep,
    payload: BreakPayload | None = None,
) -> BreakResponse:
    """Start a break on the open shift."""
    return await break_service.start_break(session, auth, payload or BreakPayload())


@attendance_router.post("/breaks/end", response_model=BreakResponse)
async def end_break(
    session: SessionDep,
    auth: AuthDep,
    payload: BreakPayload | None = None,
) -> BreakResponse:
    """End the active break on the open shift."""
    return await break_service.end_break(session, auth, payload or BreakPayload())


@attendance_router.post("/breaks/manual", response_model=BreakResponse, status_code=status.HTTP_201_CREATED)
async def add_manual_break(
    payload: ManualBreakPayload,
    session: SessionDep,
    auth: PrivilegedDep,
) -> BreakResponse:
    """Insert a closed break into a shift (admin/manager)."""
    return await break_service.add_manual_break(session, auth, payload)


@attendance_router.delete("/employee/{employee_id}", response_model=DeleteShiftsResponse)
async def delete_employee_shifts(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: PrivilegedDep,
) -> DeleteShiftsResponse:
    """Delete every shift of an employee (admin/manager)."""
    return await attendance_service.delete_employee_shifts(session, auth, employee_id)


@attendance_router.delete("/{shift_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shift(
    shift_id: uuid.UUID,
    session: SessionDep,
    auth: PrivilegedDep,
) -> None:
    """Delete a shift and its breaks (admin/manager)."""
    await attendance_service.delete_shift(session, auth, shift_id)
