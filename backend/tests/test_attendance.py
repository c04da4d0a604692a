"""Tests for the shift lifecycle: check-in, check-out, listing, expiry and deletion."""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlmodel import col

from app.config import get_settings
from app.exceptions import ConflictError
from app.models.audit import AuditLog
from app.models.enums import AuditAction, Role
from app.schemas.attendance import CheckInPayload
from app.schemas.auth import AuthContext
from app.services import attendance as attendance_service

if TYPE_CHECKING:
    import pytest
    from conftest import FrozenClock
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

EMPLOYEE_ID = uuid.uuid4()
EMPLOYEE_USER_ID = uuid.uuid4()
OTHER_EMPLOYEE_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()

EMPLOYEE_HEADERS = {
    "X-User-Id": str(EMPLOYEE_USER_ID),
    "X-Role": "employee",
    "X-Employee-Id": str(EMPLOYEE_ID),
}
ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "admin"}
MANAGER_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "manager"}


def _at(hour: int, minute: int = 0, day: int = 4) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


def _ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _post(client: AsyncClient, path: str, headers: dict[str, str], **payload: Any) -> Any:
    return await client.post(f"/attendance{path}", json=payload, headers=headers)


async def _check_in(client: AsyncClient, headers: dict[str, str] = EMPLOYEE_HEADERS, **payload: Any) -> dict[str, Any]:
    response = await _post(client, "/checkin", headers, **payload)
    assert response.status_code == 201, response.text
    return response.json()


async def _check_out(client: AsyncClient, headers: dict[str, str] = EMPLOYEE_HEADERS, **payload: Any) -> dict[str, Any]:
    response = await _post(client, "/checkout", headers, **payload)
    assert response.status_code == 200, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------


async def test_check_in_opens_shift_now(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(async_client)
    assert shift["employee_id"] == str(EMPLOYEE_ID)
    assert _ts(shift["check_in"]) == _at(9)
    assert shift["check_out"] is None
    assert shift["breaks"] == []


async def test_employee_cannot_backdate_check_in(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(async_client, check_in_at="2024-03-04T07:00:00Z", employee_id=str(OTHER_EMPLOYEE_ID))
    assert _ts(shift["check_in"]) == _at(9)
    assert shift["employee_id"] == str(EMPLOYEE_ID)


async def test_check_in_with_open_shift_conflict(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    frozen_clock.advance(hours=1)
    response = await _post(async_client, "/checkin", ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"
    assert response.json()["detail"] == "Open shift exists"


async def test_employee_second_check_in_same_day_conflict(
    async_client: AsyncClient, frozen_clock: FrozenClock
) -> None:
    await _check_in(async_client)
    frozen_clock.set(_at(12))
    await _check_out(async_client)
    frozen_clock.set(_at(13))
    response = await _post(async_client, "/checkin", EMPLOYEE_HEADERS)
    assert response.status_code == 409
    assert response.json()["detail"] == "Already checked in today"


async def test_employee_may_check_in_next_day(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.set(_at(17))
    await _check_out(async_client)
    frozen_clock.set(_at(9, day=5))
    shift = await _check_in(async_client)
    assert _ts(shift["check_in"]) == _at(9, day=5)


async def test_admin_may_check_in_twice_same_day(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    frozen_clock.set(_at(12))
    await _check_out(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    frozen_clock.set(_at(13))
    shift = await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    assert _ts(shift["check_in"]) == _at(13)


async def test_admin_backdated_check_in(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(
        async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_in_at="2024-03-04T07:30:00Z"
    )
    assert _ts(shift["check_in"]) == _at(7, 30)


async def test_manager_backdated_check_in(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(
        async_client, MANAGER_HEADERS, employee_id=str(EMPLOYEE_ID), check_in_at="2024-03-04T08:00:00+00:00"
    )
    assert _ts(shift["check_in"]) == _at(8)


async def test_future_check_in_rejected(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    response = await _post(
        async_client, "/checkin", ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_in_at="2024-03-04T10:00:00Z"
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInput"


async def test_admin_check_in_requires_employee_id(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    response = await _post(async_client, "/checkin", ADMIN_HEADERS)
    assert response.status_code == 400
    assert response.json()["detail"] == "employee_id is required"


async def test_employee_without_linked_employee_forbidden(async_client: AsyncClient) -> None:
    headers = {"X-User-Id": str(uuid.uuid4()), "X-Role": "employee"}
    response = await _post(async_client, "/checkin", headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


async def test_missing_user_header_rejected(async_client: AsyncClient) -> None:
    response = await async_client.post("/attendance/checkin", json={})
    assert response.status_code == 422


async def test_naive_operator_time_is_local(
    async_client: AsyncClient, frozen_clock: FrozenClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(get_settings(), "local_timezone", "Europe/Berlin")
    shift = await _check_in(
        async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_in_at="2024-03-04T08:00:00"
    )
    # 08:00 in Berlin (UTC+1 in March before DST) is 07:00 UTC.
    assert _ts(shift["check_in"]) == _at(7)


async def test_clock_time_shorthand_means_today(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_in_at="08:15")
    assert _ts(shift["check_in"]) == _at(8, 15)


async def test_concurrent_check_ins_create_one_shift(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    employee_id = uuid.uuid4()
    auth = AuthContext(user_id=ADMIN_ID, role=Role.ADMIN)

    async def attempt() -> str:
        async with session_factory() as session:
            try:
                await attendance_service.check_in(session, auth, CheckInPayload(employee_id=employee_id))
            except ConflictError as exc:
                return exc.message
            return "ok"

    results = await asyncio.gather(attempt(), attempt())
    assert sorted(results) == ["Open shift exists", "ok"]

    async with session_factory() as session:
        listed = await attendance_service.list_shifts(session, auth, employee_id)
    assert listed.total == 1
    assert listed.items[0].check_out is None


# ---------------------------------------------------------------------------
# Check-out
# ---------------------------------------------------------------------------


async def test_full_day_with_one_break(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.set(_at(12))
    assert (await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)).status_code == 201
    frozen_clock.set(_at(12, 30))
    assert (await _post(async_client, "/breaks/end", EMPLOYEE_HEADERS)).status_code == 200
    frozen_clock.set(_at(17))
    shift = await _check_out(async_client)

    assert _ts(shift["check_in"]) == _at(9)
    assert _ts(shift["check_out"]) == _at(17)
    assert len(shift["breaks"]) == 1
    assert _ts(shift["breaks"][0]["break_start"]) == _at(12)
    assert _ts(shift["breaks"][0]["break_end"]) == _at(12, 30)

    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    assert listed["total"] == 1
    assert listed["items"][0]["id"] == shift["id"]


async def test_check_out_clamped_to_max_shift(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.advance(hours=20)
    shift = await _check_out(async_client)
    assert _ts(shift["check_out"]) == _at(23)


async def test_check_out_closes_open_break(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.set(_at(10))
    await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)
    frozen_clock.set(_at(11))
    shift = await _check_out(async_client)
    assert _ts(shift["breaks"][0]["break_end"]) == _at(11)


async def test_backdated_check_out_pulls_breaks_inside(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.set(_at(10))
    await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)
    frozen_clock.set(_at(11))
    await _post(async_client, "/breaks/end", EMPLOYEE_HEADERS)
    frozen_clock.set(_at(12))

    shift = await _check_out(
        async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_out_at="2024-03-04T10:30:00Z"
    )
    assert _ts(shift["check_out"]) == _at(10, 30)
    assert _ts(shift["breaks"][0]["break_start"]) == _at(10)
    assert _ts(shift["breaks"][0]["break_end"]) == _at(10, 30)


async def test_check_out_before_check_in_rejected(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    response = await _post(
        async_client, "/checkout", ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_out_at="2024-03-04T08:00:00Z"
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInput"


async def test_future_check_out_rejected(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    response = await _post(
        async_client, "/checkout", ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID), check_out_at="2024-03-04T18:00:00Z"
    )
    assert response.status_code == 400


async def test_check_out_without_open_shift(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    response = await _post(async_client, "/checkout", EMPLOYEE_HEADERS)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


async def test_check_out_closed_shift_by_id_conflict(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(async_client)
    frozen_clock.advance(hours=1)
    await _check_out(async_client)
    response = await _post(async_client, "/checkout", ADMIN_HEADERS, shift_id=shift["id"])
    assert response.status_code == 409
    assert response.json()["detail"] == "Shift already checked out"


async def test_check_out_unknown_shift_id(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    response = await _post(async_client, "/checkout", ADMIN_HEADERS, shift_id=str(uuid.uuid4()))
    assert response.status_code == 404


async def test_admin_check_out_requires_target(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    response = await _post(async_client, "/checkout", ADMIN_HEADERS)
    assert response.status_code == 400


async def test_employee_check_out_ignores_foreign_shift_id(
    async_client: AsyncClient, frozen_clock: FrozenClock
) -> None:
    other = await _check_in(async_client, ADMIN_HEADERS, employee_id=str(OTHER_EMPLOYEE_ID))
    response = await _post(async_client, "/checkout", EMPLOYEE_HEADERS, shift_id=other["id"])
    assert response.status_code == 404

    listed = (
        await async_client.get("/attendance", headers=ADMIN_HEADERS, params={"employee_id": str(OTHER_EMPLOYEE_ID)})
    ).json()
    assert listed["items"][0]["check_out"] is None


# ---------------------------------------------------------------------------
# Listing and expiry
# ---------------------------------------------------------------------------


async def test_employee_lists_only_own_shifts(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    await _check_in(async_client, ADMIN_HEADERS, employee_id=str(OTHER_EMPLOYEE_ID))

    listed = (
        await async_client.get("/attendance", headers=EMPLOYEE_HEADERS, params={"employee_id": str(OTHER_EMPLOYEE_ID)})
    ).json()
    assert listed["total"] == 1
    assert listed["items"][0]["employee_id"] == str(EMPLOYEE_ID)


async def test_list_newest_first(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    first = await _check_in(async_client)
    frozen_clock.set(_at(17))
    await _check_out(async_client)
    frozen_clock.set(_at(9, day=5))
    second = await _check_in(async_client)

    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    assert [s["id"] for s in listed["items"]] == [second["id"], first["id"]]


async def test_listing_auto_closes_expired_shift(
    async_client: AsyncClient, db_session: AsyncSession, frozen_clock: FrozenClock
) -> None:
    frozen_clock.set(_at(8))
    shift = await _check_in(async_client)
    frozen_clock.set(_at(10))
    await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)
    frozen_clock.set(_at(0, day=5))

    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    item = listed["items"][0]
    assert item["id"] == shift["id"]
    assert _ts(item["check_out"]) == _at(22)
    assert _ts(item["breaks"][0]["break_end"]) == _at(22)

    result = await db_session.execute(
        select(AuditLog).where(
            col(AuditLog.entity_id) == uuid.UUID(shift["id"]),
            col(AuditLog.action) == AuditAction.AUTO_CLOSE.value,
        )
    )
    entry = result.scalar_one()
    assert entry.actor_id is None


async def test_shift_within_limit_stays_open(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.advance(hours=14)
    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    assert listed["items"][0]["check_out"] is None


async def test_auto_close_pulls_late_break_into_shift(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    frozen_clock.set(_at(8))
    shift = await _check_in(async_client)
    frozen_clock.set(_at(23))
    started = await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)
    assert started.status_code == 201

    listed = (await async_client.get("/attendance", headers=ADMIN_HEADERS)).json()
    item = next(s for s in listed["items"] if s["id"] == shift["id"])
    assert _ts(item["check_out"]) == _at(22)
    assert _ts(item["breaks"][0]["break_start"]) == _at(22)
    assert _ts(item["breaks"][0]["break_end"]) == _at(22)


async def test_auto_close_clamps_break_ending_past_cap(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    frozen_clock.set(_at(8))
    shift = await _check_in(async_client)
    frozen_clock.set(_at(21, 30))
    await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)
    frozen_clock.set(_at(22, 30))
    await _post(async_client, "/breaks/end", EMPLOYEE_HEADERS)
    frozen_clock.set(_at(23))

    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    item = next(s for s in listed["items"] if s["id"] == shift["id"])
    assert _ts(item["check_out"]) == _at(22)
    for shift_break in item["breaks"]:
        assert _at(8) <= _ts(shift_break["break_start"]) <= _ts(shift_break["break_end"]) <= _at(22)
    assert _ts(item["breaks"][0]["break_start"]) == _at(21, 30)


async def test_check_in_closes_expired_shift_first(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    old = await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    frozen_clock.set(_at(0, 30, day=5))
    new = await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))

    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    by_id = {s["id"]: s for s in listed["items"]}
    assert _ts(by_id[old["id"]]["check_out"]) == _at(23)
    assert by_id[new["id"]]["check_out"] is None


async def test_check_in_fails_when_expired_shift_cannot_close(
    async_client: AsyncClient, frozen_clock: FrozenClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    await _check_in(async_client, ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    frozen_clock.set(_at(0, 30, day=5))

    async def _failing_close(*args: Any, **kwargs: Any) -> bool:
        raise OperationalError("UPDATE shift", {}, Exception("lock timeout"))

    monkeypatch.setattr(attendance_service, "close_if_expired", _failing_close)
    response = await _post(async_client, "/checkin", ADMIN_HEADERS, employee_id=str(EMPLOYEE_ID))
    assert response.status_code == 500
    assert response.json()["error"] == "Internal"


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


async def test_admin_deletes_shift_and_breaks(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(async_client)
    await _post(async_client, "/breaks/start", EMPLOYEE_HEADERS)

    response = await async_client.delete(f"/attendance/{shift['id']}", headers=ADMIN_HEADERS)
    assert response.status_code == 204

    listed = (await async_client.get("/attendance", headers=EMPLOYEE_HEADERS)).json()
    assert listed["total"] == 0


async def test_employee_cannot_delete_shift(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    shift = await _check_in(async_client)
    response = await async_client.delete(f"/attendance/{shift['id']}", headers=EMPLOYEE_HEADERS)
    assert response.status_code == 403


async def test_delete_unknown_shift(async_client: AsyncClient) -> None:
    response = await async_client.delete(f"/attendance/{uuid.uuid4()}", headers=ADMIN_HEADERS)
    assert response.status_code == 404


async def test_delete_all_employee_shifts(async_client: AsyncClient, frozen_clock: FrozenClock) -> None:
    await _check_in(async_client)
    frozen_clock.set(_at(17))
    await _check_out(async_client)
    frozen_clock.set(_at(9, day=5))
    await _check_in(async_client)
    await _check_in(async_client, ADMIN_HEADERS, employee_id=str(OTHER_EMPLOYEE_ID))

    response = await async_client.delete(f"/attendance/employee/{EMPLOYEE_ID}", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"deleted": 2}

    other = (
        await async_client.get("/attendance", headers=ADMIN_HEADERS, params={"employee_id": str(OTHER_EMPLOYEE_ID)})
    ).json()
    assert other["total"] == 1
