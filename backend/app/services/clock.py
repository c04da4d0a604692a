"""Wall-clock access and server-local time interpretation.

Auto-generated timestamps are UTC instants. Operator-supplied timestamps
without an offset are read in the configured local zone (``LOCAL_TIMEZONE``).
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.config import get_settings


def now_utc() -> datetime:
    """Return the current instant in UTC."""
    return datetime.now(UTC)


def local_zone() -> ZoneInfo:
    """Return the server-local zone."""
    return ZoneInfo(get_settings().local_timezone)


def local_today() -> date:
    """Return today's calendar date in the server-local zone."""
    return now_utc().astimezone(local_zone()).date()


def to_instant(value: datetime) -> datetime:
    """Convert an operator-supplied timestamp to a UTC instant.

    Naive values are interpreted as server-local wall time.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=local_zone())
    return value.astimezone(UTC)


def local_day_bounds(instant: datetime) -> tuple[datetime, datetime]:
    """Return the UTC bounds [start, end) of the local calendar day containing ``instant``."""
    zone = local_zone()
    day = instant.astimezone(zone).date()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(UTC), end.astimezone(UTC)
