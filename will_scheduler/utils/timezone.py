"""
Time & timezone helpers.

Everything here is pure: instants go in as aware UTC datetimes, wall-clock
values come out for a named IANA timezone. Unknown timezone names fall back
to UTC instead of raising, so one bad user row never breaks a tick.
"""

import logging
from datetime import date, datetime, time, timezone
from functools import lru_cache
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


class LocalTime(NamedTuple):
    """Wall-clock time of day."""

    hours: int
    minutes: int

    @property
    def total_minutes(self) -> int:
        return self.hours * 60 + self.minutes

    def __str__(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}"


@lru_cache(maxsize=256)
def resolve_timezone(tz_name: Optional[str]) -> ZoneInfo:
    """Return the ZoneInfo for *tz_name*, or UTC if it is empty or unknown."""
    if not tz_name:
        return UTC
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Invalid timezone '{tz_name}': {e}. Falling back to UTC.")
        return UTC


def is_valid_timezone(tz_name: str) -> bool:
    try:
        ZoneInfo(tz_name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def to_local(instant: datetime, tz_name: Optional[str]) -> datetime:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(resolve_timezone(tz_name))


def local_time(instant: datetime, tz_name: Optional[str]) -> LocalTime:
    """Hour and minute of *instant* as seen on a wall clock in *tz_name*."""
    local = to_local(instant, tz_name)
    return LocalTime(local.hour, local.minute)


def local_date(instant: datetime, tz_name: Optional[str]) -> date:
    """Calendar date of *instant* in *tz_name*."""
    return to_local(instant, tz_name).date()


def local_day_start_utc(instant: datetime, tz_name: Optional[str]) -> datetime:
    """Start of the local calendar day containing *instant*, expressed in UTC.

    Uses the zone's own midnight, so DST days of 23 or 25 hours are handled.
    """
    tz = resolve_timezone(tz_name)
    day = to_local(instant, tz_name).date()
    midnight = datetime.combine(day, time(0, 0), tzinfo=tz)
    return midnight.astimezone(timezone.utc)
