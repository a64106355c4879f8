"""Clock / timezone resolver.

Everything here is a pure function of (timezone string, UTC instant). A
missing or invalid timezone resolves against ``DEFAULT_TIMEZONE`` instead of
raising, so bad user data never breaks a scheduling run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import settings

_LOGGER = logging.getLogger(__name__)

UTC = timezone.utc

SATURDAY = 5
SUNDAY = 6


def as_utc(dt: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def resolve_zone(tz_name: str | None) -> ZoneInfo:
    if not tz_name:
        return ZoneInfo(settings.DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # OSError covers zone directories ("America") and over-long names
        _LOGGER.warning("[TIMEZONE] Invalid timezone %r, falling back to %s", tz_name, settings.DEFAULT_TIMEZONE)
        return ZoneInfo(settings.DEFAULT_TIMEZONE)


@dataclass(frozen=True)
class LocalClock:
    """A user's wall clock at one UTC instant."""

    zone: ZoneInfo
    local: datetime

    @property
    def hour(self) -> int:
        return self.local.hour

    @property
    def local_date(self) -> date:
        return self.local.date()

    @property
    def date_str(self) -> str:
        return self.local.date().isoformat()

    @property
    def weekday(self) -> int:
        """Monday == 0 ... Sunday == 6."""
        return self.local.weekday()

    @property
    def is_weekend(self) -> bool:
        return self.weekday in (SATURDAY, SUNDAY)

    @property
    def week_start(self) -> date:
        return self.local_date - timedelta(days=self.weekday)

    @property
    def week_id(self) -> str:
        """ISO date of this week's Monday in the user's timezone."""
        return self.week_start.isoformat()

    def _midnight_utc(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.zone).astimezone(UTC)

    def day_bounds(self) -> tuple[datetime, datetime]:
        """[local midnight, next local midnight) expressed in UTC."""
        return self._midnight_utc(self.local_date), self._midnight_utc(self.local_date + timedelta(days=1))

    def week_bounds(self) -> tuple[datetime, datetime]:
        """[local Monday 00:00, following Monday 00:00) expressed in UTC."""
        start = self.week_start
        return self._midnight_utc(start), self._midnight_utc(start + timedelta(days=7))

    def debug_string(self) -> str:
        return f"{self.local:%Y-%m-%d %H:%M} {self.local.tzname()}"


def local_clock(tz_name: str | None, now: datetime | None = None) -> LocalClock:
    zone = resolve_zone(tz_name)
    instant = as_utc(now) if now is not None else utc_now()
    return LocalClock(zone=zone, local=instant.astimezone(zone))


def format_call_time(dt: datetime, tz_name: str | None) -> str:
    """Render a call start like ``3:00 PM EST`` in the call's timezone."""
    local = as_utc(dt).astimezone(resolve_zone(tz_name))
    hour12 = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour12}:{local.minute:02d} {suffix} {local.tzname()}"


def format_call_date(dt: datetime, tz_name: str | None) -> str:
    """``Friday, October 16`` in the call's timezone."""
    local = as_utc(dt).astimezone(resolve_zone(tz_name))
    return f"{local:%A, %B} {local.day}"
