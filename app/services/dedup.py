"""At-most-once guard for recurring notifications.

The only thing preventing duplicate sends under retried or overlapping cron
runs. It is always answered from persisted notification records, never from
in-process state, and must be consulted before any write. Each write also
carries a unique per-period key, so two overlapping runs that both pass the
lookup still produce a single record.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from app.types.notification_contract import equivalence_class, is_weekly
from app.utils.timezone import as_utc, local_clock, utc_now
from db.models import Notification
import db

_LOGGER = logging.getLogger(__name__)


def period_window(type: str, tz_name: str | None, now: datetime) -> tuple[datetime, datetime]:
    """UTC [start, end) of the user's local day, or local Monday-based week for weekly types."""
    clock = local_clock(tz_name, now)
    return clock.week_bounds() if is_weekly(type) else clock.day_bounds()


def period_key(user_id: str, type: str, tz_name: str | None, now: datetime) -> str:
    """Unique per (user, equivalence class, local period); backs the guard at insert time."""
    clock = local_clock(tz_name, now)
    period = clock.week_id if is_weekly(type) else clock.date_str
    return f"{user_id}:{equivalence_class(type)[0]}:{period}"


async def find_existing(
    user_id: str, type: str, now: datetime | None = None, tz_name: str | None = None
) -> Optional[Notification]:
    now = as_utc(now) if now else utc_now()
    start, end = period_window(type, tz_name, now)
    records = await db.find_notifications(user_id, equivalence_class(type), start, end)
    if not records:
        return None
    if len(records) > 1:
        _LOGGER.warning(
            "[DEDUP] %d notifications in one period for user %s (%s); keeping the earliest %s",
            len(records), user_id, type, records[0].notification_id,
        )
    return records[0]


async def already_satisfied(
    user_id: str, type: str, now: datetime | None = None, tz_name: str | None = None
) -> bool:
    return await find_existing(user_id, type, now, tz_name) is not None
