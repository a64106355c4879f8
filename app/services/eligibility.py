"""Decides whether a recurring notification type is due for one user at one tick.

Due means an exact local-hour match. The scheduler ticks hourly, so a tick
missed through downtime drops that period's notification; nothing is
back-filled.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from config import settings
from app.types.notification_contract import BillingSnapshot, SkipReason, is_weekly
from app.utils.timezone import LocalClock, as_utc, local_clock, utc_now
from db.models import User
import db

# completion kind checked before each daily type
_DAILY_COMPLETION_KIND = {
    "morning_checkin": "morning_checkin",
    "evening_checkin_incomplete_tasks": "evening_checkin",
    "evening_checkin_tasks_completed": "evening_checkin",
}


def target_hour(type: str) -> int:
    if type == "morning_checkin":
        return settings.MORNING_NOTIFICATION_HOUR
    if type in ("evening_checkin_incomplete_tasks", "evening_checkin_tasks_completed"):
        return settings.EVENING_NOTIFICATION_HOUR
    if type == "weekly_reflection":
        return settings.WEEKEND_NOTIFICATION_HOUR
    raise ValueError(f"unknown notification type '{type}'")


def billing_snapshot(user: User) -> Optional[BillingSnapshot]:
    if not user.billing_status:
        return None
    return BillingSnapshot(status=user.billing_status, current_period_end=user.billing_current_period_end)


def has_active_access(billing: Optional[BillingSnapshot], now: datetime | None = None) -> bool:
    """Billing gate.

    * no snapshot at all        -> allowed (legacy / not yet synced users)
    * active, trialing          -> allowed
    * canceled, period not over -> allowed (grace period)
    * anything else             -> blocked
    """
    if billing is None or billing.status is None:
        return True
    if billing.status in ("active", "trialing"):
        return True
    if billing.status == "canceled" and billing.current_period_end is not None:
        return as_utc(billing.current_period_end) > (as_utc(now) if now else utc_now())
    return False


def check_schedule(user: User, type: str, clock: LocalClock, now: datetime) -> Optional[SkipReason]:
    """Everything except the completion lookup; pure."""
    if clock.hour != target_hour(type):
        return "wrong_time"
    if is_weekly(type):
        if not clock.is_weekend:
            return "wrong_time"
    if not user.has_completed_onboarding:
        return "not_onboarded"
    if not has_active_access(billing_snapshot(user), now):
        return "no_subscription"
    if not is_weekly(type) and clock.is_weekend:
        return "weekend"
    return None


async def already_completed(user_id: str, type: str, clock: LocalClock) -> bool:
    if is_weekly(type):
        record = await db.get_weekly_completion(user_id, clock.week_id)
    else:
        record = await db.get_daily_completion(user_id, clock.date_str, _DAILY_COMPLETION_KIND[type])
    return record is not None and record.completed_at is not None


async def evaluate(user: User, type: str, now: datetime | None = None) -> Optional[SkipReason]:
    """Return ``None`` when ``type`` is due for ``user`` now, else the reason it is not."""
    now = as_utc(now) if now else utc_now()
    clock = local_clock(user.timezone, now)
    reason = check_schedule(user, type, clock, now)
    if reason is not None:
        return reason
    if await already_completed(user.user_id, type, clock):
        return "already_done"
    return None


async def is_due(user: User, type: str, now: datetime | None = None) -> bool:
    return await evaluate(user, type, now) is None
