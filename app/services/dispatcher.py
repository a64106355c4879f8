"""Notification dispatcher.

Creates one notification record per (user, equivalence class, period) and
fans it out over SMS. Returns the new notification id, or ``None`` when the
dedup guard reports the period as already satisfied or the user does not
exist; a skip is not an error.

External delivery is at-least-once: a failed SMS is logged and never rolls
back the record.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from config import settings
from app.services import dedup
from app.types.notification_contract import NotificationPayload
from app.utils import sms as sms_util
from app.utils.timezone import as_utc, utc_now
from db.models import User
import db

_LOGGER = logging.getLogger(__name__)

DEFAULT_PAYLOADS = {
    "morning_checkin": NotificationPayload(
        title="Your morning check-in is ready",
        body="Start your day strong by checking in and setting today's focus.",
        action_route="/checkin/morning/start",
    ),
    "evening_checkin_incomplete_tasks": NotificationPayload(
        title="Close your day with a quick check-in",
        body="Not every day is perfect, and that's okay. Take a moment to reflect and close your day.",
        action_route="/checkin/evening/start",
    ),
    "evening_checkin_tasks_completed": NotificationPayload(
        title="Nice work! You completed today's focus",
        body="You've finished your daily actions. Complete your evening check-in to close the day.",
        action_route="/checkin/evening/start",
    ),
    "weekly_reflection": NotificationPayload(
        title="Reflect on your week",
        body="Take a few minutes to reflect on your progress and plan for next week.",
        action_route="/checkin/weekly/checkin",
    ),
}

AFTER_FRIDAY_WEEKLY_PAYLOAD = NotificationPayload(
    title="Great work this week",
    body="You've closed out your week. Complete your weekly reflection to capture your wins and lessons.",
    action_route="/checkin/weekly/checkin",
)


def _sms_text(payload: NotificationPayload) -> str:
    text = f"{payload.title}\n{payload.body}"
    if payload.action_route:
        text += f"\n{settings.APP_BASE_URL}{payload.action_route}"
    return text


def _fan_out(user: User, type: str, payload: NotificationPayload) -> None:
    if not user.phone_number:
        return
    try:
        sms_util.send_sms(user.phone_number, _sms_text(payload))
    except Exception:  # noqa: BLE001
        _LOGGER.exception("[NOTIFY_USER] SMS fan-out failed for user %s (%s)", user.user_id, type)


async def notify_user(
    user: User,
    type: str,
    payload: NotificationPayload,
    now: datetime | None = None,
    dedup_key: str | None = None,
) -> Optional[str]:
    """Write the record, then fan it out.

    Without a ``dedup_key`` nothing stops a second record; call notifications
    rely on their job's ``executed`` flag instead.
    """
    nid = await db.insert_notification(
        user.user_id,
        type,
        payload.title,
        payload.body,
        action_route=payload.action_route,
        created_at=as_utc(now) if now else utc_now(),
        dedup_key=dedup_key,
    )
    if nid is None:
        _LOGGER.info("[NOTIFY_USER] %s for user %s lost the insert race", type, user.user_id)
        return None
    _fan_out(user, type, payload)
    return nid


async def dispatch(
    user_id: str,
    type: str,
    payload: Optional[NotificationPayload] = None,
    now: datetime | None = None,
    user: Optional[User] = None,
) -> Optional[str]:
    now = as_utc(now) if now else utc_now()
    if user is None:
        user = await db.get_user(user_id)
    if user is None:
        _LOGGER.warning("[NOTIFY_USER] Unknown user %s, %s not created", user_id, type)
        return None

    # re-check right before the write; the caller's pre-check may be stale
    if await dedup.already_satisfied(user_id, type, now, user.timezone):
        _LOGGER.info("[NOTIFY_USER] %s already satisfied for user %s this period", type, user_id)
        return None

    return await notify_user(
        user,
        type,
        payload or DEFAULT_PAYLOADS[type],
        now=now,
        dedup_key=dedup.period_key(user_id, type, user.timezone, now),
    )


# ---------------------------------------------------------------------------
# Trigger helpers
# ---------------------------------------------------------------------------

async def send_morning_checkin_notification(user_id: str, now: datetime | None = None) -> Optional[str]:
    return await dispatch(user_id, "morning_checkin", now=now)


async def send_evening_reminder_notification(user_id: str, now: datetime | None = None) -> Optional[str]:
    return await dispatch(user_id, "evening_checkin_incomplete_tasks", now=now)


async def send_tasks_completed_notification(user_id: str, now: datetime | None = None) -> Optional[str]:
    """Sent when the user finishes today's focus tasks; shares the evening slot."""
    return await dispatch(user_id, "evening_checkin_tasks_completed", now=now)


async def send_weekly_reflection_notification(
    user_id: str, after_friday_evening: bool = False, now: datetime | None = None
) -> Optional[str]:
    payload = AFTER_FRIDAY_WEEKLY_PAYLOAD if after_friday_evening else None
    return await dispatch(user_id, "weekly_reflection", payload=payload, now=now)
