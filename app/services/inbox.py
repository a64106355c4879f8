"""Read side of the in-app notification panel."""

from __future__ import annotations

import logging

from app.types.notification_contract import NotificationView
import db

_LOGGER = logging.getLogger(__name__)


async def list_notifications(user_id: str, limit: int = 20) -> list[NotificationView]:
    """Most recent first."""
    records = await db.fetch_recent_notifications(user_id, limit)
    return [NotificationView.model_validate(r) for r in records]


async def unread_count(user_id: str) -> int:
    return await db.count_unread_notifications(user_id)


async def mark_read(notification_id: str) -> bool:
    found = await db.mark_notification_read(notification_id)
    if not found:
        _LOGGER.warning("[INBOX] Notification %s not found", notification_id)
    return found


async def mark_all_read(user_id: str) -> int:
    """Called when the user opens the panel; returns how many were unread."""
    return await db.mark_all_notifications_read(user_id)
