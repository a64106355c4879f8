"""Cron orchestrator.

One call is one tick: authenticate the trigger, walk a bounded batch of
users (or due reminder jobs), and fold every item into a stats bucket.
A failure on one item is counted and logged, never propagated to siblings.
Runs are stateless, so re-invoking a killed or duplicated run is safe.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime
from typing import Union

from config import settings
from app.services import call_jobs, call_reminders, dedup, dispatcher, eligibility
from app.types.notification_contract import CallJobRunStats, NotificationRunStats, ReminderRunStats
from app.utils.timezone import as_utc, local_clock, utc_now
import db

_LOGGER = logging.getLogger(__name__)

# cron job name -> notification type it sends
CRON_JOBS = {
    "morning": "morning_checkin",
    "evening": "evening_checkin_incomplete_tasks",
    "weekly": "weekly_reflection",
}
CALL_REMINDERS_JOB = "call-reminders"
CALL_JOBS_JOB = "call-jobs"

RunStats = Union[NotificationRunStats, ReminderRunStats, CallJobRunStats]

_SKIP_BUCKETS = {
    "wrong_time": "skipped_wrong_time",
    "weekend": "skipped_weekend",
    "no_subscription": "skipped_no_subscription",
    "not_onboarded": "skipped_no_subscription",  # same access gate
    "already_done": "skipped_already_done",
}


class CronAuthError(Exception):
    """Trigger presented a missing or wrong secret."""


class CronConfigError(RuntimeError):
    """CRON_SECRET is not configured; no run may proceed."""


def authenticate(authorization: str | None) -> None:
    secret = settings.CRON_SECRET
    if not secret:
        _LOGGER.error("[CRON] CRON_SECRET is not configured")
        raise CronConfigError("CRON_SECRET not configured")
    expected = f"Bearer {secret}".encode()
    if not authorization or not hmac.compare_digest(authorization.encode(), expected):
        raise CronAuthError("Unauthorized")


async def run_notification_tick(
    type: str,
    now: datetime | None = None,
    limit: int | None = None,
) -> NotificationRunStats:
    now = as_utc(now) if now else utc_now()
    tag = f"[CRON_{type.split('_')[0].upper()}]"
    stats = NotificationRunStats()

    users = await db.fetch_onboarded_users(limit or settings.USER_BATCH_SIZE)
    for user in users:
        stats.bump("processed")
        try:
            reason = await eligibility.evaluate(user, type, now)
            if reason is not None:
                stats.bump(_SKIP_BUCKETS[reason])
                continue

            if await dedup.already_satisfied(user.user_id, type, now, user.timezone):
                stats.bump("skipped_already_notified")
                continue

            notification_id = await dispatcher.dispatch(user.user_id, type, now=now, user=user)
            if notification_id:
                stats.bump("sent")
                _LOGGER.info(
                    "%s Sent notification to %s (%s)",
                    tag, user.user_id, local_clock(user.timezone, now).debug_string(),
                )
            else:
                stats.bump("skipped_already_notified")
        except Exception:  # noqa: BLE001
            _LOGGER.exception("%s Error processing user %s", tag, user.user_id)
            stats.bump("errors")

    _LOGGER.info("%s Completed: %s", tag, stats.as_response())
    return stats


async def run_once(
    job: str,
    authorization: str | None,
    now: datetime | None = None,
) -> RunStats:
    """Authenticate the trigger, then run one tick of ``job``."""
    authenticate(authorization)
    return await run_job(job, now)


async def run_job(job: str, now: datetime | None = None) -> RunStats:
    if job == CALL_REMINDERS_JOB:
        return await call_reminders.process_due_reminders(now)
    if job == CALL_JOBS_JOB:
        return await call_jobs.process_due_call_jobs(now)
    try:
        type = CRON_JOBS[job]
    except KeyError:
        raise ValueError(f"unknown cron job '{job}'") from None
    return await run_notification_tick(type, now)
