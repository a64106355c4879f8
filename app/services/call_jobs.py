"""Scheduled call notifications and emails.

A confirmed call gets up to five jobs: a notification and an email 24 hours
before the call, the same pair one hour before, and a notification when the
call goes live. At fire time each job runs through the same staleness check
as the chat reminder, then fans out to every squad member (or to the
coaching client). One recipient failing never stops the others.

Job ids are deterministic, so rescheduling a call overwrites its jobs:

* premium squad   ``{squad_id}_premium_{job_type}``
* standard squad  ``{squad_id}_{call_id}_{job_type}``
* coaching client ``coaching_{user_id}_{job_type}``
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from config import settings
from app.services import dispatcher
from app.services.call_reminders import is_stale, resolve_authoritative_call, source_of
from app.types.notification_contract import (
    CALL_JOB_OFFSETS,
    CallJobRunStats,
    CallRecord,
    CallSource,
    NotificationPayload,
    ReferencedCallSource,
)
from app.utils import mailer
from app.utils.timezone import as_utc, format_call_date, format_call_time, utc_now
from db.models import CallScheduledJob, User
import db

_LOGGER = logging.getLogger(__name__)


def job_id_for(source: CallSource, job_type: str) -> str:
    if isinstance(source, ReferencedCallSource):
        return f"{source.squad_id}_{source.call_id}_{job_type}"
    if source.owner_type == "squad":
        return f"{source.owner_id}_premium_{job_type}"
    return f"coaching_{source.owner_id}_{job_type}"


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

async def schedule_call_jobs(
    source: CallSource,
    call: CallRecord,
    owner_name: str | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Create (or overwrite) every stage whose fire time is still ahead; returns their ids."""
    now = as_utc(now) if now else utc_now()
    start = as_utc(call.start_datetime_utc)

    if isinstance(source, ReferencedCallSource):
        owner_type, owner_id, call_id = "squad", source.squad_id, source.call_id
    else:
        owner_type, owner_id, call_id = source.owner_type, source.owner_id, None

    scheduled = []
    for job_type, lead in CALL_JOB_OFFSETS:
        fire_at = start - lead
        if fire_at <= now:
            continue
        job = CallScheduledJob(
            job_id=job_id_for(source, job_type),
            owner_type=owner_type,
            owner_id=owner_id,
            owner_name=owner_name,
            source=source.type,
            call_id=call_id,
            job_type=job_type,
            scheduled_time=fire_at,
            call_datetime=start,
            call_timezone=call.timezone,
            call_location=call.location,
            call_title=call.title,
            executed=False,
            executed_at=None,
            attempts=0,
            failed=False,
            failed_at=None,
            error=None,
            last_error_at=None,
            created_at=now,
            updated_at=now,
        )
        await db.upsert_call_job(job)
        scheduled.append(job.job_id)

    _LOGGER.info("[CALL_JOBS] Scheduled %d job(s) for %s %s", len(scheduled), owner_type, owner_id)
    return scheduled


async def cancel_call_jobs(source: CallSource) -> int:
    return await db.delete_call_jobs(job_id_for(source, job_type) for job_type, _ in CALL_JOB_OFFSETS)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def _stage(job: CallScheduledJob) -> str:
    # notification_24h -> 24h
    return job.job_type.split("_", 1)[1]


def _is_coaching(job: CallScheduledJob) -> bool:
    return job.owner_type == "coaching_client"


def notification_type_for(job: CallScheduledJob) -> str:
    prefix = "coaching_call" if _is_coaching(job) else "squad_call"
    return f"{prefix}_{_stage(job)}"


def notification_payload(job: CallScheduledJob, user: User) -> NotificationPayload:
    call_time = format_call_time(job.call_datetime, job.call_timezone)
    user_time = format_call_time(job.call_datetime, user.timezone)
    stage = _stage(job)

    if _is_coaching(job):
        coach = job.owner_name or "your coach"
        if stage == "24h":
            title = "Coaching call tomorrow"
            body = f"Your 1:1 coaching call with {coach} is tomorrow at {call_time} ({user_time} your time)."
        elif stage == "1h":
            title = "Coaching call in 1 hour"
            body = f"Your 1:1 coaching call with {coach} starts in 1 hour."
        else:
            title = "Your coaching call is starting"
            body = f"Your 1:1 coaching call with {coach} is happening now. Join via My Coach."
        return NotificationPayload(title=title, body=body, action_route="/my-coach")

    prefix = "Your premium squad call" if job.source == "inline" else "Your squad call"
    if stage == "24h":
        title = "Upcoming squad call tomorrow"
        body = f"{prefix} is tomorrow at {call_time} ({user_time} your time)."
    elif stage == "1h":
        title = "Squad call in 1 hour"
        body = f"{prefix} starts in 1 hour at {call_time} ({user_time} your time)."
    else:
        title = "Your squad call is live"
        body = f"{prefix} is happening now. Join the squad chat to participate."
    return NotificationPayload(title=title, body=body, action_route="/squad")


def email_message(job: CallScheduledJob, user: User) -> tuple[str, str]:
    """Subject and plain-text body for an ``email_*`` job."""
    first_name = user.first_name or "there"
    day = format_call_date(job.call_datetime, job.call_timezone)
    call_time = format_call_time(job.call_datetime, job.call_timezone)
    user_time = format_call_time(job.call_datetime, user.timezone)
    when = f"{day} at {call_time} ({user_time} your time)"

    if _is_coaching(job):
        what = f"1:1 coaching call with {job.owner_name or 'your coach'}"
        url = f"{settings.APP_BASE_URL}/my-coach"
    else:
        what = "premium squad call" if job.source == "inline" else "squad call"
        url = f"{settings.APP_BASE_URL}/squad"

    if _stage(job) == "24h":
        subject = f"Your {what} is tomorrow"
        lead = f"This is a reminder that your {what} is scheduled for {when}."
    else:
        subject = f"Your {what} starts in 1 hour"
        lead = f"Your {what} starts in 1 hour: {when}."

    return subject, f"Hi {first_name},\n\n{lead}\n\n{url}"


def email_opted_out(job: CallScheduledJob, user: User) -> bool:
    prefs = user.email_preferences or {}
    key = f"{'coaching' if _is_coaching(job) else 'squad'}_call_{_stage(job)}"
    return prefs.get(key) is False


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

async def recipients_of(job: CallScheduledJob) -> list[str]:
    if _is_coaching(job):
        return [job.owner_id]
    return await db.fetch_squad_member_ids(job.owner_id)


async def _deliver_to(job: CallScheduledJob, user_id: str, now: datetime) -> bool:
    """Deliver one stage to one recipient. Returns False when there was nothing to send."""
    user = await db.get_user(user_id)
    if user is None:
        return False

    if job.job_type.startswith("notification_"):
        nid = await dispatcher.notify_user(user, notification_type_for(job), notification_payload(job, user), now=now)
        return nid is not None

    if not user.email:
        return False
    if email_opted_out(job, user):
        _LOGGER.info("[CALL_JOBS] %s skipped, user %s opted out", job.job_type, user_id)
        return False
    subject, text = email_message(job, user)
    mailer.send_email(user.email, subject, text, ref_id=f"{job.job_id}-{user_id}")
    return True


async def execute_call_job(job: CallScheduledJob, now: datetime | None = None) -> tuple[int, int]:
    """Fan one job out. Returns (recipients notified, recipient errors)."""
    now = as_utc(now) if now else utc_now()
    notified = errors = 0
    for user_id in await recipients_of(job):
        try:
            if await _deliver_to(job, user_id, now):
                notified += 1
        except Exception:  # noqa: BLE001
            _LOGGER.exception("[CALL_JOBS] Error delivering %s to %s", job.job_id, user_id)
            errors += 1
    return notified, errors


async def process_due_call_jobs(
    now: datetime | None = None,
    limit: int | None = None,
) -> CallJobRunStats:
    now = as_utc(now) if now else utc_now()
    stats = CallJobRunStats()

    cutoff = now - timedelta(hours=settings.REMINDER_MAX_AGE_HOURS)
    expired = await db.expire_call_jobs(cutoff, now)
    if expired:
        _LOGGER.warning("[CALL_JOBS] %d job(s) expired before delivery", expired)
        stats.bump("failed", expired)

    jobs = await db.fetch_due_call_jobs(now, limit or settings.CALL_JOB_BATCH_SIZE)

    for job in jobs:
        stats.bump("processed")
        try:
            call = await resolve_authoritative_call(source_of(job))
            if is_stale(job, call):
                await db.delete_call_jobs([job.job_id])
                stats.bump("discarded_stale")
                _LOGGER.info("[CALL_JOBS] Discarded stale job %s", job.job_id)
                continue

            notified, recipient_errors = await execute_call_job(job, now)
            await db.mark_call_job_executed(job.job_id, now)
            stats.bump("executed")
            stats.bump("recipients_notified", notified)
            stats.bump("recipient_errors", recipient_errors)
            _LOGGER.info("[CALL_JOBS] Executed %s: %d recipient(s) notified", job.job_id, notified)

        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("[CALL_JOBS] Error processing job %s", job.job_id)
            stats.bump("errors")
            try:
                exhausted = await db.record_call_job_error(
                    job.job_id, str(exc) or type(exc).__name__, now, settings.REMINDER_MAX_ATTEMPTS
                )
            except Exception:  # noqa: BLE001
                _LOGGER.exception("[CALL_JOBS] Could not record error on job %s", job.job_id)
                continue
            if exhausted:
                stats.bump("failed")

    _LOGGER.info("[CALL_JOBS] Completed: %s", stats.as_response())
    return stats
