"""Call reminder jobs: scheduling and the batch processor.

A job fires once, one hour before its call. At fire time it is checked
against the authoritative call record and ends in one of:

* sent      - message delivered (or no chat channel to deliver to)
* discarded - call canceled, rescheduled or its owner deleted; the job row is removed
* failed    - attempt limit or max age reached; no longer selected

A failing job never aborts the batch: the error is recorded on the job and
it stays eligible for the next run until one of the cutoffs applies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from config import settings
from app.types.notification_contract import (
    CallRecord,
    CallSource,
    InlineCallSource,
    ReferencedCallSource,
    ReminderRunStats,
)
from app.utils.chat import ChatConfigError, get_chat_delivery
from app.utils.timezone import as_utc, format_call_time, utc_now
from db.models import CallReminderJob, CallScheduledJob
import db

_LOGGER = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(hours=1)


# ---------------------------------------------------------------------------
# Call sources
# ---------------------------------------------------------------------------

def job_id_for(source: CallSource) -> str:
    if isinstance(source, ReferencedCallSource):
        return f"{source.squad_id}_{source.call_id}_reminder"
    if source.owner_type == "squad":
        return f"{source.owner_id}_premium_reminder"
    return f"{source.owner_id}_coaching_reminder"


def source_of(job: CallReminderJob | CallScheduledJob) -> CallSource:
    if job.source == "referenced":
        return ReferencedCallSource(squad_id=job.owner_id, call_id=job.call_id)
    return InlineCallSource(owner_type=job.owner_type, owner_id=job.owner_id)


async def resolve_authoritative_call(source: CallSource) -> Optional[CallRecord]:
    """Current state of the call a job points at, or ``None`` if there is nothing to remind about."""
    if isinstance(source, ReferencedCallSource):
        if await db.get_squad(source.squad_id) is None:
            return None
        if not source.call_id:
            return None
        call = await db.get_squad_call(source.call_id)
        if call is None:
            return None
        return CallRecord(
            status=call.status,
            start_datetime_utc=as_utc(call.start_datetime_utc),
            timezone=call.timezone or "UTC",
            location=call.location,
            title=call.title,
        )

    if source.owner_type == "squad":
        owner = await db.get_squad(source.owner_id)
    else:
        owner = await db.get_coaching_client(source.owner_id)
    if owner is None or owner.next_call_datetime is None:
        return None
    return CallRecord(
        status="confirmed",
        start_datetime_utc=as_utc(owner.next_call_datetime),
        timezone=owner.next_call_timezone or "UTC",
        location=owner.next_call_location,
        title=owner.next_call_title,
    )


def is_stale(job: CallReminderJob | CallScheduledJob, call: Optional[CallRecord]) -> bool:
    if call is None:
        return True
    if call.status != "confirmed":
        return True
    return as_utc(call.start_datetime_utc) != as_utc(job.call_datetime)


def reminder_text(job: CallReminderJob) -> str:
    what = "coaching call" if job.owner_type == "coaching_client" else "squad call"
    lines = [f"⏰ **Reminder:** Your {what} starts in 1 hour!", ""]
    if job.call_title:
        lines.append(f"**What:** {job.call_title}")
    lines.append(f"**When:** {format_call_time(job.call_datetime, job.call_timezone)}")
    lines.append(f"**Location:** {job.call_location or 'See chat for details'}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

async def schedule_call_reminder(
    source: CallSource,
    call: CallRecord,
    chat_channel_id: str | None,
    now: datetime | None = None,
) -> Optional[str]:
    """Create (or overwrite) the reminder job for a confirmed call.

    Returns the job id, or ``None`` when the reminder time has already passed.
    """
    now = as_utc(now) if now else utc_now()
    start = as_utc(call.start_datetime_utc)
    reminder_time = start - REMINDER_LEAD
    if reminder_time <= now:
        return None

    if isinstance(source, ReferencedCallSource):
        owner_type, owner_id, call_id = "squad", source.squad_id, source.call_id
    else:
        owner_type, owner_id, call_id = source.owner_type, source.owner_id, None

    job = CallReminderJob(
        job_id=job_id_for(source),
        owner_type=owner_type,
        owner_id=owner_id,
        source=source.type,
        call_id=call_id,
        call_datetime=start,
        call_timezone=call.timezone,
        call_location=call.location,
        call_title=call.title,
        chat_channel_id=chat_channel_id,
        reminder_time=reminder_time,
        sent=False,
        sent_at=None,
        attempts=0,
        failed=False,
        failed_at=None,
        error=None,
        last_error_at=None,
        created_at=now,
        updated_at=now,
    )
    await db.upsert_reminder_job(job)
    _LOGGER.info("[CALL_REMINDER] Scheduled %s for %s", job.job_id, reminder_time.isoformat())
    return job.job_id


async def cancel_call_reminder(source: CallSource) -> None:
    await db.delete_reminder_job(job_id_for(source))


# ---------------------------------------------------------------------------
# Batch processor
# ---------------------------------------------------------------------------

def _deliver(job: CallReminderJob, chat) -> None:
    chat.ensure_bot_user()
    chat.add_member(job.chat_channel_id, chat.bot_user_id)
    chat.send_message(
        job.chat_channel_id,
        reminder_text(job),
        call_reminder=True,
        call_owner_id=job.owner_id,
        call_date_time=as_utc(job.call_datetime).isoformat(),
    )


async def process_due_reminders(
    now: datetime | None = None,
    chat=None,
    limit: int | None = None,
) -> ReminderRunStats:
    """Run one bounded pass over due reminder jobs.

    ``chat`` defaults to the Stream delivery client, created only once a job
    actually needs it; missing credentials then abort the run.
    """
    now = as_utc(now) if now else utc_now()
    stats = ReminderRunStats()

    cutoff = now - timedelta(hours=settings.REMINDER_MAX_AGE_HOURS)
    expired = await db.expire_reminder_jobs(cutoff, now)
    if expired:
        _LOGGER.warning("[CALL_REMINDER] %d job(s) expired before delivery", expired)
        stats.bump("failed", expired)

    jobs = await db.fetch_due_reminder_jobs(now, limit or settings.REMINDER_BATCH_SIZE)

    for job in jobs:
        stats.bump("processed")
        try:
            call = await resolve_authoritative_call(source_of(job))
            if is_stale(job, call):
                await db.delete_reminder_job(job.job_id)
                stats.bump("discarded_stale")
                _LOGGER.info("[CALL_REMINDER] Discarded stale job %s", job.job_id)
                continue

            if not job.chat_channel_id:
                await db.mark_reminder_job_sent(job.job_id, now, error="No chat channel")
                stats.bump("skipped_no_channel")
                continue

            if chat is None:
                chat = get_chat_delivery()
            _deliver(job, chat)
            await db.mark_reminder_job_sent(job.job_id, now)
            stats.bump("sent")
            _LOGGER.info("[CALL_REMINDER] Sent reminder %s (%s)", job.job_id, job.source)

        except ChatConfigError:
            raise
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("[CALL_REMINDER] Error processing job %s", job.job_id)
            stats.bump("errors")
            try:
                exhausted = await db.record_reminder_job_error(
                    job.job_id, str(exc) or type(exc).__name__, now, settings.REMINDER_MAX_ATTEMPTS
                )
            except Exception:  # noqa: BLE001
                _LOGGER.exception("[CALL_REMINDER] Could not record error on job %s", job.job_id)
                continue
            if exhausted:
                stats.bump("failed")
                _LOGGER.warning("[CALL_REMINDER] Job %s gave up after %d attempts", job.job_id, settings.REMINDER_MAX_ATTEMPTS)

    _LOGGER.info("[CALL_REMINDER] Completed: %s", stats.as_response())
    return stats
