"""
Async DB helpers for the notification engine.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.

This module is the document-store collaborator: every eligibility and
dedup decision is re-derived from these queries on each run, nothing is
cached in-process.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable
from uuid import uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from db.models import (
    Base,
    CallReminderJob,
    CallScheduledJob,
    CoachingClient,
    DailyCompletion,
    Notification,
    Squad,
    SquadCall,
    SquadMember,
    User,
    WeeklyCompletion,
)

# ──────────────────────────────────────────────────────────────────────
# 1. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    # only plain postgres URLs get the async driver; sqlite+aiosqlite etc. pass through
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url

def get_engine():
    global _engine
    if _engine is None:
        url = _build_url()
        if url.startswith("sqlite"):
            _engine = create_async_engine(url)
        else:
            _engine = create_async_engine(url, pool_size=5, max_overflow=5)
    return _engine

@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async with _session_maker() as session:
        yield session


# ──────────────────────────────────────────────────────────────────────
# 2. DDL helper (tests / local dev; production uses Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ──────────────────────────────────────────────────────────────────────
# 3. Users & completion records
# ──────────────────────────────────────────────────────────────────────

async def fetch_onboarded_users(limit: int = 500) -> list[User]:
    async with session_scope() as s:
        stmt = (
            select(User)
            .where(User.has_completed_onboarding.is_(True))
            .order_by(User.user_id)
            .limit(limit)
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def get_user(user_id: str) -> User | None:
    async with session_scope() as s:
        return await s.get(User, user_id)


async def get_daily_completion(user_id: str, local_date: str, kind: str) -> DailyCompletion | None:
    async with session_scope() as s:
        stmt = select(DailyCompletion).where(
            DailyCompletion.user_id == user_id,
            DailyCompletion.local_date == local_date,
            DailyCompletion.kind == kind,
        )
        res = await s.execute(stmt)
        return res.scalar_one_or_none()


async def get_weekly_completion(user_id: str, week_id: str) -> WeeklyCompletion | None:
    async with session_scope() as s:
        stmt = select(WeeklyCompletion).where(
            WeeklyCompletion.user_id == user_id,
            WeeklyCompletion.week_id == week_id,
        )
        res = await s.execute(stmt)
        return res.scalar_one_or_none()


# ──────────────────────────────────────────────────────────────────────
# 4. Notifications
# ──────────────────────────────────────────────────────────────────────

async def find_notifications(
    user_id: str,
    types: Iterable[str],
    start: datetime,
    end: datetime,
) -> list[Notification]:
    """Notifications of any of ``types`` with ``start <= created_at < end``, oldest first."""
    async with session_scope() as s:
        stmt = (
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.type.in_(list(types)),
                Notification.created_at >= start,
                Notification.created_at < end,
            )
            .order_by(Notification.created_at)
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def insert_notification(
    user_id: str,
    type: str,
    title: str,
    body: str,
    action_route: str | None = None,
    created_at: datetime | None = None,
    dedup_key: str | None = None,
) -> str | None:
    """Insert a notification. Returns ``None`` when ``dedup_key`` is already taken."""
    nid = str(uuid4())
    notification = Notification(
        notification_id=nid,
        user_id=user_id,
        type=type,
        title=title,
        body=body,
        action_route=action_route,
        created_at=created_at or datetime.now(timezone.utc),
        read=False,
        dedup_key=dedup_key,
    )
    async with session_scope() as s:
        s.add(notification)
        try:
            await s.commit()
        except IntegrityError:
            await s.rollback()
            if dedup_key is None:
                raise
            return None
    return nid


async def fetch_recent_notifications(user_id: str, limit: int = 20) -> list[Notification]:
    """Newest first."""
    async with session_scope() as s:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def count_unread_notifications(user_id: str) -> int:
    async with session_scope() as s:
        stmt = select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        res = await s.execute(stmt)
        return res.scalar_one()


async def mark_notification_read(notification_id: str) -> bool:
    """Returns False when no such notification exists."""
    async with session_scope() as s:
        res = await s.execute(
            update(Notification)
            .where(Notification.notification_id == notification_id)
            .values(read=True)
        )
        await s.commit()
        return bool(res.rowcount)


async def mark_all_notifications_read(user_id: str) -> int:
    async with session_scope() as s:
        res = await s.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await s.commit()
        return res.rowcount or 0


# ──────────────────────────────────────────────────────────────────────
# 5. Call owners (squads, standard calls, coaching clients)
# ──────────────────────────────────────────────────────────────────────

async def get_squad(squad_id: str) -> Squad | None:
    async with session_scope() as s:
        return await s.get(Squad, squad_id)


async def get_squad_call(call_id: str) -> SquadCall | None:
    async with session_scope() as s:
        return await s.get(SquadCall, call_id)


async def get_coaching_client(user_id: str) -> CoachingClient | None:
    async with session_scope() as s:
        return await s.get(CoachingClient, user_id)


async def fetch_squad_member_ids(squad_id: str) -> list[str]:
    async with session_scope() as s:
        stmt = (
            select(SquadMember.user_id)
            .where(SquadMember.squad_id == squad_id)
            .order_by(SquadMember.user_id)
        )
        res = await s.execute(stmt)
        return list(res.scalars())


# ──────────────────────────────────────────────────────────────────────
# 6. Call reminder jobs
# ──────────────────────────────────────────────────────────────────────

async def upsert_reminder_job(job: CallReminderJob) -> str:
    async with session_scope() as s:
        await s.merge(job)
        await s.commit()
    return job.job_id


async def get_reminder_job(job_id: str) -> CallReminderJob | None:
    async with session_scope() as s:
        return await s.get(CallReminderJob, job_id)


async def fetch_due_reminder_jobs(now: datetime, limit: int = 50) -> list[CallReminderJob]:
    async with session_scope() as s:
        stmt = (
            select(CallReminderJob)
            .where(
                CallReminderJob.sent.is_(False),
                CallReminderJob.failed.is_(False),
                CallReminderJob.reminder_time <= now,
            )
            .order_by(CallReminderJob.reminder_time)
            .limit(limit)
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def delete_reminder_job(job_id: str) -> None:
    async with session_scope() as s:
        await s.execute(delete(CallReminderJob).where(CallReminderJob.job_id == job_id))
        await s.commit()


async def mark_reminder_job_sent(job_id: str, now: datetime, error: str | None = None) -> None:
    values = {"sent": True, "sent_at": now, "updated_at": now}
    if error is not None:
        values["error"] = error
    async with session_scope() as s:
        await s.execute(
            update(CallReminderJob)
            .where(CallReminderJob.job_id == job_id, CallReminderJob.sent.is_(False))
            .values(**values)
        )
        await s.commit()


async def record_reminder_job_error(
    job_id: str, err: str, now: datetime, max_attempts: int
) -> bool:
    """Record a failed attempt. Returns True when the job reached its attempt limit."""
    async with session_scope() as s:
        job = await s.get(CallReminderJob, job_id)
        if job is None:
            return False
        job.attempts = (job.attempts or 0) + 1
        job.error = err
        job.last_error_at = now
        job.updated_at = now
        exhausted = job.attempts >= max_attempts
        if exhausted:
            job.failed = True
            job.failed_at = now
        await s.commit()
        return exhausted


async def expire_reminder_jobs(older_than: datetime, now: datetime) -> int:
    """Bulk-move unsent jobs whose fire time is older than ``older_than`` to failed."""
    async with session_scope() as s:
        res = await s.execute(
            update(CallReminderJob)
            .where(
                CallReminderJob.sent.is_(False),
                CallReminderJob.failed.is_(False),
                CallReminderJob.reminder_time < older_than,
            )
            .values(failed=True, failed_at=now, updated_at=now, error="expired before delivery")
        )
        await s.commit()
        return res.rowcount or 0


# ──────────────────────────────────────────────────────────────────────
# 7. Scheduled call jobs (24h / 1h / live stages)
# ──────────────────────────────────────────────────────────────────────

async def upsert_call_job(job: CallScheduledJob) -> str:
    async with session_scope() as s:
        await s.merge(job)
        await s.commit()
    return job.job_id


async def get_call_job(job_id: str) -> CallScheduledJob | None:
    async with session_scope() as s:
        return await s.get(CallScheduledJob, job_id)


async def fetch_due_call_jobs(now: datetime, limit: int = 100) -> list[CallScheduledJob]:
    async with session_scope() as s:
        stmt = (
            select(CallScheduledJob)
            .where(
                CallScheduledJob.executed.is_(False),
                CallScheduledJob.failed.is_(False),
                CallScheduledJob.scheduled_time <= now,
            )
            .order_by(CallScheduledJob.scheduled_time)
            .limit(limit)
        )
        res = await s.execute(stmt)
        return list(res.scalars())


async def delete_call_jobs(job_ids: Iterable[str]) -> int:
    async with session_scope() as s:
        res = await s.execute(
            delete(CallScheduledJob).where(CallScheduledJob.job_id.in_(list(job_ids)))
        )
        await s.commit()
        return res.rowcount or 0


async def mark_call_job_executed(job_id: str, now: datetime) -> None:
    async with session_scope() as s:
        await s.execute(
            update(CallScheduledJob)
            .where(CallScheduledJob.job_id == job_id, CallScheduledJob.executed.is_(False))
            .values(executed=True, executed_at=now, updated_at=now)
        )
        await s.commit()


async def record_call_job_error(
    job_id: str, err: str, now: datetime, max_attempts: int
) -> bool:
    """Record a failed attempt. Returns True when the job reached its attempt limit."""
    async with session_scope() as s:
        job = await s.get(CallScheduledJob, job_id)
        if job is None:
            return False
        job.attempts = (job.attempts or 0) + 1
        job.error = err
        job.last_error_at = now
        job.updated_at = now
        exhausted = job.attempts >= max_attempts
        if exhausted:
            job.failed = True
            job.failed_at = now
        await s.commit()
        return exhausted


async def expire_call_jobs(older_than: datetime, now: datetime) -> int:
    async with session_scope() as s:
        res = await s.execute(
            update(CallScheduledJob)
            .where(
                CallScheduledJob.executed.is_(False),
                CallScheduledJob.failed.is_(False),
                CallScheduledJob.scheduled_time < older_than,
            )
            .values(failed=True, failed_at=now, updated_at=now, error="expired before delivery")
        )
        await s.commit()
        return res.rowcount or 0


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
    _session_maker = None
