from datetime import datetime, timedelta, timezone

import pytest

from config import settings
from app.services import dispatcher, orchestrator
from app.types.notification_contract import NotificationRunStats
from app.utils import sms as sms_util
from db.models import DailyCompletion, User
from tests.conftest import add_rows

UTC = timezone.utc
FRIDAY_7AM_NY = datetime(2026, 10, 16, 11, 0, tzinfo=UTC)
SATURDAY_9AM_NY = datetime(2026, 10, 17, 13, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def quiet_sms(monkeypatch):
    monkeypatch.setattr(sms_util, "send_sms", lambda to, body: None)


def user(user_id, tz="America/New_York", **kw) -> User:
    return User(user_id=user_id, timezone=tz, has_completed_onboarding=True, **kw)


# ---------------------------------------------------------------------------
# Trigger authentication
# ---------------------------------------------------------------------------

def test_authenticate_accepts_matching_bearer_token(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    orchestrator.authenticate("Bearer s3cret")


@pytest.mark.parametrize("header", [None, "", "s3cret", "Bearer wrong", "bearer s3cret"])
def test_authenticate_rejects_bad_tokens(monkeypatch, header):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    with pytest.raises(orchestrator.CronAuthError):
        orchestrator.authenticate(header)


def test_missing_secret_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", None)
    with pytest.raises(orchestrator.CronConfigError):
        orchestrator.authenticate("Bearer anything")


@pytest.mark.asyncio
async def test_run_once_authenticates_before_running(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
    calls = []

    async def fake_run_job(job, now=None):
        calls.append(job)
        return NotificationRunStats()

    monkeypatch.setattr(orchestrator, "run_job", fake_run_job)

    with pytest.raises(orchestrator.CronAuthError):
        await orchestrator.run_once("morning", "Bearer nope")
    assert calls == []

    await orchestrator.run_once("morning", "Bearer s3cret")
    assert calls == ["morning"]


# ---------------------------------------------------------------------------
# Notification ticks
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_morning_tick_buckets_every_user(store):
    await add_rows(
        user("due"),
        user("west", tz="America/Los_Angeles"),
        user("lapsed", billing_status="canceled", billing_current_period_end=FRIDAY_7AM_NY - timedelta(days=1)),
        user("done"),
        DailyCompletion(user_id="done", local_date="2026-10-16", kind="morning_checkin", completed_at=FRIDAY_7AM_NY),
        User(user_id="new", timezone="America/New_York", has_completed_onboarding=False),
    )

    stats = await orchestrator.run_job("morning", now=FRIDAY_7AM_NY)

    assert stats.processed == 4
    assert stats.sent == 1
    assert stats.skipped_wrong_time == 1
    assert stats.skipped_no_subscription == 1
    assert stats.skipped_already_done == 1
    assert stats.errors == 0


@pytest.mark.asyncio
async def test_rerun_in_same_hour_sends_nothing_new(store):
    await add_rows(user("due"))

    first = await orchestrator.run_job("morning", now=FRIDAY_7AM_NY)
    second = await orchestrator.run_job("morning", now=FRIDAY_7AM_NY + timedelta(minutes=20))

    assert first.sent == 1
    assert second.sent == 0
    assert second.skipped_already_notified == 1


@pytest.mark.asyncio
async def test_morning_tick_skips_weekends(store):
    await add_rows(user("due"))
    stats = await orchestrator.run_job("morning", now=datetime(2026, 10, 17, 11, 0, tzinfo=UTC))
    assert stats.skipped_weekend == 1
    assert stats.sent == 0


@pytest.mark.asyncio
async def test_evening_tick_respects_tasks_completed_notification(store):
    await add_rows(user("early"), user("plain"))
    await dispatcher.send_tasks_completed_notification("early", now=datetime(2026, 10, 16, 18, 0, tzinfo=UTC))

    stats = await orchestrator.run_job("evening", now=datetime(2026, 10, 16, 21, 0, tzinfo=UTC))

    assert stats.sent == 1
    assert stats.skipped_already_notified == 1


@pytest.mark.asyncio
async def test_weekly_tick_on_saturday_morning(store):
    await add_rows(user("due"), user("west", tz="America/Los_Angeles"))

    stats = await orchestrator.run_job("weekly", now=SATURDAY_9AM_NY)
    assert stats.sent == 1
    assert stats.skipped_wrong_time == 1

    sunday = await orchestrator.run_job("weekly", now=SATURDAY_9AM_NY + timedelta(days=1))
    assert sunday.skipped_already_notified == 1
    assert sunday.sent == 0


@pytest.mark.asyncio
async def test_one_user_failure_does_not_stop_the_tick(store, monkeypatch):
    await add_rows(user("a"), user("b"), user("c"))
    real_dispatch = dispatcher.dispatch

    async def flaky_dispatch(user_id, type, **kw):
        if user_id == "b":
            raise RuntimeError("store unavailable")
        return await real_dispatch(user_id, type, **kw)

    monkeypatch.setattr(dispatcher, "dispatch", flaky_dispatch)

    stats = await orchestrator.run_job("morning", now=FRIDAY_7AM_NY)

    assert stats.processed == 3
    assert stats.sent == 2
    assert stats.errors == 1


@pytest.mark.asyncio
async def test_batch_size_bounds_one_tick(store, monkeypatch):
    monkeypatch.setattr(settings, "USER_BATCH_SIZE", 2)
    await add_rows(user("a"), user("b"), user("c"))

    stats = await orchestrator.run_job("morning", now=FRIDAY_7AM_NY)
    assert stats.processed == 2


@pytest.mark.asyncio
async def test_call_reminders_job_runs_reminder_batch(store):
    stats = await orchestrator.run_job("call-reminders", now=FRIDAY_7AM_NY)
    assert stats.processed == 0
    assert "discardedStale" in stats.as_response()


@pytest.mark.asyncio
async def test_directory_like_timezone_is_treated_as_utc(store):
    await add_rows(user("odd", tz="America"))

    stats = await orchestrator.run_job("morning", now=FRIDAY_7AM_NY)

    assert stats.skipped_wrong_time == 1
    assert stats.errors == 0


@pytest.mark.asyncio
async def test_unknown_job_is_rejected():
    with pytest.raises(ValueError):
        await orchestrator.run_job("lunch")
