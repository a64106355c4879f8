import pytest

from app.services import orchestrator
from app.types.notification_contract import NotificationRunStats
from app.utils.chat import ChatConfigError
from app.workers import notifications as notifications_worker
import db


@pytest.fixture(autouse=True)
def disposed(monkeypatch):
    disposed = []

    async def fake_dispose():
        disposed.append(True)

    monkeypatch.setattr(db, "dispose_engine", fake_dispose)
    return disposed


def test_run_tick_returns_stats_and_disposes_engine(monkeypatch, disposed):
    async def fake_run_job(job, now=None):
        return NotificationRunStats(processed=1, sent=1)

    monkeypatch.setattr(orchestrator, "run_job", fake_run_job)

    result = notifications_worker.run_tick.apply(args=("morning",)).get()

    assert result["sent"] == 1
    assert result["skippedAlreadyNotified"] == 0
    assert disposed == [True]


def test_chat_config_error_is_not_retried(monkeypatch, disposed):
    async def fake_run_job(job, now=None):
        raise ChatConfigError("no credentials")

    monkeypatch.setattr(orchestrator, "run_job", fake_run_job)

    outcome = notifications_worker.run_tick.apply(args=("call-reminders",))

    assert isinstance(outcome.result, ChatConfigError)
    assert disposed == [True]
