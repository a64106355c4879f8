from datetime import datetime, timezone

import pytest
import pytest_asyncio

import db

UTC = timezone.utc


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest_asyncio.fixture
async def store(tmp_path, monkeypatch):
    """A fresh SQLite database per test, created from the ORM metadata."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.sqlite3'}")
    await db.dispose_engine()
    await db.create_all()
    yield db
    await db.dispose_engine()


async def add_rows(*rows) -> None:
    async with db.session_scope() as s:
        s.add_all(rows)
        await s.commit()


class FakeChat:
    """Records what would have been sent to the chat provider."""

    bot_user_id = "test-bot"

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.bot_upserts = 0
        self.members = []
        self.messages = []

    def ensure_bot_user(self):
        self.bot_upserts += 1

    def add_member(self, channel_id, user_id):
        self.members.append((channel_id, user_id))

    def send_message(self, channel_id, text, **extra):
        if channel_id in self.fail_on:
            raise RuntimeError(f"chat provider rejected {channel_id}")
        self.messages.append((channel_id, text, extra))


@pytest.fixture
def chat():
    return FakeChat()
