from datetime import datetime, timedelta, timezone

import pytest

from app.services import inbox
import db

UTC = timezone.utc
NOON = datetime(2026, 10, 16, 12, 0, tzinfo=UTC)


async def seed(user_id, count):
    ids = []
    for i in range(count):
        ids.append(await db.insert_notification(
            user_id, "morning_checkin", f"title {i}", "body", created_at=NOON + timedelta(minutes=i),
        ))
    return ids


@pytest.mark.asyncio
async def test_list_is_newest_first_and_limited(store):
    await seed("u1", 3)
    await seed("u2", 1)

    views = await inbox.list_notifications("u1", limit=2)

    assert [v.title for v in views] == ["title 2", "title 1"]
    assert not views[0].read


@pytest.mark.asyncio
async def test_mark_read_updates_unread_count(store):
    ids = await seed("u1", 3)
    assert await inbox.unread_count("u1") == 3

    assert await inbox.mark_read(ids[0])
    assert await inbox.unread_count("u1") == 2
    assert not await inbox.mark_read("missing")


@pytest.mark.asyncio
async def test_mark_all_read_only_touches_one_user(store):
    ids = await seed("u1", 2)
    await seed("u2", 2)
    await inbox.mark_read(ids[0])

    assert await inbox.mark_all_read("u1") == 1
    assert await inbox.unread_count("u1") == 0
    assert await inbox.unread_count("u2") == 2
