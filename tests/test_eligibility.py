from datetime import datetime, timedelta, timezone

import pytest

from app.services import eligibility
from app.types.notification_contract import BillingSnapshot
from app.utils.timezone import local_clock
from db.models import DailyCompletion, User, WeeklyCompletion
from tests.conftest import add_rows

UTC = timezone.utc
NOW = datetime(2026, 10, 16, 12, 0, tzinfo=UTC)  # a Friday


def make_user(**kw) -> User:
    fields = dict(user_id="u1", timezone="America/New_York", has_completed_onboarding=True)
    fields.update(kw)
    return User(**fields)


def check(user, type, now):
    return eligibility.check_schedule(user, type, local_clock(user.timezone, now), now)


# ---------------------------------------------------------------------------
# Billing gate
# ---------------------------------------------------------------------------

def test_missing_billing_never_blocks():
    assert eligibility.has_active_access(None, NOW)
    assert eligibility.has_active_access(BillingSnapshot(), NOW)


@pytest.mark.parametrize("status", ["active", "trialing"])
def test_paying_statuses_have_access(status):
    assert eligibility.has_active_access(BillingSnapshot(status=status), NOW)


def test_canceled_user_keeps_access_until_period_end():
    grace = BillingSnapshot(status="canceled", current_period_end=NOW + timedelta(days=2))
    lapsed = BillingSnapshot(status="canceled", current_period_end=NOW - timedelta(hours=1))
    assert eligibility.has_active_access(grace, NOW)
    assert not eligibility.has_active_access(lapsed, NOW)


@pytest.mark.parametrize("status", ["past_due", "none"])
def test_other_statuses_are_blocked(status):
    assert not eligibility.has_active_access(BillingSnapshot(status=status), NOW)


def test_naive_period_end_from_storage_is_read_as_utc():
    user = make_user(billing_status="canceled", billing_current_period_end=datetime(2026, 10, 18, 0, 0))
    assert eligibility.has_active_access(eligibility.billing_snapshot(user), NOW)


# ---------------------------------------------------------------------------
# Schedule rules
# ---------------------------------------------------------------------------

def test_morning_is_due_only_at_seven_local():
    user = make_user()
    assert check(user, "morning_checkin", datetime(2026, 10, 16, 11, 0, tzinfo=UTC)) is None  # 07:00 EDT
    assert check(user, "morning_checkin", datetime(2026, 10, 16, 12, 0, tzinfo=UTC)) == "wrong_time"


def test_weekend_suppresses_daily_notifications():
    user = make_user()
    saturday_7am = datetime(2026, 10, 17, 11, 0, tzinfo=UTC)
    saturday_5pm = datetime(2026, 10, 17, 21, 0, tzinfo=UTC)
    assert check(user, "morning_checkin", saturday_7am) == "weekend"
    assert check(user, "evening_checkin_incomplete_tasks", saturday_5pm) == "weekend"


def test_weekend_is_judged_in_the_users_timezone():
    user = make_user(timezone="Pacific/Kiritimati")
    friday_utc = datetime(2026, 10, 16, 17, 0, tzinfo=UTC)  # Saturday 07:00 local
    assert check(user, "morning_checkin", friday_utc) == "weekend"


def test_utc_minus_five_user_is_due_once_per_day_at_local_five_pm():
    user = make_user(timezone="America/Bogota")
    start = datetime(2026, 10, 14, 0, 0, tzinfo=UTC)  # a Wednesday
    due = [
        start + timedelta(hours=h)
        for h in range(24)
        if check(user, "evening_checkin_incomplete_tasks", start + timedelta(hours=h)) is None
    ]
    assert due == [datetime(2026, 10, 14, 22, 0, tzinfo=UTC)]


def test_weekly_reflection_needs_weekend_nine_am():
    user = make_user()
    assert check(user, "weekly_reflection", datetime(2026, 10, 17, 13, 0, tzinfo=UTC)) is None  # Sat 09:00
    assert check(user, "weekly_reflection", datetime(2026, 10, 18, 13, 0, tzinfo=UTC)) is None  # Sun 09:00
    assert check(user, "weekly_reflection", datetime(2026, 10, 16, 13, 0, tzinfo=UTC)) == "wrong_time"  # Fri


def test_onboarding_and_billing_gates():
    at_seven = datetime(2026, 10, 16, 11, 0, tzinfo=UTC)
    assert check(make_user(has_completed_onboarding=False), "morning_checkin", at_seven) == "not_onboarded"
    lapsed = make_user(billing_status="canceled", billing_current_period_end=at_seven - timedelta(hours=1))
    assert check(lapsed, "morning_checkin", at_seven) == "no_subscription"


def test_unknown_type_is_rejected():
    with pytest.raises(ValueError):
        eligibility.target_hour("lunch_checkin")


# ---------------------------------------------------------------------------
# Completion lookups
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_completed_morning_checkin_suppresses_notification(store):
    user = make_user()
    at_seven = datetime(2026, 10, 16, 11, 0, tzinfo=UTC)
    assert await eligibility.is_due(user, "morning_checkin", at_seven)

    await add_rows(DailyCompletion(user_id="u1", local_date="2026-10-16", kind="morning_checkin", completed_at=at_seven))
    assert await eligibility.evaluate(user, "morning_checkin", at_seven) == "already_done"


@pytest.mark.asyncio
async def test_started_but_unfinished_checkin_does_not_count(store):
    user = make_user()
    at_five = datetime(2026, 10, 16, 21, 0, tzinfo=UTC)
    await add_rows(DailyCompletion(user_id="u1", local_date="2026-10-16", kind="evening_checkin", completed_at=None))
    assert await eligibility.is_due(user, "evening_checkin_incomplete_tasks", at_five)


@pytest.mark.asyncio
async def test_completed_weekly_reflection_suppresses_notification(store):
    user = make_user()
    saturday_nine = datetime(2026, 10, 17, 13, 0, tzinfo=UTC)
    await add_rows(WeeklyCompletion(user_id="u1", week_id="2026-10-12", completed_at=saturday_nine))
    assert await eligibility.evaluate(user, "weekly_reflection", saturday_nine) == "already_done"
