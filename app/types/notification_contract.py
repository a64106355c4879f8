"""Pydantic models shared by the scheduling services, Celery workers, the cron
API responses and tests.

These classes are intentionally framework-agnostic so they can be reused
without pulling in FastAPI or database layers.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Literal, Optional, Tuple, Union
from typing_extensions import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

NotificationType = Literal[
    "morning_checkin",
    "evening_checkin_incomplete_tasks",
    "evening_checkin_tasks_completed",
    "weekly_reflection",
]

# Types that satisfy each other for dedup within one period.
EQUIVALENCE_CLASSES: Dict[str, Tuple[str, ...]] = {
    "morning_checkin": ("morning_checkin",),
    "evening_checkin_incomplete_tasks": (
        "evening_checkin_incomplete_tasks",
        "evening_checkin_tasks_completed",
    ),
    "evening_checkin_tasks_completed": (
        "evening_checkin_incomplete_tasks",
        "evening_checkin_tasks_completed",
    ),
    "weekly_reflection": ("weekly_reflection",),
}

WEEKLY_TYPES = frozenset({"weekly_reflection"})

BillingStatus = Literal["none", "active", "trialing", "canceled", "past_due"]

SkipReason = Literal[
    "wrong_time",
    "weekend",
    "no_subscription",
    "not_onboarded",
    "already_done",
]


def equivalence_class(type: str) -> Tuple[str, ...]:
    try:
        return EQUIVALENCE_CLASSES[type]
    except KeyError:
        raise ValueError(f"unknown notification type '{type}'") from None


def is_weekly(type: str) -> bool:
    return type in WEEKLY_TYPES


class BillingSnapshot(BaseModel):
    """Read-only billing state mirrored on the user record."""

    status: Optional[BillingStatus] = None
    current_period_end: Optional[datetime] = None


class NotificationPayload(BaseModel):
    title: str
    body: str
    action_route: Optional[str] = None


# ──────────────────────────────
# Run statistics
# ──────────────────────────────


class _Stats(BaseModel):
    """Counters serialised with camelCase keys for the cron response body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def bump(self, field: str, by: int = 1) -> None:
        setattr(self, field, getattr(self, field) + by)

    def as_response(self) -> dict:
        return self.model_dump(by_alias=True)


class NotificationRunStats(_Stats):
    processed: int = 0
    sent: int = 0
    skipped_wrong_time: int = 0
    skipped_weekend: int = 0
    skipped_no_subscription: int = 0
    skipped_already_done: int = 0
    skipped_already_notified: int = 0
    errors: int = 0


class ReminderRunStats(_Stats):
    processed: int = 0
    sent: int = 0
    discarded_stale: int = 0
    skipped_no_channel: int = 0
    failed: int = 0
    errors: int = 0


class CallJobRunStats(_Stats):
    processed: int = 0
    executed: int = 0
    discarded_stale: int = 0
    recipients_notified: int = 0
    recipient_errors: int = 0
    failed: int = 0
    errors: int = 0


# ──────────────────────────────
# Call sources for reminder jobs
# ──────────────────────────────


class CallRecord(BaseModel):
    """The authoritative state of a call at the moment a reminder fires."""

    status: Literal["pending", "confirmed", "canceled"] = "confirmed"
    start_datetime_utc: datetime
    timezone: str = "UTC"
    location: Optional[str] = None
    title: Optional[str] = None


class InlineCallSource(BaseModel):
    """The owner record (premium squad or coaching client) carries the call inline."""

    type: Literal["inline"] = "inline"
    owner_type: Literal["squad", "coaching_client"]
    owner_id: str


class ReferencedCallSource(BaseModel):
    """A standard squad's voted call, stored as its own record."""

    type: Literal["referenced"] = "referenced"
    squad_id: str
    call_id: Optional[str] = None

    @field_validator("squad_id")
    def validate_squad_id(cls, v):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("squad_id must be a non-empty string")
        return v


CallSource = Annotated[Union[InlineCallSource, ReferencedCallSource], Field(discriminator="type")]


# ──────────────────────────────
# Scheduled call stages
# ──────────────────────────────

CallJobType = Literal[
    "notification_24h",
    "email_24h",
    "notification_1h",
    "email_1h",
    "notification_live",
]

# stage -> how long before the call start it fires
CALL_JOB_OFFSETS: Tuple[Tuple[str, timedelta], ...] = (
    ("notification_24h", timedelta(hours=24)),
    ("email_24h", timedelta(hours=24)),
    ("notification_1h", timedelta(hours=1)),
    ("email_1h", timedelta(hours=1)),
    ("notification_live", timedelta(0)),
)

CallNotificationType = Literal[
    "squad_call_24h",
    "squad_call_1h",
    "squad_call_live",
    "coaching_call_24h",
    "coaching_call_1h",
    "coaching_call_live",
]


# ──────────────────────────────
# Notification panel
# ──────────────────────────────


class NotificationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: str
    type: str
    title: str
    body: str
    action_route: Optional[str] = None
    created_at: datetime
    read: bool = False
