"""ORM models for the notification / call-reminder engine.

Timestamps are written in UTC. SQLite hands them back naive, Postgres
(TIMESTAMPTZ) hands them back aware; callers normalise with
``app.utils.timezone.as_utc`` before comparing.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id:                  Mapped[str] = mapped_column(String, primary_key=True)
    first_name:               Mapped[str | None]
    phone_number:             Mapped[str | None]
    email:                    Mapped[str | None]
    timezone:                 Mapped[str | None] = mapped_column(String(64))
    has_completed_onboarding: Mapped[bool] = mapped_column(Boolean, default=False)
    # billing snapshot, mirrored from the payment provider
    billing_status:             Mapped[str | None] = mapped_column(String(32))
    billing_current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # opt-outs, e.g. {"squad_call_24h": false}; a missing key means opted in
    email_preferences:          Mapped[dict | None] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_users_onboarding", "has_completed_onboarding"),
    )


class DailyCompletion(Base):
    __tablename__ = "daily_completions"

    id:           Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id:      Mapped[str] = mapped_column(String, nullable=False)
    local_date:   Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    kind:         Mapped[str] = mapped_column(String(32), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id", "local_date", "kind", name="uq_daily_completion"),
    )


class WeeklyCompletion(Base):
    __tablename__ = "weekly_completions"

    id:           Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id:      Mapped[str] = mapped_column(String, nullable=False)
    week_id:      Mapped[str] = mapped_column(String(10), nullable=False)  # Monday, YYYY-MM-DD
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id", "week_id", name="uq_weekly_completion"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    notification_id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id:         Mapped[str] = mapped_column(String, nullable=False)
    type:            Mapped[str] = mapped_column(String(64), nullable=False)
    title:           Mapped[str] = mapped_column(Text, nullable=False)
    body:            Mapped[str] = mapped_column(Text, nullable=False)
    action_route:    Mapped[str | None]
    created_at:      Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    read:            Mapped[bool] = mapped_column(Boolean, default=False)
    # user:class:period for recurring types; NULL for call notifications
    dedup_key:       Mapped[str | None] = mapped_column(String, unique=True)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )


class Squad(Base):
    __tablename__ = "squads"

    squad_id:            Mapped[str] = mapped_column(String, primary_key=True)
    name:                Mapped[str]
    is_premium:          Mapped[bool] = mapped_column(Boolean, default=False)
    chat_channel_id:     Mapped[str | None]
    # premium squads keep their next call inline
    next_call_datetime:  Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_call_timezone:  Mapped[str | None]
    next_call_location:  Mapped[str | None]
    next_call_title:     Mapped[str | None]


class SquadCall(Base):
    """A voted call of a standard squad; the authoritative record for reminders."""

    __tablename__ = "squad_calls"

    call_id:            Mapped[str] = mapped_column(String, primary_key=True)
    squad_id:           Mapped[str] = mapped_column(String, nullable=False)
    status:             Mapped[str] = mapped_column(String(16), default="pending")
    start_datetime_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timezone:           Mapped[str] = mapped_column(String(64), default="UTC")
    location:           Mapped[str | None]
    title:              Mapped[str | None]


class CoachingClient(Base):
    __tablename__ = "coaching_clients"

    user_id:            Mapped[str] = mapped_column(String, primary_key=True)
    coach_name:         Mapped[str | None]
    chat_channel_id:    Mapped[str | None]
    next_call_datetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_call_timezone: Mapped[str | None]
    next_call_location: Mapped[str | None]
    next_call_title:    Mapped[str | None]


class CallReminderJob(Base):
    __tablename__ = "call_reminder_jobs"

    job_id:          Mapped[str] = mapped_column(String, primary_key=True)
    owner_type:      Mapped[str] = mapped_column(String(16), nullable=False)   # squad | coaching_client
    owner_id:        Mapped[str] = mapped_column(String, nullable=False)
    source:          Mapped[str] = mapped_column(String(16), nullable=False)   # inline | referenced
    call_id:         Mapped[str | None]
    call_datetime:   Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    call_timezone:   Mapped[str] = mapped_column(String(64), default="UTC")
    call_location:   Mapped[str | None]
    call_title:      Mapped[str | None]
    chat_channel_id: Mapped[str | None]
    reminder_time:   Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent:            Mapped[bool] = mapped_column(Boolean, default=False)
    sent_at:         Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    attempts:        Mapped[int] = mapped_column(Integer, default=0)
    failed:          Mapped[bool] = mapped_column(Boolean, default=False)
    failed_at:       Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error:           Mapped[str | None] = mapped_column(Text)
    last_error_at:   Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at:      Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at:      Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_call_reminder_jobs_due", "sent", "failed", "reminder_time"),
    )


class SquadMember(Base):
    __tablename__ = "squad_members"

    id:       Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    squad_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id:  Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("squad_id", "user_id", name="uq_squad_member"),
    )


class CallScheduledJob(Base):
    """One notification or email stage (24h / 1h / live) of a confirmed call."""

    __tablename__ = "call_scheduled_jobs"

    job_id:         Mapped[str] = mapped_column(String, primary_key=True)
    owner_type:     Mapped[str] = mapped_column(String(16), nullable=False)   # squad | coaching_client
    owner_id:       Mapped[str] = mapped_column(String, nullable=False)
    owner_name:     Mapped[str | None]                                        # squad or coach name
    source:         Mapped[str] = mapped_column(String(16), nullable=False)   # inline | referenced
    call_id:        Mapped[str | None]
    job_type:       Mapped[str] = mapped_column(String(32), nullable=False)
    scheduled_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    call_datetime:  Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    call_timezone:  Mapped[str] = mapped_column(String(64), default="UTC")
    call_location:  Mapped[str | None]
    call_title:     Mapped[str | None]
    executed:       Mapped[bool] = mapped_column(Boolean, default=False)
    executed_at:    Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    attempts:       Mapped[int] = mapped_column(Integer, default=0)
    failed:         Mapped[bool] = mapped_column(Boolean, default=False)
    failed_at:      Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error:          Mapped[str | None] = mapped_column(Text)
    last_error_at:  Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at:     Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at:     Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_call_scheduled_jobs_due", "executed", "failed", "scheduled_time"),
    )
