"""Celery application instance shared across the backend.

Start a worker and the beat scheduler with:
    celery -A app.celery_app worker -Q notifications -l info --concurrency=2
    celery -A app.celery_app beat -l info

Beat replaces the external HTTP cron. Run one of the two, not both: overlapping
ticks are safe for check-in notifications (a unique per-period key rejects the
second insert), but two reminder or call-job passes reading the same due row
at once can both deliver it.
"""

from celery import Celery
from celery.schedules import crontab

from config import settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("notification_backend", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.task_default_retry_delay = 30  # seconds
celery_app.conf.timezone = "UTC"

celery_app.conf.task_routes = {
    "app.workers.notifications.run_tick": {"queue": "notifications"},
}

# Local-time matching happens per user, so every tick runs on the UTC hour.
celery_app.conf.beat_schedule = {
    "morning-checkin-tick": {
        "task": "app.workers.notifications.run_tick",
        "schedule": crontab(minute=0),
        "args": ("morning",),
    },
    "evening-checkin-tick": {
        "task": "app.workers.notifications.run_tick",
        "schedule": crontab(minute=0),
        "args": ("evening",),
    },
    "weekly-reflection-tick": {
        "task": "app.workers.notifications.run_tick",
        "schedule": crontab(minute=0),
        "args": ("weekly",),
    },
    "call-reminders": {
        "task": "app.workers.notifications.run_tick",
        "schedule": crontab(minute="*/5"),
        "args": ("call-reminders",),
    },
    "call-jobs": {
        "task": "app.workers.notifications.run_tick",
        "schedule": crontab(minute="*/5"),
        "args": ("call-jobs",),
    },
}

# --- Ensure tasks are registered ---
import app.workers.notifications
