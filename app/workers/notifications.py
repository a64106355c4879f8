"""Celery tasks wrapping one orchestrator tick."""

from __future__ import annotations

import asyncio

from app.celery_app import celery_app
from app.services import orchestrator
from app.utils.chat import ChatConfigError
import db


async def _run(job: str) -> dict:
    try:
        stats = await orchestrator.run_job(job)
        return stats.as_response()
    finally:
        # each task gets a fresh event loop; pooled connections must not outlive it
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.notifications.run_tick", bind=True, max_retries=3)
def run_tick(self, job: str):  # noqa: D401
    """Run one tick of ``job`` and return its stats."""
    try:
        return asyncio.run(_run(job))
    except ChatConfigError:
        # configuration problems will not fix themselves on retry
        raise
    except Exception as exc:  # noqa: BLE001
        # ticks are idempotent, a retry cannot double-send
        raise self.retry(exc=exc)
