from __future__ import annotations

"""One-shot cron entry point, for platforms that schedule commands instead of HTTP calls:
    python -m app.scripts.run_cron morning
    python -m app.scripts.run_cron call-reminders
"""

import argparse
import asyncio
import json
import logging

from app.services import orchestrator
import db


async def main(job: str) -> dict:
    try:
        stats = await orchestrator.run_job(job)
    finally:
        await db.dispose_engine()
    return stats.as_response()


if __name__ == "__main__":  # pragma: no cover
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "job", choices=[*orchestrator.CRON_JOBS, orchestrator.CALL_REMINDERS_JOB, orchestrator.CALL_JOBS_JOB]
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    print(f"[CRON] {args.job}: job started")
    try:
        result = asyncio.run(main(args.job))
        print(f"[CRON] {args.job}: job completed successfully", json.dumps(result))
    except Exception as e:
        print(f"[CRON] {args.job}: job failed: {e}")
        raise SystemExit(1)
