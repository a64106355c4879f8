import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse

import db
from app.services import orchestrator

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
_LOGGER = logging.getLogger(__name__)

app = FastAPI()

_MESSAGES = {
    "morning": "Morning notifications cron completed",
    "evening": "Evening notifications cron completed",
    "weekly": "Weekly notifications cron completed",
    orchestrator.CALL_REMINDERS_JOB: "Call reminders cron completed",
    orchestrator.CALL_JOBS_JOB: "Call scheduled jobs cron completed",
}

@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()

# --------------------------------------------
# Cron trigger (Vercel-style crons send GET, others POST)
# --------------------------------------------
@app.api_route("/api/notifications/cron/{job}", methods=["GET", "POST"])
async def cron_trigger(job: str, request: Request):
    if job not in _MESSAGES:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Unknown cron job")

    try:
        orchestrator.authenticate(request.headers.get("authorization"))
    except orchestrator.CronConfigError as e:
        return JSONResponse({"error": str(e)}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except orchestrator.CronAuthError:
        return JSONResponse({"error": "Unauthorized"}, status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        stats = await orchestrator.run_job(job)
    except Exception as e:
        _LOGGER.exception("[CRON] %s run failed", job)
        return JSONResponse(
            {"error": str(e) or f"Failed to process {job} cron"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return {"success": True, "message": _MESSAGES[job], "stats": stats.as_response()}
