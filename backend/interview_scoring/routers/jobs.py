# backend/interview_scoring/routers/jobs.py
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from ..bootstrap import Services
from ..config import Settings
from .deps import get_services, get_settings

router = APIRouter()
log = logging.getLogger("interview_scoring.routers.jobs")


# ---------------------------------------------------
# Bearer token shared with the scheduler
# ---------------------------------------------------
def require_trigger_token(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token")

    secret = settings.JOB_TRIGGER_SECRET
    if not secret:
        log.error("JOB_TRIGGER_SECRET not configured; refusing job trigger")
        raise HTTPException(status_code=403, detail="Forbidden")
    if not hmac.compare_digest(token.strip().encode("utf-8"), secret.encode("utf-8")):
        log.warning("Job trigger called with a wrong token")
        raise HTTPException(status_code=403, detail="Forbidden")


# ---------------------------------------------------
# One claim + execute cycle per call
# ---------------------------------------------------
@router.api_route("/process", methods=["GET", "POST"], dependencies=[Depends(require_trigger_token)])
async def process_jobs(services: Services = Depends(get_services)):
    try:
        outcome = await services.runner.run_once()
    except Exception as e:
        log.exception("Job processing cycle crashed")
        return JSONResponse(status_code=500, content={"status": "error", "error": str(e)})
    return outcome.to_dict()


# ---------------------------------------------------
# Operator: put a failed job back in the queue
# ---------------------------------------------------
@router.post("/{job_id}/requeue", dependencies=[Depends(require_trigger_token)])
async def requeue_job(job_id: str, services: Services = Depends(get_services)):
    job = await services.queue.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")

    requeued = await services.queue.requeue(job_id)
    if requeued is None:
        raise HTTPException(
            status_code=409,
            detail="job is not failed, has no attempts left, or its session already has an active job",
        )
    return {
        "job_id": requeued.id,
        "session_id": requeued.session_id,
        "status": requeued.status,
        "attempts": requeued.attempts,
        "max_attempts": requeued.max_attempts,
    }
