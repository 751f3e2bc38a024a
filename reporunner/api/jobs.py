"""Admin triggers, job listing and the status badge."""

import logging
from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, Response
from typing import List, Optional

from ..core.config import Settings
from ..exceptions import InvalidPayloadError, JobNotFoundError
from ..schemas.job import Job, JobStatus
from ..schemas.webhook import WebhookResponse
from ..services.badge import Badge
from ..services.job_store import JobStore, new_job_id
from ..services.trigger_channel import TriggerChannel
from .deps import get_badge, get_channel, get_settings, get_store, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])


@router.post("/update", response_model=WebhookResponse, status_code=202,
             dependencies=[Depends(require_admin)])
def request_update(
    from_ref: Optional[str] = Query(None, alias="from"),
    till: str = Query("HEAD"),
    settings: Settings = Depends(get_settings),
    channel: TriggerChannel = Depends(get_channel),
):
    """Enqueue a job for the commit range ``from..till``.

    The change set is computed by the worker, after it has pulled.
    """
    if not from_ref:
        raise InvalidPayloadError("Query parameter 'from' required", field="from")

    job = Job(
        id=new_job_id(),
        from_ref=from_ref,
        till=till or "HEAD",
        author=settings.default_author(),
    )
    channel.submit(job)
    return WebhookResponse(status="queued", job_id=job.id, message=f"Update {from_ref}..{job.till} enqueued")


@router.post("/full_update", response_model=WebhookResponse, status_code=202,
             dependencies=[Depends(require_admin)])
def request_full_update(channel: TriggerChannel = Depends(get_channel)):
    """Enqueue a job that processes every file in the repository, in batches."""
    logger.info("Got full_update request")
    status = channel.request_full_update()
    return WebhookResponse(status="queued", job_id=status.job.id, message="Full update enqueued")


@router.get("/jobs.json", response_model=List[JobStatus], response_model_exclude_none=True)
def list_jobs(
    from_index: int = Query(0, ge=0, alias="from"),
    till_index: int = Query(200, ge=0, alias="till"),
    store: JobStore = Depends(get_store),
):
    """Jobs newest first, sliced ``[from:till]``."""
    return store.all_jobs(page=(from_index, till_index))


@router.get("/jobs/{job_id}", response_model=JobStatus, response_model_exclude_none=True)
def get_job(job_id: str, store: JobStore = Depends(get_store)):
    """Get a specific job by ID."""
    status = store.get(job_id)
    if status is None:
        raise JobNotFoundError(job_id)
    return status


@router.get("/jobs/{job_id}/log", response_class=PlainTextResponse)
def get_job_log(job_id: str, store: JobStore = Depends(get_store)):
    """The job's ``log.txt``."""
    status = store.get(job_id)
    if status is None:
        raise JobNotFoundError(job_id)
    return PlainTextResponse(store.log_for(status, echo=False).read())


@router.get("/status")
def status_badge(badge: Badge = Depends(get_badge)):
    """OK / Failed / Unknown badge for the most recent finished job."""
    return Response(
        content=badge.read(),
        media_type="image/svg+xml",
        headers={"Cache-Control": "no-cache"},
    )
