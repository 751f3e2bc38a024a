"""Push webhook endpoint: one job per push to the tracked repository."""

import json
import logging
from fastapi import APIRouter, Depends, Request, Response
from pydantic import ValidationError

from ..core.config import Settings
from ..core.security import SIGNATURE_HEADERS, verify_webhook_signature
from ..exceptions import InvalidPayloadError, WebhookValidationError, WrongRepositoryError
from ..schemas.job import Author, Job
from ..schemas.webhook import PushPayload, WebhookResponse
from ..services.job_store import new_job_id
from ..services.trigger_channel import TriggerChannel
from .deps import get_channel, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

EVENT_HEADERS = ("X-GitHub-Event", "X-Forgejo-Event", "X-Gitea-Event")


@router.post("/webhook", response_model=WebhookResponse, status_code=202)
@router.post("/", response_model=WebhookResponse, status_code=202, include_in_schema=False)
async def push_webhook(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    channel: TriggerChannel = Depends(get_channel),
):
    """
    Receive push webhooks and enqueue a job for the pushed range.

    Validates the signature when WEBHOOK_SECRET is set, checks that the push
    is for SOURCE_REPOSITORY and SOURCE_BRANCH, and stores a job covering ``before..after``.
    The pushed commits' file lists are attached when the payload has them.
    """
    # Read raw body for signature verification
    body = await request.body()

    if settings.webhook_secret:
        signature = next(
            (request.headers[h] for h in SIGNATURE_HEADERS if h in request.headers), None
        )
        if not verify_webhook_signature(body, signature, settings.webhook_secret):
            logger.warning("Webhook signature verification failed")
            raise WebhookValidationError()

    try:
        data = json.loads(body)
    except ValueError:
        raise InvalidPayloadError("Invalid JSON payload")

    # Only process push events
    event_type = next((request.headers[h] for h in EVENT_HEADERS if h in request.headers), "push")
    if event_type != "push":
        response.status_code = 200
        return WebhookResponse(
            status="ignored",
            message=f"Event type '{event_type}' ignored, only 'push' is processed"
        )

    try:
        payload = PushPayload.model_validate(data)
    except ValidationError:
        raise InvalidPayloadError("Invalid Payload")

    repo_name = payload.repository.full_name
    logger.info(f"Got webhook from {repo_name}")
    if repo_name != settings.source_repository:
        raise WrongRepositoryError(repo_name, settings.source_repository)

    branch_ref = f"refs/heads/{settings.source_branch}"
    if payload.ref != branch_ref:
        logger.info(f"Ignoring push to {payload.ref}, only {branch_ref} is processed")
        response.status_code = 200
        return WebhookResponse(
            status="ignored",
            message=f"Push to '{payload.ref}' ignored, only '{branch_ref}' is processed"
        )

    job = Job(
        id=new_job_id(),
        from_ref=payload.before,
        till=payload.after,
        author=Author(name=payload.pusher.name, email=payload.pusher.email or settings.email),
        files=payload.file_changes(),
    )
    channel.submit(job)

    return WebhookResponse(
        status="queued",
        job_id=job.id,
        message=f"Job enqueued for {payload.before[:8]}..{payload.after[:8]}"
    )
