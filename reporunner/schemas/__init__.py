"""Pydantic schemas for jobs and webhook payloads."""

from .job import (
    Author,
    ChangeSummary,
    FileChanges,
    Job,
    JobState,
    JobStatus,
    JobType,
)
from .webhook import (
    PushPayload,
    WebhookResponse,
)

__all__ = [
    "Author",
    "ChangeSummary",
    "FileChanges",
    "Job",
    "JobState",
    "JobStatus",
    "JobType",
    "PushPayload",
    "WebhookResponse",
]
