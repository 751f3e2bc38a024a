"""API routes."""

from .webhooks import router as webhooks_router
from .jobs import router as jobs_router

__all__ = [
    "webhooks_router",
    "jobs_router",
]
