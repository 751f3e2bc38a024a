"""
reporunner: run a job for every push to a git repository.

A small webhook service that keeps a local clone of one repository in sync,
stores one job per push (or per admin request) on disk and executes them one
at a time, in order, on a background worker. What a job does is up to the
handler:

    from reporunner import JobContext, serve

    def handler(ctx: JobContext):
        changes = ctx.changes()
        ...
        ctx.commit_and_push("Regenerate docs")

    serve(handler)
"""

from .main import create_app, serve
from .services.execution_loop import JobContext, JobFailed, JobHandler, JobSucceeded

__all__ = [
    "create_app",
    "serve",
    "JobContext",
    "JobFailed",
    "JobHandler",
    "JobSucceeded",
]
