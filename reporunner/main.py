"""Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request

from .api import jobs_router, webhooks_router
from .core.config import ConfigurationError, Settings, settings
from .core.logging_config import setup_logging
from .exceptions import RunnerException
from .handlers import load_handler
from .middleware.exception_handler import runner_exception_handler
from .services.badge import Badge, BadgeState
from .services.execution_loop import ExecutionLoop, JobHandler
from .services.git_repository import GitRepository
from .services.job_store import JobStore
from .services.trigger_channel import TriggerChannel
from .worker import JobWorker

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Seconds to wait for the worker to finish its current job on shutdown
SHUTDOWN_TIMEOUT = 30.0


def create_app(
    app_settings: Optional[Settings] = None,
    handler: Optional[JobHandler] = None,
    start_worker: bool = True,
) -> FastAPI:
    """
    Build the application around a job store in ``work_dir``.

    Args:
        app_settings: Settings to use, defaults to the environment.
        handler: Job handler; defaults to the one named by JOB_HANDLER.
        start_worker: Start the background worker on startup. Disable to run
            the HTTP front-end alone (jobs are stored but not executed).
    """
    cfg = app_settings or settings

    try:
        cfg.prepare_directories()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    store = JobStore(cfg.jobs_dir)
    badge = Badge(cfg.work_dir, name=cfg.title)
    channel = TriggerChannel(store, cfg.default_author())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        # --- Configuration validation ---
        try:
            for warning in cfg.validate_startup():
                logger.warning(f"CONFIG: {warning}")
            job_handler = handler or load_handler(cfg.job_handler)
        except (ConfigurationError, ImportError, AttributeError, TypeError, ValueError) as e:
            logger.critical(f"STARTUP BLOCKED: {e}")
            raise SystemExit(1) from e

        # --- Badge reflects the last finished job, even across restarts ---
        try:
            badge.write(BadgeState.from_job_state(store.latest_outcome()))
        except OSError as e:
            logger.warning(f"Could not write status badge (non-fatal): {e}")

        worker = None
        if start_worker:
            repository = GitRepository(
                cfg.source_repository_uri,
                cfg.source_branch,
                cfg.repository_dir,
                token=cfg.git_token or None,
            )
            loop = ExecutionLoop(store, repository, job_handler, badge=badge, batch_size=cfg.batch_size)
            worker = JobWorker(channel, loop, poll_interval=cfg.poll_interval)
            worker.start()
        app.state.worker = worker

        logger.info(
            "%s started | repository=%s | branch=%s | work_dir=%s | webhook_auth=%s | admin_auth=%s",
            cfg.title,
            cfg.source_repository or "-",
            cfg.source_branch,
            cfg.work_dir,
            "enabled" if cfg.webhook_secret else "disabled",
            "enabled" if cfg.admin_password else "disabled",
        )

        yield  # App runs here

        if worker is not None:
            worker.stop(timeout=SHUTDOWN_TIMEOUT)
            if worker.is_alive():
                logger.warning("Worker still busy at shutdown; current job left pending")

    app = FastAPI(
        title=cfg.title,
        description=cfg.description,
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.store = store
    app.state.badge = badge
    app.state.channel = channel
    app.state.worker = None

    # Register exception handlers
    app.add_exception_handler(RunnerException, runner_exception_handler)

    # Include routers
    app.include_router(jobs_router)
    app.include_router(webhooks_router)

    started = time.monotonic()

    @app.get("/health")
    def health_check(request: Request):
        """Liveness plus a glance at the queue. Never raises."""
        worker = request.app.state.worker
        if worker is None:
            worker_status = "disabled"
        else:
            worker_status = "running" if worker.is_alive() else "stopped"

        try:
            pending = len(store.pending_jobs())
            store_status = "ok"
        except OSError:
            pending = 0
            store_status = "error"

        healthy = store_status == "ok" and worker_status != "stopped"
        return {
            "status": "healthy" if healthy else "degraded",
            "worker": worker_status,
            "store": store_status,
            "pending_jobs": pending,
            "uptime_seconds": round(time.monotonic() - started),
            "version": VERSION,
        }

    return app


def serve(handler: Optional[JobHandler] = None, app_settings: Optional[Settings] = None) -> None:
    """Run the service until interrupted."""
    cfg = app_settings or settings
    setup_logging(log_level=cfg.log_level, log_format=cfg.log_format)
    app = create_app(cfg, handler=handler)
    # log_config=None keeps uvicorn on the handlers set up above
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_config=None)


def main() -> None:
    serve()


if __name__ == "__main__":
    main()
