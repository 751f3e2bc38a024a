"""
Message-passing boundary between the HTTP front-end and the worker.

The front-end stores a job first and signals second, so a lost or dropped
signal never loses a job: the worker re-reads the store on every wake-up.
Signals are fire-and-forget; senders never wait for the worker.
"""

import logging
import queue
from enum import Enum
from typing import Optional

from ..schemas.job import Author, Job, JobStatus
from .full_update import new_gather_job
from .job_store import JobStore

logger = logging.getLogger(__name__)


class TriggerMessage(Enum):
    NEW_JOB = "new_job"
    FULL_UPDATE = "full_update"
    STOP = "stop"


class TriggerChannel:
    """
    Enqueue-and-signal entry points used by the front-end.

    Args:
        store: Job store shared with the worker.
        author: Default author for jobs synthesized here (full updates).
    """

    def __init__(self, store: JobStore, author: Author) -> None:
        self.store = store
        self.author = author
        self._queue: "queue.Queue[TriggerMessage]" = queue.Queue()

    def submit(self, job: Job) -> JobStatus:
        """Store *job* and wake the worker.

        Raises:
            JobConflictError: a job with the same id exists.
        """
        status = self.store.add_job(job)
        self.signal(TriggerMessage.NEW_JOB)
        logger.info(f"Job submitted: {job.id}")
        return status

    def request_full_update(self) -> JobStatus:
        """Store a full-update gather job and wake the worker."""
        job = new_gather_job(self.author)
        status = self.store.add_job(job)
        self.signal(TriggerMessage.FULL_UPDATE)
        logger.info(f"Full update requested: {job.id}")
        return status

    def signal(self, message: TriggerMessage = TriggerMessage.NEW_JOB) -> None:
        self._queue.put_nowait(message)

    def receive(self, timeout: Optional[float] = None) -> Optional[TriggerMessage]:
        """Next message, or None if *timeout* seconds pass without one."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.signal(TriggerMessage.STOP)
