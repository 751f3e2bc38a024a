"""
Single-flight execution loop that drains pending jobs in id order.

States:
  IDLE    -- no drain in progress; a wake-up starts one
  RUNNING -- a drain is in progress; further wake-ups are dropped

Dropping wake-ups is safe because jobs are stored before anyone signals,
and the drain re-reads the store before every job. After going idle the
loop checks the store once more so a job stored during the final check is
not left waiting for the next signal.

Per-job execution returns a JobOutcome instead of raising: every failure
(synchronization, ref resolution, diff, commit, push, handler) becomes a
``failed`` status on that job and the drain moves on.
"""

import dataclasses
import logging
import threading
from enum import Enum
from typing import Callable, Optional, Union

from ..core.logging_config import job_id_var
from ..schemas.job import ChangeSummary, Job, JobState, JobStatus
from .badge import Badge, BadgeState
from .full_update import DEFAULT_BATCH_SIZE, gather_full_update
from .git_repository import GitRepository
from .job_log import JobLog
from .job_store import JobStore

logger = logging.getLogger("reporunner.execution_loop")


class LoopState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclasses.dataclass(frozen=True)
class JobSucceeded:
    message: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class JobFailed:
    message: str
    error: Optional[BaseException] = None


JobOutcome = Union[JobSucceeded, JobFailed]


@dataclasses.dataclass
class JobContext:
    """What a job handler gets to work with.

    The repository has been synchronized right before the handler is called.
    """
    job: Job
    log: JobLog
    repository: GitRepository

    def changes(self) -> ChangeSummary:
        """The job's change set: its precomputed ``files`` if any, else a diff."""
        if self.job.files is not None:
            return ChangeSummary.from_files(self.job.files, self.job.from_ref, self.job.till)
        if not self.job.from_ref:
            raise ValueError(f"Job {self.job.id} has neither files nor a commit range")
        return self.repository.diff(self.job.from_ref, self.job.till or "HEAD", self.log)

    def commit_and_push(self, message: str) -> bool:
        """Commit all working-tree changes as the job's author and push them.

        Returns False (and pushes nothing) when there was nothing to commit.
        """
        author = self.job.author
        if not self.repository.commit(author.name, author.email, message, self.log):
            return False
        self.repository.push(self.log)
        return True


# Returns an optional human-readable result stored as the job's message.
JobHandler = Callable[[JobContext], Optional[str]]


class ExecutionLoop:
    """
    Drains pending jobs one at a time.

    Args:
        store: Where jobs and their status live.
        repository: The local clone, synchronized before every job.
        handler: User callback run for every ordinary job.
        badge: Optional status badge updated after every job.
        batch_size: Files per full-update batch job.
    """

    def __init__(
        self,
        store: JobStore,
        repository: GitRepository,
        handler: JobHandler,
        badge: Optional[Badge] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._store = store
        self._repository = repository
        self._handler = handler
        self._badge = badge
        self._batch_size = batch_size

        self._state = LoopState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> LoopState:
        with self._lock:
            return self._state

    def try_begin(self) -> bool:
        """Atomically move IDLE -> RUNNING. Returns False if already running."""
        with self._lock:
            if self._state == LoopState.RUNNING:
                return False
            self._state = LoopState.RUNNING
            logger.debug("Execution loop: IDLE -> RUNNING")
            return True

    def _finish(self) -> None:
        with self._lock:
            self._state = LoopState.IDLE
            logger.debug("Execution loop: RUNNING -> IDLE")

    def run(self) -> bool:
        """Drain all pending jobs unless a drain is already in progress.

        Returns:
            True if this call drained the queue, False if it was dropped.
        """
        if not self.try_begin():
            logger.info("Execution loop already running")
            return False

        while True:
            try:
                processed = self._drain()
            finally:
                self._finish()
            if processed:
                logger.info(f"Drain finished after {processed} job(s)")
            if not self._store.pending_jobs() or not self.try_begin():
                return True

    def _drain(self) -> int:
        processed = 0
        while True:
            status = self._store.next_pending()
            if status is None:
                return processed
            self.process(status)
            processed += 1

    def process(self, status: JobStatus) -> JobOutcome:
        """Execute one job and record its outcome."""
        job = status.job
        token = job_id_var.set(job.id)
        try:
            return self._process(status)
        finally:
            job_id_var.reset(token)

    def _process(self, status: JobStatus) -> JobOutcome:
        job = status.job
        log = self._store.log_for(status)
        log(f"Starting job {job.id}")

        outcome = self.execute(job, log)

        if isinstance(outcome, JobSucceeded):
            self._store.set_status(job, JobState.COMPLETED, outcome.message)
            log("Completed job successfully")
            self._update_badge(BadgeState.OK)
        else:
            self._store.set_status(job, JobState.FAILED, outcome.message)
            log("FAILED JOB")
            if outcome.error is not None:
                log.exception(outcome.error)
            else:
                log(outcome.message)
            self._update_badge(BadgeState.FAILED)
            logger.warning(f"Job {job.id} failed: {outcome.message[:200]}")
        return outcome

    def execute(self, job: Job, log: JobLog) -> JobOutcome:
        """Synchronize the clone and run the job. Never raises for job errors."""
        try:
            self._repository.synchronize(log)
            self._store.set_status(job, JobState.PENDING)
            if job.is_gather:
                message = self._gather(job, log)
            else:
                result = self._handler(JobContext(job=job, log=log, repository=self._repository))
                message = None if result is None else str(result)
        except Exception as e:
            return JobFailed(message=str(e) or e.__class__.__name__, error=e)
        except SystemExit as e:
            # sys.exit() in a handler fails the job, not the worker thread
            return JobFailed(message=f"Job called sys.exit({e.code!r})", error=e)
        return JobSucceeded(message)

    def _gather(self, job: Job, log: JobLog) -> str:
        batches = gather_full_update(
            self._repository, job, job.author,
            batch_size=self._batch_size, log=log, synchronize=False,
        )
        for batch in batches:
            self._store.add_job(batch)
        return f"Created {len(batches)} full-update job(s)"

    def _update_badge(self, state: BadgeState) -> None:
        if self._badge is None:
            return
        try:
            self._badge.write(state)
        except OSError as e:
            logger.warning(f"Could not write status badge (non-fatal): {e}")
