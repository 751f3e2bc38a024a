"""Filesystem-backed store of jobs and their status."""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..exceptions import JobConflictError
from ..schemas.job import Job, JobState, JobStatus
from .job_log import LOG_FILE_NAME, JobLog

logger = logging.getLogger(__name__)

STATUS_FILE_NAME = "status.json"

_id_lock = threading.Lock()
_last_issued: Optional[datetime] = None


def format_timestamp(moment: datetime) -> str:
    """Millisecond UTC timestamp, e.g. ``2024-05-01T12:00:00.123Z``."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def new_job_id(suffix: str = "", now: Optional[datetime] = None) -> str:
    """
    Generate a job id that sorts after every id issued before it.

    Ids are millisecond timestamps; if the clock has not moved past the last
    issued timestamp the new one is bumped by a millisecond, so two triggers
    within the same millisecond still get distinct, ordered ids.
    """
    global _last_issued
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    moment = moment.replace(microsecond=moment.microsecond // 1000 * 1000)
    with _id_lock:
        if _last_issued is not None and moment <= _last_issued:
            moment = _last_issued + timedelta(milliseconds=1)
        _last_issued = moment
    return format_timestamp(moment) + suffix


class JobStore:
    """
    Durable directory-per-job persistence.

    Layout::

        <jobs_dir>/<job id>/status.json   serialized JobStatus
        <jobs_dir>/<job id>/log.txt       append-only job log

    Nothing is cached in memory: every query re-reads the disk, so the store
    survives restarts and can be shared by the front-end and the worker.
    Each mutation rewrites one ``status.json`` in full.
    """

    def __init__(self, jobs_dir: Path | str):
        self.jobs_dir = Path(jobs_dir)
        self.jobs_dir.mkdir(parents=True, exist_ok=True)

    def job_dir(self, job_id: str) -> Path:
        return self.jobs_dir / job_id

    def _write_status(self, status: JobStatus) -> None:
        path = Path(status.dir) / STATUS_FILE_NAME
        path.write_text(status.to_json(), encoding="utf-8")

    def add_job(self, job: Job) -> JobStatus:
        """
        Create the job directory and its initial ``pending`` status record.

        Raises:
            JobConflictError: a job with this id already exists.
        """
        job_dir = self.job_dir(job.id)
        try:
            job_dir.mkdir()
        except FileExistsError as e:
            raise JobConflictError(job.id) from e

        status = JobStatus(job=job, status=JobState.PENDING, dir=str(job_dir))
        self._write_status(status)
        (job_dir / LOG_FILE_NAME).touch()
        logger.info(f"Added job {job.id}")
        return status

    def set_status(self, job: Job, status: JobState, message: Optional[str] = None) -> JobStatus:
        """Overwrite the status record of *job*. Prior status is not checked."""
        record = JobStatus(job=job, status=status, message=message, dir=str(self.job_dir(job.id)))
        self._write_status(record)
        return record

    def _read_status(self, job_dir: Path) -> Optional[JobStatus]:
        status_file = job_dir / STATUS_FILE_NAME
        try:
            raw = status_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning(f"No status file found at {status_file}. Please remove the directory.")
            return None
        except OSError as e:
            logger.warning(f"Could not read {status_file}: {e}")
            return None

        try:
            return JobStatus.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Could not parse {status_file}: {e}")
            return None

    def all_jobs(self, oldest_first: bool = False,
                 page: Optional[tuple[Optional[int], Optional[int]]] = None) -> list[JobStatus]:
        """
        List job statuses sorted by id.

        Args:
            oldest_first: Ascending order instead of newest first.
            page: Optional ``(start, stop)`` slice applied after sorting.

        Returns:
            Statuses of all readable jobs; corrupt entries are skipped.
        """
        names = sorted(
            (entry.name for entry in self.jobs_dir.iterdir() if entry.is_dir()),
            reverse=not oldest_first,
        )
        if page is not None:
            names = names[page[0]:page[1]]

        statuses = []
        for name in names:
            status = self._read_status(self.jobs_dir / name)
            if status is not None:
                statuses.append(status)
        return statuses

    def pending_jobs(self) -> list[JobStatus]:
        """Pending jobs, oldest first."""
        return [s for s in self.all_jobs(oldest_first=True) if s.status == JobState.PENDING]

    def next_pending(self) -> Optional[JobStatus]:
        pending = self.pending_jobs()
        return pending[0] if pending else None

    def get(self, job_id: str) -> Optional[JobStatus]:
        job_dir = self.job_dir(job_id)
        # Ids come from URLs; refuse anything that escapes jobs_dir.
        if job_dir.parent != self.jobs_dir or not job_dir.is_dir():
            return None
        return self._read_status(job_dir)

    def log_for(self, status: JobStatus, echo: bool = True) -> JobLog:
        return JobLog(Path(status.dir) / LOG_FILE_NAME, echo=echo)

    def latest_outcome(self) -> Optional[JobState]:
        """State of the most recent completed or failed job, if any."""
        for status in self.all_jobs():
            if status.status in (JobState.COMPLETED, JobState.FAILED):
                return status.status
        return None
