"""
Full-update gathering: turn "process everything" into bounded batch jobs.

Webhook receivers and diff viewers give up on very large change sets
(GitHub stops generating diffs beyond 3000 files), so a full update is split
into batches of at most ``DEFAULT_BATCH_SIZE`` files, each an ordinary job
whose ``files.modified`` lists the batch.
"""

import logging
import os
from pathlib import Path
from typing import Iterator

from ..schemas.job import Author, FileChanges, Job, JobType
from .git_repository import GitRepository
from .job_log import LogFn
from .job_store import new_job_id

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 3000

GATHER_SUFFIX = " full update"

SKIP_DIRS: set[str] = {".git"}


def new_gather_job(author: Author) -> Job:
    """Create the meta-job that gathers a full update when executed."""
    return Job(id=new_job_id(GATHER_SUFFIX), author=author, type=JobType.FULL_UPDATE_GATHER)


def iter_tree_files(root: Path) -> Iterator[str]:
    """Yield repo-relative posix paths of regular files under *root*.

    Directories, symlinks and git metadata are skipped. Order is
    deterministic (sorted per directory).
    """
    for dirpath, dirs, files in os.walk(root):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for fname in sorted(files):
            fpath = Path(dirpath) / fname
            if fpath.is_symlink() or not fpath.is_file():
                continue
            yield fpath.relative_to(root).as_posix()


def batch_id(gather_id: str, index: int) -> str:
    """Id of batch *index* (1-based) before the total is known.

    The gather id is a prefix, so batches sort right after their gather job
    and before any job created later.
    """
    return f"{gather_id}: {index:03d}"


def gather_full_update(
    repository: GitRepository,
    gather_job: Job,
    author: Author,
    batch_size: int = DEFAULT_BATCH_SIZE,
    log: LogFn = logger.info,
    synchronize: bool = True,
) -> list[Job]:
    """
    Walk the synchronized working tree and split it into batch jobs.

    Ids are assigned in two passes: the batch number during the walk, the
    ``of NNN`` total once the walk has finished. Pass ``synchronize=False``
    when the caller has just synchronized the repository.

    Returns:
        The batch jobs, in order, not yet stored.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    log("Gathering jobs for full update")
    if synchronize:
        repository.synchronize(log)

    jobs: list[Job] = []
    files: list[str] = []

    def seal() -> None:
        jobs.append(Job(
            id=batch_id(gather_job.id, len(jobs) + 1),
            author=author,
            files=FileChanges(modified=files),
        ))

    for path in iter_tree_files(repository.directory):
        files.append(path)
        if len(files) >= batch_size:
            seal()
            files = []
    if files:
        seal()

    total = len(jobs)
    for job in jobs:
        job.id += f" of {total:03d}"

    log(f"Gathered {total} full-update job(s)")
    return jobs
