"""Job storage, repository management and job execution."""

from .execution_loop import ExecutionLoop, JobContext, JobFailed, JobSucceeded, LoopState
from .git_repository import GitRepository
from .job_store import JobStore, new_job_id
from .trigger_channel import TriggerChannel

__all__ = [
    "ExecutionLoop",
    "JobContext",
    "JobFailed",
    "JobSucceeded",
    "LoopState",
    "GitRepository",
    "JobStore",
    "new_job_id",
    "TriggerChannel",
]
