"""Job, job status and change-set schemas.

These models are persisted verbatim as ``status.json`` inside each job
directory, so the JSON key names (``from``, ``till``, ``files``...) are part
of the on-disk format and must not change.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class JobState(str, Enum):
    """Persisted job status. There is deliberately no ``running`` state."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, Enum):
    """Special job kinds. Ordinary jobs carry no ``type``."""
    FULL_UPDATE_GATHER = "full_update_gather"


class Author(BaseModel):
    """Attribution for any commit made while processing a job."""
    name: str
    email: str


class FileChanges(BaseModel):
    """Precomputed change payload attached to a job.

    Webhook jobs carry all three lists, full-update batches only ``modified``.
    """
    added: Optional[list[str]] = None
    modified: Optional[list[str]] = None
    removed: Optional[list[str]] = None


class Job(BaseModel):
    """One unit of requested work.

    ``id`` must start with a sortable UTC timestamp: the job store orders
    jobs by plain string comparison of their ids.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_ref: Optional[str] = Field(default=None, alias="from")
    till: Optional[str] = None
    author: Author
    files: Optional[FileChanges] = None
    type: Optional[JobType] = None

    @property
    def is_gather(self) -> bool:
        return self.type == JobType.FULL_UPDATE_GATHER

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobStatus(BaseModel):
    """The record written to ``<jobs_dir>/<id>/status.json``."""
    job: Job
    status: JobState
    message: Optional[str] = None
    dir: str

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, by_alias=True, exclude_none=True)


class ChangeSummary(BaseModel):
    """Files added, modified and removed between two commits.

    ``from``/``till`` are full commit hashes whenever the summary was produced
    by a diff; symbolic refs are resolved before they get here.
    """

    model_config = ConfigDict(populate_by_name=True)

    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    from_ref: Optional[str] = Field(default=None, alias="from")
    till: Optional[str] = None

    @classmethod
    def from_files(cls, files: FileChanges, from_ref: Optional[str] = None,
                   till: Optional[str] = None) -> "ChangeSummary":
        return cls(
            added=files.added or [],
            modified=files.modified or [],
            removed=files.removed or [],
            from_ref=from_ref,
            till=till,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)
