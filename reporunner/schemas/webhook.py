"""Webhook payload and response schemas."""

from pydantic import BaseModel
from typing import Optional

from .job import FileChanges


class PushRepository(BaseModel):
    full_name: str


class PushUser(BaseModel):
    name: str
    email: Optional[str] = None


class PushCommit(BaseModel):
    id: Optional[str] = None
    added: list[str] = []
    modified: list[str] = []
    removed: list[str] = []


class PushPayload(BaseModel):
    """The parts of a GitHub/Forgejo push event this service uses."""
    ref: str
    repository: PushRepository
    before: str
    after: str
    pusher: PushUser
    commits: Optional[list[PushCommit]] = None

    def file_changes(self) -> Optional[FileChanges]:
        """
        Net file changes across all pushed commits, or None if unknown.

        Commits are folded in order so each path lands in exactly one list:
        added-then-modified stays added, added-then-removed disappears,
        removed-then-added becomes modified.
        """
        if not self.commits:
            return None

        state: dict[str, str] = {}
        for commit in self.commits:
            for path in commit.added:
                state[path] = "modified" if state.get(path) == "removed" else state.get(path, "added")
            for path in commit.modified:
                state[path] = "added" if state.get(path) == "added" else "modified"
            for path in commit.removed:
                if state.get(path) == "added":
                    del state[path]
                else:
                    state[path] = "removed"

        return FileChanges(
            added=sorted(p for p, s in state.items() if s == "added"),
            modified=sorted(p for p, s in state.items() if s == "modified"),
            removed=sorted(p for p, s in state.items() if s == "removed"),
        )


class WebhookResponse(BaseModel):
    """Response after accepting a webhook or admin request."""
    status: str
    job_id: Optional[str] = None
    message: str
