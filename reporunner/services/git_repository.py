"""
Local clone management for the tracked source repository.

Owns exactly one working copy on disk and exposes the git operations job
execution needs: synchronize (pull-or-clone), ref resolution, commit-range
diffs, commit and push. Everything shells out to the ``git`` binary.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from ..schemas.job import ChangeSummary
from .commands import CommandError, run_command
from .job_log import LogFn

logger = logging.getLogger("reporunner.git")

GIT = "git"

# `git hash-object -t tree /dev/null`, the diff base for a root commit.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_HANDLED_STATUSES = {"A": "added", "M": "modified", "D": "removed"}


class GitCommandError(CommandError):
    """A git command exited non-zero."""


class SynchronizationError(GitCommandError):
    """Cloning the repository failed (after a failed or impossible pull)."""


class RefResolutionError(GitCommandError):
    """A ref does not name a commit in the local clone."""


class DiffError(GitCommandError):
    """``git diff`` exited non-zero."""


def _default_log(message: str) -> None:
    logger.info(message)


class GitRepository:
    """
    A single local clone of ``uri`` checked out on ``branch``.

    The directory is either a complete working copy or absent/partial;
    ``synchronize()`` repairs the latter by wiping and re-cloning.
    Not thread-safe: the execution loop is the only caller.

    Args:
        uri: Repository uri, e.g. ``"https://github.com/org/repo.git"``.
        branch: Branch to check out.
        directory: Where the working copy lives.
        token: Optional access token, embedded into https uris for clone/push.
    """

    def __init__(self, uri: str, branch: str, directory: Path | str,
                 token: Optional[str] = None) -> None:
        self.uri = uri
        self.branch = branch
        self.directory = Path(directory)
        self._token = token or None
        self.directory.mkdir(parents=True, exist_ok=True)

    @property
    def auth_uri(self) -> str:
        """``uri`` with the token embedded. Never log this."""
        if self._token and self.uri.startswith("https://"):
            return self.uri.replace("https://", f"https://{self._token}@", 1)
        return self.uri

    @property
    def _secrets(self) -> tuple[str, ...]:
        return (self._token,) if self._token else ()

    def _git(self, *args: str, log: LogFn, error_class=GitCommandError, check: bool = True,
             env: Optional[dict[str, str]] = None):
        return run_command(
            [GIT, *args],
            cwd=self.directory,
            log=log,
            env=env,
            secrets=self._secrets,
            check=check,
            error_class=error_class,
        )

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def has_clone(self) -> bool:
        return (self.directory / ".git").exists()

    def wipe(self) -> None:
        """Remove the working copy entirely. A clone must follow."""
        shutil.rmtree(self.directory, ignore_errors=True)
        self.directory.mkdir(parents=True, exist_ok=True)

    def clone(self, log: LogFn = _default_log) -> None:
        log(f"Cloning {self.uri} ({self.branch}). This may take some time.")
        self._git(
            "clone", "--single-branch", "--quiet", "--branch", self.branch,
            self.auth_uri, ".",
            log=log, error_class=SynchronizationError,
        )
        log("git clone successful")

    def pull(self, log: LogFn = _default_log) -> bool:
        """Run ``git pull``. Returns False instead of raising on failure."""
        log("Starting git pull")
        # Stop git from walking up into an enclosing repository when the
        # local .git is damaged.
        result = self._git(
            "pull",
            log=log, check=False,
            env={"GIT_CEILING_DIRECTORIES": str(self.directory.resolve().parent)},
        )
        if result.returncode != 0:
            log(f"git pull failed with exit code {result.returncode}")
            return False
        log("git pull successful")
        return True

    def synchronize(self, log: LogFn = _default_log) -> None:
        """Bring the working copy up to date with ``branch`` at ``uri``.

        Pulls when a clone exists; on pull failure, or when there is no clone,
        wipes the directory and clones afresh. A failing clone raises
        ``SynchronizationError``.
        """
        if self.has_clone() and self.pull(log):
            return
        if self.has_clone():
            log("Discarding the local clone and cloning again")
        self.wipe()
        self.clone(log)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_hash(self, ref: str, log: LogFn = _default_log) -> str:
        """Resolve any ref form (branch, tag, short hash, HEAD) to a full hash."""
        try:
            result = self._git(
                "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}",
                log=log, error_class=RefResolutionError,
            )
        except RefResolutionError as e:
            raise RefResolutionError(
                f"git rev-parse {ref}", e.returncode, e.output or f"Unknown revision: {ref}",
            ) from e
        return result.stdout.strip()

    def _parent_or_empty_tree(self, commit: str, log: LogFn) -> str:
        result = self._git("rev-parse", "--verify", "--quiet", f"{commit}^", log=log, check=False)
        if result.returncode != 0:
            return EMPTY_TREE
        return result.stdout.strip()

    def diff(self, from_ref: str, till_ref: str = "HEAD", log: LogFn = _default_log) -> ChangeSummary:
        """
        List files changed between two commits.

        When both refs resolve to the same commit, the result is the change
        introduced by that commit alone. Renames are reported as a removal
        plus an addition. Status codes other than A/M/D are logged and
        dropped.

        Raises:
            RefResolutionError: a ref is unknown to the local clone.
            DiffError: ``git diff`` failed.
        """
        from_hash = self.resolve_hash(from_ref, log)
        till_hash = self.resolve_hash(till_ref, log)

        base = from_hash
        if from_hash == till_hash:
            base = self._parent_or_empty_tree(till_hash, log)

        # -z: raw (unquoted, unescaped) paths as NUL-separated status/path pairs
        result = self._git(
            "-c", "core.quotePath=false",
            "diff", "--name-status", "--no-renames", "-z", base, till_hash,
            log=log, error_class=DiffError,
        )

        changes: dict[str, list[str]] = {"added": [], "modified": [], "removed": []}
        unhandled: list[str] = []
        fields = result.stdout.split("\0")
        for status, path in zip(fields[0::2], fields[1::2]):
            bucket = _HANDLED_STATUSES.get(status)
            if bucket is None or not path:
                unhandled.append(f"{status}\t{path}")
                continue
            changes[bucket].append(path)

        if unhandled:
            log("Unclear how to handle these files:\n - " + "\n - ".join(unhandled))

        return ChangeSummary(from_ref=from_hash, till=till_hash, **changes)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def commit(self, author_name: str, author_email: str, message: str,
               log: LogFn = _default_log) -> bool:
        """Stage all working-tree changes and commit them as the given author.

        Returns:
            True if a commit was made, False if there was nothing to commit.
        """
        self._git("config", "user.name", author_name, log=log)
        self._git("config", "user.email", author_email, log=log)
        self._git("add", "--all", log=log)

        staged = self._git("diff", "--cached", "--quiet", log=log, check=False)
        if staged.returncode == 0:
            log("Nothing to commit")
            return False
        if staged.returncode != 1:
            raise GitCommandError("git diff --cached --quiet", staged.returncode, staged.stderr.strip())

        self._git("commit", "--quiet", "-m", message, log=log)
        return True

    def push(self, log: LogFn = _default_log) -> None:
        self._git("push", "--quiet", self.auth_uri, f"HEAD:{self.branch}", log=log)
