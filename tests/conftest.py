"""Shared test fixtures for the reporunner test suite.

Git-backed tests build a throwaway origin repository under ``tmp_path`` and
are skipped when no ``git`` binary is available. Everything else runs
against a ``FakeRepository`` that never shells out.
"""

import os

# Keep test output readable; must happen before settings are imported.
os.environ["LOG_FORMAT"] = "text"

import shutil
import subprocess
from pathlib import Path

import pytest

from reporunner.core.config import Settings
from reporunner.schemas.job import Author, ChangeSummary, FileChanges, Job
from reporunner.services.git_repository import SynchronizationError
from reporunner.services.job_store import JobStore, new_job_id

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

TEST_AUTHOR = Author(name="Test Runner", email="runner@example.org")


def git(cwd: Path, *args: str) -> str:
    """Run git in *cwd* and return its stripped stdout."""
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=cwd, check=True, capture_output=True, text=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, path: str, content: str, message: str) -> str:
    """Write *content* to *path* in *repo*, commit it and return the hash."""
    target = repo / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    git(repo, "add", "--all")
    git(repo, "commit", "--quiet", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def make_job(files=None, from_ref=None, till=None, suffix="") -> Job:
    return Job(
        id=new_job_id(suffix),
        from_ref=from_ref,
        till=till,
        author=TEST_AUTHOR,
        files=FileChanges(**files) if files is not None else None,
    )


class FakeRepository:
    """Stands in for GitRepository in execution tests."""

    def __init__(self, directory: Path, fail_sync: bool = False):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.fail_sync = fail_sync
        self.synchronized = 0
        self.diffs: list[tuple[str, str]] = []
        self.commits: list[tuple[str, str, str]] = []
        self.pushes = 0

    def synchronize(self, log) -> None:
        self.synchronized += 1
        log("synchronize")
        if self.fail_sync:
            raise SynchronizationError("git clone", 128, "fatal: repository not found")

    def diff(self, from_ref, till_ref="HEAD", log=None) -> ChangeSummary:
        self.diffs.append((from_ref, till_ref))
        return ChangeSummary(from_ref=from_ref, till=till_ref, modified=["diffed.txt"])

    def commit(self, author_name, author_email, message, log=None) -> bool:
        self.commits.append((author_name, author_email, message))
        return True

    def push(self, log=None) -> None:
        self.pushes += 1


@pytest.fixture()
def work_dir(tmp_path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture()
def store(work_dir) -> JobStore:
    return JobStore(work_dir / "jobs")


@pytest.fixture()
def fake_repo(work_dir) -> FakeRepository:
    return FakeRepository(work_dir / "repository")


@pytest.fixture()
def settings(work_dir) -> Settings:
    """Settings for an app that tracks ``org/repo`` with all auth enabled."""
    return Settings(
        title="Test Runner",
        email="runner@example.org",
        source_repository="org/repo",
        source_repository_uri="https://example.invalid/org/repo.git",
        work_dir=work_dir,
        webhook_secret="s3cret",
        admin_password="hunter2",
        poll_interval=0.2,
    )


@pytest.fixture()
def origin(tmp_path) -> Path:
    """A non-bare origin repository on ``main`` with one commit.

    Accepts pushes to its checked-out branch.
    """
    path = tmp_path / "origin"
    path.mkdir()
    git(path, "init", "--quiet")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(path, "config", "user.name", "Origin Author")
    git(path, "config", "user.email", "origin@example.org")
    git(path, "config", "receive.denyCurrentBranch", "updateInstead")
    commit_file(path, "README.md", "hello\n", "Initial commit")
    return path
