"""Tests for the filesystem job store and job id generation."""

import json
import re
from datetime import datetime, timezone

import pytest

from reporunner.exceptions import JobConflictError
from reporunner.schemas.job import Job, JobState
from reporunner.services.job_store import (
    STATUS_FILE_NAME,
    format_timestamp,
    new_job_id,
)

from conftest import TEST_AUTHOR, make_job

ID_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


class TestJobIds:
    def test_format(self):
        moment = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2024-05-01T12:00:00.123Z"

    def test_new_id_is_timestamp(self):
        assert ID_PATTERN.match(new_job_id())

    def test_suffix_is_appended(self):
        assert new_job_id(" full update").endswith("Z full update")

    def test_same_millisecond_still_ordered(self):
        moment = datetime(2030, 1, 1, tzinfo=timezone.utc)
        first = new_job_id(now=moment)
        second = new_job_id(now=moment)
        assert first != second
        assert first < second

    def test_ids_strictly_increase(self):
        ids = [new_job_id() for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)


class TestAddJob:
    def test_creates_pending_status_and_empty_log(self, store):
        job = make_job(from_ref="abc", till="def")
        status = store.add_job(job)

        job_dir = store.job_dir(job.id)
        assert status.status == JobState.PENDING
        assert status.dir == str(job_dir)
        assert (job_dir / "log.txt").read_text() == ""

        data = json.loads((job_dir / STATUS_FILE_NAME).read_text())
        assert data["status"] == "pending"
        assert data["job"]["from"] == "abc"
        assert data["job"]["till"] == "def"
        assert "message" not in data

    def test_status_file_is_indented(self, store):
        job = make_job()
        store.add_job(job)
        raw = (store.job_dir(job.id) / STATUS_FILE_NAME).read_text()
        assert raw.startswith('{\n  "job": {')

    def test_duplicate_id_rejected(self, store):
        job = make_job()
        store.add_job(job)
        with pytest.raises(JobConflictError):
            store.add_job(job)

    def test_roundtrip(self, store):
        job = make_job(files={"added": ["a"], "modified": [], "removed": ["b"]})
        store.add_job(job)
        loaded = store.get(job.id)
        assert loaded.job == job


class TestQueries:
    def _add(self, store, *ids):
        for job_id in ids:
            store.add_job(Job(id=job_id, author=TEST_AUTHOR))

    def test_all_jobs_newest_first(self, store):
        self._add(store, "2024-01-02T00:00:00.000Z", "2024-01-01T00:00:00.000Z", "2024-01-03T00:00:00.000Z")
        ids = [s.job.id for s in store.all_jobs()]
        assert ids == ["2024-01-03T00:00:00.000Z", "2024-01-02T00:00:00.000Z", "2024-01-01T00:00:00.000Z"]

    def test_all_jobs_oldest_first_and_page(self, store):
        self._add(store, *[f"2024-01-0{i}T00:00:00.000Z" for i in range(1, 6)])
        oldest = [s.job.id for s in store.all_jobs(oldest_first=True)]
        assert oldest[0].startswith("2024-01-01")
        page = [s.job.id for s in store.all_jobs(page=(1, 3))]
        assert page == ["2024-01-04T00:00:00.000Z", "2024-01-03T00:00:00.000Z"]

    def test_added_job_is_pending_exactly_once(self, store):
        self._add(store, "2024-01-01T00:00:00.000Z")
        job = make_job()
        store.add_job(job)

        matches = [s for s in store.pending_jobs() if s.job.id == job.id]
        assert len(matches) == 1
        assert matches[0].status == JobState.PENDING

    def test_pending_jobs_oldest_first(self, store):
        self._add(store, "2024-01-02T00:00:00.000Z", "2024-01-01T00:00:00.000Z", "2024-01-03T00:00:00.000Z")
        first = store.get("2024-01-01T00:00:00.000Z")
        store.set_status(first.job, JobState.COMPLETED, "done")

        pending = [s.job.id for s in store.pending_jobs()]
        assert pending == ["2024-01-02T00:00:00.000Z", "2024-01-03T00:00:00.000Z"]
        assert store.next_pending().job.id == "2024-01-02T00:00:00.000Z"

    def test_batch_ids_sort_after_gather(self, store):
        gather = "2024-01-01T00:00:00.000Z full update"
        self._add(store, "2024-01-01T00:00:00.001Z", f"{gather}: 001 of 002", gather, f"{gather}: 002 of 002")
        ids = [s.job.id for s in store.all_jobs(oldest_first=True)]
        assert ids == [gather, f"{gather}: 001 of 002", f"{gather}: 002 of 002", "2024-01-01T00:00:00.001Z"]

    def test_set_status_records_message(self, store):
        job = make_job()
        store.add_job(job)
        store.set_status(job, JobState.FAILED, "boom")
        status = store.get(job.id)
        assert status.status == JobState.FAILED
        assert status.message == "boom"

    def test_corrupt_entries_skipped(self, store):
        self._add(store, "2024-01-01T00:00:00.000Z")
        (store.jobs_dir / "2024-01-02T00:00:00.000Z").mkdir()
        broken = store.jobs_dir / "2024-01-03T00:00:00.000Z"
        broken.mkdir()
        (broken / STATUS_FILE_NAME).write_text("{not json")

        ids = [s.job.id for s in store.all_jobs()]
        assert ids == ["2024-01-01T00:00:00.000Z"]

    def test_get_unknown_or_escaping_id(self, store):
        assert store.get("nope") is None
        assert store.get("../jobs") is None

    def test_latest_outcome(self, store):
        assert store.latest_outcome() is None
        self._add(store, "2024-01-01T00:00:00.000Z", "2024-01-02T00:00:00.000Z")
        older = store.get("2024-01-01T00:00:00.000Z")
        store.set_status(older.job, JobState.FAILED, "x")
        # newest is still pending, so the failed one counts
        assert store.latest_outcome() == JobState.FAILED

    def test_state_survives_new_store(self, store):
        job = make_job()
        store.add_job(job)
        store.set_status(job, JobState.COMPLETED)

        from reporunner.services.job_store import JobStore
        reopened = JobStore(store.jobs_dir)
        assert reopened.get(job.id).status == JobState.COMPLETED
