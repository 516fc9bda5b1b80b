"""Tests for catalog deduplication, user feed links and the sync log store."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

import pytest
from conftest import make_record

from jobnest.errors import SyncLogError
from jobnest.models.job import JobStatus
from jobnest.models.sync import SyncStatus
from jobnest.pipeline.sync import add_to_bucket
from jobnest.storage.catalog import JobCatalog, UpsertOutcome
from jobnest.storage.sync_log import SyncLogStore


class TestDedupBucket:
    """Test suite for in-run deduplication."""

    def test_last_write_wins(self) -> None:
        bucket: dict = {}
        first = make_record("dup", title="First Title")
        second = make_record("dup", title="Second Title", location="")
        add_to_bucket(bucket, 1, [first, second])

        assert len(bucket) == 1
        # Replaced wholesale, not merged: the blank location comes along.
        assert bucket[(1, "dup")].title == "Second Title"
        assert bucket[(1, "dup")].location == ""

    def test_same_id_different_sources_kept(self) -> None:
        bucket: dict = {}
        add_to_bucket(bucket, 1, [make_record("x")])
        add_to_bucket(bucket, 2, [make_record("x")])
        assert len(bucket) == 2


class TestCatalogUpsert:
    """Test suite for JobCatalog create/update semantics."""

    def test_create_then_unchanged(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        record = make_record("job-1")

        entry, outcome = catalog.upsert(source.id, record)
        assert outcome == UpsertOutcome.CREATED
        assert entry.status == JobStatus.NEW

        again, outcome = catalog.upsert(source.id, record)
        assert outcome == UpsertOutcome.UNCHANGED
        assert again.id == entry.id
        assert catalog.count() == 1

    def test_changed_field_updates(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        entry, _ = catalog.upsert(source.id, make_record("job-1", title="Dev"))

        _, outcome = catalog.upsert(source.id, make_record("job-1", title="Senior Dev"))
        assert outcome == UpsertOutcome.UPDATED
        assert catalog.get(entry.id).title == "Senior Dev"

    def test_tag_order_does_not_count_as_change(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        catalog.upsert(source.id, make_record("job-1", tags={"a": 1, "b": 2}))
        _, outcome = catalog.upsert(source.id, make_record("job-1", tags={"b": 2, "a": 1}))
        assert outcome == UpsertOutcome.UNCHANGED

    def test_only_new_skips_update(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        entry, _ = catalog.upsert(source.id, make_record("job-1", title="Dev"))

        _, outcome = catalog.upsert(source.id, make_record("job-1", title="Changed"), only_new=True)
        assert outcome == UpsertOutcome.UNCHANGED
        assert catalog.get(entry.id).title == "Dev"

    def test_create_conflict_returns_none(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        assert catalog.create(source.id, make_record("job-1")) is not None
        assert catalog.create(source.id, make_record("job-1")) is None
        assert catalog.count() == 1

    def test_same_external_id_in_two_sources(self, catalog: JobCatalog, source_store) -> None:
        a = source_store.get_by_key("arbeitnow")
        b = source_store.get_by_key("remotive")
        catalog.upsert(a.id, make_record("shared"))
        catalog.upsert(b.id, make_record("shared"))
        assert catalog.count() == 2

    def test_update_preserves_status(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        entry, _ = catalog.upsert(source.id, make_record("job-1", title="Dev"))
        catalog.set_status(entry.id, JobStatus.APPLIED)

        catalog.upsert(source.id, make_record("job-1", title="Senior Dev"))
        assert catalog.get(entry.id).status == JobStatus.APPLIED

    def test_round_trips_json_and_dates(self, catalog: JobCatalog, source_store) -> None:
        source = source_store.get_by_key("arbeitnow")
        posted = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        entry, _ = catalog.upsert(
            source.id,
            make_record("job-1", tags={"tags": ["react"]}, raw_payload={"id": 1}, posted_at=posted),
        )
        stored = catalog.get(entry.id)
        assert stored.tags == {"tags": ["react"]}
        assert stored.raw_payload == {"id": 1}
        assert stored.posted_at == posted


class TestUserFeed:
    """Test suite for job_user links."""

    def test_attach_is_idempotent(self, catalog: JobCatalog, source_store, make_user) -> None:
        user = make_user()
        source = source_store.get_by_key("arbeitnow")
        entry, _ = catalog.upsert(source.id, make_record("job-1"))

        catalog.attach_to_user(user.id, entry.id)
        catalog.attach_to_user(user.id, entry.id)
        assert catalog.count_user_jobs(user.id) == 1

    def test_attach_keeps_hidden_flag(self, catalog: JobCatalog, source_store, make_user) -> None:
        user = make_user()
        source = source_store.get_by_key("arbeitnow")
        entry, _ = catalog.upsert(source.id, make_record("job-1"))

        catalog.attach_to_user(user.id, entry.id)
        catalog.hide_for_user(user.id, entry.id)
        catalog.attach_to_user(user.id, entry.id)

        assert catalog.is_hidden_for_user(user.id, entry.id)
        assert catalog.count_user_jobs(user.id) == 0

    def test_count_by_location(self, catalog: JobCatalog, source_store, make_user) -> None:
        user = make_user()
        source = source_store.get_by_key("arbeitnow")
        for ext, location in [("a", "Berlin, Germany"), ("b", "Munich"), ("c", "berlin")]:
            entry, _ = catalog.upsert(source.id, make_record(ext, location=location))
            catalog.attach_to_user(user.id, entry.id)

        assert catalog.count_user_jobs(user.id) == 3
        assert catalog.count_user_jobs(user.id, "Berlin") == 2


class TestSyncLogStore:
    """Test suite for sync log entries."""

    def _open(self, sync_logs: SyncLogStore, source_store):
        source = source_store.get_by_key("remotive")
        return sync_logs.open(source.id, None, datetime.now(timezone.utc))

    def test_open_is_optimistic(self, sync_logs: SyncLogStore, source_store) -> None:
        log = self._open(sync_logs, source_store)
        assert log.status == SyncStatus.SUCCESS
        assert log.ended_at is None
        assert not log.finalized

    def test_finalize_once(self, sync_logs: SyncLogStore, source_store) -> None:
        log = self._open(sync_logs, source_store)
        done = sync_logs.finalize(
            log.id,
            status=SyncStatus.SUCCESS,
            ended_at=datetime.now(timezone.utc),
            runtime_ms=12,
            jobs_fetched=3,
            jobs_created=2,
            jobs_updated=1,
        )
        assert done.finalized
        assert (done.jobs_fetched, done.jobs_created, done.jobs_updated) == (3, 2, 1)

        with pytest.raises(SyncLogError):
            sync_logs.finalize(
                log.id, status=SyncStatus.FAILED, ended_at=datetime.now(timezone.utc), runtime_ms=1
            )
        assert sync_logs.get(log.id).status == SyncStatus.SUCCESS

    def test_failed_keeps_counters_at_zero(self, sync_logs: SyncLogStore, source_store) -> None:
        log = self._open(sync_logs, source_store)
        done = sync_logs.finalize(
            log.id,
            status=SyncStatus.FAILED,
            ended_at=datetime.now(timezone.utc),
            runtime_ms=5,
            error_message="boom",
        )
        assert done.jobs_fetched == 0
        assert done.error_message == "boom"

    def test_finalize_unknown(self, sync_logs: SyncLogStore) -> None:
        with pytest.raises(SyncLogError):
            sync_logs.finalize(
                999, status=SyncStatus.SUCCESS, ended_at=datetime.now(timezone.utc), runtime_ms=0
            )

    def test_list_page_newest_first(self, sync_logs: SyncLogStore, source_store) -> None:
        ids = [self._open(sync_logs, source_store).id for _ in range(5)]

        page = sync_logs.list_page(page=1, per_page=2)
        assert [e.id for e in page.data] == [ids[4], ids[3]]
        assert page.total == 5
        assert page.last_page == 3

        last = sync_logs.list_page(page=3, per_page=2)
        assert [e.id for e in last.data] == [ids[0]]

    def test_per_page_capped(self, sync_logs: SyncLogStore) -> None:
        assert sync_logs.list_page(per_page=1000).per_page == 100

    def test_status_outside_success_and_failed_rejected(self, db, source_store) -> None:
        source = source_store.get_by_key("remotive")
        with pytest.raises(sqlite3.IntegrityError):
            db.conn.execute(
                "INSERT INTO sync_logs (source_id, status) VALUES (?, ?)", (source.id, "partial")
            )
