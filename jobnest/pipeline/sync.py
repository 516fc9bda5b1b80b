"""Per-source sync: fetch, filter, deduplicate, reconcile, and log the run."""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable

from jobnest.errors import SourceFetchError, SyncLogError
from jobnest.models.job import NormalizedJobRecord
from jobnest.models.sync import JobSource, SourceFetchResult, SyncLogEntry, SyncStatus
from jobnest.models.user import User
from jobnest.pipeline.preferences import filter_records
from jobnest.settings import JSEARCH, SyncSettings
from jobnest.sources.common import SourceClient
from jobnest.sources.jsearch import JSearchQuery
from jobnest.storage.accounts import SourceStore
from jobnest.storage.catalog import JobCatalog, UpsertOutcome
from jobnest.storage.database import utcnow
from jobnest.storage.sync_log import SyncLogStore

logger = logging.getLogger(__name__)

# (source_id, external_id) -> record; a later record with the same key
# replaces the earlier one wholesale, fields are never merged.
DedupBucket = dict[tuple[int, str], NormalizedJobRecord]


def add_to_bucket(bucket: DedupBucket, source_id: int, records: Iterable[NormalizedJobRecord]) -> None:
    for record in records:
        if not record.external_id:
            continue
        bucket[(source_id, record.external_id)] = record


def truncate_message(message: str, limit: int = 1000) -> str:
    if len(message) <= limit:
        return message
    return message[: max(0, limit - 3)] + "..."


class SourceSyncer:
    """Runs one source for one user and records the outcome in the sync log."""

    def __init__(
        self,
        catalog: JobCatalog,
        sync_logs: SyncLogStore,
        sources: SourceStore,
        clients: dict[str, SourceClient],
        settings: SyncSettings | None = None,
    ) -> None:
        self.catalog = catalog
        self.sync_logs = sync_logs
        self.sources = sources
        self.clients = clients
        self.settings = settings or SyncSettings()

    # -- Scheduled sync ---------------------------------------------------------

    def sync_source(self, source: JobSource, user: User, keywords: list[str]) -> SyncLogEntry:
        """Sync one source for one user.

        Any exception is recorded on the source's log entry and swallowed so
        the caller can move on to the next source.
        """
        log = self.sync_logs.open(source.id, user.id, utcnow())
        started = time.monotonic()

        try:
            bucket: DedupBucket = {}
            for keyword in keywords:
                result = self.fetch(source.key, keyword, user)
                matched = filter_records(result.records, keyword, user.preferences)
                logger.debug(
                    "%s keyword=%r: %d fetched, %d matched preferences",
                    source.key, keyword, len(result.records), len(matched),
                )
                add_to_bucket(bucket, source.id, matched)

            created, updated = self.reconcile(source.id, bucket.values(), user.id)
            entry = self._succeed(log, source, started, len(bucket), created, updated)
        except MemoryError:
            raise
        except Exception as e:
            logger.error("Sync of '%s' for user %d failed: %s", source.key, user.id, e)
            return self._fail(log, started, e)

        logger.info(
            "Synced '%s' for user %d: fetched=%d created=%d updated=%d (%d ms)",
            source.key, user.id, entry.jobs_fetched, entry.jobs_created,
            entry.jobs_updated, entry.runtime_ms,
        )
        return entry

    def fetch(self, source_key: str, keyword: str, user: User) -> SourceFetchResult:
        """Call the matching client and apply the uniform result policy.

        OK and EMPTY hand back whatever records they carry; typed failures
        raise SourceFetchError so the source run is logged as failed.
        """
        client = self.clients.get(source_key)
        if client is None:
            logger.warning("No client registered for source '%s'", source_key)
            return SourceFetchResult.empty("no client")

        if source_key == JSEARCH:
            if not client.configured:
                logger.info("Skipping JSearch: no RapidAPI key configured")
                return SourceFetchResult.empty("not configured")
            country = user.preferences.preferred_country_iso2 or self.settings.default_country
            result = client.search(
                JSearchQuery(
                    query=keyword.strip() or self.settings.default_jsearch_query,
                    country=country,
                    page=1,
                    num_pages=1,
                )
            )
        else:
            result = client.search(keyword)

        if result.is_failure:
            raise SourceFetchError(source_key, result.outcome.value, result.message or result.outcome.value)
        return result

    # -- Manual import ----------------------------------------------------------

    def import_records(
        self,
        source: JobSource,
        records: list[NormalizedJobRecord],
        user_id: int | None,
        only_new: bool = True,
    ) -> SyncLogEntry:
        """Persist already-fetched records under a sync log entry.

        Unlike `sync_source`, a failure is re-raised after it is logged.
        """
        log = self.sync_logs.open(source.id, user_id, utcnow())
        started = time.monotonic()
        try:
            bucket: DedupBucket = {}
            add_to_bucket(bucket, source.id, records)
            created, updated = self.reconcile(source.id, bucket.values(), user_id, only_new=only_new)
            return self._succeed(log, source, started, len(bucket), created, updated)
        except Exception as e:
            self._fail(log, started, e)
            raise

    def record_failure(self, source: JobSource, user_id: int | None, error: Exception) -> SyncLogEntry:
        """Write a failed log entry for a source that never got to persist."""
        log = self.sync_logs.open(source.id, user_id, utcnow())
        return self._fail(log, time.monotonic(), error)

    # -- Shared -----------------------------------------------------------------

    def reconcile(
        self,
        source_id: int,
        records: Iterable[NormalizedJobRecord],
        user_id: int | None,
        only_new: bool = False,
    ) -> tuple[int, int]:
        """Upsert records into the catalog; returns (created, updated)."""
        created = updated = 0
        for record in records:
            if not record.external_id or not record.title.strip():
                continue
            entry, outcome = self.catalog.upsert(source_id, record, only_new=only_new)
            if outcome == UpsertOutcome.CREATED:
                created += 1
            elif outcome == UpsertOutcome.UPDATED:
                updated += 1
            if user_id is not None:
                self.catalog.attach_to_user(user_id, entry.id)
        return created, updated

    def _succeed(
        self,
        log: SyncLogEntry,
        source: JobSource,
        started: float,
        fetched: int,
        created: int,
        updated: int,
    ) -> SyncLogEntry:
        # Stamp first: once the entry is finalized it can no longer be failed.
        self.sources.mark_synced(source.id)
        return self.sync_logs.finalize(
            log.id,
            status=SyncStatus.SUCCESS,
            ended_at=utcnow(),
            runtime_ms=_elapsed_ms(started),
            jobs_fetched=fetched,
            jobs_created=created,
            jobs_updated=updated,
        )

    def _fail(self, log: SyncLogEntry, started: float, error: Exception) -> SyncLogEntry:
        message = str(error) or error.__class__.__name__
        try:
            return self.sync_logs.finalize(
                log.id,
                status=SyncStatus.FAILED,
                ended_at=utcnow(),
                runtime_ms=_elapsed_ms(started),
                error_message=truncate_message(message, self.settings.error_message_limit),
            )
        except (SyncLogError, sqlite3.Error) as e:
            logger.error("Could not record failure on sync log %d: %s", log.id, e)
            return log


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
