"""Manual, keyword-driven import with JSearch-to-free-source fallback."""

from __future__ import annotations

import logging
import time
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from jobnest.errors import JobImportError
from jobnest.models.job import NormalizedJobRecord, RemoteType
from jobnest.models.sync import FetchOutcome, JobSource, SourceFetchResult
from jobnest.pipeline.sync import SourceSyncer
from jobnest.settings import ARBEITNOW, JSEARCH, REMOTIVE
from jobnest.sources.jsearch import JSearchQuery

logger = logging.getLogger(__name__)

FREE_SOURCES = (ARBEITNOW, REMOTIVE)
BLOCK_SECONDS = 30 * 60
CACHE_SECONDS = 10 * 60

WARN_KEY_INVALID = "JSearch key invalid. Using free sources."
WARN_QUOTA = "JSearch quota exceeded. Using free sources."
WARN_GENERIC = "Job import failed. Please retry."


class ImportRequest(BaseModel):
    keyword: str = Field(default="", max_length=120)
    source: Literal["arbeitnow", "remotive", "jsearch", "all"] = "all"
    only_new: bool = True
    country: str = Field(default="pk", min_length=0, max_length=2)
    country_name: str | None = None
    remote: bool | None = None
    page: int = Field(default=1, ge=1, le=10)
    num_pages: int = Field(default=1, ge=1, le=10)
    date_posted: Literal["today", "3days", "week", "month"] | None = None
    employment_types: str | None = Field(default=None, max_length=120)

    @field_validator("keyword", mode="before")
    @classmethod
    def strip_keyword(cls, v: object) -> str:
        return str(v or "").strip()

    @field_validator("country", mode="before")
    @classmethod
    def normalize_country(cls, v: object) -> str:
        value = str(v or "").strip().lower()
        if value and len(value) != 2:
            raise ValueError("country must be a two-letter code")
        return value

    def jsearch_query(self) -> JSearchQuery:
        return JSearchQuery(
            query=self.keyword,
            country=self.country or "pk",
            page=self.page,
            num_pages=self.num_pages,
            date_posted=self.date_posted,
            remote_jobs_only=self.remote,
            employment_types=self.employment_types,
        )


class ImportFailure(BaseModel):
    source: str
    message: str


class ImportResult(BaseModel):
    used_source: str
    fallback_sources: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    imported: int = 0
    updated: int = 0
    errors: list[ImportFailure] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.imported + self.updated

    @property
    def warning(self) -> str | None:
        return self.warnings[0] if self.warnings else None

    def warn(self, message: str) -> None:
        message = message.strip()
        if message and message not in self.warnings:
            self.warnings.append(message)


def apply_import_constraints(
    records: list[NormalizedJobRecord],
    country: str = "",
    country_name: str | None = None,
    remote_only: bool | None = None,
) -> list[NormalizedJobRecord]:
    """Keep records located in the country and matching the remote flag."""
    needles = [n.strip().lower() for n in (country, country_name or "") if n and n.strip()]

    def keep(record: NormalizedJobRecord) -> bool:
        location = record.location.lower()
        if needles and not any(n in location for n in needles):
            return False
        if remote_only is not None:
            is_remote = record.remote_type == RemoteType.REMOTE
            return is_remote if remote_only else not is_remote
        return True

    return [r for r in records if keep(r)]


class JobImporter:
    """Imports jobs on demand into the catalog, one sync log per source."""

    def __init__(self, syncer: SourceSyncer, clock=time.monotonic) -> None:
        self.syncer = syncer
        self._clock = clock
        self._blocked_until = 0.0
        self._jsearch_cache: dict[str, tuple[float, SourceFetchResult]] = {}

    # -- JSearch guard rails ----------------------------------------------------

    def is_jsearch_blocked(self) -> bool:
        return self._clock() < self._blocked_until

    def block_jsearch(self) -> None:
        self._blocked_until = self._clock() + BLOCK_SECONDS
        logger.warning("JSearch blocked for %d minutes after quota error", BLOCK_SECONDS // 60)

    def _search_jsearch(self, query: JSearchQuery) -> SourceFetchResult:
        key = query.cache_key()
        cached = self._jsearch_cache.get(key)
        if cached and cached[0] > self._clock():
            logger.debug("JSearch cache hit: %s", key)
            return cached[1]

        result = self.syncer.clients[JSEARCH].search(query)
        if not result.is_failure:
            self._jsearch_cache[key] = (self._clock() + CACHE_SECONDS, result)
        return result

    # -- Import -----------------------------------------------------------------

    def import_jobs(self, request: ImportRequest, user_id: int | None = None) -> ImportResult:
        sources = {
            s.key: s
            for s in self.syncer.sources.list_enabled([ARBEITNOW, REMOTIVE, JSEARCH])
        }
        if not sources:
            raise JobImportError("No enabled job sources available for import.")

        result = ImportResult(used_source=request.source)

        if request.source in FREE_SOURCES:
            source = sources.get(request.source)
            if source is None:
                raise JobImportError("Selected source is not enabled.")
            self._import_free(source, request, user_id, result)
            return result

        if request.source == "all":
            for key in FREE_SOURCES:
                if key in sources:
                    self._import_free(sources[key], request, user_id, result)
            if not self._jsearch_configured():
                result.warn(WARN_KEY_INVALID)
            elif self.is_jsearch_blocked():
                result.warn(WARN_QUOTA)
            elif JSEARCH in sources:
                self._import_jsearch(sources[JSEARCH], request, user_id, result)
            return result

        # source == "jsearch": fall back to the free boards whenever JSearch
        # cannot be used or fails.
        if self._jsearch_configured() and not self.is_jsearch_blocked() and JSEARCH in sources:
            if self._import_jsearch(sources[JSEARCH], request, user_id, result):
                return result
        else:
            result.warn(WARN_KEY_INVALID if not self._jsearch_configured() else WARN_QUOTA)

        result.used_source = "fallback"
        result.fallback_sources = list(FREE_SOURCES)
        for key in FREE_SOURCES:
            if key in sources:
                self._import_free(sources[key], request, user_id, result)

        if result.total == 0 and result.errors:
            raise JobImportError(result.warning or WARN_GENERIC)
        return result

    def _jsearch_configured(self) -> bool:
        client = self.syncer.clients.get(JSEARCH)
        return client is not None and client.configured

    def _import_free(
        self, source: JobSource, request: ImportRequest, user_id: int | None, result: ImportResult
    ) -> None:
        client = self.syncer.clients.get(source.key)
        if client is None:
            self._fail_source(source, JobImportError(f"No client registered for '{source.key}'"), user_id, result)
            return
        fetched = client.search(request.keyword)
        if fetched.is_failure:
            self._fail_source(source, JobImportError(fetched.message or fetched.outcome.value), user_id, result)
            return
        records = apply_import_constraints(
            fetched.records, request.country, request.country_name, request.remote
        )
        try:
            self._persist(source, records, request, user_id, result)
        except Exception as e:
            self._record_error(source.key, e, user_id, result)

    def _import_jsearch(
        self, source: JobSource, request: ImportRequest, user_id: int | None, result: ImportResult
    ) -> bool:
        """Returns True when JSearch was imported without error."""
        fetched = self._search_jsearch(request.jsearch_query())
        if fetched.outcome == FetchOutcome.RATE_LIMITED:
            self.block_jsearch()
        if fetched.is_failure:
            error = JobImportError(fetched.message or fetched.outcome.value)
            self._fail_source(source, error, user_id, result)
            result.warn(_warning_for(error))
            return False

        records = apply_import_constraints(
            fetched.records, request.country, request.country_name, request.remote
        )
        try:
            self._persist(source, records, request, user_id, result)
        except Exception as e:
            self._record_error(JSEARCH, e, user_id, result)
            result.warn(WARN_GENERIC)
            return False
        return True

    def _fail_source(
        self, source: JobSource, error: Exception, user_id: int | None, result: ImportResult
    ) -> None:
        self.syncer.record_failure(source, user_id, error)
        self._record_error(source.key, error, user_id, result)

    def _persist(
        self,
        source: JobSource,
        records: list[NormalizedJobRecord],
        request: ImportRequest,
        user_id: int | None,
        result: ImportResult,
    ) -> None:
        entry = self.syncer.import_records(source, records, user_id, only_new=request.only_new)
        result.imported += entry.jobs_created
        result.updated += entry.jobs_updated

    def _record_error(self, key: str, error: Exception, user_id: int | None, result: ImportResult) -> None:
        logger.warning("Job import source failed: source=%s user=%s error=%s", key, user_id, error)
        result.errors.append(ImportFailure(source=key, message=str(error)))


def _warning_for(error: Exception) -> str:
    message = str(error).lower()
    if any(m in message for m in ("quota", "too many requests", "rate limit", "429")):
        return WARN_QUOTA
    if any(m in message for m in ("key invalid", "key missing", "unauthorized", "forbidden", "401", "403")):
        return WARN_KEY_INVALID
    return WARN_GENERIC
