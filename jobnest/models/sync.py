"""Models for job sources, fetch results and sync run bookkeeping."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from jobnest.models.job import NormalizedJobRecord


class JobSource(BaseModel):
    """A third-party provider row from the `job_sources` table."""

    id: int
    key: str
    name: str
    base_url: str | None = None
    enabled: bool = True
    sync_interval_minutes: int = 15
    last_synced_at: datetime | None = None


class SyncStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class SyncLogEntry(BaseModel):
    """One record per (user, source) run."""

    id: int
    source_id: int
    user_id: int | None = None
    status: SyncStatus = SyncStatus.SUCCESS
    started_at: datetime | None = None
    ended_at: datetime | None = None
    runtime_ms: int | None = None
    jobs_fetched: int = 0
    jobs_created: int = 0
    jobs_updated: int = 0
    error_message: str | None = None

    @property
    def finalized(self) -> bool:
        return self.ended_at is not None


class LogPage(BaseModel):
    data: list[SyncLogEntry] = Field(default_factory=list)
    page: int = 1
    per_page: int = 20
    total: int = 0

    @property
    def last_page(self) -> int:
        return max(1, -(-self.total // self.per_page))


class FetchOutcome(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"


class SourceFetchResult(BaseModel):
    """What a source client hands back for one search.

    Only OK carries records. EMPTY covers "no results", transport failures and
    malformed payloads alike; RATE_LIMITED and AUTH_FAILED are typed failures
    the caller decides how to record.
    """

    outcome: FetchOutcome
    records: list[NormalizedJobRecord] = Field(default_factory=list)
    message: str | None = None
    status_code: int | None = None

    @classmethod
    def ok(cls, records: list[NormalizedJobRecord]) -> SourceFetchResult:
        return cls(outcome=FetchOutcome.OK, records=records)

    @classmethod
    def empty(cls, message: str | None = None, status_code: int | None = None) -> SourceFetchResult:
        return cls(outcome=FetchOutcome.EMPTY, message=message, status_code=status_code)

    @classmethod
    def rate_limited(cls, message: str, status_code: int | None = None) -> SourceFetchResult:
        return cls(outcome=FetchOutcome.RATE_LIMITED, message=message, status_code=status_code)

    @classmethod
    def auth_failed(cls, message: str, status_code: int | None = None) -> SourceFetchResult:
        return cls(outcome=FetchOutcome.AUTH_FAILED, message=message, status_code=status_code)

    @property
    def is_failure(self) -> bool:
        return self.outcome in (FetchOutcome.RATE_LIMITED, FetchOutcome.AUTH_FAILED)


class SyncSummary(BaseModel):
    """Totals reported back to the user after an on-demand sync."""

    synced: bool = True
    fetched: int = 0
    created: int = 0
    updated: int = 0
    failed_sources: list[str] = Field(default_factory=list)
    matched_jobs: int = 0
    message: str = ""
