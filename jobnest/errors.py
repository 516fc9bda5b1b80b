"""Exception hierarchy for the sync pipeline."""

from __future__ import annotations


class JobNestError(Exception):
    """Base class for all JobNest errors."""


class ConfigError(JobNestError):
    """Raised when sources.yaml cannot be read or has an invalid shape."""


class SourceFetchError(JobNestError):
    """Raised inside a source run when a provider reports a typed failure."""

    def __init__(self, source_key: str, outcome: str, message: str) -> None:
        super().__init__(message)
        self.source_key = source_key
        self.outcome = outcome


class SyncLogError(JobNestError):
    """Raised when a sync log entry is missing or already finalized."""


class JobImportError(JobNestError):
    """Raised when a manual import cannot run or produced nothing."""
