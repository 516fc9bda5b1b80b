"""Preference filter: narrows provider results to a user's stated interests.

Pure functions only: no I/O, inputs are never mutated and the output keeps
the input order.
"""

from __future__ import annotations

from collections.abc import Iterable

from jobnest.models.job import NormalizedJobRecord, RemoteType
from jobnest.models.user import JobTypePreference, UserPreferences


def matches_keyword(record: NormalizedJobRecord, keyword: str) -> bool:
    needle = (keyword or "").strip().lower()
    return not needle or needle in record.search_text()


def matches_location(record: NormalizedJobRecord, preferred_location: str) -> bool:
    needle = (preferred_location or "").strip().lower()
    if not needle:
        return True
    if needle in record.location.lower():
        return True
    return needle == "remote" and record.remote_type == RemoteType.REMOTE


def matches_job_type(record: NormalizedJobRecord, preferred_job_type: JobTypePreference | str | None) -> bool:
    if isinstance(preferred_job_type, JobTypePreference):
        preferred_job_type = preferred_job_type.value
    wanted = (preferred_job_type or "").strip().lower()
    if not wanted or wanted == JobTypePreference.ANY.value:
        return True
    return wanted.replace("-", "_") in record.employment_type.value


def matches_remote(record: NormalizedJobRecord, include_remote: bool | None) -> bool:
    return include_remote is not False or record.remote_type != RemoteType.REMOTE


def matches_preferences(record: NormalizedJobRecord, keyword: str, prefs: UserPreferences) -> bool:
    return (
        matches_keyword(record, keyword)
        and matches_location(record, prefs.preferred_location)
        and matches_job_type(record, prefs.preferred_job_type)
        and matches_remote(record, prefs.include_remote)
    )


def filter_records(
    records: Iterable[NormalizedJobRecord], keyword: str, prefs: UserPreferences
) -> list[NormalizedJobRecord]:
    """Return the records that pass every preference check."""
    return [r for r in records if matches_preferences(r, keyword, prefs)]


def keywords_for(prefs: UserPreferences) -> list[str]:
    """The keywords a sync iterates over.

    An empty preference list becomes a single blank keyword so providers are
    still queried, unfiltered, instead of not at all.
    """
    return list(prefs.preferred_keywords) or [""]
