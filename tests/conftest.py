"""Shared fixtures: a fresh SQLite database per test and scripted source clients."""

from __future__ import annotations

from pathlib import Path

import pytest

from jobnest.models.job import EmploymentType, NormalizedJobRecord, RemoteType
from jobnest.models.sync import SourceFetchResult
from jobnest.models.user import UserPreferences
from jobnest.settings import ARBEITNOW, JSEARCH, REMOTIVE, SourceSeed
from jobnest.storage.accounts import SourceStore, UserStore
from jobnest.storage.catalog import JobCatalog
from jobnest.storage.database import Database
from jobnest.storage.sync_log import SyncLogStore


def make_record(
    external_id: str = "job-1",
    title: str = "Senior React Developer",
    company_name: str = "Acme Corp",
    location: str = "Berlin, Germany",
    employment_type: EmploymentType = EmploymentType.FULL_TIME,
    remote_type: RemoteType = RemoteType.ONSITE,
    description: str = "Build user interfaces.",
    **kwargs,
) -> NormalizedJobRecord:
    """Helper to create a normalized record."""
    return NormalizedJobRecord(
        external_id=external_id,
        title=title,
        company_name=company_name,
        location=location,
        employment_type=employment_type,
        remote_type=remote_type,
        description=description,
        url=kwargs.pop("url", f"https://example.com/jobs/{external_id}"),
        **kwargs,
    )


class FakeClient:
    """Stands in for a source client; returns scripted results per keyword.

    `results` maps a keyword to a SourceFetchResult, or to an exception that
    `search` raises. The "*" entry is used for any keyword not listed.
    """

    def __init__(self, key: str, results: dict | None = None, configured: bool = True) -> None:
        self.key = key
        self.results = results or {}
        self.configured = configured
        self.calls: list = []

    def search(self, keyword=""):
        self.calls.append(keyword)
        lookup = keyword if isinstance(keyword, str) else "*"
        result = self.results.get(lookup, self.results.get("*", SourceFetchResult.empty()))
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        pass


@pytest.fixture
def db(tmp_path: Path) -> Database:
    database = Database(str(tmp_path / "test_jobnest.db"))
    yield database
    database.close()


@pytest.fixture
def source_store(db: Database) -> SourceStore:
    store = SourceStore(db)
    store.seed(
        [
            SourceSeed(key=ARBEITNOW, name="Arbeitnow"),
            SourceSeed(key=REMOTIVE, name="Remotive"),
            SourceSeed(key=JSEARCH, name="JSearch (RapidAPI)"),
        ]
    )
    return store


@pytest.fixture
def user_store(db: Database) -> UserStore:
    return UserStore(db)


@pytest.fixture
def catalog(db: Database) -> JobCatalog:
    return JobCatalog(db)


@pytest.fixture
def sync_logs(db: Database) -> SyncLogStore:
    return SyncLogStore(db)


@pytest.fixture
def make_user(user_store: UserStore):
    """Factory creating users with the given preferences."""
    counter = {"n": 0}

    def _make(**prefs):
        counter["n"] += 1
        return user_store.create(f"user{counter['n']}@example.com", UserPreferences(**prefs))

    return _make
