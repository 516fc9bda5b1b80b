"""Arbeitnow job board client.

Docs: https://www.arbeitnow.com/api/job-board-api

The API has no search parameter, so keyword matching happens client-side
over the first page of results.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError, field_validator

from jobnest.models.job import NormalizedJobRecord, RemoteType
from jobnest.models.sync import SourceFetchResult
from jobnest.sources.common import (
    ProviderRow,
    SourceClient,
    classify_employment_type,
    classify_remote_type,
    clean_text,
    coerce_flag,
    coerce_str_list,
    parse_posted_at,
    stable_external_id,
)

logger = logging.getLogger(__name__)


class ArbeitnowRow(ProviderRow):
    slug: str = ""
    id: str = ""
    title: str = ""
    company_name: str = ""
    location: str = ""
    remote: bool = False
    job_types: list[str] = []
    tags: list[str] = []
    url: str = ""
    description: str = ""
    created_at: Any = None

    @field_validator("remote", mode="before")
    @classmethod
    def flag(cls, v: Any) -> bool:
        return coerce_flag(v)

    @field_validator("job_types", "tags", mode="before")
    @classmethod
    def string_lists(cls, v: Any) -> list[str]:
        return coerce_str_list(v)


class ArbeitnowClient(SourceClient):
    """Fetch the Arbeitnow board and normalize its rows."""

    key = "arbeitnow"

    def search(self, keyword: str = "") -> SourceFetchResult:
        response = self._get(self.config.base_url)
        if response is None:
            return SourceFetchResult.empty("transport failure")

        failure = self._failure_for(response)
        if failure is not None:
            return failure

        rows = self._rows(response, "data")
        if rows is None:
            return SourceFetchResult.empty("malformed payload")

        records = [r for r in (self._map_row(row) for row in rows) if r is not None]
        records = _filter_by_keyword(records, keyword)
        logger.info("Fetched %d jobs from Arbeitnow (keyword=%r)", len(records), keyword)
        if not records:
            return SourceFetchResult.empty()
        return SourceFetchResult.ok(records)

    def _map_row(self, item: dict) -> NormalizedJobRecord | None:
        try:
            row = ArbeitnowRow.model_validate(item)
        except ValidationError as e:
            logger.debug("Dropping malformed Arbeitnow row: %s", e)
            return None

        title = clean_text(row.title)
        company = clean_text(row.company_name)
        location = clean_text(row.location)
        url = clean_text(row.url)
        external_id = clean_text(row.slug) or clean_text(row.id) or stable_external_id(title, company, url)
        if not title:
            return None

        job_types = [t.strip() for t in row.job_types if t and t.strip()]
        return NormalizedJobRecord(
            external_id=external_id,
            title=title,
            company_name=company,
            location=location,
            description=row.description,
            url=url,
            remote_type=RemoteType.REMOTE if row.remote else classify_remote_type(location),
            employment_type=classify_employment_type(" ".join(job_types)),
            posted_at=parse_posted_at(row.created_at),
            tags={
                "job_types": job_types,
                "tags": [t for t in row.tags if t],
                "remote": row.remote,
            },
            raw_payload=item,
        )


def _filter_by_keyword(records: list[NormalizedJobRecord], keyword: str) -> list[NormalizedJobRecord]:
    needle = (keyword or "").strip().lower()
    if not needle:
        return records
    return [r for r in records if needle in r.search_text()]
