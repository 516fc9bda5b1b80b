"""Remotive remote-jobs client.

Docs: https://remotive.com/api/remote-jobs

Remotive only lists remote positions, so rows whose location text carries
no remote/hybrid/onsite hint are still classified as remote.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from jobnest.models.job import NormalizedJobRecord, RemoteType
from jobnest.models.sync import SourceFetchResult
from jobnest.sources.common import (
    ProviderRow,
    SourceClient,
    classify_employment_type,
    classify_remote_type,
    clean_text,
    parse_posted_at,
    stable_external_id,
)

logger = logging.getLogger(__name__)


class RemotiveRow(ProviderRow):
    id: str = ""
    title: str = ""
    company_name: str = ""
    candidate_required_location: str = ""
    job_type: str = ""
    category: str = ""
    url: str = ""
    description: str = ""
    publication_date: Any = None


class RemotiveClient(SourceClient):
    """Fetch Remotive jobs for a keyword and normalize them."""

    key = "remotive"

    def search(self, keyword: str = "") -> SourceFetchResult:
        params: dict[str, Any] = {}
        if keyword and keyword.strip():
            params["search"] = keyword.strip()

        response = self._get(self.config.base_url, params=params)
        if response is None:
            return SourceFetchResult.empty("transport failure")

        failure = self._failure_for(response)
        if failure is not None:
            return failure

        rows = self._rows(response, "jobs")
        if rows is None:
            return SourceFetchResult.empty("malformed payload")

        records = [r for r in (self._map_row(row) for row in rows) if r is not None]
        logger.info("Fetched %d jobs from Remotive (keyword=%r)", len(records), keyword)
        if not records:
            return SourceFetchResult.empty()
        return SourceFetchResult.ok(records)

    def _map_row(self, item: dict) -> NormalizedJobRecord | None:
        try:
            row = RemotiveRow.model_validate(item)
        except ValidationError as e:
            logger.debug("Dropping malformed Remotive row: %s", e)
            return None

        title = clean_text(row.title)
        if not title:
            return None
        company = clean_text(row.company_name)
        location = clean_text(row.candidate_required_location)
        url = clean_text(row.url)
        job_type = clean_text(row.job_type)

        remote_type = classify_remote_type(location)
        if remote_type == RemoteType.UNKNOWN:
            remote_type = RemoteType.REMOTE

        return NormalizedJobRecord(
            external_id=clean_text(row.id) or stable_external_id(title, company, url),
            title=title,
            company_name=company,
            location=location,
            description=row.description,
            url=url,
            remote_type=remote_type,
            employment_type=classify_employment_type(job_type),
            posted_at=parse_posted_at(row.publication_date),
            tags={"job_type": job_type, "category": clean_text(row.category)},
            raw_payload=item,
        )
