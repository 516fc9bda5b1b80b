"""JSearch (RapidAPI) client.

Endpoint: GET {base_url}/search, authenticated with the X-RapidAPI-Key and
X-RapidAPI-Host headers. Unlike the free boards this provider has quotas, so
auth and quota problems come back as typed results instead of EMPTY.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from jobnest.models.job import NormalizedJobRecord, RemoteType
from jobnest.models.sync import SourceFetchResult
from jobnest.sources.common import (
    ProviderRow,
    SourceClient,
    classify_employment_type,
    classify_remote_type,
    clean_text,
    coerce_flag,
    coerce_mapping,
    coerce_str_list,
    parse_posted_at,
    stable_external_id,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "software developer"
QUOTA_MARKERS = ("quota", "rate limit", "too many requests")


class JSearchQuery(BaseModel):
    """Search options accepted by the JSearch endpoint."""

    query: str = ""
    page: int = 1
    num_pages: int = 1
    country: str = "pk"
    date_posted: str | None = None
    remote_jobs_only: bool | None = None
    employment_types: str | None = None

    @field_validator("page", "num_pages", mode="before")
    @classmethod
    def at_least_one(cls, v: Any) -> int:
        try:
            return max(1, int(v))
        except (TypeError, ValueError):
            return 1

    @field_validator("country", mode="before")
    @classmethod
    def lower_country(cls, v: Any) -> str:
        return clean_text(v).lower() or "pk"

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "query": self.query.strip() or DEFAULT_QUERY,
            "page": self.page,
            "num_pages": self.num_pages,
            "country": self.country,
        }
        if self.date_posted:
            params["date_posted"] = self.date_posted
        if self.remote_jobs_only is not None:
            params["remote_jobs_only"] = "true" if self.remote_jobs_only else "false"
        if self.employment_types:
            params["employment_types"] = self.employment_types
        return params

    def cache_key(self) -> str:
        return "|".join(f"{k}={v}" for k, v in sorted(self.to_params().items()))


class JSearchRow(ProviderRow):
    job_id: str = ""
    job_title: str = ""
    employer_name: str = ""
    job_city: str = ""
    job_state: str = ""
    job_country: str = ""
    job_location: str = ""
    job_description: str = ""
    job_apply_link: str = ""
    job_google_link: str = ""
    job_posted_at_datetime_utc: Any = None
    job_posted_at_timestamp: Any = None
    job_employment_type: str | list[str] = ""
    job_is_remote: bool = False
    job_publisher: str = ""
    job_highlights: dict[str, Any] = Field(default_factory=dict)

    @field_validator("job_is_remote", mode="before")
    @classmethod
    def flag(cls, v: Any) -> bool:
        return coerce_flag(v)

    @field_validator("job_highlights", mode="before")
    @classmethod
    def mapping(cls, v: Any) -> dict:
        return coerce_mapping(v)

    @field_validator("job_employment_type", mode="before")
    @classmethod
    def employment(cls, v: Any) -> str | list[str]:
        if isinstance(v, (list, tuple)):
            return coerce_str_list(v)
        return v if isinstance(v, str) else ""


class JSearchClient(SourceClient):
    """Query JSearch and normalize its rows."""

    key = "jsearch"

    @property
    def configured(self) -> bool:
        return bool((self.config.api_key or "").strip())

    def search(self, options: JSearchQuery | None = None) -> SourceFetchResult:
        options = options or JSearchQuery()
        if not self.configured:
            return SourceFetchResult.auth_failed("RapidAPI key missing")

        params = options.to_params()
        headers = {
            "X-RapidAPI-Key": (self.config.api_key or "").strip(),
            "X-RapidAPI-Host": self.config.api_host or "",
        }
        url = f"{self.config.base_url.rstrip('/')}/search"

        response = self._get(url, params=params, headers=headers)
        if response is None:
            return SourceFetchResult.empty("transport failure")

        if response.status_code in (401, 403):
            logger.warning("JSearch rejected the API key (HTTP %d)", response.status_code)
            return SourceFetchResult.auth_failed("RapidAPI key invalid", status_code=response.status_code)
        if response.status_code == 429 or (
            not response.is_success and any(m in response.text.lower() for m in QUOTA_MARKERS)
        ):
            logger.warning("JSearch quota exceeded (HTTP %d)", response.status_code)
            return SourceFetchResult.rate_limited("RapidAPI quota exceeded", status_code=response.status_code)
        if not response.is_success:
            logger.error(
                "JSearch API request failed: status=%d body=%s params=%s",
                response.status_code,
                response.text[:1000],
                params,
            )
            return SourceFetchResult.empty(
                "Unable to fetch JSearch jobs right now", status_code=response.status_code
            )

        rows = self._rows(response, "data")
        if rows is None:
            return SourceFetchResult.empty("malformed payload")

        records = [r for r in (self._map_row(row) for row in rows) if r is not None]
        logger.info("Fetched %d jobs from JSearch (query=%r)", len(records), params["query"])
        if not records:
            return SourceFetchResult.empty()
        return SourceFetchResult.ok(records)

    def _map_row(self, item: dict) -> NormalizedJobRecord | None:
        try:
            row = JSearchRow.model_validate(item)
        except ValidationError as e:
            logger.debug("Dropping malformed JSearch row: %s", e)
            return None

        title = clean_text(row.job_title)
        if not title:
            return None
        company = clean_text(row.employer_name)
        url = clean_text(row.job_apply_link) or clean_text(row.job_google_link)

        parts = [clean_text(p) for p in (row.job_city, row.job_state, row.job_country)]
        location = ", ".join(p for p in parts if p) or clean_text(row.job_location)

        if isinstance(row.job_employment_type, list):
            employment = ",".join(t for t in row.job_employment_type if t)
        else:
            employment = row.job_employment_type

        posted_raw = row.job_posted_at_datetime_utc
        if posted_raw in (None, ""):
            posted_raw = row.job_posted_at_timestamp

        return NormalizedJobRecord(
            external_id=clean_text(row.job_id) or stable_external_id(title, company, url),
            title=title,
            company_name=company,
            location=location,
            description=row.job_description,
            url=url,
            remote_type=RemoteType.REMOTE if row.job_is_remote else classify_remote_type(location),
            employment_type=classify_employment_type(employment),
            posted_at=parse_posted_at(posted_raw),
            tags={
                "publisher": row.job_publisher or None,
                "employment_types": row.job_employment_type or None,
                "highlights": row.job_highlights or None,
                "is_remote": row.job_is_remote,
            },
            raw_payload=item,
        )
