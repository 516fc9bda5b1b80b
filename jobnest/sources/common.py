"""Shared plumbing for source clients: HTTP, retries, classification, dates."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, model_validator
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from jobnest.models.job import EmploymentType, RemoteType
from jobnest.models.sync import SourceFetchResult
from jobnest.settings import ProviderSettings

logger = logging.getLogger(__name__)

USER_AGENT = "JobNest/1.0 (job sync)"

# Checked in order; the first matching rule wins, so "hybrid" must come
# before the onsite/remote terms it usually appears next to.
REMOTE_TYPE_RULES: tuple[tuple[tuple[str, ...], RemoteType], ...] = (
    (("hybrid",), RemoteType.HYBRID),
    (("on-site", "onsite", "on site"), RemoteType.ONSITE),
    (("remote",), RemoteType.REMOTE),
)

EMPLOYMENT_TYPE_RULES: tuple[tuple[tuple[str, ...], EmploymentType], ...] = (
    (("full",), EmploymentType.FULL_TIME),
    (("part",), EmploymentType.PART_TIME),
    (("contract",), EmploymentType.CONTRACT),
    (("intern",), EmploymentType.INTERNSHIP),
    (("freelance",), EmploymentType.FREELANCE),
    (("temp",), EmploymentType.TEMPORARY),
)

DATE_FORMATS = [
    "%a, %d %b %Y %H:%M:%S %z",  # RFC 822
    "%a, %d %b %Y %H:%M:%S %Z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d.%m.%Y",
]


def classify_remote_type(text: str | None) -> RemoteType:
    """Map free text (remote flags, location) to a RemoteType."""
    value = (text or "").lower()
    for terms, remote_type in REMOTE_TYPE_RULES:
        if any(term in value for term in terms):
            return remote_type
    return RemoteType.UNKNOWN


def classify_employment_type(text: str | None) -> EmploymentType:
    """Map a provider's job-type text to an EmploymentType."""
    value = (text or "").lower()
    for terms, employment_type in EMPLOYMENT_TYPE_RULES:
        if any(term in value for term in terms):
            return employment_type
    return EmploymentType.UNKNOWN


def parse_posted_at(value: Any) -> datetime | None:
    """Best-effort parse of a provider date into an aware UTC datetime.

    Accepts ISO strings, unix timestamps (seconds or milliseconds, as numbers
    or numeric strings) and a handful of free-text formats. Returns None
    rather than raising.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return _parse_date_string(value)

    if isinstance(value, (int, float)):
        ts = float(value)
        if ts > 1e12:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    return None


def _parse_date_string(value: str) -> datetime | None:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        dt = None
    if dt is None:
        for fmt in DATE_FORMATS:
            try:
                dt = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if dt is None:
        logger.debug("Could not parse date: %s", value)
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def stable_external_id(*parts: str | None) -> str:
    """Synthesize an id for providers that do not ship one."""
    joined = "|".join((p or "").strip() for p in parts)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_flag(value: Any) -> bool:
    """Provider booleans, which sometimes arrive as strings or 0/1."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return False


def coerce_str_list(value: Any) -> list[str]:
    """A list of non-blank strings; a bare string becomes a one-item list."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def coerce_mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


class ProviderRow(BaseModel):
    """Base for the narrow per-provider row shapes.

    Nulls are dropped before validation so every field falls back to its
    default instead of failing the row.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class SourceClient:
    """Base class for a provider client.

    Subclasses implement `search` and return a SourceFetchResult; nothing is
    allowed to raise out of it.
    """

    key: str = ""

    def __init__(self, config: ProviderSettings, http: httpx.Client | None = None) -> None:
        self.config = config
        self._http = http or httpx.Client(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    @property
    def configured(self) -> bool:
        return True

    def close(self) -> None:
        self._http.close()

    def _get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response | None:
        """GET with a fixed number of attempts on transport errors only.

        Returns None when every attempt failed to produce a response.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.config.retries),
            wait=wait_fixed(self.config.retry_delay),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        request_headers = {"Accept": "application/json", **(headers or {})}
        try:
            return retrying(
                self._http.get,
                url,
                params=params,
                headers=request_headers,
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Request to %s failed (%s): %s", self.key, url, e)
            return None

    def _failure_for(self, response: httpx.Response) -> SourceFetchResult | None:
        """Map a non-2xx response to EMPTY; None means the response is usable.

        The free boards need no credentials and publish no quota, so auth and
        rate-limit statuses are treated like any other outage. Keyed providers
        classify those statuses themselves.
        """
        status = response.status_code
        if not response.is_success:
            logger.warning("%s returned HTTP %d, treating as empty", self.key, status)
            return SourceFetchResult.empty(f"HTTP {status}", status_code=status)
        return None

    def _rows(self, response: httpx.Response, field: str) -> list[dict] | None:
        """Pull the list of rows out of a JSON body, or None if malformed."""
        try:
            payload = response.json()
        except ValueError:
            logger.warning("%s returned a body that is not JSON", self.key)
            return None
        rows = payload.get(field) if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            logger.warning("%s payload has no '%s' list", self.key, field)
            return None
        return [row for row in rows if isinstance(row, dict)]
