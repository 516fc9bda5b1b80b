"""Pydantic models for normalized job records and catalog entries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RemoteType(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"
    UNKNOWN = "unknown"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    FREELANCE = "freelance"
    TEMPORARY = "temporary"
    UNKNOWN = "unknown"


class JobStatus(str, Enum):
    NEW = "new"
    SAVED = "saved"
    APPLIED = "applied"
    IGNORED = "ignored"
    ARCHIVED = "archived"


class NormalizedJobRecord(BaseModel):
    """A job listing reshaped into the common schema, whatever its provider.

    `raw_payload` keeps the provider row as-is; nothing outside the provider's
    mapping function reads into it.
    """

    model_config = ConfigDict(frozen=True)

    external_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    company_name: str = ""
    location: str = ""
    description: str = ""
    url: str = ""
    remote_type: RemoteType = RemoteType.UNKNOWN
    employment_type: EmploymentType = EmploymentType.UNKNOWN
    posted_at: datetime | None = None
    tags: dict[str, Any] = Field(default_factory=dict)
    raw_payload: Any = None

    @field_validator("external_id", "title")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def search_text(self) -> str:
        """Lower-cased haystack used for keyword matching."""
        return " ".join(
            [self.title, self.company_name, self.location, self.description]
        ).lower()


class JobCatalogEntry(BaseModel):
    """A persisted job posting, unique per (source_id, external_id)."""

    id: int
    source_id: int
    external_id: str
    title: str
    company_name: str = ""
    location: str = ""
    remote_type: RemoteType = RemoteType.UNKNOWN
    employment_type: EmploymentType = EmploymentType.UNKNOWN
    status: JobStatus = JobStatus.NEW
    url: str = ""
    description: str = ""
    tags: dict[str, Any] = Field(default_factory=dict)
    posted_at: datetime | None = None
    raw_payload: Any = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
