"""Pydantic models for users and their job-search preferences."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class JobTypePreference(str, Enum):
    FULL_TIME = "full-time"
    CONTRACT = "contract"
    PART_TIME = "part-time"
    INTERNSHIP = "internship"
    ANY = "any"


class UserPreferences(BaseModel):
    """The subset of a user's profile that drives job filtering."""

    preferred_keywords: list[str] = Field(default_factory=list)
    preferred_location: str = ""
    preferred_job_type: JobTypePreference = JobTypePreference.ANY

    # None means "no opinion"; False drops remote listings.
    include_remote: bool | None = None
    preferred_country_iso2: str | None = None

    @field_validator("preferred_keywords", mode="before")
    @classmethod
    def normalize_keywords(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        seen: set[str] = set()
        keywords: list[str] = []
        for item in v:
            kw = str(item).strip().lower()
            if kw and kw not in seen:
                seen.add(kw)
                keywords.append(kw)
        return keywords

    @field_validator("preferred_location", mode="before")
    @classmethod
    def strip_location(cls, v: object) -> str:
        return str(v or "").strip()

    @field_validator("preferred_job_type", mode="before")
    @classmethod
    def default_job_type(cls, v: object) -> object:
        if v is None:
            return JobTypePreference.ANY
        if isinstance(v, str):
            v = v.strip().lower().replace("_", "-")
            return v or JobTypePreference.ANY
        return v

    @field_validator("preferred_country_iso2", mode="before")
    @classmethod
    def lower_country(cls, v: object) -> str | None:
        if v is None:
            return None
        v = str(v).strip().lower()
        return v or None


class User(BaseModel):
    id: int
    email: str
    name: str = ""
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: datetime | None = None
