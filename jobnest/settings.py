"""Settings loader: reads sources.yaml and applies environment overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from jobnest.errors import ConfigError

logger = logging.getLogger(__name__)

ARBEITNOW = "arbeitnow"
REMOTIVE = "remotive"
JSEARCH = "jsearch"


class ProviderSettings(BaseModel):
    """Connection settings handed to one source client at construction."""

    base_url: str
    timeout: float = 20.0
    retries: int = Field(default=2, ge=1)
    retry_delay: float = Field(default=0.2, ge=0)
    api_key: str | None = None
    api_host: str | None = None


class SourceSeed(BaseModel):
    key: str
    name: str
    base_url: str | None = None
    enabled: bool = True
    sync_interval_minutes: int = Field(default=15, ge=1, le=1440)


class SyncSettings(BaseModel):
    allowed_sources: list[str] = Field(default_factory=lambda: [ARBEITNOW, REMOTIVE])
    default_jsearch_query: str = "software engineer"
    default_country: str = "pk"
    error_message_limit: int = 1000


def _default_providers() -> dict[str, ProviderSettings]:
    return {
        ARBEITNOW: ProviderSettings(base_url="https://www.arbeitnow.com/api/job-board-api"),
        REMOTIVE: ProviderSettings(base_url="https://remotive.com/api/remote-jobs"),
        JSEARCH: ProviderSettings(
            base_url="https://jsearch.p.rapidapi.com",
            timeout=30.0,
            retry_delay=0.5,
            api_host="jsearch.p.rapidapi.com",
        ),
    }


def _default_seeds() -> list[SourceSeed]:
    return [
        SourceSeed(key=ARBEITNOW, name="Arbeitnow", base_url="https://www.arbeitnow.com/api/job-board-api"),
        SourceSeed(key=REMOTIVE, name="Remotive", base_url="https://remotive.com/api/remote-jobs"),
        SourceSeed(key=JSEARCH, name="JSearch (RapidAPI)", base_url="https://jsearch.p.rapidapi.com/search"),
    ]


class Settings(BaseModel):
    db_path: str = "jobnest.db"
    log_level: str = "INFO"
    sync: SyncSettings = Field(default_factory=SyncSettings)
    providers: dict[str, ProviderSettings] = Field(default_factory=_default_providers)
    sources: list[SourceSeed] = Field(default_factory=_default_seeds)

    def provider(self, key: str) -> ProviderSettings:
        try:
            return self.providers[key]
        except KeyError:
            raise ConfigError(f"No provider settings for '{key}'") from None


def load_settings(filepath: str = "sources.yaml") -> Settings:
    """Load settings from a YAML file, then apply environment overrides.

    A missing file is not an error: defaults are used so a fresh checkout can
    run against the public providers straight away.
    """
    path = Path(filepath)
    data: dict = {}
    if path.exists():
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {filepath}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{filepath} must contain a mapping at the top level")
        data = _from_yaml(loaded)
        logger.info("Loaded settings from %s", filepath)
    else:
        logger.warning("Settings file not found at %s, using defaults", filepath)

    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {filepath}: {e}") from e

    _apply_env(settings)
    return settings


def _from_yaml(loaded: dict) -> dict:
    data: dict = {}

    database = loaded.get("database") or {}
    if database.get("path"):
        data["db_path"] = database["path"]
    if loaded.get("log_level"):
        data["log_level"] = loaded["log_level"]
    if loaded.get("sync"):
        data["sync"] = loaded["sync"]
    if loaded.get("sources"):
        data["sources"] = loaded["sources"]

    # Providers merge over the defaults so a file can override a single key.
    providers = {key: p.model_dump() for key, p in _default_providers().items()}
    for key, overrides in (loaded.get("providers") or {}).items():
        if not isinstance(overrides, dict):
            raise ConfigError(f"Provider '{key}' must be a mapping")
        providers[key] = {**providers.get(key, {}), **overrides}
    data["providers"] = providers
    return data


def _apply_env(settings: Settings) -> None:
    if os.getenv("DB_PATH"):
        settings.db_path = os.environ["DB_PATH"]
    if os.getenv("LOG_LEVEL"):
        settings.log_level = os.environ["LOG_LEVEL"]

    jsearch = settings.providers.get(JSEARCH)
    if jsearch is None:
        return
    if os.getenv("RAPIDAPI_KEY"):
        jsearch.api_key = os.environ["RAPIDAPI_KEY"].strip()
    if os.getenv("RAPIDAPI_HOST"):
        jsearch.api_host = os.environ["RAPIDAPI_HOST"].strip()
    if os.getenv("RAPIDAPI_BASE_URL"):
        jsearch.base_url = os.environ["RAPIDAPI_BASE_URL"].strip()
