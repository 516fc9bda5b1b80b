"""SQLite connection and schema for the job catalog, sync logs, users and sources."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS job_sources (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    key           TEXT NOT NULL UNIQUE,
    name          TEXT NOT NULL,
    base_url      TEXT,
    enabled       INTEGER NOT NULL DEFAULT 1,
    sync_interval_minutes INTEGER NOT NULL DEFAULT 15,
    last_synced_at TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS users (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    email         TEXT NOT NULL UNIQUE,
    name          TEXT NOT NULL DEFAULT '',
    preferred_keywords TEXT NOT NULL DEFAULT '[]',  -- JSON list
    preferred_location TEXT NOT NULL DEFAULT '',
    preferred_job_type TEXT NOT NULL DEFAULT 'any',
    preferred_country_iso2 TEXT,
    include_remote INTEGER,
    created_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS jobs (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id     INTEGER NOT NULL REFERENCES job_sources(id) ON DELETE CASCADE,
    external_id   TEXT NOT NULL,
    title         TEXT NOT NULL,
    company_name  TEXT,
    location      TEXT,
    remote_type   TEXT NOT NULL DEFAULT 'unknown'
                  CHECK (remote_type IN ('remote', 'hybrid', 'onsite', 'unknown')),
    employment_type TEXT NOT NULL DEFAULT 'unknown'
                  CHECK (employment_type IN ('full_time', 'part_time', 'contract',
                         'internship', 'freelance', 'temporary', 'unknown')),
    status        TEXT NOT NULL DEFAULT 'new'
                  CHECK (status IN ('new', 'saved', 'applied', 'ignored', 'archived')),
    url           TEXT,
    description   TEXT,
    tags          TEXT,  -- JSON object
    posted_at     TEXT,
    raw_payload   TEXT,  -- JSON
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    UNIQUE (source_id, external_id)
);

CREATE INDEX IF NOT EXISTS idx_jobs_source_status ON jobs(source_id, status);
CREATE INDEX IF NOT EXISTS idx_jobs_source_posted ON jobs(source_id, posted_at);
CREATE INDEX IF NOT EXISTS idx_jobs_location ON jobs(location);

CREATE TABLE IF NOT EXISTS job_user (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id       INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    job_id        INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    saved         INTEGER NOT NULL DEFAULT 0,
    hidden        INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    UNIQUE (user_id, job_id)
);

CREATE INDEX IF NOT EXISTS idx_job_user_hidden ON job_user(user_id, hidden);

CREATE TABLE IF NOT EXISTS sync_logs (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id     INTEGER NOT NULL REFERENCES job_sources(id) ON DELETE CASCADE,
    user_id       INTEGER REFERENCES users(id) ON DELETE SET NULL,
    status        TEXT NOT NULL DEFAULT 'success'
                  CHECK (status IN ('success', 'failed')),
    started_at    TEXT,
    ended_at      TEXT,
    runtime_ms    INTEGER,
    jobs_fetched  INTEGER NOT NULL DEFAULT 0,
    jobs_created  INTEGER NOT NULL DEFAULT 0,
    jobs_updated  INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_sync_logs_source ON sync_logs(source_id, created_at);
CREATE INDEX IF NOT EXISTS idx_sync_logs_user ON sync_logs(user_id, started_at);
"""


class Database:
    """Owns the SQLite connection shared by the stores."""

    def __init__(self, db_path: str = "jobnest.db") -> None:
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()


# -- Column codecs --------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def from_json(value: str | None, default: Any = None) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except ValueError:
        logger.debug("Stored JSON could not be decoded: %.80s", value)
        return default
