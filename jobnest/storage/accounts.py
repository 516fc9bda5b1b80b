"""Users and job sources."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime

from jobnest.models.sync import JobSource
from jobnest.models.user import User, UserPreferences
from jobnest.settings import SourceSeed
from jobnest.storage.database import Database, from_db_time, from_json, to_db_time, to_json, utcnow

logger = logging.getLogger(__name__)


class UserStore:
    def __init__(self, db: Database) -> None:
        self._conn = db.conn

    def create(self, email: str, preferences: UserPreferences | None = None, name: str = "") -> User:
        prefs = preferences or UserPreferences()
        cur = self._conn.execute(
            """
            INSERT INTO users (email, name, preferred_keywords, preferred_location,
                               preferred_job_type, preferred_country_iso2, include_remote)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (email.strip().lower(), name, *_preference_values(prefs)),
        )
        self._conn.commit()
        logger.info("Created user %d (%s)", cur.lastrowid, email)
        return self.get(cur.lastrowid)

    def get(self, user_id: int) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _to_user(row) if row else None

    def list_ids(self) -> list[int]:
        return [row["id"] for row in self._conn.execute("SELECT id FROM users ORDER BY id")]

    def update_preferences(self, user_id: int, preferences: UserPreferences) -> bool:
        cur = self._conn.execute(
            """
            UPDATE users SET preferred_keywords = ?, preferred_location = ?,
                             preferred_job_type = ?, preferred_country_iso2 = ?,
                             include_remote = ?
            WHERE id = ?
            """,
            (*_preference_values(preferences), user_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def delete(self, user_id: int) -> None:
        self._conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        self._conn.commit()


class SourceStore:
    def __init__(self, db: Database) -> None:
        self._conn = db.conn

    def seed(self, seeds: Iterable[SourceSeed]) -> list[JobSource]:
        """Insert or refresh sources by key; `enabled` is kept for existing rows."""
        now = to_db_time(utcnow())
        for seed in seeds:
            self._conn.execute(
                """
                INSERT INTO job_sources (key, name, base_url, enabled, sync_interval_minutes,
                                         created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (key) DO UPDATE SET
                    name = excluded.name,
                    base_url = excluded.base_url,
                    sync_interval_minutes = excluded.sync_interval_minutes,
                    updated_at = excluded.updated_at
                """,
                (seed.key, seed.name, seed.base_url, int(seed.enabled),
                 seed.sync_interval_minutes, now, now),
            )
        self._conn.commit()
        return self.list_all()

    def get_by_key(self, key: str) -> JobSource | None:
        row = self._conn.execute("SELECT * FROM job_sources WHERE key = ?", (key,)).fetchone()
        return _to_source(row) if row else None

    def list_all(self) -> list[JobSource]:
        rows = self._conn.execute("SELECT * FROM job_sources ORDER BY id").fetchall()
        return [_to_source(row) for row in rows]

    def list_enabled(self, keys: Iterable[str]) -> list[JobSource]:
        keys = list(keys)
        if not keys:
            return []
        rows = self._conn.execute(
            f"SELECT * FROM job_sources WHERE enabled = 1 AND key IN ({', '.join('?' * len(keys))}) "
            "ORDER BY id",
            keys,
        ).fetchall()
        return [_to_source(row) for row in rows]

    def set_enabled(self, key: str, enabled: bool) -> bool:
        cur = self._conn.execute(
            "UPDATE job_sources SET enabled = ?, updated_at = ? WHERE key = ?",
            (int(enabled), to_db_time(utcnow()), key),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def mark_synced(self, source_id: int, at: datetime | None = None) -> None:
        stamp = to_db_time(at or utcnow())
        self._conn.execute(
            "UPDATE job_sources SET last_synced_at = ?, updated_at = ? WHERE id = ?",
            (stamp, stamp, source_id),
        )
        self._conn.commit()


def _preference_values(prefs: UserPreferences) -> tuple:
    include_remote = None if prefs.include_remote is None else int(prefs.include_remote)
    return (
        to_json(prefs.preferred_keywords),
        prefs.preferred_location,
        prefs.preferred_job_type.value,
        prefs.preferred_country_iso2,
        include_remote,
    )


def _to_user(row: sqlite3.Row) -> User:
    include_remote = row["include_remote"]
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        preferences=UserPreferences(
            preferred_keywords=from_json(row["preferred_keywords"], default=[]),
            preferred_location=row["preferred_location"],
            preferred_job_type=row["preferred_job_type"],
            preferred_country_iso2=row["preferred_country_iso2"],
            include_remote=None if include_remote is None else bool(include_remote),
        ),
        created_at=from_db_time(row["created_at"]),
    )


def _to_source(row: sqlite3.Row) -> JobSource:
    return JobSource(
        id=row["id"],
        key=row["key"],
        name=row["name"],
        base_url=row["base_url"],
        enabled=bool(row["enabled"]),
        sync_interval_minutes=row["sync_interval_minutes"],
        last_synced_at=from_db_time(row["last_synced_at"]),
    )
