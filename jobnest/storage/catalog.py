"""Job catalog: canonical postings keyed by (source_id, external_id)."""

from __future__ import annotations

import logging
import sqlite3
from enum import Enum
from typing import Any

from jobnest.models.job import JobCatalogEntry, JobStatus, NormalizedJobRecord
from jobnest.storage.database import (
    Database,
    from_db_time,
    from_json,
    to_db_time,
    to_json,
    utcnow,
)

logger = logging.getLogger(__name__)

# Columns a sync may overwrite. `status` is user workflow state and is not here.
MUTABLE_COLUMNS = (
    "title",
    "company_name",
    "location",
    "remote_type",
    "employment_type",
    "url",
    "description",
    "tags",
    "posted_at",
    "raw_payload",
)


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def record_columns(record: NormalizedJobRecord) -> dict[str, Any]:
    """Column values for the mutable part of a catalog row."""
    return {
        "title": record.title,
        "company_name": record.company_name,
        "location": record.location,
        "remote_type": record.remote_type.value,
        "employment_type": record.employment_type.value,
        "url": record.url,
        "description": record.description,
        "tags": to_json(record.tags),
        "posted_at": to_db_time(record.posted_at),
        "raw_payload": to_json(record.raw_payload),
    }


class JobCatalog:
    """SQLite-backed store for catalog entries."""

    def __init__(self, db: Database) -> None:
        self._conn = db.conn

    # -- Lookups ----------------------------------------------------------------

    def find_by_source_and_external_id(self, source_id: int, external_id: str) -> JobCatalogEntry | None:
        row = self._conn.execute(
            "SELECT * FROM jobs WHERE source_id = ? AND external_id = ?",
            (source_id, external_id),
        ).fetchone()
        return _to_entry(row) if row else None

    def get(self, job_id: int) -> JobCatalogEntry | None:
        row = self._conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _to_entry(row) if row else None

    def list_by_source(self, source_id: int) -> list[JobCatalogEntry]:
        rows = self._conn.execute(
            "SELECT * FROM jobs WHERE source_id = ? ORDER BY id", (source_id,)
        ).fetchall()
        return [_to_entry(row) for row in rows]

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]

    # -- Writes -----------------------------------------------------------------

    def create(self, source_id: int, record: NormalizedJobRecord) -> JobCatalogEntry | None:
        """Insert a new entry with status `new`.

        Returns None when another writer already holds the (source_id,
        external_id) key; the caller should then update instead.
        """
        now = to_db_time(utcnow())
        columns = record_columns(record)
        names = ["source_id", "external_id", *columns, "status", "created_at", "updated_at"]
        values = [source_id, record.external_id, *columns.values(), JobStatus.NEW.value, now, now]
        cur = self._conn.execute(
            f"INSERT INTO jobs ({', '.join(names)}) VALUES ({', '.join('?' * len(names))}) "
            "ON CONFLICT (source_id, external_id) DO NOTHING",
            values,
        )
        self._conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get(cur.lastrowid)

    def update(self, entry: JobCatalogEntry, record: NormalizedJobRecord) -> bool:
        """Overwrite the mutable columns; returns whether anything changed."""
        current = self._conn.execute(
            f"SELECT {', '.join(MUTABLE_COLUMNS)} FROM jobs WHERE id = ?", (entry.id,)
        ).fetchone()
        if current is None:
            return False

        incoming = record_columns(record)
        changed = {col: val for col, val in incoming.items() if current[col] != val}
        if not changed:
            return False

        assignments = ", ".join(f"{col} = ?" for col in changed)
        self._conn.execute(
            f"UPDATE jobs SET {assignments}, updated_at = ? WHERE id = ?",
            [*changed.values(), to_db_time(utcnow()), entry.id],
        )
        self._conn.commit()
        logger.debug("Updated job %d (%s): %s", entry.id, entry.external_id, sorted(changed))
        return True

    def upsert(
        self, source_id: int, record: NormalizedJobRecord, only_new: bool = False
    ) -> tuple[JobCatalogEntry, UpsertOutcome]:
        """Create the entry, or update it when it exists.

        A create that loses a race on the unique key falls through to the
        update path, so concurrent syncs never duplicate an entry.
        """
        existing = self.find_by_source_and_external_id(source_id, record.external_id)
        if existing is None:
            created = self.create(source_id, record)
            if created is not None:
                return created, UpsertOutcome.CREATED
            existing = self.find_by_source_and_external_id(source_id, record.external_id)
            if existing is None:
                raise sqlite3.IntegrityError(
                    f"Job {source_id}/{record.external_id} vanished during upsert"
                )

        if only_new or not self.update(existing, record):
            return existing, UpsertOutcome.UNCHANGED
        return existing, UpsertOutcome.UPDATED

    def set_status(self, job_id: int, status: JobStatus) -> bool:
        cur = self._conn.execute(
            "UPDATE jobs SET status = ?, updated_at = ? WHERE id = ?",
            (JobStatus(status).value, to_db_time(utcnow()), job_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    # -- User feed --------------------------------------------------------------

    def attach_to_user(self, user_id: int, job_id: int) -> None:
        """Add a job to the user's feed; an existing link keeps its flags."""
        now = to_db_time(utcnow())
        self._conn.execute(
            """
            INSERT INTO job_user (user_id, job_id, saved, hidden, created_at, updated_at)
            VALUES (?, ?, 0, 0, ?, ?)
            ON CONFLICT (user_id, job_id) DO NOTHING
            """,
            (user_id, job_id, now, now),
        )
        self._conn.commit()

    def hide_for_user(self, user_id: int, job_id: int) -> None:
        now = to_db_time(utcnow())
        self._conn.execute(
            """
            INSERT INTO job_user (user_id, job_id, saved, hidden, created_at, updated_at)
            VALUES (?, ?, 0, 1, ?, ?)
            ON CONFLICT (user_id, job_id) DO UPDATE SET hidden = 1, updated_at = excluded.updated_at
            """,
            (user_id, job_id, now, now),
        )
        self._conn.commit()

    def is_hidden_for_user(self, user_id: int, job_id: int) -> bool:
        row = self._conn.execute(
            "SELECT hidden FROM job_user WHERE user_id = ? AND job_id = ?", (user_id, job_id)
        ).fetchone()
        return bool(row and row["hidden"])

    def count_user_jobs(self, user_id: int, location_needle: str = "") -> int:
        """Count visible feed jobs, optionally only those at a location."""
        sql = (
            "SELECT COUNT(*) FROM jobs j JOIN job_user ju ON ju.job_id = j.id "
            "WHERE ju.user_id = ? AND ju.hidden = 0"
        )
        params: list[Any] = [user_id]
        needle = location_needle.strip()
        if needle:
            sql += " AND LOWER(COALESCE(j.location, '')) LIKE ?"
            params.append(f"%{needle.lower()}%")
        return self._conn.execute(sql, params).fetchone()[0]


def _to_entry(row: sqlite3.Row) -> JobCatalogEntry:
    return JobCatalogEntry(
        id=row["id"],
        source_id=row["source_id"],
        external_id=row["external_id"],
        title=row["title"],
        company_name=row["company_name"] or "",
        location=row["location"] or "",
        remote_type=row["remote_type"],
        employment_type=row["employment_type"],
        status=row["status"],
        url=row["url"] or "",
        description=row["description"] or "",
        tags=from_json(row["tags"], default={}) or {},
        posted_at=from_db_time(row["posted_at"]),
        raw_payload=from_json(row["raw_payload"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )
