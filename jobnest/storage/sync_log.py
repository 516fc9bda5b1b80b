"""Sync log store: one entry per (user, source) run, finalized exactly once."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from jobnest.errors import SyncLogError
from jobnest.models.sync import LogPage, SyncLogEntry, SyncStatus
from jobnest.storage.database import Database, from_db_time, to_db_time

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100


class SyncLogStore:
    def __init__(self, db: Database) -> None:
        self._conn = db.conn

    def open(self, source_id: int, user_id: int | None, started_at: datetime) -> SyncLogEntry:
        """Create an entry with the optimistic `success` status."""
        cur = self._conn.execute(
            """
            INSERT INTO sync_logs (source_id, user_id, status, started_at,
                                   jobs_fetched, jobs_created, jobs_updated)
            VALUES (?, ?, ?, ?, 0, 0, 0)
            """,
            (source_id, user_id, SyncStatus.SUCCESS.value, to_db_time(started_at)),
        )
        self._conn.commit()
        return self.get(cur.lastrowid)

    def finalize(
        self,
        log_id: int,
        *,
        status: SyncStatus,
        ended_at: datetime,
        runtime_ms: int,
        jobs_fetched: int | None = None,
        jobs_created: int | None = None,
        jobs_updated: int | None = None,
        error_message: str | None = None,
    ) -> SyncLogEntry:
        """Close an open entry. Counters left as None keep their stored value.

        Raises SyncLogError if the entry does not exist or was already closed.
        """
        cur = self._conn.execute(
            """
            UPDATE sync_logs SET
                status = ?,
                ended_at = ?,
                runtime_ms = ?,
                jobs_fetched = COALESCE(?, jobs_fetched),
                jobs_created = COALESCE(?, jobs_created),
                jobs_updated = COALESCE(?, jobs_updated),
                error_message = ?
            WHERE id = ? AND ended_at IS NULL
            """,
            (
                SyncStatus(status).value,
                to_db_time(ended_at),
                max(0, int(runtime_ms)),
                jobs_fetched,
                jobs_created,
                jobs_updated,
                error_message,
                log_id,
            ),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            if self._find(log_id) is None:
                raise SyncLogError(f"Sync log {log_id} does not exist")
            raise SyncLogError(f"Sync log {log_id} is already finalized")
        return self.get(log_id)

    def get(self, log_id: int) -> SyncLogEntry:
        entry = self._find(log_id)
        if entry is None:
            raise SyncLogError(f"Sync log {log_id} does not exist")
        return entry

    def list_for_user(self, user_id: int) -> list[SyncLogEntry]:
        rows = self._conn.execute(
            "SELECT * FROM sync_logs WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
        return [_to_entry(row) for row in rows]

    def list_page(self, page: int = 1, per_page: int = 20) -> LogPage:
        """Newest-first page of all entries, for the admin listing."""
        page = max(1, page)
        per_page = min(max(1, per_page), MAX_PER_PAGE)
        total = self._conn.execute("SELECT COUNT(*) FROM sync_logs").fetchone()[0]
        rows = self._conn.execute(
            "SELECT * FROM sync_logs ORDER BY id DESC LIMIT ? OFFSET ?",
            (per_page, (page - 1) * per_page),
        ).fetchall()
        return LogPage(data=[_to_entry(r) for r in rows], page=page, per_page=per_page, total=total)

    def _find(self, log_id: int) -> SyncLogEntry | None:
        row = self._conn.execute("SELECT * FROM sync_logs WHERE id = ?", (log_id,)).fetchone()
        return _to_entry(row) if row else None


def _to_entry(row: sqlite3.Row) -> SyncLogEntry:
    return SyncLogEntry(
        id=row["id"],
        source_id=row["source_id"],
        user_id=row["user_id"],
        status=row["status"],
        started_at=from_db_time(row["started_at"]),
        ended_at=from_db_time(row["ended_at"]),
        runtime_ms=row["runtime_ms"],
        jobs_fetched=row["jobs_fetched"],
        jobs_created=row["jobs_created"],
        jobs_updated=row["jobs_updated"],
        error_message=row["error_message"],
    )
