"""SQLite-backed application progress persistence."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from formflow.errors import PersistenceUnavailable, StaleProgress
from formflow.types import ApplicationProgress

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

logger = logging.getLogger(__name__)

INIT_SQL = """
CREATE TABLE IF NOT EXISTS application_progress (
    id TEXT PRIMARY KEY,
    template_id TEXT NOT NULL,
    subject TEXT NOT NULL,
    current_step TEXT,
    status TEXT NOT NULL DEFAULT 'draft',
    answers TEXT NOT NULL DEFAULT '{}',
    errors TEXT NOT NULL DEFAULT '{}',
    visited TEXT NOT NULL DEFAULT '[]',
    commits TEXT NOT NULL DEFAULT '{}',
    submission_count INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    started_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS progress_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    progress_id TEXT NOT NULL,
    step_id TEXT,
    action TEXT NOT NULL,
    data TEXT,
    timestamp TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_history_progress ON progress_history (progress_id);
"""

_COLUMNS = (
    "id", "template_id", "subject", "current_step", "status", "answers", "errors",
    "visited", "commits", "submission_count", "completed_at", "started_at",
    "updated_at", "version",
)
_JSON_COLUMNS = frozenset({"answers", "errors", "visited", "commits"})


def now_stamp() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


class PersistenceBackend(Protocol):
    def create(self, progress: ApplicationProgress) -> None: ...
    def load_draft(self, progress_id: str) -> ApplicationProgress | None: ...
    def save_step(self, progress: ApplicationProgress, expected_version: int,
                  action: str, step_id: str | None = None, data: str | None = None) -> None: ...
    def finalize(self, progress: ApplicationProgress, expected_version: int) -> None: ...
    def add_history(self, progress_id: str, step_id: str | None, action: str,
                    data: str | None = None) -> None: ...
    def get_history(self, progress_id: str, limit: int = 20) -> list[dict]: ...


class ProgressStore:
    def __init__(self, db_path: str | Path, timeout: float = 5.0):
        self._lock = threading.RLock()
        try:
            self.db = sqlite3.connect(str(db_path), timeout=timeout, check_same_thread=False)
            self.db.execute("PRAGMA journal_mode = WAL")
            self.db.executescript(INIT_SQL)
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Cannot open progress database: {e}", {"path": str(db_path)}) from e

    def create(self, progress: ApplicationProgress) -> None:
        row = self._to_row(progress)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._transaction() as db:
            db.execute(
                f"INSERT INTO application_progress ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                row,
            )
            self._insert_history(db, progress.id, progress.current_step, "start", None)

    def load_draft(self, progress_id: str) -> ApplicationProgress | None:
        with self._guard():
            row = self.db.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM application_progress WHERE id = ?",
                (progress_id,),
            ).fetchone()
        return self._from_row(row) if row else None

    def save_step(
        self,
        progress: ApplicationProgress,
        expected_version: int,
        action: str,
        step_id: str | None = None,
        data: str | None = None,
    ) -> None:
        """Write a progress record if nobody else wrote it since ``expected_version``."""
        with self._transaction() as db:
            self._update(db, progress, expected_version)
            self._insert_history(db, progress.id, step_id, action, data)

    def finalize(self, progress: ApplicationProgress, expected_version: int) -> None:
        with self._transaction() as db:
            self._update(db, progress, expected_version)
            self._insert_history(db, progress.id, None, "finalize", progress.status)

    def add_history(self, progress_id: str, step_id: str | None, action: str, data: str | None = None) -> None:
        with self._transaction() as db:
            self._insert_history(db, progress_id, step_id, action, data)

    def get_history(self, progress_id: str, limit: int = 20) -> list[dict]:
        with self._guard():
            rows = self.db.execute(
                "SELECT id, progress_id, step_id, action, data, timestamp "
                "FROM progress_history WHERE progress_id = ? ORDER BY id DESC LIMIT ?",
                (progress_id, limit),
            ).fetchall()
        return [
            {"id": r[0], "progress_id": r[1], "step_id": r[2],
             "action": r[3], "data": r[4], "timestamp": r[5]}
            for r in rows
        ]

    def list_progress(self, subject: str | None = None) -> list[ApplicationProgress]:
        query = f"SELECT {', '.join(_COLUMNS)} FROM application_progress"
        params: tuple = ()
        if subject is not None:
            query += " WHERE subject = ?"
            params = (subject,)
        with self._guard():
            rows = self.db.execute(query + " ORDER BY started_at, id", params).fetchall()
        return [self._from_row(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            self.db.close()

    # ─── Private ───

    @contextmanager
    def _guard(self) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                logger.error("Progress store failure: %s", e)
                raise PersistenceUnavailable(f"Progress store unavailable: {e}") from e

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._guard():
            try:
                yield self.db
                self.db.commit()
            except BaseException:
                self.db.rollback()
                raise

    def _update(self, db: sqlite3.Connection, progress: ApplicationProgress, expected_version: int) -> None:
        row = self._to_row(progress)
        assignments = ", ".join(f"{c} = ?" for c in _COLUMNS[1:])
        cursor = db.execute(
            f"UPDATE application_progress SET {assignments} WHERE id = ? AND version = ?",
            (*row[1:], progress.id, expected_version),
        )
        if cursor.rowcount == 0:
            raise StaleProgress(
                "Application progress changed since it was read",
                {"progress": progress.id, "expected_version": expected_version},
            )

    @staticmethod
    def _insert_history(db: sqlite3.Connection, progress_id: str, step_id: str | None,
                        action: str, data: str | None) -> None:
        db.execute(
            "INSERT INTO progress_history (progress_id, step_id, action, data) VALUES (?, ?, ?, ?)",
            (progress_id, step_id, action, data),
        )

    @staticmethod
    def _to_row(progress: ApplicationProgress) -> tuple:
        record = progress.to_dict()
        return tuple(
            json.dumps(record[c], ensure_ascii=False) if c in _JSON_COLUMNS else record[c]
            for c in _COLUMNS
        )

    @staticmethod
    def _from_row(row: tuple) -> ApplicationProgress:
        record = {
            c: json.loads(v) if c in _JSON_COLUMNS else v
            for c, v in zip(_COLUMNS, row, strict=True)
        }
        return ApplicationProgress.from_dict(record)
