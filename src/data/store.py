"""
SQLite-backed document store for canonical tasks and developer profiles.

Each record is stored as a JSON document keyed by its identifier. Writes are
serialised per identifier and guarded by an optimistic version check, so two
imports racing on the same task cannot silently lose an update.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from src.data.models import CanonicalTask, DeveloperProfile, utc_now_iso

logger = logging.getLogger(__name__)

# Per-task write locks are striped over a fixed pool.
LOCK_STRIPES = 64


class StoreError(Exception):
    """Base class for task-scoped persistence failures."""

    def __init__(self, message: str, task_id: Optional[int] = None):
        super().__init__(message)
        self.task_id = task_id


class TaskNotFoundError(StoreError):
    """Raised when a task identifier does not exist."""


class TaskConflictError(StoreError):
    """Raised when an identifier change collides with an existing task."""


class StaleTaskError(StoreError):
    """Raised when a task changed since it was read."""


SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id INTEGER PRIMARY KEY,
    version INTEGER NOT NULL,
    doc_json TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS developers (
    timekeeper_number INTEGER PRIMARY KEY,
    doc_json TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class TaskStore:
    """Document store with upsert-by-identifier semantics."""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._con = sqlite3.connect(self.db_path, check_same_thread=False)
        self._con.row_factory = sqlite3.Row
        self._con.executescript(SCHEMA)
        self._con.commit()
        self._db_lock = threading.RLock()
        self._task_locks: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _task_lock(self, task_id: int) -> threading.Lock:
        return self._task_locks[int(task_id) % LOCK_STRIPES]

    def close(self) -> None:
        self._con.close()

    def __enter__(self) -> "TaskStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # TASKS: READ
    # =========================================================================

    def get_task(self, task_id: int) -> Optional[CanonicalTask]:
        with self._db_lock:
            row = self._con.execute(
                "SELECT version, doc_json FROM tasks WHERE task_id = ?", (int(task_id),)
            ).fetchone()
        if row is None:
            return None
        return self._decode_task(row)

    def require_task(self, task_id: int) -> CanonicalTask:
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found", task_id)
        return task

    def list_tasks(self, predicate: Optional[Callable[[CanonicalTask], bool]] = None) -> List[CanonicalTask]:
        """All tasks ordered by identifier descending, optionally filtered."""
        with self._db_lock:
            rows = self._con.execute(
                "SELECT version, doc_json FROM tasks ORDER BY task_id DESC"
            ).fetchall()
        tasks = [self._decode_task(row) for row in rows]
        if predicate is not None:
            tasks = [t for t in tasks if predicate(t)]
        return tasks

    def count_tasks(self) -> int:
        with self._db_lock:
            return self._con.execute("SELECT COUNT(*) FROM tasks").fetchone()[0]

    @staticmethod
    def _decode_task(row: sqlite3.Row) -> CanonicalTask:
        task = CanonicalTask.from_dict(json.loads(row["doc_json"]))
        task.version = row["version"]
        return task

    # =========================================================================
    # TASKS: WRITE
    # =========================================================================

    def save_task(self, task: CanonicalTask, expected_version: Optional[int] = None) -> CanonicalTask:
        """
        Insert or replace a task.

        If ``expected_version`` is given the stored version must match,
        otherwise StaleTaskError is raised and nothing is written.
        """
        task_id = int(task.task_id)
        with self._task_lock(task_id), self._db_lock:
            row = self._con.execute(
                "SELECT version FROM tasks WHERE task_id = ?", (task_id,)
            ).fetchone()
            current = row["version"] if row is not None else None

            if expected_version is not None and current != expected_version:
                raise StaleTaskError(
                    f"Task {task_id} changed (expected version {expected_version}, found {current})",
                    task_id,
                )

            now = utc_now_iso()
            task.version = (current or 0) + 1
            task.updated_at = now
            if task.created_at is None:
                task.created_at = now

            doc = json.dumps(task.to_dict(), ensure_ascii=False)
            with self._con:
                self._con.execute(
                    "INSERT INTO tasks(task_id, version, doc_json, updated_at) VALUES(?,?,?,?) "
                    "ON CONFLICT(task_id) DO UPDATE SET version=excluded.version, "
                    "doc_json=excluded.doc_json, updated_at=excluded.updated_at",
                    (task_id, task.version, doc, now),
                )
        return task

    def insert_task(self, task: CanonicalTask) -> CanonicalTask:
        """Create a new task; fails if the identifier is taken."""
        if self.get_task(task.task_id) is not None:
            raise TaskConflictError(f"A task with ID {task.task_id} already exists", task.task_id)
        return self.save_task(task, expected_version=None)

    def delete_task(self, task_id: int) -> bool:
        with self._task_lock(task_id), self._db_lock:
            with self._con:
                cur = self._con.execute("DELETE FROM tasks WHERE task_id = ?", (int(task_id),))
        return cur.rowcount > 0

    def delete_all_tasks(self) -> int:
        with self._db_lock:
            with self._con:
                cur = self._con.execute("DELETE FROM tasks")
        return cur.rowcount

    # =========================================================================
    # DEVELOPERS
    # =========================================================================

    def upsert_developer(self, profile: DeveloperProfile) -> DeveloperProfile:
        doc = json.dumps(profile.to_dict(), ensure_ascii=False)
        with self._db_lock:
            with self._con:
                self._con.execute(
                    "INSERT INTO developers(timekeeper_number, doc_json, updated_at) VALUES(?,?,?) "
                    "ON CONFLICT(timekeeper_number) DO UPDATE SET doc_json=excluded.doc_json, "
                    "updated_at=excluded.updated_at",
                    (int(profile.timekeeper_number), doc, utc_now_iso()),
                )
        return profile

    def upsert_developers(self, profiles: Iterable[DeveloperProfile]) -> int:
        count = 0
        for profile in profiles:
            self.upsert_developer(profile)
            count += 1
        return count

    def list_developers(self) -> List[DeveloperProfile]:
        """Developers ordered by total hours descending."""
        with self._db_lock:
            rows = self._con.execute("SELECT doc_json FROM developers").fetchall()
        profiles = [DeveloperProfile.from_dict(json.loads(r["doc_json"])) for r in rows]
        return sorted(profiles, key=lambda p: p.total_hours, reverse=True)

    def delete_all_developers(self) -> int:
        with self._db_lock:
            with self._con:
                cur = self._con.execute("DELETE FROM developers")
        return cur.rowcount

    def clear(self) -> Dict[str, int]:
        """Delete every task and developer profile."""
        tasks_deleted = self.delete_all_tasks()
        developers_deleted = self.delete_all_developers()
        logger.info("Cleared store: %d tasks, %d developers", tasks_deleted, developers_deleted)
        return {"tasks_deleted": tasks_deleted, "developers_deleted": developers_deleted}
