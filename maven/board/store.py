"""
Task storage: the TaskStore interface and its SQLite backend.

The SQLite database also holds the ``profiles`` and ``users`` tables used by
the profile editor and auth; the schema is created here so every component
sharing a database file sees the same tables.
"""
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from .schema import Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskStoreError(Exception):
    """Raised when the store rejects or fails a request. str(e) is user-facing."""
    pass


class TaskStore(Protocol):
    def list_tasks(self) -> List[Task]: ...
    def get_task(self, task_id: str) -> Optional[Task]: ...
    def update_task_status(self, task_id: str, status: TaskStatus) -> None: ...
    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        status: TaskStatus = TaskStatus.PENDING,
        assignee_id: Optional[str] = None,
    ) -> Task: ...


def connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_schema(db_path: str) -> None:
    """Create tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    with connect(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                full_name TEXT DEFAULT '',
                bio TEXT DEFAULT '',
                avatar_url TEXT,
                settings TEXT DEFAULT '{}',  -- JSON object
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                status TEXT NOT NULL DEFAULT 'pending',
                assignee_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (assignee_id) REFERENCES profiles(id)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
        conn.commit()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteTaskStore:
    """SQLite-backed task store."""

    def __init__(self, db_path: str = None):
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "maven" / "maven.db")
        self.db_path = db_path
        init_schema(db_path)

    def list_tasks(self) -> List[Task]:
        """All tasks, oldest first, with the assignee's name joined in."""
        try:
            with connect(self.db_path) as conn:
                rows = conn.execute("""
                    SELECT t.id, t.title, t.description, t.status, t.created_at,
                           p.full_name AS assignee
                    FROM tasks t
                    LEFT JOIN profiles p ON p.id = t.assignee_id
                    ORDER BY t.created_at ASC, t.rowid ASC
                """).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing tasks: {e}")
            raise TaskStoreError(str(e)) from e
        return [Task.from_dict(dict(r)) for r in rows]

    def get_task(self, task_id: str) -> Optional[Task]:
        try:
            with connect(self.db_path) as conn:
                row = conn.execute("""
                    SELECT t.id, t.title, t.description, t.status, t.created_at,
                           p.full_name AS assignee
                    FROM tasks t
                    LEFT JOIN profiles p ON p.id = t.assignee_id
                    WHERE t.id = ?
                """, (task_id,)).fetchone()
        except sqlite3.Error as e:
            raise TaskStoreError(str(e)) from e
        return Task.from_dict(dict(row)) if row else None

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        status: TaskStatus = TaskStatus.PENDING,
        assignee_id: Optional[str] = None,
    ) -> Task:
        if not title or not title.strip():
            raise TaskStoreError("title is required")
        task_id = str(uuid.uuid4())
        now = utc_now()
        try:
            with connect(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO tasks (id, title, description, status, assignee_id, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (task_id, title.strip(), description, status.value, assignee_id, now, now),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error creating task {title!r}: {e}")
            raise TaskStoreError(str(e)) from e
        return self.get_task(task_id)

    def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        """Set a task's status. Unknown task ids are a failure, not a no-op."""
        if not isinstance(status, TaskStatus):
            raise TaskStoreError(f"Invalid status: {status}")
        try:
            with connect(self.db_path) as conn:
                cur = conn.execute(
                    "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ?",
                    (status.value, utc_now(), task_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error updating task {task_id}: {e}")
            raise TaskStoreError(str(e)) from e
        if cur.rowcount == 0:
            raise TaskStoreError(f"Task {task_id} not found")
