from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Generator, Iterable, List, Optional, Sequence

from .errors import DuplicateKeyError, StaleVersionError
from .models import NotificationEntity, ProjectEntity, TaskEntity, UserEntity
from .repositories import (
    Clock,
    NotificationQuery,
    NotificationRepository,
    ProjectRepository,
    Store,
    TaskRepository,
    UserRepository,
    new_id,
)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        owner TEXT NOT NULL,
        collaborators TEXT NOT NULL DEFAULT '[]',
        tags TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_projects_owner ON projects(owner)",
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        project TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NULL,
        status TEXT NOT NULL,
        priority TEXT NOT NULL,
        due_date TEXT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        assigned_to TEXT NOT NULL DEFAULT '[]',
        todos TEXT NOT NULL DEFAULT '[]',
        comments TEXT NOT NULL DEFAULT '[]',
        version INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project)",
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id TEXT PRIMARY KEY,
        recipient TEXT NOT NULL,
        sender TEXT NULL,
        type TEXT NOT NULL,
        message TEXT NOT NULL,
        project TEXT NULL,
        task TEXT NULL,
        is_read INTEGER NOT NULL DEFAULT 0,
        read_at TEXT NULL,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_notifications_inbox ON notifications(recipient, is_read, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_created_at ON notifications(created_at)",
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat(timespec="microseconds")


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else datetime.fromisoformat(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return _ts(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump(value: Any) -> str:
    return json.dumps(value, default=_json_default)


class SQLiteDatabase:
    """
    Owns the database file and hands out short-lived connections.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self.conn() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)


class SQLiteUserRepository(UserRepository):
    def __init__(self, db: SQLiteDatabase, clock: Clock = datetime.now) -> None:
        self._db = db
        self._now = clock

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> UserEntity:
        return {
            "id": row["id"],
            "username": row["username"],
            "email": row["email"],
            "created_at": _parse_dt(row["created_at"]),  # type: ignore[typeddict-item]
            "updated_at": _parse_dt(row["updated_at"]),  # type: ignore[typeddict-item]
        }

    @staticmethod
    def _duplicate(exc: sqlite3.IntegrityError) -> DuplicateKeyError:
        # sqlite reports "UNIQUE constraint failed: users.email"
        text = str(exc)
        return DuplicateKeyError("email" if "users.email" in text else "username")

    def _fetch(self, conn: sqlite3.Connection, column: str, value: str) -> Optional[UserEntity]:
        row = conn.execute(f"SELECT * FROM users WHERE {column} = ?", (value,)).fetchone()
        return self._row_to_entity(row) if row else None

    def create(self, username: str, email: str) -> UserEntity:
        now = _ts(self._now())
        user_id = new_id()
        with self._db.conn() as conn:
            try:
                conn.execute(
                    "INSERT INTO users (id, username, email, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                    (user_id, username, email, now, now),
                )
            except sqlite3.IntegrityError as exc:
                raise self._duplicate(exc) from exc
            created = self._fetch(conn, "id", user_id)
            assert created is not None
            return created

    def get(self, user_id: str) -> Optional[UserEntity]:
        with self._db.conn() as conn:
            return self._fetch(conn, "id", user_id)

    def find_by_email(self, email: str) -> Optional[UserEntity]:
        with self._db.conn() as conn:
            return self._fetch(conn, "email", email)

    def find_by_username(self, username: str) -> Optional[UserEntity]:
        with self._db.conn() as conn:
            return self._fetch(conn, "username", username)

    def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserEntity]:
        with self._db.conn() as conn:
            current = self._fetch(conn, "id", user_id)
            if current is None:
                return None
            username = fields.get("username", current["username"])
            email = fields.get("email", current["email"])
            try:
                conn.execute(
                    "UPDATE users SET username = ?, email = ?, updated_at = ? WHERE id = ?",
                    (username, email, _ts(self._now()), user_id),
                )
            except sqlite3.IntegrityError as exc:
                raise self._duplicate(exc) from exc
            return self._fetch(conn, "id", user_id)

    def delete(self, user_id: str) -> bool:
        with self._db.conn() as conn:
            cur = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cur.rowcount > 0


class SQLiteProjectRepository(ProjectRepository):
    def __init__(self, db: SQLiteDatabase, clock: Clock = datetime.now) -> None:
        self._db = db
        self._now = clock

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> ProjectEntity:
        return {
            "id": row["id"],
            "name": row["name"],
            "description": row["description"],
            "owner": row["owner"],
            "collaborators": json.loads(row["collaborators"]),
            "tags": json.loads(row["tags"]),
            "created_at": _parse_dt(row["created_at"]),  # type: ignore[typeddict-item]
            "updated_at": _parse_dt(row["updated_at"]),  # type: ignore[typeddict-item]
        }

    def _fetch(self, conn: sqlite3.Connection, project_id: str) -> Optional[ProjectEntity]:
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def create(self, name: str, description: str, owner: str, tags: Sequence[str]) -> ProjectEntity:
        now = _ts(self._now())
        project_id = new_id()
        with self._db.conn() as conn:
            conn.execute(
                """
                INSERT INTO projects (id, name, description, owner, collaborators, tags, created_at, updated_at)
                VALUES (?, ?, ?, ?, '[]', ?, ?, ?)
                """,
                (project_id, name, description, owner, _dump(list(tags)), now, now),
            )
            created = self._fetch(conn, project_id)
            assert created is not None
            return created

    def get(self, project_id: str) -> Optional[ProjectEntity]:
        with self._db.conn() as conn:
            return self._fetch(conn, project_id)

    def list_for_member(self, user_id: str) -> List[ProjectEntity]:
        with self._db.conn() as conn:
            rows = conn.execute(
                """
                SELECT * FROM projects
                WHERE owner = ?
                   OR EXISTS (SELECT 1 FROM json_each(projects.collaborators) WHERE value = ?)
                ORDER BY created_at DESC
                """,
                (user_id, user_id),
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def find_owned_by(self, user_id: str) -> List[ProjectEntity]:
        with self._db.conn() as conn:
            rows = conn.execute("SELECT * FROM projects WHERE owner = ?", (user_id,)).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def save(self, project: ProjectEntity) -> Optional[ProjectEntity]:
        with self._db.conn() as conn:
            cur = conn.execute(
                """
                UPDATE projects
                SET name = ?, description = ?, owner = ?, collaborators = ?, tags = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    project["name"],
                    project["description"],
                    project["owner"],
                    _dump(project["collaborators"]),
                    _dump(project["tags"]),
                    _ts(self._now()),
                    project["id"],
                ),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch(conn, project["id"])

    def delete(self, project_id: str) -> bool:
        with self._db.conn() as conn:
            cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            return cur.rowcount > 0

    def delete_owned_by(self, user_id: str) -> int:
        with self._db.conn() as conn:
            cur = conn.execute("DELETE FROM projects WHERE owner = ?", (user_id,))
            return cur.rowcount

    def pull_collaborator(self, user_id: str) -> int:
        with self._db.conn() as conn:
            rows = conn.execute(
                """
                SELECT id, collaborators FROM projects
                WHERE EXISTS (SELECT 1 FROM json_each(projects.collaborators) WHERE value = ?)
                """,
                (user_id,),
            ).fetchall()
            now = _ts(self._now())
            for row in rows:
                remaining = [c for c in json.loads(row["collaborators"]) if c != user_id]
                conn.execute(
                    "UPDATE projects SET collaborators = ?, updated_at = ? WHERE id = ?",
                    (_dump(remaining), now, row["id"]),
                )
            return len(rows)


class SQLiteTaskRepository(TaskRepository):
    def __init__(self, db: SQLiteDatabase, clock: Clock = datetime.now) -> None:
        self._db = db
        self._now = clock

    @staticmethod
    def _load_todos(raw: str) -> List[Dict[str, Any]]:
        todos = json.loads(raw)
        for todo in todos:
            todo["completed_at"] = _parse_dt(todo.get("completed_at"))
            todo["created_at"] = _parse_dt(todo.get("created_at"))
        return todos

    @staticmethod
    def _load_comments(raw: str) -> List[Dict[str, Any]]:
        comments = json.loads(raw)
        for comment in comments:
            comment["created_at"] = _parse_dt(comment.get("created_at"))
        return comments

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": row["id"],
            "project": row["project"],
            "title": row["title"],
            "description": row["description"],
            "status": row["status"],
            "priority": row["priority"],
            "due_date": _parse_dt(row["due_date"]),
            "tags": json.loads(row["tags"]),
            "assigned_to": json.loads(row["assigned_to"]),
            "todos": self._load_todos(row["todos"]),  # type: ignore[typeddict-item]
            "comments": self._load_comments(row["comments"]),  # type: ignore[typeddict-item]
            "version": int(row["version"]),
            "created_at": _parse_dt(row["created_at"]),  # type: ignore[typeddict-item]
            "updated_at": _parse_dt(row["updated_at"]),  # type: ignore[typeddict-item]
        }

    def _fetch(self, conn: sqlite3.Connection, task_id: str) -> Optional[TaskEntity]:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def create(self, task: Dict[str, Any]) -> TaskEntity:
        now = _ts(self._now())
        task_id = new_id()
        with self._db.conn() as conn:
            conn.execute(
                """
                INSERT INTO tasks (id, project, title, description, status, priority, due_date,
                    tags, assigned_to, todos, comments, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    task_id,
                    task["project"],
                    task["title"],
                    task.get("description"),
                    task["status"],
                    task["priority"],
                    _ts(task.get("due_date")),
                    _dump(task.get("tags", [])),
                    _dump(task.get("assigned_to", [])),
                    _dump(task.get("todos", [])),
                    _dump(task.get("comments", [])),
                    now,
                    now,
                ),
            )
            created = self._fetch(conn, task_id)
            assert created is not None
            return created

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._db.conn() as conn:
            return self._fetch(conn, task_id)

    def list_by_project(self, project_id: str) -> List[TaskEntity]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE project = ? ORDER BY created_at DESC", (project_id,)
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def save(self, task: TaskEntity) -> Optional[TaskEntity]:
        with self._db.conn() as conn:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, status = ?, priority = ?, due_date = ?,
                    tags = ?, assigned_to = ?, todos = ?, comments = ?,
                    version = version + 1, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    task["title"],
                    task["description"],
                    task["status"],
                    task["priority"],
                    _ts(task["due_date"]),
                    _dump(task["tags"]),
                    _dump(task["assigned_to"]),
                    _dump(task["todos"]),
                    _dump(task["comments"]),
                    _ts(self._now()),
                    task["id"],
                    task["version"],
                ),
            )
            if cur.rowcount == 0:
                current = self._fetch(conn, task["id"])
                if current is None:
                    return None
                raise StaleVersionError(task["id"], task["version"], current["version"])
            return self._fetch(conn, task["id"])

    def delete(self, task_id: str) -> bool:
        with self._db.conn() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cur.rowcount > 0

    def delete_by_projects(self, project_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(project_ids))
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._db.conn() as conn:
            cur = conn.execute(f"DELETE FROM tasks WHERE project IN ({placeholders})", ids)
            return cur.rowcount


class SQLiteNotificationRepository(NotificationRepository):
    def __init__(self, db: SQLiteDatabase, retention_days: int = 30, clock: Clock = datetime.now) -> None:
        self._db = db
        self._retention = timedelta(days=retention_days)
        self._now = clock

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> NotificationEntity:
        return {
            "id": row["id"],
            "recipient": row["recipient"],
            "sender": row["sender"],
            "type": row["type"],
            "message": row["message"],
            "project": row["project"],
            "task": row["task"],
            "is_read": bool(row["is_read"]),
            "read_at": _parse_dt(row["read_at"]),
            "metadata": json.loads(row["metadata"]),
            "created_at": _parse_dt(row["created_at"]),  # type: ignore[typeddict-item]
        }

    def _purge(self, conn: sqlite3.Connection) -> int:
        cutoff = _ts(self._now() - self._retention)
        cur = conn.execute("DELETE FROM notifications WHERE created_at < ?", (cutoff,))
        return cur.rowcount

    def create(
        self,
        recipient: str,
        sender: Optional[str],
        type: str,
        message: str,
        project: Optional[str] = None,
        task: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> NotificationEntity:
        notification_id = new_id()
        with self._db.conn() as conn:
            conn.execute(
                """
                INSERT INTO notifications (id, recipient, sender, type, message, project, task,
                    is_read, read_at, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)
                """,
                (
                    notification_id,
                    recipient,
                    sender,
                    type,
                    message,
                    project,
                    task,
                    _dump(metadata or {}),
                    _ts(self._now()),
                ),
            )
            row = conn.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
            return self._row_to_entity(row)

    def purge_expired(self) -> int:
        with self._db.conn() as conn:
            return self._purge(conn)

    def list_for_recipient(self, recipient: str, query: Optional[NotificationQuery] = None) -> List[NotificationEntity]:
        q = query or NotificationQuery()
        unread_sql = "AND is_read = 0" if q.unread_only else ""
        with self._db.conn() as conn:
            self._purge(conn)
            rows = conn.execute(
                f"""
                SELECT * FROM notifications
                WHERE recipient = ? {unread_sql}
                ORDER BY created_at DESC
                LIMIT ? OFFSET ?
                """,
                (recipient, max(q.limit, 0), max(q.skip, 0)),
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def count_unread(self, recipient: str) -> int:
        with self._db.conn() as conn:
            self._purge(conn)
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM notifications WHERE recipient = ? AND is_read = 0",
                (recipient,),
            ).fetchone()
            return int(row["cnt"]) if row else 0

    def mark_read(self, notification_id: str, recipient: str) -> Optional[NotificationEntity]:
        with self._db.conn() as conn:
            self._purge(conn)
            cur = conn.execute(
                "UPDATE notifications SET is_read = 1, read_at = ? WHERE id = ? AND recipient = ?",
                (_ts(self._now()), notification_id, recipient),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
            return self._row_to_entity(row)

    def mark_all_read(self, recipient: str) -> int:
        with self._db.conn() as conn:
            self._purge(conn)
            cur = conn.execute(
                "UPDATE notifications SET is_read = 1, read_at = ? WHERE recipient = ? AND is_read = 0",
                (_ts(self._now()), recipient),
            )
            return cur.rowcount

    def delete(self, notification_id: str, recipient: str) -> bool:
        with self._db.conn() as conn:
            self._purge(conn)
            cur = conn.execute(
                "DELETE FROM notifications WHERE id = ? AND recipient = ?", (notification_id, recipient)
            )
            return cur.rowcount > 0

    def delete_read(self, recipient: str) -> int:
        with self._db.conn() as conn:
            self._purge(conn)
            cur = conn.execute(
                "DELETE FROM notifications WHERE recipient = ? AND is_read = 1", (recipient,)
            )
            return cur.rowcount


# PUBLIC_INTERFACE
def sqlite_store(db_path: str, retention_days: int = 30, clock: Clock = datetime.now) -> Store:
    """Build a Store whose repositories share one SQLite database file."""
    db = SQLiteDatabase(db_path)
    return Store(
        users=SQLiteUserRepository(db, clock),
        projects=SQLiteProjectRepository(db, clock),
        tasks=SQLiteTaskRepository(db, clock),
        notifications=SQLiteNotificationRepository(db, retention_days, clock),
    )
