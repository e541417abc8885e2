from __future__ import annotations

import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .errors import DuplicateKeyError, StaleVersionError
from .models import NotificationEntity, ProjectEntity, TaskEntity, UserEntity
from .settings import get_settings

Clock = Callable[[], datetime]


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class NotificationQuery:
    """
    Query parameters for listing a recipient's notifications.
    """
    limit: int = 20
    skip: int = 0
    unread_only: bool = False


# PUBLIC_INTERFACE
class UserRepository(ABC):
    """Storage contract for user accounts. Unique fields raise DuplicateKeyError."""

    @abstractmethod
    def create(self, username: str, email: str) -> UserEntity:
        """Create and return a new user."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserEntity]:
        """Return a user by id, or None if not found."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[UserEntity]:
        """Return the user with this email, or None."""

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserEntity]:
        """Return the user with this username, or None."""

    @abstractmethod
    def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserEntity]:
        """Apply field changes. Return the updated user or None if not found."""

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """Delete a user by id. Return True if deleted, False if not found."""


# PUBLIC_INTERFACE
class ProjectRepository(ABC):
    """Storage contract for projects."""

    @abstractmethod
    def create(self, name: str, description: str, owner: str, tags: Sequence[str]) -> ProjectEntity:
        """Create and return a new project with no collaborators."""

    @abstractmethod
    def get(self, project_id: str) -> Optional[ProjectEntity]:
        """Return a project by id, or None if not found."""

    @abstractmethod
    def list_for_member(self, user_id: str) -> List[ProjectEntity]:
        """Projects where the user is owner OR collaborator, newest first."""

    @abstractmethod
    def find_owned_by(self, user_id: str) -> List[ProjectEntity]:
        """Projects whose owner is the user."""

    @abstractmethod
    def save(self, project: ProjectEntity) -> Optional[ProjectEntity]:
        """Replace a stored project. Return the stored copy or None if it vanished."""

    @abstractmethod
    def delete(self, project_id: str) -> bool:
        """Delete one project. Return True if deleted."""

    @abstractmethod
    def delete_owned_by(self, user_id: str) -> int:
        """Bulk delete every project owned by the user. Return the count."""

    @abstractmethod
    def pull_collaborator(self, user_id: str) -> int:
        """Remove the user from every collaborator list. Return the count of projects changed."""


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """
    Storage contract for tasks. A task, including its embedded todos and
    comments, is saved as one unit guarded by its ``version`` counter.
    """

    @abstractmethod
    def create(self, task: Dict[str, Any]) -> TaskEntity:
        """Insert a task built by the caller (without id/version/timestamps)."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def list_by_project(self, project_id: str) -> List[TaskEntity]:
        """Tasks of one project, newest first."""

    @abstractmethod
    def save(self, task: TaskEntity) -> Optional[TaskEntity]:
        """
        Write the whole task back. Raises StaleVersionError when the stored
        version differs from ``task["version"]``; returns the stored copy with
        the bumped version, or None if the task no longer exists.
        """

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted."""

    @abstractmethod
    def delete_by_projects(self, project_ids: Iterable[str]) -> int:
        """Bulk delete every task whose project is in ``project_ids``."""


# PUBLIC_INTERFACE
class NotificationRepository(ABC):
    """
    Storage contract for notifications. Records older than the retention
    window are purged before every read.
    """

    @abstractmethod
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
        """Insert and return one notification."""

    @abstractmethod
    def list_for_recipient(self, recipient: str, query: Optional[NotificationQuery] = None) -> List[NotificationEntity]:
        """Return a page of the recipient's notifications, newest first."""

    @abstractmethod
    def count_unread(self, recipient: str) -> int:
        """Number of unread notifications for the recipient."""

    @abstractmethod
    def mark_read(self, notification_id: str, recipient: str) -> Optional[NotificationEntity]:
        """Mark one of the recipient's notifications as read."""

    @abstractmethod
    def mark_all_read(self, recipient: str) -> int:
        """Mark every unread notification of the recipient as read. Return the count."""

    @abstractmethod
    def delete(self, notification_id: str, recipient: str) -> bool:
        """Delete one of the recipient's notifications."""

    @abstractmethod
    def delete_read(self, recipient: str) -> int:
        """Delete the recipient's read notifications. Return the count."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete records older than the retention window. Return the count."""


class InMemoryUserRepository(UserRepository):
    """
    Thread-safe in-memory user storage suitable for testing and default runtime.
    """

    def __init__(self, clock: Clock = datetime.now) -> None:
        self._lock = RLock()
        self._items: Dict[str, UserEntity] = {}
        self._now = clock

    def _check_unique(self, user_id: Optional[str], username: str, email: str) -> None:
        for other in self._items.values():
            if other["id"] == user_id:
                continue
            if other["email"] == email:
                raise DuplicateKeyError("email")
            if other["username"] == username:
                raise DuplicateKeyError("username")

    def create(self, username: str, email: str) -> UserEntity:
        now = self._now()
        entity: UserEntity = {
            "id": new_id(),
            "username": username,
            "email": email,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._check_unique(None, username, email)
            self._items[entity["id"]] = entity
        return entity.copy()  # type: ignore[return-value]

    def get(self, user_id: str) -> Optional[UserEntity]:
        with self._lock:
            item = self._items.get(user_id)
            return None if item is None else item.copy()  # type: ignore[return-value]

    def find_by_email(self, email: str) -> Optional[UserEntity]:
        with self._lock:
            for item in self._items.values():
                if item["email"] == email:
                    return item.copy()  # type: ignore[return-value]
        return None

    def find_by_username(self, username: str) -> Optional[UserEntity]:
        with self._lock:
            for item in self._items.values():
                if item["username"] == username:
                    return item.copy()  # type: ignore[return-value]
        return None

    def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[UserEntity]:
        with self._lock:
            existing = self._items.get(user_id)
            if existing is None:
                return None
            updated = existing.copy()
            for key in ("username", "email"):
                if key in fields:
                    updated[key] = fields[key]  # type: ignore[literal-required]
            self._check_unique(user_id, updated["username"], updated["email"])
            updated["updated_at"] = self._now()
            self._items[user_id] = updated  # type: ignore[assignment]
            return updated.copy()  # type: ignore[return-value]

    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._items.pop(user_id, None) is not None


class InMemoryProjectRepository(ProjectRepository):
    """
    Thread-safe in-memory project storage.
    """

    def __init__(self, clock: Clock = datetime.now) -> None:
        self._lock = RLock()
        self._items: Dict[str, ProjectEntity] = {}
        self._now = clock

    def create(self, name: str, description: str, owner: str, tags: Sequence[str]) -> ProjectEntity:
        now = self._now()
        entity: ProjectEntity = {
            "id": new_id(),
            "name": name,
            "description": description,
            "owner": owner,
            "collaborators": [],
            "tags": list(tags),
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
            return copy.deepcopy(entity)

    def get(self, project_id: str) -> Optional[ProjectEntity]:
        with self._lock:
            item = self._items.get(project_id)
            return None if item is None else copy.deepcopy(item)

    def list_for_member(self, user_id: str) -> List[ProjectEntity]:
        with self._lock:
            items = [
                p for p in self._items.values()
                if p["owner"] == user_id or user_id in p["collaborators"]
            ]
            items.sort(key=lambda p: p["created_at"], reverse=True)
            return [copy.deepcopy(p) for p in items]

    def find_owned_by(self, user_id: str) -> List[ProjectEntity]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._items.values() if p["owner"] == user_id]

    def save(self, project: ProjectEntity) -> Optional[ProjectEntity]:
        with self._lock:
            if project["id"] not in self._items:
                return None
            stored = copy.deepcopy(project)
            stored["updated_at"] = self._now()
            self._items[project["id"]] = stored
            return copy.deepcopy(stored)

    def delete(self, project_id: str) -> bool:
        with self._lock:
            return self._items.pop(project_id, None) is not None

    def delete_owned_by(self, user_id: str) -> int:
        with self._lock:
            doomed = [pid for pid, p in self._items.items() if p["owner"] == user_id]
            for pid in doomed:
                del self._items[pid]
            return len(doomed)

    def pull_collaborator(self, user_id: str) -> int:
        changed = 0
        with self._lock:
            for p in self._items.values():
                if user_id in p["collaborators"]:
                    p["collaborators"] = [c for c in p["collaborators"] if c != user_id]
                    p["updated_at"] = self._now()
                    changed += 1
        return changed


class InMemoryTaskRepository(TaskRepository):
    """
    Thread-safe in-memory task storage with optimistic versioning.
    """

    def __init__(self, clock: Clock = datetime.now) -> None:
        self._lock = RLock()
        self._items: Dict[str, TaskEntity] = {}
        self._now = clock

    def create(self, task: Dict[str, Any]) -> TaskEntity:
        now = self._now()
        entity = copy.deepcopy(task)
        entity.update({"id": new_id(), "version": 1, "created_at": now, "updated_at": now})
        with self._lock:
            self._items[entity["id"]] = entity  # type: ignore[assignment]
            return copy.deepcopy(entity)  # type: ignore[return-value]

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else copy.deepcopy(item)

    def list_by_project(self, project_id: str) -> List[TaskEntity]:
        with self._lock:
            items = [t for t in self._items.values() if t["project"] == project_id]
            items.sort(key=lambda t: t["created_at"], reverse=True)
            return [copy.deepcopy(t) for t in items]

    def save(self, task: TaskEntity) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task["id"])
            if existing is None:
                return None
            if existing["version"] != task["version"]:
                raise StaleVersionError(task["id"], task["version"], existing["version"])
            stored = copy.deepcopy(task)
            # parent reference is immutable
            stored["project"] = existing["project"]
            stored["version"] = existing["version"] + 1
            stored["updated_at"] = self._now()
            self._items[task["id"]] = stored
            return copy.deepcopy(stored)

    def delete(self, task_id: str) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def delete_by_projects(self, project_ids: Iterable[str]) -> int:
        ids = set(project_ids)
        if not ids:
            return 0
        with self._lock:
            doomed = [tid for tid, t in self._items.items() if t["project"] in ids]
            for tid in doomed:
                del self._items[tid]
            return len(doomed)


class InMemoryNotificationRepository(NotificationRepository):
    """
    Thread-safe in-memory notification storage with time-based retention.
    """

    def __init__(self, retention_days: int = 30, clock: Clock = datetime.now) -> None:
        self._lock = RLock()
        self._items: Dict[str, NotificationEntity] = {}
        self._retention = timedelta(days=retention_days)
        self._now = clock

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
        entity: NotificationEntity = {
            "id": new_id(),
            "recipient": recipient,
            "sender": sender,
            "type": type,
            "message": message,
            "project": project,
            "task": task,
            "is_read": False,
            "read_at": None,
            "metadata": dict(metadata or {}),
            "created_at": self._now(),
        }
        with self._lock:
            self._items[entity["id"]] = entity
            return copy.deepcopy(entity)

    def purge_expired(self) -> int:
        cutoff = self._now() - self._retention
        with self._lock:
            doomed = [nid for nid, n in self._items.items() if n["created_at"] < cutoff]
            for nid in doomed:
                del self._items[nid]
            return len(doomed)

    def _owned(self, recipient: str) -> List[NotificationEntity]:
        return [n for n in self._items.values() if n["recipient"] == recipient]

    def list_for_recipient(self, recipient: str, query: Optional[NotificationQuery] = None) -> List[NotificationEntity]:
        q = query or NotificationQuery()
        with self._lock:
            self.purge_expired()
            items = self._owned(recipient)
            if q.unread_only:
                items = [n for n in items if not n["is_read"]]
            items.sort(key=lambda n: n["created_at"], reverse=True)
            start = max(q.skip, 0)
            page = items[start:start + max(q.limit, 0)]
            return [copy.deepcopy(n) for n in page]

    def count_unread(self, recipient: str) -> int:
        with self._lock:
            self.purge_expired()
            return sum(1 for n in self._owned(recipient) if not n["is_read"])

    def mark_read(self, notification_id: str, recipient: str) -> Optional[NotificationEntity]:
        with self._lock:
            self.purge_expired()
            item = self._items.get(notification_id)
            if item is None or item["recipient"] != recipient:
                return None
            item["is_read"] = True
            item["read_at"] = self._now()
            return copy.deepcopy(item)

    def mark_all_read(self, recipient: str) -> int:
        with self._lock:
            self.purge_expired()
            unread = [n for n in self._owned(recipient) if not n["is_read"]]
            now = self._now()
            for n in unread:
                n["is_read"] = True
                n["read_at"] = now
            return len(unread)

    def delete(self, notification_id: str, recipient: str) -> bool:
        with self._lock:
            self.purge_expired()
            item = self._items.get(notification_id)
            if item is None or item["recipient"] != recipient:
                return False
            del self._items[notification_id]
            return True

    def delete_read(self, recipient: str) -> int:
        with self._lock:
            self.purge_expired()
            doomed = [n["id"] for n in self._owned(recipient) if n["is_read"]]
            for nid in doomed:
                del self._items[nid]
            return len(doomed)


@dataclass
class Store:
    """The set of repositories one request works against."""

    users: UserRepository
    projects: ProjectRepository
    tasks: TaskRepository
    notifications: NotificationRepository


def memory_store(retention_days: int = 30, clock: Clock = datetime.now) -> Store:
    return Store(
        users=InMemoryUserRepository(clock),
        projects=InMemoryProjectRepository(clock),
        tasks=InMemoryTaskRepository(clock),
        notifications=InMemoryNotificationRepository(retention_days, clock),
    )


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_store() -> Store:
    """
    Factory to return the configured store based on settings.
    - memory: in-memory repositories (process lifetime)
    - sqlite: SQLite repositories sharing one database file
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import sqlite_store

        return sqlite_store(settings.sqlite_db_path, settings.notification_retention_days)
    return memory_store(settings.notification_retention_days)
