from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, TypedDict


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    A registered account. Credentials are held by the identity provider.

    Fields:
    - id: Opaque string identifier
    - username: Unique, trimmed, at least 3 chars
    - email: Unique, lowercased
    """

    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class ProjectEntity(TypedDict):
    """
    A project with exactly one owner and a set of collaborator ids.

    The owner never appears in ``collaborators``; see ``membership.py``.
    """

    id: str
    name: str
    description: str
    owner: str
    collaborators: List[str]
    tags: List[str]
    created_at: datetime
    updated_at: datetime


class TodoEntity(TypedDict):
    """A checklist item embedded in a task."""

    id: str
    text: str
    completed: bool
    completed_at: Optional[datetime]
    completed_by: Optional[str]
    assigned_to: Optional[str]
    created_at: datetime


class CommentAuthor(TypedDict):
    user_id: str
    username: str
    email: str


class CommentEntity(TypedDict):
    id: str
    text: str
    author: CommentAuthor
    created_at: datetime


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A unit of work inside a project.

    Fields:
    - project: Parent project id (never changes after creation)
    - status / priority: Stored as the enum values ("To Do", "Medium", ...)
    - assigned_to: Subset of project members; empty means open to all members
    - todos / comments: Embedded lists saved together with the task
    - version: Optimistic concurrency counter, bumped on every save
    """

    id: str
    project: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    due_date: Optional[datetime]
    tags: List[str]
    assigned_to: List[str]
    todos: List[TodoEntity]
    comments: List[CommentEntity]
    version: int
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class NotificationEntity(TypedDict):
    """
    A message for one recipient. ``sender``, ``project`` and ``task`` are weak
    references and may point to records that no longer exist.
    """

    id: str
    recipient: str
    sender: Optional[str]
    type: str
    message: str
    project: Optional[str]
    task: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    metadata: Dict[str, Any]
    created_at: datetime


def todo_progress(task: TaskEntity) -> int:
    """Rounded percentage of completed todos; 0 when the task has none."""
    todos = task["todos"]
    if not todos:
        return 0
    done = sum(1 for t in todos if t["completed"])
    return round(done * 100 / len(todos))
