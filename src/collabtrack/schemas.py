from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import NotificationType, TaskPriority, TaskStatus

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

_EMAIL_RE = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,})+$")


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Normalize due_date input into a datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, return as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _required_text(value: Optional[str], label: str, max_length: int) -> str:
    s = (value or "").strip()
    if not s:
        raise ValueError(f"{label} is required")
    if len(s) > max_length:
        raise ValueError(f"{label} cannot exceed {max_length} characters")
    return s


def _optional_text(value: Optional[str], label: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    s = value.strip()
    if len(s) > max_length:
        raise ValueError(f"{label} cannot exceed {max_length} characters")
    return s


def _clean_tags(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    return [t.strip() for t in value if t and t.strip()]


def _clean_username(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = value.strip()
    if len(s) < 3:
        raise ValueError("Username must be at least 3 characters long")
    return s


def _clean_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = value.strip().lower()
    if not _EMAIL_RE.match(s):
        raise ValueError("Please enter a valid email")
    return s


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class UserCreate(BaseModel):
    """
    Schema for registering an account. Credentials are managed by the
    identity provider and are not accepted here.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"username": "alice", "email": "alice@example.com"}}
    )

    username: str = Field(..., description="Unique username, at least 3 characters")
    email: str = Field(..., description="Unique email address")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _clean_username(v)  # type: ignore[return-value]

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _clean_email(v)  # type: ignore[return-value]


class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, description="New username")
    email: Optional[str] = Field(default=None, description="New email address")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        return _clean_username(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _clean_email(v)


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    id: str
    username: Optional[str] = None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class ProjectCreate(BaseModel):
    """
    Schema for creating a project. The caller becomes its owner.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Website relaunch",
                "description": "New landing pages and checkout",
                "tags": ["web", "q3"],
            }
        }
    )

    name: str = Field(..., description="Project name (max 100 characters)")
    description: str = Field(..., description="Project description (max 500 characters)")
    tags: List[str] = Field(default_factory=list, description="Free-form labels")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _required_text(v, "Project name", 100)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _required_text(v, "Project description", 500)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v) or []


# PUBLIC_INTERFACE
class ProjectUpdate(BaseModel):
    """
    Owner-only partial update. ``collaborators`` replaces the whole list and
    must not contain the owner.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    collaborators: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "Project name", 100)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "Project description", 500)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class CollaboratorAdd(BaseModel):
    """Identify the user to invite by email or by username."""

    email: Optional[str] = None
    username: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else None

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else None


class ProjectOut(BaseModel):
    id: str
    name: str
    description: str
    owner: UserSummary
    collaborators: List[UserSummary]
    tags: List[str]
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Tasks, todos, comments
# ---------------------------------------------------------------------------

def _parse_status(v: Any) -> Any:
    return None if v is None else TaskStatus.parse(v)


def _parse_priority(v: Any) -> Any:
    return None if v is None else TaskPriority.parse(v)


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a task inside a project.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Draft homepage copy",
                "description": "Hero, features and pricing sections",
                "status": "To Do",
                "priority": "High",
                "due_date": "2025-02-01",
                "tags": ["copy"],
                "assigned_to": [],
            }
        }
    )

    title: str = Field(..., description="Short title (max 200 characters)")
    description: Optional[str] = Field(default=None, description="Details (max 1000 characters)")
    status: Optional[TaskStatus] = Field(default=None, description="To Do, In Progress or Done")
    priority: Optional[TaskPriority] = Field(default=None, description="Low, Medium or High")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    tags: List[str] = Field(default_factory=list)
    assigned_to: List[str] = Field(
        default_factory=list, description="Project members responsible; empty means open to all"
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _required_text(v, "Task title", 200)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v, "Description", 1000)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> Any:
        return _parse_status(v)

    @field_validator("priority", mode="before")
    @classmethod
    def validate_priority(cls, v: Any) -> Any:
        return _parse_priority(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v) or []


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Partial task update. Only provided fields change; ``due_date`` and
    ``description`` may be cleared with an explicit null. ``version`` is the
    version the client last read; a stale one is rejected with 409.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    assigned_to: Optional[List[str]] = None
    version: Optional[int] = Field(default=None, ge=1)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "Task title", 200)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v, "Description", 1000)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: Any) -> Any:
        return _parse_status(v)

    @field_validator("priority", mode="before")
    @classmethod
    def validate_priority(cls, v: Any) -> Any:
        return _parse_priority(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class TodoCreate(BaseModel):
    text: str = Field(..., description="What needs doing (max 200 characters)")
    assigned_to: Optional[str] = Field(default=None, description="Single assignee")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        return _required_text(v, "Todo text", 200)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Partial todo update. Send ``assigned_to: null`` to unassign.
    """

    text: Optional[str] = None
    completed: Optional[bool] = None
    assigned_to: Optional[str] = None
    version: Optional[int] = Field(default=None, ge=1)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "Todo text", 200)


class CommentCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        return _required_text(v, "Comment", 1000)


class TodoOut(BaseModel):
    id: str
    text: str
    completed: bool
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: datetime


class CommentOut(BaseModel):
    id: str
    text: str
    author: Dict[str, str]
    created_at: datetime


class TaskOut(BaseModel):
    id: str
    project: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    tags: List[str]
    assigned_to: List[str]
    todos: List[TodoOut]
    comments: List[CommentOut]
    todo_progress: int = Field(..., description="Percentage of completed todos")
    version: int
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationOut(BaseModel):
    """
    A notification with its weak references resolved where possible. The
    ``*_username``/``*_name``/``*_title`` fields are null when the referenced
    record no longer exists.
    """

    id: str
    type: NotificationType
    message: str
    sender: Optional[str] = None
    sender_username: Optional[str] = None
    project: Optional[str] = None
    project_name: Optional[str] = None
    task: Optional[str] = None
    task_title: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class UnreadCount(BaseModel):
    count: int


class BulkResult(BaseModel):
    message: str
    count: int


class MessageOut(BaseModel):
    message: str
