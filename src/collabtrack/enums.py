"""
Closed value sets shared by the task, membership and notification models.

Each enum validates incoming raw values through a single ``parse`` path so
creation and update paths cannot drift apart.
"""
from __future__ import annotations

from enum import Enum
from typing import Union


class _ClosedEnum(str, Enum):
    """String enum whose ``parse`` rejects unknown values with the allowed list."""

    @classmethod
    def _label(cls) -> str:
        return cls.__name__

    @classmethod
    def allowed(cls) -> str:
        return ", ".join(member.value for member in cls)

    @classmethod
    def parse(cls, value: Union[str, "_ClosedEnum"]):
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"{cls._label()} must be one of: {cls.allowed()}")


# Task workflow status
class TaskStatus(_ClosedEnum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def _label(cls) -> str:
        return "Status"


# Task priority
class TaskPriority(_ClosedEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def _label(cls) -> str:
        return "Priority"


# Project membership role
class Role(_ClosedEnum):
    OWNER = "OWNER"
    COLLABORATOR = "COLLABORATOR"


class NotificationType(_ClosedEnum):
    PROJECT_INVITE = "PROJECT_INVITE"
    PROJECT_REMOVED = "PROJECT_REMOVED"
    PROJECT_UPDATED = "PROJECT_UPDATED"
    PROJECT_DELETED = "PROJECT_DELETED"
    TASK_CREATED = "TASK_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_DELETED = "TASK_DELETED"
    TODO_ADDED = "TODO_ADDED"
    TODO_ASSIGNED = "TODO_ASSIGNED"
    TODO_COMPLETED = "TODO_COMPLETED"
    ALL_TODOS_COMPLETED = "ALL_TODOS_COMPLETED"

    @classmethod
    def _label(cls) -> str:
        return "Notification type"
