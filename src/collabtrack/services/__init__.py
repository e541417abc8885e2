"""
Entity mutators. Each service authorizes through ``AccessController``,
validates assignments, persists through the store, and finally publishes a
``NotificationEvent``.
"""
from .inbox import InboxService
from .projects import ProjectService
from .tasks import TaskService
from .todos import TodoService
from .users import UserService

__all__ = ["InboxService", "ProjectService", "TaskService", "TodoService", "UserService"]
