from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from ..access import AccessController
from ..errors import ConflictError, NotFoundError, StaleVersionError
from ..models import ProjectEntity, TaskEntity
from ..notifications import NotificationDispatcher
from ..repositories import Clock, Store

STALE_TASK_MESSAGE = "Task was modified by another request. Reload it and try again."


class BaseService:
    """Wires the store, access checks and notification dispatch for a service."""

    def __init__(
        self,
        store: Store,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._store = store
        self._access = AccessController(store.projects)
        self._notifier = dispatcher or NotificationDispatcher(store.notifications)
        self._now = clock

    def _resolve_task(self, task_id: str, user_id: str) -> Tuple[TaskEntity, ProjectEntity]:
        """Load a task and authorize the user against its parent project."""
        task = self._store.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        project = self._access.check_access(task["project"], user_id).raise_for_denial()
        return task, project

    @staticmethod
    def _check_version(task: TaskEntity, expected: Optional[int]) -> None:
        if expected is not None and expected != task["version"]:
            raise ConflictError(STALE_TASK_MESSAGE)

    def _save_task(self, task: TaskEntity) -> TaskEntity:
        try:
            saved = self._store.tasks.save(task)
        except StaleVersionError as exc:
            raise ConflictError(STALE_TASK_MESSAGE) from exc
        if saved is None:
            raise NotFoundError("Task not found")
        return saved
