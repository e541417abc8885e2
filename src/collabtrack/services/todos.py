from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..assignment import validate_todo_assignment
from ..enums import NotificationType
from ..errors import NotFoundError, ValidationFailedError
from ..models import ProjectEntity, TaskEntity, TodoEntity, UserEntity
from ..notifications import NotificationDispatcher, NotificationEvent, get_project_members
from ..repositories import Clock, Store, new_id
from ..schemas import TodoCreate, TodoUpdate
from ..settings import get_settings
from .base import BaseService


def _find_todo(task: TaskEntity, todo_id: str) -> TodoEntity:
    for todo in task["todos"]:
        if todo["id"] == todo_id:
            return todo
    raise NotFoundError("Todo not found")


class TodoService(BaseService):
    """
    Per-todo operations on the embedded checklist of a task. Each one loads
    the whole task, changes one entry, and writes the task back under its
    version check.
    """

    def __init__(
        self,
        store: Store,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Clock = datetime.now,
        max_todos: Optional[int] = None,
    ) -> None:
        super().__init__(store, dispatcher, clock)
        self._max_todos = max_todos or get_settings().max_todos_per_task

    def _check_assignee(self, user_id: Optional[str], task: TaskEntity, project: ProjectEntity) -> None:
        check = validate_todo_assignment(user_id, task, project)
        if not check.valid:
            raise ValidationFailedError(check.message or "Invalid assignment")

    # PUBLIC_INTERFACE
    def add_todo(self, actor: UserEntity, task_id: str, data: TodoCreate) -> TaskEntity:
        """
        Append a todo. The assignee (if any) gets TODO_ASSIGNED; every member
        except the actor, the assignee included, gets TODO_ADDED.
        """
        task, project = self._resolve_task(task_id, actor["id"])
        if len(task["todos"]) >= self._max_todos:
            raise ValidationFailedError(f"A task cannot have more than {self._max_todos} todos")
        self._check_assignee(data.assigned_to, task, project)

        todo: TodoEntity = {
            "id": new_id(),
            "text": data.text,
            "completed": False,
            "completed_at": None,
            "completed_by": None,
            "assigned_to": data.assigned_to,
            "created_at": self._now(),
        }
        task["todos"].append(todo)
        saved = self._save_task(task)

        metadata = {"todoId": todo["id"], "todoText": todo["text"]}
        if data.assigned_to is not None:
            self._notifier.publish(
                NotificationEvent(
                    type=NotificationType.TODO_ASSIGNED,
                    message=f"{actor['username']} assigned you a todo in '{saved['title']}': {todo['text']}",
                    recipients=[data.assigned_to],
                    sender=actor["id"],
                    project=project["id"],
                    task=saved["id"],
                    metadata=metadata,
                )
            )
        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.TODO_ADDED,
                message=f"{actor['username']} added a todo to '{saved['title']}': {todo['text']}",
                recipients=get_project_members(project, actor["id"]),
                sender=actor["id"],
                project=project["id"],
                task=saved["id"],
                metadata=metadata,
            )
        )
        return saved

    # PUBLIC_INTERFACE
    def update_todo(self, actor: UserEntity, task_id: str, todo_id: str, data: TodoUpdate) -> TaskEntity:
        """
        Edit text, completion or assignee of one todo.

        Completion metadata changes only on a real transition. Completing a
        todo notifies the other members, and a second broadcast follows when
        it was the last open one. Reassignment notifies only the new assignee.
        """
        task, project = self._resolve_task(task_id, actor["id"])
        self._check_version(task, data.version)
        todo = _find_todo(task, todo_id)

        if data.text is not None:
            todo["text"] = data.text

        became_complete = False
        if data.completed is not None and data.completed != todo["completed"]:
            todo["completed"] = data.completed
            if data.completed:
                todo["completed_at"] = self._now()
                todo["completed_by"] = actor["id"]
                became_complete = True
            else:
                todo["completed_at"] = None
                todo["completed_by"] = None

        reassigned = False
        if "assigned_to" in data.model_fields_set and data.assigned_to != todo["assigned_to"]:
            self._check_assignee(data.assigned_to, task, project)
            todo["assigned_to"] = data.assigned_to
            reassigned = True

        saved = self._save_task(task)
        metadata = {"todoId": todo["id"], "todoText": todo["text"]}
        others = get_project_members(project, actor["id"])

        if became_complete:
            self._notifier.publish(
                NotificationEvent(
                    type=NotificationType.TODO_COMPLETED,
                    message=f"{actor['username']} completed the todo '{todo['text']}' in '{saved['title']}'",
                    recipients=others,
                    sender=actor["id"],
                    project=project["id"],
                    task=saved["id"],
                    metadata=metadata,
                )
            )
            if all(t["completed"] for t in saved["todos"]):
                self._notifier.publish(
                    NotificationEvent(
                        type=NotificationType.ALL_TODOS_COMPLETED,
                        message=f"All todos in '{saved['title']}' are completed",
                        recipients=others,
                        sender=actor["id"],
                        project=project["id"],
                        task=saved["id"],
                        metadata={"todoCount": len(saved["todos"])},
                    )
                )

        if reassigned and todo["assigned_to"] is not None:
            self._notifier.publish(
                NotificationEvent(
                    type=NotificationType.TODO_ASSIGNED,
                    message=f"{actor['username']} assigned you a todo in '{saved['title']}': {todo['text']}",
                    recipients=[todo["assigned_to"]],
                    sender=actor["id"],
                    project=project["id"],
                    task=saved["id"],
                    metadata=metadata,
                )
            )
        return saved

    def delete_todo(self, actor: UserEntity, task_id: str, todo_id: str) -> TaskEntity:
        task, _ = self._resolve_task(task_id, actor["id"])
        todo = _find_todo(task, todo_id)
        task["todos"] = [t for t in task["todos"] if t["id"] != todo["id"]]
        return self._save_task(task)
