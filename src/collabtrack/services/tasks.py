from __future__ import annotations

import logging
from typing import List

from ..assignment import validate_task_assignment
from ..enums import NotificationType, TaskPriority, TaskStatus
from ..errors import ValidationFailedError
from ..models import ProjectEntity, TaskEntity, UserEntity
from ..notifications import NotificationEvent, get_project_members
from ..repositories import new_id
from ..schemas import CommentCreate, TaskCreate, TaskUpdate
from .base import BaseService

logger = logging.getLogger(__name__)


def _dedupe(user_ids: List[str]) -> List[str]:
    return list(dict.fromkeys(user_ids))


class TaskService(BaseService):
    """Task lifecycle. Access is always inherited from the parent project."""

    def _check_assignees(self, user_ids: List[str], project: ProjectEntity) -> None:
        check = validate_task_assignment(user_ids, project)
        if not check.valid:
            raise ValidationFailedError(check.message or "Invalid assignment")

    # PUBLIC_INTERFACE
    def create_task(self, actor: UserEntity, project_id: str, data: TaskCreate) -> TaskEntity:
        """
        Create a task. Explicit assignees get TASK_ASSIGNED; every other member
        except the actor gets TASK_CREATED.
        """
        project = self._access.check_access(project_id, actor["id"]).raise_for_denial()
        assigned = _dedupe(data.assigned_to)
        self._check_assignees(assigned, project)

        task = self._store.tasks.create(
            {
                "project": project["id"],
                "title": data.title,
                "description": data.description,
                "status": (data.status or TaskStatus.TODO).value,
                "priority": (data.priority or TaskPriority.MEDIUM).value,
                "due_date": data.due_date,
                "tags": data.tags,
                "assigned_to": assigned,
                "todos": [],
                "comments": [],
            }
        )
        logger.info("User %s created task %s in project %s", actor["id"], task["id"], project["id"])

        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.TASK_ASSIGNED,
                message=f"{actor['username']} assigned you to the task '{task['title']}' in '{project['name']}'",
                recipients=[u for u in assigned if u != actor["id"]],
                sender=actor["id"],
                project=project["id"],
                task=task["id"],
            )
        )
        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.TASK_CREATED,
                message=f"{actor['username']} created the task '{task['title']}' in '{project['name']}'",
                recipients=[m for m in get_project_members(project, actor["id"]) if m not in assigned],
                sender=actor["id"],
                project=project["id"],
                task=task["id"],
            )
        )
        return task

    def list_tasks(self, actor: UserEntity, project_id: str) -> List[TaskEntity]:
        project = self._access.check_access(project_id, actor["id"]).raise_for_denial()
        return self._store.tasks.list_by_project(project["id"])

    def get_task(self, actor: UserEntity, task_id: str) -> TaskEntity:
        task, _ = self._resolve_task(task_id, actor["id"])
        return task

    # PUBLIC_INTERFACE
    def update_task(self, actor: UserEntity, task_id: str, data: TaskUpdate) -> TaskEntity:
        """
        Partial update. A status change notifies all other members; a new
        assignment list notifies only the users it adds.
        """
        task, project = self._resolve_task(task_id, actor["id"])
        self._check_version(task, data.version)
        provided = data.model_fields_set

        old_status = task["status"]
        old_assigned = list(task["assigned_to"])

        if data.title is not None:
            task["title"] = data.title
        if "description" in provided:
            task["description"] = data.description
        if data.status is not None:
            task["status"] = data.status.value
        if data.priority is not None:
            task["priority"] = data.priority.value
        if "due_date" in provided:
            task["due_date"] = data.due_date
        if data.tags is not None:
            task["tags"] = data.tags
        if data.assigned_to is not None:
            assigned = _dedupe(data.assigned_to)
            self._check_assignees(assigned, project)
            task["assigned_to"] = assigned

        saved = self._save_task(task)

        if saved["status"] != old_status:
            self._notifier.publish(
                NotificationEvent(
                    type=NotificationType.TASK_STATUS_CHANGED,
                    message=(
                        f"{actor['username']} changed the status of '{saved['title']}' "
                        f"from '{old_status}' to '{saved['status']}'"
                    ),
                    recipients=get_project_members(project, actor["id"]),
                    sender=actor["id"],
                    project=project["id"],
                    task=saved["id"],
                    metadata={"oldStatus": old_status, "newStatus": saved["status"]},
                )
            )

        newly_assigned = [u for u in saved["assigned_to"] if u not in old_assigned and u != actor["id"]]
        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.TASK_ASSIGNED,
                message=f"{actor['username']} assigned you to the task '{saved['title']}' in '{project['name']}'",
                recipients=newly_assigned,
                sender=actor["id"],
                project=project["id"],
                task=saved["id"],
            )
        )
        return saved

    # PUBLIC_INTERFACE
    def delete_task(self, actor: UserEntity, task_id: str) -> None:
        """Delete a task and tell every other member of its project."""
        task, project = self._resolve_task(task_id, actor["id"])
        recipients = get_project_members(project, actor["id"])
        self._store.tasks.delete(task["id"])
        logger.info("User %s deleted task %s", actor["id"], task["id"])

        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.TASK_DELETED,
                message=f"{actor['username']} deleted the task '{task['title']}' from '{project['name']}'",
                recipients=recipients,
                sender=actor["id"],
                project=project["id"],
                task=task["id"],
            )
        )

    def add_comment(self, actor: UserEntity, task_id: str, data: CommentCreate) -> TaskEntity:
        task, _ = self._resolve_task(task_id, actor["id"])
        task["comments"].append(
            {
                "id": new_id(),
                "text": data.text,
                "author": {"user_id": actor["id"], "username": actor["username"], "email": actor["email"]},
                "created_at": self._now(),
            }
        )
        return self._save_task(task)
