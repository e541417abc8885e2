from __future__ import annotations

import logging
from typing import List

from ..enums import NotificationType
from ..errors import NotFoundError, ValidationFailedError
from ..membership import normalize_collaborators
from ..models import ProjectEntity, UserEntity
from ..notifications import NotificationEvent, get_project_members
from ..schemas import CollaboratorAdd, ProjectCreate, ProjectUpdate
from .base import BaseService

logger = logging.getLogger(__name__)


class ProjectService(BaseService):
    """Project lifecycle and collaborator management."""

    def _owned_project(self, project_id: str, actor: UserEntity, action: str) -> ProjectEntity:
        return self._access.check_owner(project_id, actor["id"], action).raise_for_denial()

    def _save(self, project: ProjectEntity) -> ProjectEntity:
        saved = self._store.projects.save(project)
        if saved is None:
            raise NotFoundError("Project not found")
        return saved

    # PUBLIC_INTERFACE
    def create_project(self, actor: UserEntity, data: ProjectCreate) -> ProjectEntity:
        """Create a project owned by the actor."""
        project = self._store.projects.create(
            name=data.name, description=data.description, owner=actor["id"], tags=data.tags
        )
        logger.info("User %s created project %s", actor["id"], project["id"])
        return project

    def list_projects(self, actor: UserEntity) -> List[ProjectEntity]:
        return self._store.projects.list_for_member(actor["id"])

    def get_project(self, actor: UserEntity, project_id: str) -> ProjectEntity:
        return self._access.check_access(project_id, actor["id"]).raise_for_denial()

    # PUBLIC_INTERFACE
    def update_project(self, actor: UserEntity, project_id: str, data: ProjectUpdate) -> ProjectEntity:
        """
        Owner-only update. A new collaborator list must consist of registered
        users other than the owner.

        Users the new list adds get PROJECT_INVITE and users it drops get
        PROJECT_REMOVED (before the write, as in remove_collaborator). The
        remaining members except the actor get PROJECT_UPDATED.
        """
        project = self._owned_project(project_id, actor, "update this project")
        previous = list(project["collaborators"])

        if data.name is not None:
            project["name"] = data.name
        if data.description is not None:
            project["description"] = data.description
        if data.collaborators is not None:
            try:
                collaborators = normalize_collaborators(project["owner"], data.collaborators)
            except ValueError as exc:
                raise ValidationFailedError(str(exc)) from exc
            if any(self._store.users.get(user_id) is None for user_id in collaborators):
                raise ValidationFailedError("Collaborators must be registered users")
            project["collaborators"] = collaborators
        if data.tags is not None:
            project["tags"] = data.tags

        added = [c for c in project["collaborators"] if c not in previous]
        dropped = [c for c in previous if c not in project["collaborators"]]

        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.PROJECT_REMOVED,
                message=f"You have been removed from the project '{project['name']}'",
                recipients=dropped,
                sender=actor["id"],
                project=project["id"],
            )
        )

        saved = self._save(project)
        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.PROJECT_INVITE,
                message=f"{actor['username']} has added you to the project '{saved['name']}'",
                recipients=added,
                sender=actor["id"],
                project=saved["id"],
            )
        )
        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.PROJECT_UPDATED,
                message=f"{actor['username']} has updated the project '{saved['name']}'",
                recipients=[m for m in get_project_members(saved, actor["id"]) if m not in added],
                sender=actor["id"],
                project=saved["id"],
            )
        )
        return saved

    # PUBLIC_INTERFACE
    def delete_project(self, actor: UserEntity, project_id: str) -> int:
        """
        Owner-only delete. Removes the project's tasks as well and returns how
        many were removed.
        """
        project = self._owned_project(project_id, actor, "delete this project")
        recipients = get_project_members(project, actor["id"])

        removed_tasks = self._store.tasks.delete_by_projects([project_id])
        self._store.projects.delete(project_id)
        logger.info("User %s deleted project %s with %d tasks", actor["id"], project_id, removed_tasks)

        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.PROJECT_DELETED,
                message=f"The project '{project['name']}' has been deleted",
                recipients=recipients,
                sender=actor["id"],
                project=project_id,
            )
        )
        return removed_tasks

    # PUBLIC_INTERFACE
    def add_collaborator(self, actor: UserEntity, project_id: str, data: CollaboratorAdd) -> ProjectEntity:
        """Invite a registered user, found by email or username, into the project."""
        project = self._owned_project(project_id, actor, "add collaborators")
        if not data.email and not data.username:
            raise ValidationFailedError("Please provide email or username")

        if data.email:
            user = self._store.users.find_by_email(data.email)
        else:
            user = self._store.users.find_by_username(data.username or "")
        if user is None:
            raise NotFoundError("User not found")

        if user["id"] == project["owner"]:
            raise ValidationFailedError("Owner cannot be added as collaborator")
        if user["id"] in project["collaborators"]:
            raise ValidationFailedError("User is already a collaborator")

        project["collaborators"].append(user["id"])
        saved = self._save(project)

        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.PROJECT_INVITE,
                message=f"{actor['username']} has added you to the project '{saved['name']}'",
                recipients=[user["id"]],
                sender=actor["id"],
                project=saved["id"],
            )
        )
        return saved

    # PUBLIC_INTERFACE
    def remove_collaborator(self, actor: UserEntity, project_id: str, user_id: str) -> ProjectEntity:
        """
        Remove a collaborator. The removed user is notified before the change
        is written.
        """
        project = self._owned_project(project_id, actor, "remove collaborators")
        if user_id not in project["collaborators"]:
            raise ValidationFailedError("User is not a collaborator of this project")

        self._notifier.publish(
            NotificationEvent(
                type=NotificationType.PROJECT_REMOVED,
                message=f"You have been removed from the project '{project['name']}'",
                recipients=[user_id],
                sender=actor["id"],
                project=project["id"],
            )
        )

        project["collaborators"] = [c for c in project["collaborators"] if c != user_id]
        return self._save(project)
