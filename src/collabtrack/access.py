"""
Project-level access decisions. Tasks have no ACL of their own: every task
operation resolves the parent project and asks the same question.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import DomainError, ForbiddenError, NotFoundError
from .membership import is_member, is_owner
from .models import ProjectEntity
from .repositories import ProjectRepository


class DenyReason(str, Enum):
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"


@dataclass(frozen=True)
class AccessResult:
    """Outcome of an access check; ``project`` is set only when authorized."""

    authorized: bool
    project: Optional[ProjectEntity] = None
    reason: Optional[DenyReason] = None
    message: Optional[str] = None

    # PUBLIC_INTERFACE
    def raise_for_denial(self) -> ProjectEntity:
        """Return the project, or raise the matching DomainError."""
        if self.authorized and self.project is not None:
            return self.project
        error: DomainError
        if self.reason is DenyReason.NOT_FOUND:
            error = NotFoundError(self.message or "Project not found")
        else:
            error = ForbiddenError(self.message or "Not authorized to access this project")
        raise error


def _deny(reason: DenyReason, message: str) -> AccessResult:
    return AccessResult(authorized=False, reason=reason, message=message)


class AccessController:
    def __init__(self, projects: ProjectRepository) -> None:
        self._projects = projects

    # PUBLIC_INTERFACE
    def check_access(self, project_id: str, user_id: str) -> AccessResult:
        """Authorized iff the user is the owner or a collaborator of the project."""
        project = self._projects.get(project_id)
        if project is None:
            return _deny(DenyReason.NOT_FOUND, "Project not found")
        if not is_member(project, user_id):
            return _deny(DenyReason.FORBIDDEN, "Not authorized to access this project")
        return AccessResult(authorized=True, project=project)

    # PUBLIC_INTERFACE
    def check_owner(self, project_id: str, user_id: str, action: str = "modify this project") -> AccessResult:
        """
        Stricter check for owner-only operations (update, delete, collaborator
        management). ``action`` completes the denial message.
        """
        project = self._projects.get(project_id)
        if project is None:
            return _deny(DenyReason.NOT_FOUND, "Project not found")
        if not is_owner(project, user_id):
            return _deny(DenyReason.FORBIDDEN, f"Not authorized to {action}")
        return AccessResult(authorized=True, project=project)
