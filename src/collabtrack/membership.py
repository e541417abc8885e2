"""
Project membership as one normalized mapping of user id to role.

The owner is always present with ``Role.OWNER``; collaborators follow in
insertion order. Building the mapping is the only place the
"owner is not a collaborator" rule is checked.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .enums import Role
from .models import ProjectEntity


# PUBLIC_INTERFACE
def members(project: ProjectEntity) -> Dict[str, Role]:
    """Return ``{user_id: role}`` for the owner and every collaborator."""
    roster: Dict[str, Role] = {project["owner"]: Role.OWNER}
    for user_id in project["collaborators"]:
        roster.setdefault(user_id, Role.COLLABORATOR)
    return roster


def role_of(project: ProjectEntity, user_id: str) -> Optional[Role]:
    return members(project).get(user_id)


def is_member(project: ProjectEntity, user_id: str) -> bool:
    return role_of(project, user_id) is not None


def is_owner(project: ProjectEntity, user_id: str) -> bool:
    return project["owner"] == user_id


# PUBLIC_INTERFACE
def normalize_collaborators(owner: str, collaborators: Iterable[str]) -> List[str]:
    """
    Collapse duplicates and reject the owner.

    Raises:
        ValueError: if ``owner`` appears among ``collaborators``.
    """
    result: List[str] = []
    for user_id in collaborators:
        if user_id == owner:
            raise ValueError("Owner cannot be added as collaborator")
        if user_id not in result:
            result.append(user_id)
    return result
