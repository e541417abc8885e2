"""
Account deletion as a resumable saga.

The steps run in a fixed order because later steps use the project ids
gathered by the first one. Every step can be repeated safely, and the
``CascadeState`` records which steps finished, so a run that failed half
way can be resumed by passing the same state back in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .repositories import Store

logger = logging.getLogger(__name__)


@dataclass
class CascadeState:
    user_id: str
    owned_project_ids: Optional[List[str]] = None
    completed: List[str] = field(default_factory=list)
    tasks_deleted: int = 0
    projects_deleted: int = 0
    memberships_removed: int = 0
    user_deleted: bool = False

    @property
    def done(self) -> bool:
        return "delete_user" in self.completed


class CascadeDeletionCoordinator:
    def __init__(self, store: Store) -> None:
        self._store = store

    def _steps(self) -> List[Tuple[str, Callable[[CascadeState], None]]]:
        return [
            ("collect_owned_projects", self._collect_owned_projects),
            ("delete_owned_tasks", self._delete_owned_tasks),
            ("delete_owned_projects", self._delete_owned_projects),
            ("remove_memberships", self._remove_memberships),
            ("delete_user", self._delete_user),
        ]

    def _collect_owned_projects(self, state: CascadeState) -> None:
        if state.owned_project_ids is None:
            owned = self._store.projects.find_owned_by(state.user_id)
            state.owned_project_ids = [p["id"] for p in owned]

    def _delete_owned_tasks(self, state: CascadeState) -> None:
        state.tasks_deleted += self._store.tasks.delete_by_projects(state.owned_project_ids or [])

    def _delete_owned_projects(self, state: CascadeState) -> None:
        state.projects_deleted += self._store.projects.delete_owned_by(state.user_id)

    def _remove_memberships(self, state: CascadeState) -> None:
        state.memberships_removed += self._store.projects.pull_collaborator(state.user_id)

    def _delete_user(self, state: CascadeState) -> None:
        state.user_deleted = self._store.users.delete(state.user_id) or state.user_deleted

    # PUBLIC_INTERFACE
    def delete_user(self, user_id: str, state: Optional[CascadeState] = None) -> CascadeState:
        """
        Remove every project the user owns together with its tasks, drop the
        user from other projects' collaborators, then delete the user.
        Notifications that mention the user are left in place.

        Pass the ``state`` of an interrupted run to resume it; completed
        steps are skipped.
        """
        state = state or CascadeState(user_id=user_id)
        for name, step in self._steps():
            if name in state.completed:
                continue
            try:
                step(state)
            except Exception:
                logger.exception("Account deletion for %s stopped at step %s", user_id, name)
                raise
            state.completed.append(name)
        logger.info(
            "Deleted account %s: %d projects, %d tasks, removed from %d projects",
            user_id,
            state.projects_deleted,
            state.tasks_deleted,
            state.memberships_removed,
        )
        return state
