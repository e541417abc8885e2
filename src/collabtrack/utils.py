from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .models import ProjectEntity, TaskEntity, todo_progress
from .repositories import UserRepository


def _summary(users: UserRepository, user_id: str) -> Dict[str, Optional[str]]:
    user = users.get(user_id)
    return {"id": user_id, "username": user["username"] if user else None}


# PUBLIC_INTERFACE
def project_view(project: ProjectEntity, users: UserRepository) -> Dict[str, Any]:
    """
    Build the response body for a project with owner and collaborators
    expanded to ``{id, username}`` summaries.
    """
    view: Dict[str, Any] = dict(project)
    view["owner"] = _summary(users, project["owner"])
    view["collaborators"] = [_summary(users, c) for c in project["collaborators"]]
    return view


# PUBLIC_INTERFACE
def task_view(task: TaskEntity) -> Dict[str, Any]:
    """Response body for a task, including the computed todo progress."""
    view: Dict[str, Any] = dict(task)
    view["todo_progress"] = todo_progress(task)
    return view


def task_views(tasks: Iterable[TaskEntity]) -> List[Dict[str, Any]]:
    return [task_view(t) for t in tasks]
