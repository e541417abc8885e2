"""
Assignment narrowing rules.

Task assignees are drawn from the project members. Todo assignees are drawn
from the task assignees, or from the project members when the task is open
to everyone (no assignees). These functions only decide; they never write.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .membership import is_member
from .models import ProjectEntity, TaskEntity

TASK_ASSIGNEE_MESSAGE = "Can only assign tasks to project owner or collaborators"
TODO_TASK_ASSIGNEE_MESSAGE = (
    "Todo can only be assigned to users assigned to this task. "
    "Assign the user to the task first."
)
TODO_MEMBER_MESSAGE = "Todo can only be assigned to project owner or collaborators"


@dataclass(frozen=True)
class AssignmentCheck:
    valid: bool
    message: Optional[str] = None


_OK = AssignmentCheck(valid=True)


# PUBLIC_INTERFACE
def validate_task_assignment(user_ids: Iterable[str], project: ProjectEntity) -> AssignmentCheck:
    """Every id must be a project member. An empty list means "unassigned"."""
    for user_id in user_ids:
        if not is_member(project, user_id):
            return AssignmentCheck(valid=False, message=TASK_ASSIGNEE_MESSAGE)
    return _OK


# PUBLIC_INTERFACE
def validate_todo_assignment(
    user_id: Optional[str], task: TaskEntity, project: ProjectEntity
) -> AssignmentCheck:
    """
    Two-tier rule:
    1. If the task has assignees, the todo assignee must be one of them.
    2. Otherwise the todo assignee must be a project member.
    ``None`` (unassign) is always valid.
    """
    if user_id is None:
        return _OK
    if task["assigned_to"]:
        if user_id not in task["assigned_to"]:
            return AssignmentCheck(valid=False, message=TODO_TASK_ASSIGNEE_MESSAGE)
        return _OK
    if not is_member(project, user_id):
        return AssignmentCheck(valid=False, message=TODO_MEMBER_MESSAGE)
    return _OK
