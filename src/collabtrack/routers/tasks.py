from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..auth import get_current_user
from ..models import UserEntity
from ..repositories import Store, get_store
from ..schemas import CommentCreate, MessageOut, TaskOut, TaskUpdate, TodoCreate, TodoUpdate
from ..services import TaskService, TodoService
from ..utils import task_view

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


def _get_tasks(store: Store = Depends(get_store)) -> TaskService:
    return TaskService(store)


def _get_todos(store: Store = Depends(get_store)) -> TodoService:
    return TodoService(store)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={403: {"description": "Not a member"}, 404: {"description": "Task not found"}},
)
def get_task(
    task_id: str,
    user: UserEntity = Depends(get_current_user),
    service: TaskService = Depends(_get_tasks),
) -> TaskOut:
    return TaskOut(**task_view(service.get_task(user, task_id)))


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Partially update a task. Pass the last seen `version` to have the "
        "update rejected with 409 if someone else changed the task meanwhile."
    ),
    responses={409: {"description": "Stale version"}},
)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    user: UserEntity = Depends(get_current_user),
    service: TaskService = Depends(_get_tasks),
) -> TaskOut:
    return TaskOut(**task_view(service.update_task(user, task_id, payload)))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    response_model=MessageOut,
    summary="Delete Task",
)
def delete_task(
    task_id: str,
    user: UserEntity = Depends(get_current_user),
    service: TaskService = Depends(_get_tasks),
) -> MessageOut:
    service.delete_task(user, task_id)
    return MessageOut(message="Task removed successfully")


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/comments",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add Comment",
)
def add_comment(
    task_id: str,
    payload: CommentCreate,
    user: UserEntity = Depends(get_current_user),
    service: TaskService = Depends(_get_tasks),
) -> TaskOut:
    return TaskOut(**task_view(service.add_comment(user, task_id, payload)))


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/todos",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add Todo",
    description="Append a todo to the task's checklist.",
)
def add_todo(
    task_id: str,
    payload: TodoCreate,
    user: UserEntity = Depends(get_current_user),
    service: TodoService = Depends(_get_todos),
) -> TaskOut:
    return TaskOut(**task_view(service.add_todo(user, task_id, payload)))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/todos/{todo_id}",
    response_model=TaskOut,
    summary="Update Todo",
    description="Change text, completion or assignee of one todo. Send `assigned_to: null` to unassign.",
    responses={409: {"description": "Stale version"}},
)
def update_todo(
    task_id: str,
    todo_id: str,
    payload: TodoUpdate,
    user: UserEntity = Depends(get_current_user),
    service: TodoService = Depends(_get_todos),
) -> TaskOut:
    return TaskOut(**task_view(service.update_todo(user, task_id, todo_id, payload)))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}/todos/{todo_id}",
    response_model=TaskOut,
    summary="Delete Todo",
)
def delete_todo(
    task_id: str,
    todo_id: str,
    user: UserEntity = Depends(get_current_user),
    service: TodoService = Depends(_get_todos),
) -> TaskOut:
    return TaskOut(**task_view(service.delete_todo(user, task_id, todo_id)))
