from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ..auth import get_current_user
from ..models import UserEntity
from ..repositories import Store, get_store
from ..schemas import CollaboratorAdd, MessageOut, ProjectCreate, ProjectOut, ProjectUpdate, TaskCreate, TaskOut
from ..services import ProjectService, TaskService
from ..utils import project_view, task_view, task_views

router = APIRouter(
    prefix="/api/v1/projects",
    tags=["projects"],
)


def _get_projects(store: Store = Depends(get_store)) -> ProjectService:
    return ProjectService(store)


def _get_tasks(store: Store = Depends(get_store)) -> TaskService:
    return TaskService(store)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Project",
    description="Create a project owned by the calling user.",
)
def create_project(
    payload: ProjectCreate,
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
    store: Store = Depends(get_store),
) -> ProjectOut:
    project = service.create_project(user, payload)
    return ProjectOut(**project_view(project, store.users))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[ProjectOut],
    summary="List Projects",
    description="Projects the caller owns or collaborates on, newest first.",
)
def list_projects(
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
    store: Store = Depends(get_store),
) -> List[ProjectOut]:
    return [ProjectOut(**project_view(p, store.users)) for p in service.list_projects(user)]


# PUBLIC_INTERFACE
@router.get(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Get Project",
    responses={403: {"description": "Not a member"}, 404: {"description": "Project not found"}},
)
def get_project(
    project_id: str,
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
    store: Store = Depends(get_store),
) -> ProjectOut:
    return ProjectOut(**project_view(service.get_project(user, project_id), store.users))


# PUBLIC_INTERFACE
@router.put(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Update Project",
    description="Owner-only partial update. Members are notified.",
)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
    store: Store = Depends(get_store),
) -> ProjectOut:
    project = service.update_project(user, project_id, payload)
    return ProjectOut(**project_view(project, store.users))


# PUBLIC_INTERFACE
@router.delete(
    "/{project_id}",
    response_model=MessageOut,
    summary="Delete Project",
    description="Owner-only. Deletes the project and all of its tasks.",
)
def delete_project(
    project_id: str,
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
) -> MessageOut:
    service.delete_project(user, project_id)
    return MessageOut(message="Project removed successfully")


# PUBLIC_INTERFACE
@router.post(
    "/{project_id}/collaborators",
    response_model=ProjectOut,
    summary="Add Collaborator",
    description="Owner-only. Invite a registered user by email or username.",
)
def add_collaborator(
    project_id: str,
    payload: CollaboratorAdd,
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
    store: Store = Depends(get_store),
) -> ProjectOut:
    project = service.add_collaborator(user, project_id, payload)
    return ProjectOut(**project_view(project, store.users))


# PUBLIC_INTERFACE
@router.delete(
    "/{project_id}/collaborators/{user_id}",
    response_model=ProjectOut,
    summary="Remove Collaborator",
    description="Owner-only. The removed user is notified.",
)
def remove_collaborator(
    project_id: str,
    user_id: str,
    user: UserEntity = Depends(get_current_user),
    service: ProjectService = Depends(_get_projects),
    store: Store = Depends(get_store),
) -> ProjectOut:
    project = service.remove_collaborator(user, project_id, user_id)
    return ProjectOut(**project_view(project, store.users))


# PUBLIC_INTERFACE
@router.post(
    "/{project_id}/tasks",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a task in a project the caller is a member of.",
)
def create_task(
    project_id: str,
    payload: TaskCreate,
    user: UserEntity = Depends(get_current_user),
    service: TaskService = Depends(_get_tasks),
) -> TaskOut:
    return TaskOut(**task_view(service.create_task(user, project_id, payload)))


# PUBLIC_INTERFACE
@router.get(
    "/{project_id}/tasks",
    response_model=List[TaskOut],
    summary="List Tasks",
    description="Tasks of a project, newest first.",
)
def list_tasks(
    project_id: str,
    user: UserEntity = Depends(get_current_user),
    service: TaskService = Depends(_get_tasks),
) -> List[TaskOut]:
    return [TaskOut(**t) for t in task_views(service.list_tasks(user, project_id))]
