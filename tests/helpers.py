from typing import List, Optional

from collabtrack.models import NotificationEntity, ProjectEntity, TaskEntity, UserEntity
from collabtrack.repositories import NotificationQuery, Store


def auth(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def make_user(store: Store, username: str) -> UserEntity:
    return store.users.create(username=username, email=f"{username}@example.com")


def make_project(store: Store, owner: UserEntity, collaborators=(), name: str = "Project") -> ProjectEntity:
    project = store.projects.create(name=name, description=f"{name} description", owner=owner["id"], tags=[])
    project["collaborators"] = [c["id"] for c in collaborators]
    return store.projects.save(project)


def make_task(store: Store, project: ProjectEntity, assigned_to=(), title: str = "Task") -> TaskEntity:
    return store.tasks.create(
        {
            "project": project["id"],
            "title": title,
            "description": None,
            "status": "To Do",
            "priority": "Medium",
            "due_date": None,
            "tags": [],
            "assigned_to": [u["id"] for u in assigned_to],
            "todos": [],
            "comments": [],
        }
    )


def inbox(store: Store, user_id: str, type: Optional[str] = None) -> List[NotificationEntity]:
    items = store.notifications.list_for_recipient(user_id, NotificationQuery(limit=1000))
    if type is not None:
        items = [n for n in items if n["type"] == type]
    return items


def all_notifications(store: Store, *user_ids: str) -> List[NotificationEntity]:
    result: List[NotificationEntity] = []
    for user_id in user_ids:
        result.extend(inbox(store, user_id))
    return result
