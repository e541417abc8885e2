from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..models import NotificationEntity, UserEntity
from ..repositories import NotificationQuery, Store


class InboxService:
    """
    The recipient's view of their notifications. References to senders,
    projects and tasks are resolved when they still exist and left empty
    otherwise.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    def _resolve(self, notifications: List[NotificationEntity]) -> List[Dict[str, Any]]:
        usernames: Dict[str, Optional[str]] = {}
        project_names: Dict[str, Optional[str]] = {}
        task_titles: Dict[str, Optional[str]] = {}
        result = []
        for n in notifications:
            item: Dict[str, Any] = dict(n)
            sender, project, task = n["sender"], n["project"], n["task"]
            if sender is not None and sender not in usernames:
                user = self._store.users.get(sender)
                usernames[sender] = user["username"] if user else None
            if project is not None and project not in project_names:
                found = self._store.projects.get(project)
                project_names[project] = found["name"] if found else None
            if task is not None and task not in task_titles:
                found_task = self._store.tasks.get(task)
                task_titles[task] = found_task["title"] if found_task else None
            item["sender_username"] = usernames.get(sender) if sender else None
            item["project_name"] = project_names.get(project) if project else None
            item["task_title"] = task_titles.get(task) if task else None
            result.append(item)
        return result

    def list_notifications(self, actor: UserEntity, query: NotificationQuery) -> List[Dict[str, Any]]:
        return self._resolve(self._store.notifications.list_for_recipient(actor["id"], query))

    def unread_count(self, actor: UserEntity) -> int:
        return self._store.notifications.count_unread(actor["id"])

    def mark_as_read(self, actor: UserEntity, notification_id: str) -> Dict[str, Any]:
        notification = self._store.notifications.mark_read(notification_id, actor["id"])
        if notification is None:
            raise NotFoundError("Notification not found")
        return self._resolve([notification])[0]

    def mark_all_as_read(self, actor: UserEntity) -> int:
        return self._store.notifications.mark_all_read(actor["id"])

    def delete_notification(self, actor: UserEntity, notification_id: str) -> None:
        if not self._store.notifications.delete(notification_id, actor["id"]):
            raise NotFoundError("Notification not found")

    def clear_read(self, actor: UserEntity) -> int:
        return self._store.notifications.delete_read(actor["id"])
