"""
Best-effort notification fan-out.

Services publish a ``NotificationEvent`` after their write has been
persisted. The dispatcher turns it into one record per recipient, skips the
actor, and absorbs storage failures so a broken notification path never
undoes or blocks the operation that triggered it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .enums import NotificationType
from .membership import members
from .models import NotificationEntity, ProjectEntity
from .repositories import NotificationRepository

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500


@dataclass(frozen=True)
class NotificationEvent:
    """One logical event addressed to several recipients."""

    type: NotificationType
    message: str
    recipients: List[str]
    sender: Optional[str] = None
    project: Optional[str] = None
    task: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


# PUBLIC_INTERFACE
def get_project_members(project: ProjectEntity, exclude_user_id: Optional[str] = None) -> List[str]:
    """Owner plus collaborators, optionally without one user (usually the actor)."""
    return [user_id for user_id in members(project) if user_id != exclude_user_id]


class NotificationDispatcher:
    def __init__(self, notifications: NotificationRepository) -> None:
        self._notifications = notifications

    # PUBLIC_INTERFACE
    def create_notification(
        self,
        recipient: str,
        type: NotificationType,
        message: str,
        sender: Optional[str] = None,
        project: Optional[str] = None,
        task: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[NotificationEntity]:
        """
        Store one notification. Returns None without writing when the sender
        is the recipient, or when the store fails (the failure is logged).
        """
        if sender is not None and sender == recipient:
            return None
        try:
            return self._notifications.create(
                recipient=recipient,
                sender=sender,
                type=NotificationType.parse(type).value,
                message=message[:MAX_MESSAGE_LENGTH],
                project=project,
                task=task,
                metadata=metadata,
            )
        except Exception:
            logger.exception("Error creating %s notification for %s", type, recipient)
            return None

    # PUBLIC_INTERFACE
    def create_notifications(
        self,
        recipients: Iterable[str],
        type: NotificationType,
        message: str,
        sender: Optional[str] = None,
        project: Optional[str] = None,
        task: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[NotificationEntity]:
        """Fan out to each recipient independently; return only the records created."""
        created: List[NotificationEntity] = []
        for recipient in recipients:
            notification = self.create_notification(
                recipient,
                type,
                message,
                sender=sender,
                project=project,
                task=task,
                metadata=metadata,
            )
            if notification is not None:
                created.append(notification)
        return created

    # PUBLIC_INTERFACE
    def publish(self, event: NotificationEvent) -> List[NotificationEntity]:
        """Deliver an event emitted by a service."""
        if not event.recipients:
            return []
        created = self.create_notifications(
            event.recipients,
            event.type,
            event.message,
            sender=event.sender,
            project=event.project,
            task=event.task,
            metadata=event.metadata,
        )
        logger.debug("%s delivered to %d of %d recipients", event.type.value, len(created), len(event.recipients))
        return created
