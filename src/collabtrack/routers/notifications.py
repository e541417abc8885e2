from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from ..auth import get_current_user
from ..models import UserEntity
from ..repositories import NotificationQuery, Store, get_store
from ..schemas import BulkResult, MessageOut, NotificationOut, UnreadCount
from ..services import InboxService

router = APIRouter(
    prefix="/api/v1/notifications",
    tags=["notifications"],
)


def _get_inbox(store: Store = Depends(get_store)) -> InboxService:
    return InboxService(store)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[NotificationOut],
    summary="List Notifications",
    description=(
        "The caller's notifications, newest first.\n\n"
        "Query parameters:\n"
        "- limit: max number of items to return (0..100)\n"
        "- skip: number of items to skip (>=0)\n"
        "- unread_only: only return unread notifications"
    ),
)
def list_notifications(
    limit: int = Query(20, ge=0, le=100, description="Maximum number of items to return"),
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    unread_only: bool = Query(False, description="Only unread notifications"),
    user: UserEntity = Depends(get_current_user),
    inbox: InboxService = Depends(_get_inbox),
) -> List[NotificationOut]:
    query = NotificationQuery(limit=limit, skip=skip, unread_only=unread_only)
    return [NotificationOut(**n) for n in inbox.list_notifications(user, query)]


# PUBLIC_INTERFACE
@router.get("/unread/count", response_model=UnreadCount, summary="Unread Count")
def unread_count(
    user: UserEntity = Depends(get_current_user),
    inbox: InboxService = Depends(_get_inbox),
) -> UnreadCount:
    return UnreadCount(count=inbox.unread_count(user))


# PUBLIC_INTERFACE
@router.put("/mark-all-read", response_model=BulkResult, summary="Mark All As Read")
def mark_all_as_read(
    user: UserEntity = Depends(get_current_user),
    inbox: InboxService = Depends(_get_inbox),
) -> BulkResult:
    return BulkResult(message="All notifications marked as read", count=inbox.mark_all_as_read(user))


# PUBLIC_INTERFACE
@router.delete("/clear-read", response_model=BulkResult, summary="Clear Read Notifications")
def clear_read(
    user: UserEntity = Depends(get_current_user),
    inbox: InboxService = Depends(_get_inbox),
) -> BulkResult:
    return BulkResult(message="Read notifications cleared", count=inbox.clear_read(user))


# PUBLIC_INTERFACE
@router.put(
    "/{notification_id}/read",
    response_model=NotificationOut,
    summary="Mark As Read",
    responses={404: {"description": "Notification not found"}},
)
def mark_as_read(
    notification_id: str,
    user: UserEntity = Depends(get_current_user),
    inbox: InboxService = Depends(_get_inbox),
) -> NotificationOut:
    return NotificationOut(**inbox.mark_as_read(user, notification_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{notification_id}",
    response_model=MessageOut,
    summary="Delete Notification",
    responses={404: {"description": "Notification not found"}},
)
def delete_notification(
    notification_id: str,
    user: UserEntity = Depends(get_current_user),
    inbox: InboxService = Depends(_get_inbox),
) -> MessageOut:
    inbox.delete_notification(user, notification_id)
    return MessageOut(message="Notification deleted successfully")
