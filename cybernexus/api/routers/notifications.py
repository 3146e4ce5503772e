"""
Notification API endpoints. Every route only sees the caller's own
notifications.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_current_user,
    get_notification_service,
)
from cybernexus.api.schemas import MessageResponse, Page
from cybernexus.auth.models import User
from cybernexus.notifications.models import Notification
from cybernexus.notifications.service import NotificationService
from cybernexus.security.models import AuditAction

router = APIRouter()


class NotificationPage(Page[Notification]):
    unread_count: int


@router.get("", response_model=NotificationPage)
async def list_notifications(
    is_read: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(get_current_user),
) -> NotificationPage:
    result = await service.list_for_user(current_user.id, is_read, page, limit)
    unread = await service.unread_count(current_user.id)
    return NotificationPage(
        items=result.items,
        total_pages=result.total_pages,
        current_page=result.current_page,
        total=result.total_items,
        unread_count=unread,
    )


@router.put("/mark-all-read", response_model=MessageResponse)
async def mark_all_read(
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(get_current_user),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    changed = await service.mark_all_read(current_user.id)
    await activity.record(AuditAction.UPDATE, "NotificationBulk", count=changed)
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: UUID,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(get_current_user),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Notification:
    notification = await service.mark_read(notification_id, current_user.id)
    await activity.record(AuditAction.UPDATE, "Notification", notification_id)
    return notification


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: UUID,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(get_current_user),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    await service.delete(notification_id, current_user.id)
    await activity.record(AuditAction.DELETE, "Notification", notification_id)
    return MessageResponse(message="Notification deleted successfully")
