"""
Notification Service

Users only ever see and touch their own notifications: every lookup is
scoped to the recipient, so another user's notification is reported as
missing rather than forbidden.
"""

from typing import Optional
from uuid import UUID

from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    PageRequest,
    PageResult,
    QueryFilter,
    SortDirection,
    SortOrder,
)
from cybernexus.core.errors import NotFoundError
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.notifications.models import Notification, NotificationCategory, NotificationType

logger = get_logger(__name__)


class NotificationService:
    """Create and manage per-user notifications"""

    def __init__(self, repository: BaseRepository[Notification]):
        self.repository = repository

    async def notify(
        self,
        recipient: UUID,
        title: str,
        message: str,
        category: NotificationCategory,
        type: NotificationType = NotificationType.INFO,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
    ) -> Notification:
        notification = Notification(
            title=title,
            message=message,
            type=type,
            category=category,
            recipient=recipient,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        notification = await self.repository.add(notification)
        logger.info("Notification created", recipient=str(recipient), category=category.value)
        return notification

    async def list_for_user(
        self,
        user_id: UUID,
        is_read: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult[Notification]:
        filters = [QueryFilter("recipient", "eq", user_id)]
        if is_read is not None:
            filters.append(QueryFilter("is_read", "eq", is_read))
        return await self.repository.find_by_criteria(
            filters,
            PageRequest(page=page, size=limit, sort=[SortOrder("created_at", SortDirection.DESC)]),
        )

    async def unread_count(self, user_id: UUID) -> int:
        return await self.repository.count([
            QueryFilter("recipient", "eq", user_id),
            QueryFilter("is_read", "eq", False),
        ])

    async def _get_own(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.repository.get(notification_id)
        if notification is None or notification.recipient != user_id:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_own(notification_id, user_id)
        if notification.is_read:
            return notification
        notification = notification.model_copy(update={"is_read": True, "read_at": utcnow()})
        return await self.repository.update(notification)

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of the user as read, returning how many changed"""
        unread = await self.repository.find_by_criteria([
            QueryFilter("recipient", "eq", user_id),
            QueryFilter("is_read", "eq", False),
        ])
        read_at = utcnow()
        for notification in unread:
            await self.repository.update(notification.model_copy(update={"is_read": True, "read_at": read_at}))
        return len(unread)

    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        await self._get_own(notification_id, user_id)
        await self.repository.delete_by_id(notification_id)
