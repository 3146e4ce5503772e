"""
Unit tests for per-user notifications
"""

from uuid import uuid4

import pytest

from cybernexus.core.errors import NotFoundError
from cybernexus.notifications.models import NotificationCategory


async def _notify(service, recipient, title="Heads up"):
    return await service.notify(recipient, title, "Something happened", NotificationCategory.SYSTEM)


@pytest.mark.unit
class TestNotificationService:

    @pytest.mark.asyncio
    async def test_list_is_scoped_to_recipient(self, notification_service):
        alice, bob = uuid4(), uuid4()
        await _notify(notification_service, alice)
        await _notify(notification_service, alice)
        await _notify(notification_service, bob)

        page = await notification_service.list_for_user(alice)

        assert page.total_items == 2
        assert all(n.recipient == alice for n in page.items)

    @pytest.mark.asyncio
    async def test_mark_read(self, notification_service):
        user = uuid4()
        notification = await _notify(notification_service, user)

        read = await notification_service.mark_read(notification.id, user)

        assert read.is_read
        assert read.read_at is not None
        assert await notification_service.unread_count(user) == 0

    @pytest.mark.asyncio
    async def test_mark_read_twice_keeps_first_timestamp(self, notification_service):
        user = uuid4()
        notification = await _notify(notification_service, user)
        first = await notification_service.mark_read(notification.id, user)

        second = await notification_service.mark_read(notification.id, user)

        assert second.read_at == first.read_at

    @pytest.mark.asyncio
    async def test_other_users_notification_is_not_found(self, notification_service):
        notification = await _notify(notification_service, uuid4())

        with pytest.raises(NotFoundError):
            await notification_service.mark_read(notification.id, uuid4())
        with pytest.raises(NotFoundError):
            await notification_service.delete(notification.id, uuid4())

    @pytest.mark.asyncio
    async def test_mark_all_read(self, notification_service):
        user, other = uuid4(), uuid4()
        for _ in range(3):
            await _notify(notification_service, user)
        await _notify(notification_service, other)

        assert await notification_service.mark_all_read(user) == 3
        assert await notification_service.unread_count(user) == 0
        assert await notification_service.unread_count(other) == 1
        assert await notification_service.mark_all_read(user) == 0

    @pytest.mark.asyncio
    async def test_filter_by_read_state(self, notification_service):
        user = uuid4()
        first = await _notify(notification_service, user)
        await _notify(notification_service, user)
        await notification_service.mark_read(first.id, user)

        unread = await notification_service.list_for_user(user, is_read=False)
        read = await notification_service.list_for_user(user, is_read=True)

        assert unread.total_items == 1
        assert read.items[0].id == first.id

    @pytest.mark.asyncio
    async def test_delete(self, notification_service):
        user = uuid4()
        notification = await _notify(notification_service, user)

        await notification_service.delete(notification.id, user)

        assert (await notification_service.list_for_user(user)).total_items == 0
