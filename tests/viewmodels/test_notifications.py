"""Notification service and inbox."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from cragline.errors import StoreError, ValidationError
from cragline.notifications import service
from cragline.notifications.schemas import NOTIFICATIONS, Notification, NotificationType
from cragline.notifications.viewmodel import NotificationViewModel


async def _seed(store, user_id: str, read_flags: list[bool], now) -> list[Notification]:
    seeded = []
    for n, is_read in enumerate(read_flags):
        notification = Notification(
            id=f"n{n}",
            user_id=user_id,
            title=f"Title {n}",
            message="Someone liked your beta",
            type=NotificationType.LIKE,
            is_read=is_read,
            timestamp=now - timedelta(minutes=n),
        )
        await store.set(NOTIFICATIONS, notification.id, notification.to_document())
        seeded.append(notification)
    return seeded


class TestNotificationService:
    """Test notification storage."""

    @pytest.mark.asyncio
    async def test_create_and_fetch_newest_first(self, store, alice, bob, now):
        await _seed(store, alice.id, [False, False, False], now)
        await _seed(store, bob.id, [False], now - timedelta(days=1))
        fetched = await service.fetch_notifications(store, alice.id, limit=2)
        assert [n.id for n in fetched] == ["n0", "n1"]

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_type(self, store, alice):
        with pytest.raises(ValidationError):
            await service.create_notification(store, alice.id, "Hi", "Hello", "carrier_pigeon")

    @pytest.mark.asyncio
    async def test_create_notification(self, store, alice):
        created = await service.create_notification(
            store, alice.id, "New follower", "Bob followed you", "follow", related_item_id="bob"
        )
        stored = await store.get(NOTIFICATIONS, created.id)
        assert stored["type"] == "follow"
        assert stored["relatedItemId"] == "bob"
        assert stored["isRead"] is False

    @pytest.mark.asyncio
    async def test_mark_all_skips_write_when_nothing_unread(self, alice):
        store = AsyncMock()
        notification = Notification(user_id=alice.id, title="t", message="m", is_read=True)
        assert await service.mark_all_as_read(store, [notification]) == 0
        store.batch_update.assert_not_awaited()

    def test_equality_by_id(self):
        a = Notification(id="x", user_id="u", title="a", message="m")
        b = Notification(id="x", user_id="u", title="b", message="other", is_read=True)
        assert a == b
        assert len({a, b}) == 1


class TestNotificationViewModel:
    """Test the inbox screen."""

    @pytest.mark.asyncio
    async def test_mark_all_as_read(self, store, session, alice, now):
        await _seed(store, alice.id, [False, True, False], now)
        vm = NotificationViewModel(store, session)
        await vm.load_notifications()
        assert vm.state.unread_count == 2

        await vm.mark_all_as_read()

        assert [n.is_read for n in vm.state.notifications] == [True, True, True]
        assert vm.state.unread_count == 0
        assert all(n.is_read for n in await service.fetch_notifications(store, alice.id))

    @pytest.mark.asyncio
    async def test_mark_one_as_read(self, store, session, alice, now):
        await _seed(store, alice.id, [False, False], now)
        vm = NotificationViewModel(store, session)
        await vm.load_notifications()
        diffs: list[dict] = []
        vm.subscribe(diffs.append)

        await vm.mark_as_read("n1")

        assert [n.is_read for n in vm.state.notifications] == [False, True]
        assert vm.state.unread_count == 1
        assert set(diffs[0]) == {"notifications", "unread_count"}

    @pytest.mark.asyncio
    async def test_failed_write_leaves_local_state(self, store, session, alice, now):
        await _seed(store, alice.id, [False, False], now)
        vm = NotificationViewModel(store, session)
        await vm.load_notifications()
        store.batch_update = AsyncMock(side_effect=StoreError("offline"))

        await vm.mark_all_as_read()

        assert vm.state.unread_count == 2
        assert not any(n.is_read for n in vm.state.notifications)
        assert vm.state.has_error and vm.state.error_message == "offline"

    @pytest.mark.asyncio
    async def test_mark_missing_notification(self, store, session, alice):
        vm = NotificationViewModel(store, session)
        await vm.mark_as_read("ghost")
        assert vm.state.has_error
