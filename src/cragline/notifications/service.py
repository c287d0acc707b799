"""Notification creation and read-state service.

Notifications live in the ``notifications`` collection, one document per
alert, keyed to the receiving user by ``userId``.
"""

from __future__ import annotations

import logging

from cragline.errors import ValidationError
from cragline.notifications.schemas import NOTIFICATIONS, Notification, NotificationType
from cragline.store import DocumentStore, Query

logger = logging.getLogger(__name__)

DEFAULT_FETCH_LIMIT = 50


async def create_notification(
    store: DocumentStore,
    user_id: str,
    title: str,
    message: str,
    type_: NotificationType | str = NotificationType.SYSTEM,
    related_item_id: str | None = None,
) -> Notification:
    """Create and persist a notification for ``user_id``."""
    try:
        kind = NotificationType(type_)
    except ValueError:
        valid = ", ".join(t.value for t in NotificationType)
        raise ValidationError(f"Invalid notification type: {type_}. Must be one of {valid}") from None

    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=kind,
        related_item_id=related_item_id,
    )
    await store.set(NOTIFICATIONS, notification.id, notification.to_document())
    logger.debug("Created %s notification %s for %s", kind, notification.id, user_id)
    return notification


async def fetch_notifications(
    store: DocumentStore,
    user_id: str,
    limit: int = DEFAULT_FETCH_LIMIT,
) -> list[Notification]:
    """Get the user's most recent notifications, newest first."""
    rows = await store.query(
        Query(NOTIFICATIONS)
        .where("userId", "==", user_id)
        .order("timestamp", descending=True)
        .take(limit)
    )
    return [Notification.from_document(row) for row in rows]


async def mark_as_read(store: DocumentStore, notification_id: str) -> None:
    await store.update(NOTIFICATIONS, notification_id, {"isRead": True})


async def mark_all_as_read(store: DocumentStore, notifications: list[Notification]) -> int:
    """Mark every unread notification read in one batch. Returns how many changed."""
    unread = [n for n in notifications if not n.is_read]
    if not unread:
        return 0
    await store.batch_update([(NOTIFICATIONS, n.id, {"isRead": True}) for n in unread])
    return len(unread)


def unread_count(notifications: list[Notification]) -> int:
    return sum(1 for n in notifications if not n.is_read)
