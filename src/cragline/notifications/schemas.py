"""Notification documents."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import Field

from cragline.schemas import StoreModel, utcnow

NOTIFICATIONS = "notifications"


class NotificationType(StrEnum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MENTION = "mention"
    SYSTEM = "system"


class Notification(StoreModel):
    """A typed alert for one user. Two notifications are equal iff their ids are."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    is_read: bool = False
    type: NotificationType = NotificationType.SYSTEM
    related_item_id: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Notification):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def mark_read(self) -> Notification:
        return self.model_copy(update={"is_read": True})
