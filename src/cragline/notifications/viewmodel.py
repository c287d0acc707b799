"""Notification inbox screen."""

from __future__ import annotations

from pydantic import Field

from cragline.config import get_settings
from cragline.errors import CraglineError
from cragline.notifications import service
from cragline.notifications.schemas import Notification
from cragline.session import Session
from cragline.store import DocumentStore
from cragline.viewmodel import ViewModel, ViewState


class NotificationState(ViewState):
    notifications: list[Notification] = Field(default_factory=list)
    unread_count: int = 0


class NotificationViewModel(ViewModel[NotificationState]):
    """Local read-state only changes after the store write succeeds."""

    def __init__(self, store: DocumentStore, session: Session, limit: int | None = None) -> None:
        super().__init__(NotificationState())
        self.store = store
        self.session = session
        self.limit = limit or get_settings().notification_fetch_limit

    async def load_notifications(self) -> None:
        self._set(is_loading=True, error_message=None, has_error=False)
        try:
            notifications = await service.fetch_notifications(
                self.store, self.session.require_user(), self.limit
            )
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(
            notifications=notifications,
            unread_count=service.unread_count(notifications),
            is_loading=False,
        )

    async def mark_as_read(self, notification_id: str) -> None:
        try:
            await service.mark_as_read(self.store, notification_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        notifications = [
            n.mark_read() if n.id == notification_id else n for n in self.state.notifications
        ]
        self._set(notifications=notifications, unread_count=service.unread_count(notifications))

    async def mark_all_as_read(self) -> None:
        try:
            await service.mark_all_as_read(self.store, self.state.notifications)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(
            notifications=[n if n.is_read else n.mark_read() for n in self.state.notifications],
            unread_count=0,
        )
