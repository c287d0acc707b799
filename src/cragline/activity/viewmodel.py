"""Activity feed and item-creation view-models."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import Field

from cragline.activity.engagement import Engagement, EngagementState, EngagingViewModel
from cragline.activity.repository import ActivityRepository
from cragline.activity.schemas import (
    ActivityBase,
    ActivityItem,
    ActivityKind,
    GroupVisit,
    Media,
    activity_kind,
)
from cragline.config import get_settings
from cragline.errors import CraglineError, ValidationError
from cragline.gyms.schemas import Gym
from cragline.session import Session
from cragline.viewmodel import ViewModel, ViewState

logger = structlog.get_logger()


class ActivityFilter(StrEnum):
    ALL = "all"
    BETA = "beta"
    EVENT = "event"
    VISIT = "visit"

    def matches(self, item: ActivityBase) -> bool:
        if self is ActivityFilter.ALL:
            return True
        return activity_kind(item) == ActivityKind(self.value)


def with_attendance(items: Sequence[Any], visit_id: str, user_id: str, joining: bool) -> list[Any]:
    """Copy of ``items`` with ``user_id`` added to or removed from one visit."""
    updated = []
    for item in items:
        if isinstance(item, GroupVisit) and item.id == visit_id:
            item = item.with_attendee(user_id) if joining else item.without_attendee(user_id)
        updated.append(item)
    return updated


class ActivityFeedState(EngagementState):
    activity_items: list[ActivityItem] = Field(default_factory=list)
    selected_filter: ActivityFilter = ActivityFilter.ALL
    is_loading_more: bool = False
    has_more_items: bool = True
    cursor: str | None = None

    @property
    def filtered_items(self) -> list[ActivityItem]:
        return [item for item in self.activity_items if self.selected_filter.matches(item)]


class ActivityFeedViewModel(EngagingViewModel[ActivityFeedState]):
    """Paginated feed, newest first.

    With ``following_only`` the feed shows the session user's own items and
    those of the users they follow.
    """

    item_fields = ("activity_items",)

    def __init__(
        self,
        repository: ActivityRepository,
        session: Session,
        engagement: Engagement | None = None,
        following_only: bool = False,
        page_size: int | None = None,
    ) -> None:
        super().__init__(ActivityFeedState(), engagement or Engagement(repository, session))
        self.repository = repository
        self.session = session
        self.following_only = following_only
        self.page_size = page_size or get_settings().feed_page_size

    async def refresh(self) -> None:
        """Reset pagination and load the first page."""
        self._set(
            activity_items=[],
            cursor=None,
            has_more_items=True,
            is_loading=True,
            error_message=None,
            has_error=False,
        )
        try:
            page = await self.repository.fetch_page(self.page_size, None, await self._author_ids())
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(
            activity_items=page.items,
            cursor=page.cursor,
            has_more_items=page.has_more,
            is_loading=False,
        )

    async def load_more(self) -> None:
        state = self.state
        if state.is_loading or state.is_loading_more or not state.has_more_items or state.cursor is None:
            return
        self._set(is_loading_more=True)
        try:
            page = await self.repository.fetch_page(self.page_size, state.cursor, await self._author_ids())
        except CraglineError as exc:
            self._fail(exc, is_loading_more=False)
            return
        self._set(
            activity_items=[*self.state.activity_items, *page.items],
            cursor=page.cursor,
            has_more_items=page.has_more,
            is_loading_more=False,
        )

    async def change_filter(self, selected: ActivityFilter) -> None:
        self._set(selected_filter=selected)
        if not self.state.filtered_items and self.state.has_more_items:
            await self.load_more()

    async def join_visit(self, visit_id: str) -> None:
        await self._attend(visit_id, joining=True)

    async def leave_visit(self, visit_id: str) -> None:
        await self._attend(visit_id, joining=False)

    async def delete_item(self, item_id: str) -> None:
        try:
            await self.repository.delete_item(item_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(activity_items=[i for i in self.state.activity_items if i.id != item_id])

    async def _attend(self, visit_id: str, joining: bool) -> None:
        try:
            user_id = self.session.require_user()
            if joining:
                await self.repository.join_visit(visit_id, user_id)
            else:
                await self.repository.leave_visit(visit_id, user_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(activity_items=with_attendance(self.state.activity_items, visit_id, user_id, joining))

    async def _author_ids(self) -> list[str] | None:
        if not self.following_only:
            return None
        user_id = self.session.require_user()
        return [*await self.repository.relationships.get_following_ids(user_id), user_id]


class CreateActivityState(ViewState):
    is_submitting: bool = False
    created_item: ActivityItem | None = None


class CreateActivityViewModel(ViewModel[CreateActivityState]):
    """Creates the four item kinds as the session user."""

    def __init__(self, repository: ActivityRepository, session: Session) -> None:
        super().__init__(CreateActivityState())
        self.repository = repository
        self.session = session

    async def create_basic_post(self, content: str, media_items: list[Media] | None = None) -> None:
        content = content.strip()
        if not content and not media_items:
            return
        await self._submit(lambda author: self.repository.create_basic_post(author, content, media_items))

    async def create_beta_post(self, content: str, gym: Gym, media_items: list[Media] | None = None) -> None:
        content = content.strip()
        if not content:
            return
        await self._submit(
            lambda author: self.repository.create_beta_post(author, content, gym, media_items)
        )

    async def create_event_post(
        self,
        title: str,
        event_date: datetime,
        location: str,
        max_attendees: int,
        description: str | None = None,
        gym: Gym | None = None,
    ) -> None:
        title = title.strip()
        if not title or not location.strip():
            return
        await self._submit(
            lambda author: self.repository.create_event_post(
                author, title, event_date, location.strip(), max_attendees, description, gym
            )
        )

    async def create_visit(
        self, gym: Gym, visit_date: datetime, duration: float, description: str | None = None
    ) -> None:
        await self._submit(
            lambda author: self.repository.create_visit(author, gym, visit_date, duration, description)
        )

    async def _submit(self, create: Any) -> None:
        self._set(is_submitting=True, error_message=None, has_error=False)
        try:
            user_id = self.session.require_user()
            author = await self.repository.users.get_user(user_id)
            item = await create(author)
        except CraglineError as exc:
            self._fail(exc, is_submitting=False)
            return
        except ValueError as exc:
            self._fail(ValidationError(str(exc)), is_submitting=False)
            return
        logger.info("activity_created", item_id=item.id, kind=str(activity_kind(item)))
        self._set(created_item=item, is_submitting=False)
