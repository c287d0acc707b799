"""Likes for the signed-in user and the counters cached on feed items.

The store write always happens first. The liked set and cached counters
only change once it has succeeded.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

import structlog

from cragline.activity.repository import ActivityRepository
from cragline.activity.schemas import ActivityBase
from cragline.errors import CraglineError
from cragline.session import Session
from cragline.viewmodel import ViewModel, ViewState

logger = structlog.get_logger()

T = TypeVar("T", bound=ActivityBase)


def adjust_likes(items: Sequence[T], item_id: str, delta: int) -> list[T]:
    """Copy of ``items`` with the matching item's like count moved by ``delta`` (floored at 0)."""
    return [item.with_like_delta(delta) if item.id == item_id else item for item in items]


def adjust_comments(items: Sequence[T], item_id: str, delta: int) -> list[T]:
    return [item.with_comment_delta(delta) if item.id == item_id else item for item in items]


class Engagement:
    """The session user's liked-item set plus like/unlike against the store."""

    def __init__(self, repository: ActivityRepository, session: Session) -> None:
        self.repository = repository
        self.session = session
        self.liked_ids: frozenset[str] = frozenset()

    def is_liked(self, item_id: str) -> bool:
        return item_id in self.liked_ids

    async def load(self) -> frozenset[str]:
        user_id = self.session.require_user()
        self.liked_ids = frozenset(await self.repository.get_liked_item_ids(user_id))
        return self.liked_ids

    async def like(self, item_id: str) -> bool:
        """Like ``item_id``. Returns True when the store recorded a new like."""
        user_id = self.session.require_user()
        if item_id in self.liked_ids:
            return False
        changed = await self.repository.like(item_id, user_id)
        self.liked_ids = self.liked_ids | {item_id}
        logger.info("item_liked", item_id=item_id, user_id=user_id, changed=changed)
        return changed

    async def unlike(self, item_id: str) -> bool:
        """Remove the like on ``item_id``. Returns True when the store removed one."""
        user_id = self.session.require_user()
        if item_id not in self.liked_ids:
            return False
        changed = await self.repository.unlike(item_id, user_id)
        self.liked_ids = self.liked_ids - {item_id}
        logger.info("item_unliked", item_id=item_id, user_id=user_id, changed=changed)
        return changed

    async def toggle(self, item_id: str) -> int:
        """Like or unlike. Returns the counter delta to apply locally (0, 1 or -1)."""
        if self.is_liked(item_id):
            return -1 if await self.unlike(item_id) else 0
        return 1 if await self.like(item_id) else 0


class EngagementState(ViewState):
    liked_item_ids: frozenset[str] = frozenset()


ES = TypeVar("ES", bound=EngagementState)


class EngagingViewModel(ViewModel[ES]):
    """View-model base for screens that show likeable items.

    ``item_fields`` names the state fields holding item lists whose cached
    counters follow the user's likes and comments.
    """

    item_fields: tuple[str, ...] = ()

    def __init__(self, state: ES, engagement: Engagement) -> None:
        super().__init__(state)
        self.engagement = engagement

    def is_liked(self, item_id: str) -> bool:
        return item_id in self.state.liked_item_ids

    async def load_liked_items(self) -> None:
        try:
            liked = await self.engagement.load()
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(liked_item_ids=liked)

    async def like_item(self, item_id: str) -> None:
        try:
            changed = await self.engagement.like(item_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._apply_engagement(item_id, likes=1 if changed else 0)

    async def unlike_item(self, item_id: str) -> None:
        try:
            changed = await self.engagement.unlike(item_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._apply_engagement(item_id, likes=-1 if changed else 0)

    async def toggle_like(self, item_id: str) -> None:
        if self.is_liked(item_id):
            await self.unlike_item(item_id)
        else:
            await self.like_item(item_id)

    def adjust_comment_count(self, item_id: str, delta: int) -> None:
        """Mirror a comment added or removed elsewhere onto the cached items."""
        self._apply_engagement(item_id, comments=delta)

    def _apply_engagement(self, item_id: str, likes: int = 0, comments: int = 0) -> None:
        changes: dict[str, Any] = {"liked_item_ids": self.engagement.liked_ids}
        for name in self.item_fields:
            items = getattr(self.state, name)
            if likes:
                items = adjust_likes(items, item_id, likes)
            if comments:
                items = adjust_comments(items, item_id, comments)
            if likes or comments:
                changes[name] = items
        self._set(**changes)
