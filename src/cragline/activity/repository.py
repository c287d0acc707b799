"""Activity items in the document store.

Creates, reads, paginates and deletes feed items, records likes in the
per-item ``likes`` subcollection and maintains the denormalized counters on
the item and its author.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from cragline.activity.schemas import (
    ACTIVITY_ITEMS,
    POST_KINDS,
    ActivityItem,
    ActivityKind,
    BasicPost,
    BetaPost,
    EventPost,
    GroupVisit,
    GymWithVisits,
    Media,
    VisitorInfo,
    VisitStatus,
    activity_kind,
    comments_path,
    document_kind,
    hydrate,
    likes_path,
)
from cragline.errors import CraglineError, NotFoundError, ValidationError
from cragline.gyms.schemas import Gym
from cragline.gyms.service import GymService
from cragline.schemas import utcnow
from cragline.store import Document, DocumentStore, Increment, Query
from cragline.users.schemas import USERS, User
from cragline.users.service import RelationshipService, UserRepository

logger = logging.getLogger(__name__)

# Variants that cannot be shown without their gym.
_GYM_REQUIRED = frozenset({ActivityKind.BETA, ActivityKind.VISIT})


@dataclass
class Page:
    items: list[ActivityItem] = field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False


def _new_id() -> str:
    return str(uuid.uuid4())


class ActivityRepository:
    def __init__(
        self,
        store: DocumentStore,
        users: UserRepository,
        gyms: GymService,
        relationships: RelationshipService,
    ) -> None:
        self.store = store
        self.users = users
        self.gyms = gyms
        self.relationships = relationships

    # --- create ---

    async def create_basic_post(
        self,
        author: User,
        content: str,
        media_items: list[Media] | None = None,
        is_featured: bool = False,
    ) -> BasicPost:
        post = BasicPost(
            id=_new_id(),
            author=author,
            content=content,
            media_items=media_items,
            is_featured=is_featured,
        )
        return await self._save(post)

    async def create_beta_post(
        self,
        author: User,
        content: str,
        gym: Gym,
        media_items: list[Media] | None = None,
        is_featured: bool = False,
    ) -> BetaPost:
        post = BetaPost(
            id=_new_id(),
            author=author,
            content=content,
            gym=gym,
            media_items=media_items,
            is_featured=is_featured,
        )
        return await self._save(post)

    async def create_event_post(
        self,
        author: User,
        title: str,
        event_date: datetime,
        location: str,
        max_attendees: int,
        description: str | None = None,
        gym: Gym | None = None,
        media_items: list[Media] | None = None,
        is_featured: bool = False,
    ) -> EventPost:
        event = EventPost(
            id=_new_id(),
            author=author,
            title=title,
            description=description,
            event_date=event_date,
            location=location,
            max_attendees=max_attendees,
            gym=gym,
            media_items=media_items,
            is_featured=is_featured,
        )
        return await self._save(event)

    async def create_visit(
        self,
        author: User,
        gym: Gym,
        visit_date: datetime,
        duration: float,
        description: str | None = None,
        is_featured: bool = False,
    ) -> GroupVisit:
        visit = GroupVisit(
            id=_new_id(),
            author=author,
            gym=gym,
            visit_date=visit_date,
            duration=duration,
            description=description,
            attendees=[author.id],
            status=VisitStatus.PLANNED,
            is_featured=is_featured,
        )
        return await self._save(visit)

    async def _save(self, item: Any) -> Any:
        await self.store.set(ACTIVITY_ITEMS, item.id, item.to_document())
        if activity_kind(item) in POST_KINDS:
            await self.store.update(USERS, item.author.id, {"postCount": Increment(1)})
            self.users.forget(item.author.id)
        logger.info("Created %s item %s by %s", activity_kind(item), item.id, item.author.id)
        return item

    # --- read ---

    async def fetch_item(self, item_id: str) -> ActivityItem:
        data = await self.store.get(ACTIVITY_ITEMS, item_id)
        items = await self.hydrate_all([data] if data else [])
        if not items:
            raise NotFoundError("Activity item not found")
        return items[0]

    async def fetch_all(self) -> list[ActivityItem]:
        return await self._fetch(self._newest_first())

    async def fetch_user_items(self, user_id: str) -> list[ActivityItem]:
        return await self._fetch(self._newest_first().where("authorId", "==", user_id))

    async def fetch_gym_items(self, gym_id: str) -> list[ActivityItem]:
        return await self._fetch(self._newest_first().where("gymId", "==", gym_id))

    async def fetch_featured(self, kind: ActivityKind | None = None) -> list[ActivityItem]:
        query = self._newest_first().where("isFeatured", "==", True)
        if kind is not None:
            query = query.where("type", "==", str(kind))
        return await self._fetch(query)

    async def fetch_following_feed(self, user_id: str) -> list[ActivityItem]:
        author_ids = [*await self.relationships.get_following_ids(user_id), user_id]
        return await self._fetch(self._newest_first().where("authorId", "in", author_ids))

    async def fetch_page(
        self,
        page_size: int,
        cursor: str | None = None,
        author_ids: list[str] | None = None,
    ) -> Page:
        """One page of items, newest first.

        Fetches one extra document to learn whether another page exists. The
        returned cursor is the id of the last document on this page.
        """
        query = self._newest_first().take(page_size + 1).after(cursor)
        if author_ids is not None:
            query = query.where("authorId", "in", author_ids)
        rows = await self.store.query(query)
        has_more = len(rows) > page_size
        rows = rows[:page_size]
        return Page(
            items=await self.hydrate_all(rows),
            cursor=rows[-1]["id"] if rows else cursor,
            has_more=has_more,
        )

    async def fetch_friends_visits_today(
        self, user_id: str, now: datetime | None = None
    ) -> list[GymWithVisits]:
        following = await self.relationships.get_following_ids(user_id)
        if not following:
            return []
        now = now or utcnow()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        query = (
            Query(ACTIVITY_ITEMS)
            .where("type", "==", str(ActivityKind.VISIT))
            .where("authorId", "in", following)
            .where("visitDate", ">=", start)
            .where("visitDate", "<", start + timedelta(days=1))
        )
        grouped: dict[str, GymWithVisits] = {}
        for visit in await self._fetch(query):
            if not isinstance(visit, GroupVisit):
                continue
            entry = grouped.setdefault(visit.gym.id, GymWithVisits(gym=visit.gym, visitors=[]))
            entry.visitors.append(VisitorInfo(user=visit.author, visit_date=visit.visit_date))
        return list(grouped.values())

    async def hydrate_all(self, rows: list[Document]) -> list[ActivityItem]:
        """Turn raw documents into typed items, skipping what cannot be shown."""
        authors = await self.users.get_users_map([r["authorId"] for r in rows if "authorId" in r])
        gyms = await self.gyms.get_gyms_map([r["gymId"] for r in rows if r.get("gymId")])
        items = []
        for row in rows:
            author = authors.get(row.get("authorId", ""))
            if author is None:
                continue
            gym = gyms.get(row.get("gymId") or "")
            if gym is None and document_kind(row) in _GYM_REQUIRED:
                continue
            item = hydrate(row, author, gym)
            if item is not None:
                items.append(item)
        return items

    # --- engagement ---

    async def like(self, item_id: str, user_id: str) -> bool:
        """Record a like. Returns False if the user already liked the item.

        The like document and ``likeCount`` move together: if the counter
        write fails the like document is removed again.
        """
        if await self.store.get(likes_path(item_id), user_id) is not None:
            return False
        await self.store.set(likes_path(item_id), user_id, {"userId": user_id, "timestamp": utcnow()})
        try:
            await self.store.update(ACTIVITY_ITEMS, item_id, {"likeCount": Increment(1)})
        except CraglineError:
            logger.warning("Like count update failed for %s, removing like by %s", item_id, user_id)
            await self.store.delete(likes_path(item_id), user_id)
            raise
        return True

    async def unlike(self, item_id: str, user_id: str) -> bool:
        """Remove a like. Returns False if there was nothing to remove."""
        existing = await self.store.get(likes_path(item_id), user_id)
        if existing is None:
            return False
        await self.store.delete(likes_path(item_id), user_id)
        try:
            await self.store.update(ACTIVITY_ITEMS, item_id, {"likeCount": Increment(-1)})
        except CraglineError:
            logger.warning("Like count update failed for %s, restoring like by %s", item_id, user_id)
            restored = {k: v for k, v in existing.items() if k != "id"}
            await self.store.set(likes_path(item_id), user_id, restored)
            raise
        return True

    async def get_liked_item_ids(self, user_id: str) -> set[str]:
        liked = set()
        for row in await self.store.query(Query(ACTIVITY_ITEMS)):
            if await self.store.get(likes_path(row["id"]), user_id) is not None:
                liked.add(row["id"])
        return liked

    async def adjust_comment_count(self, item_id: str, delta: int) -> None:
        await self.store.update(ACTIVITY_ITEMS, item_id, {"commentCount": Increment(delta)})

    async def set_featured(self, item_id: str, featured: bool) -> None:
        await self.store.update(ACTIVITY_ITEMS, item_id, {"isFeatured": featured})

    # --- visits ---

    async def join_visit(self, visit_id: str, user_id: str) -> list[str]:
        attendees = await self._attendees(visit_id)
        if user_id not in attendees:
            attendees.append(user_id)
            await self.store.update(ACTIVITY_ITEMS, visit_id, {"attendees": attendees})
        return attendees

    async def leave_visit(self, visit_id: str, user_id: str) -> list[str]:
        attendees = await self._attendees(visit_id)
        if user_id in attendees:
            attendees = [a for a in attendees if a != user_id]
            await self.store.update(ACTIVITY_ITEMS, visit_id, {"attendees": attendees})
        return attendees

    async def update_visit_status(self, visit_id: str, status: VisitStatus) -> None:
        await self._attendees(visit_id)
        await self.store.update(ACTIVITY_ITEMS, visit_id, {"status": str(status)})

    async def _attendees(self, visit_id: str) -> list[str]:
        data = await self.store.get(ACTIVITY_ITEMS, visit_id)
        if data is None:
            raise NotFoundError("Visit not found")
        if document_kind(data) is not ActivityKind.VISIT:
            raise ValidationError("Item is not a visit")
        return list(data.get("attendees") or [])

    # --- delete ---

    async def delete_item(self, item_id: str) -> None:
        """Delete an item with its likes and comments.

        Deleting a post (not a visit) decrements the author's post count.
        """
        data = await self.store.get(ACTIVITY_ITEMS, item_id)
        if data is None or "authorId" not in data:
            raise NotFoundError("Activity item not found")
        await self.store.delete(ACTIVITY_ITEMS, item_id)
        if document_kind(data) in POST_KINDS:
            await self.store.update(USERS, data["authorId"], {"postCount": Increment(-1)})
            self.users.forget(data["authorId"])
        for path in (likes_path(item_id), comments_path(item_id)):
            for row in await self.store.query(Query(path)):
                await self.store.delete(path, row["id"])
        logger.info("Deleted activity item %s", item_id)

    # --- helpers ---

    @staticmethod
    def _newest_first() -> Query:
        return Query(ACTIVITY_ITEMS).order("createdAt", descending=True)

    async def _fetch(self, query: Query) -> list[ActivityItem]:
        return await self.hydrate_all(await self.store.query(query))
