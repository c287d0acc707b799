"""User lookup and the follow graph."""

from __future__ import annotations

import logging

from pydantic import ValidationError as SchemaError

from cragline.errors import NotFoundError, ValidationError
from cragline.store import DocumentStore, Query
from cragline.users.schemas import RELATIONSHIPS, USERS, User, UserRelationship, relationship_id

logger = logging.getLogger(__name__)


class UserRepository:
    """Reads users with a per-instance cache."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._cache: dict[str, User] = {}

    async def create_user(self, user: User) -> User:
        await self.store.set(USERS, user.id, user.to_document())
        self._cache[user.id] = user
        return user

    async def get_user(self, user_id: str) -> User:
        if user_id in self._cache:
            return self._cache[user_id]
        data = await self.store.get(USERS, user_id)
        if data is None:
            raise NotFoundError("User not found")
        user = User.from_document(data)
        self._cache[user_id] = user
        return user

    async def get_users(self, user_ids: list[str]) -> list[User]:
        """Fetch users in order, skipping ids that cannot be resolved."""
        users = []
        for user_id in user_ids:
            try:
                users.append(await self.get_user(user_id))
            except NotFoundError:
                logger.warning("Skipping unknown user %s", user_id)
        return users

    async def get_users_map(self, user_ids: list[str]) -> dict[str, User]:
        return {user.id: user for user in await self.get_users(list(dict.fromkeys(user_ids)))}

    async def update_user(self, user: User) -> User:
        await self.store.update(USERS, user.id, user.to_document())
        self._cache[user.id] = user
        return user

    async def search_users(self, query: str) -> list[User]:
        results = []
        for data in await self.store.query(Query(USERS)):
            try:
                user = User.from_document(data)
            except SchemaError:
                logger.warning("Skipping malformed user document %s", data.get("id"))
                continue
            if user.matches(query):
                results.append(user)
        return results

    def forget(self, user_id: str) -> None:
        self._cache.pop(user_id, None)

    def clear_cache(self) -> None:
        self._cache.clear()


class RelationshipService:
    """Follow/unfollow with a cache of who each follower follows.

    Edges are keyed by ``{follower}_{following}`` so a pair can only ever
    have one document. Following yourself is rejected.
    """

    def __init__(self, store: DocumentStore, users: UserRepository) -> None:
        self.store = store
        self.users = users
        self._following: dict[str, set[str]] = {}

    async def follow(self, follower_id: str, following_id: str) -> UserRelationship:
        if follower_id == following_id:
            raise ValidationError("You cannot follow yourself")
        edge = UserRelationship.between(follower_id, following_id)
        existing = await self.store.get(RELATIONSHIPS, edge.id)
        if existing is not None:
            self._update_cache(follower_id, following_id, following=True)
            return UserRelationship.from_document(existing)
        await self.store.set(RELATIONSHIPS, edge.id, edge.to_document())
        self._update_cache(follower_id, following_id, following=True)
        logger.info("User %s followed %s", follower_id, following_id)
        return edge

    async def unfollow(self, follower_id: str, following_id: str) -> None:
        await self.store.delete(RELATIONSHIPS, relationship_id(follower_id, following_id))
        self._update_cache(follower_id, following_id, following=False)
        logger.info("User %s unfollowed %s", follower_id, following_id)

    async def is_following(self, follower_id: str, following_id: str) -> bool:
        return following_id in await self._following_set(follower_id)

    async def get_following_ids(self, user_id: str) -> list[str]:
        return sorted(await self._following_set(user_id))

    async def get_following(self, user_id: str) -> list[User]:
        return await self.users.get_users(await self.get_following_ids(user_id))

    async def get_followers(self, user_id: str) -> list[User]:
        rows = await self.store.query(Query(RELATIONSHIPS).where("followingId", "==", user_id))
        return await self.users.get_users([row["followerId"] for row in rows])

    async def follower_count(self, user_id: str) -> int:
        rows = await self.store.query(Query(RELATIONSHIPS).where("followingId", "==", user_id))
        return len(rows)

    def clear_cache(self) -> None:
        self._following.clear()

    async def _following_set(self, follower_id: str) -> set[str]:
        if follower_id not in self._following:
            rows = await self.store.query(Query(RELATIONSHIPS).where("followerId", "==", follower_id))
            self._following[follower_id] = {row["followingId"] for row in rows}
        return self._following[follower_id]

    def _update_cache(self, follower_id: str, following_id: str, *, following: bool) -> None:
        cached = self._following.get(follower_id)
        if cached is None:
            return
        if following:
            cached.add(following_id)
        else:
            cached.discard(following_id)
