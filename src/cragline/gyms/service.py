"""Gym directory, favorites and administrator permissions."""

from __future__ import annotations

import logging
import uuid

from cragline.activity.schemas import ActivityItem, item_gym
from cragline.errors import NotFoundError, PermissionDeniedError, ValidationError
from cragline.gyms.schemas import (
    ADMINISTRATORS,
    FAVORITES,
    GYMS,
    AdminRole,
    Gym,
    GymAdministrator,
    GymFavorite,
    favorite_id,
)
from cragline.store import DocumentStore, Query
from cragline.users.schemas import User

logger = logging.getLogger(__name__)


class GymService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._cache: dict[str, Gym] = {}

    async def fetch_gyms(self) -> list[Gym]:
        rows = await self.store.query(Query(GYMS).order("name"))
        gyms = [Gym.from_document(row) for row in rows]
        self._cache.update({gym.id: gym for gym in gyms})
        return gyms

    async def create_gym(self, gym: Gym) -> Gym:
        await self.store.set(GYMS, gym.id, gym.to_document())
        self._cache[gym.id] = gym
        logger.info("Created gym %s", gym.id)
        return gym

    async def update_gym(self, gym: Gym) -> Gym:
        await self.store.update(GYMS, gym.id, gym.to_document())
        self._cache[gym.id] = gym
        return gym

    async def delete_gym(self, gym_id: str) -> None:
        await self.store.delete(GYMS, gym_id)
        self._cache.pop(gym_id, None)

    async def get_gym(self, gym_id: str) -> Gym | None:
        if gym_id in self._cache:
            return self._cache[gym_id]
        data = await self.store.get(GYMS, gym_id)
        if data is None:
            return None
        gym = Gym.from_document(data)
        self._cache[gym_id] = gym
        return gym

    async def get_gyms_map(self, gym_ids: list[str]) -> dict[str, Gym]:
        gyms: dict[str, Gym] = {}
        for gym_id in dict.fromkeys(gym_ids):
            gym = await self.get_gym(gym_id)
            if gym is not None:
                gyms[gym_id] = gym
        return gyms

    # --- favorites ---

    async def add_favorite(self, user_id: str, gym_id: str) -> GymFavorite:
        favorite = GymFavorite(user_id=user_id, gym_id=gym_id)
        await self.store.set(FAVORITES, favorite.id, favorite.to_document())
        return favorite

    async def remove_favorite(self, user_id: str, gym_id: str) -> None:
        await self.store.delete(FAVORITES, favorite_id(user_id, gym_id))

    async def is_favorite(self, user_id: str, gym_id: str) -> bool:
        return await self.store.get(FAVORITES, favorite_id(user_id, gym_id)) is not None

    async def get_favorite_gyms(self, user_id: str) -> list[Gym]:
        rows = await self.store.query(Query(FAVORITES).where("userId", "==", user_id))
        gyms = await self.get_gyms_map([row["gymId"] for row in rows])
        return list(gyms.values())


class PermissionsService:
    """Who may manage a gym and edit or delete a given activity item.

    Authors may always edit and delete their own items. Any administrator of
    the item's gym may edit it; only owners and admins may delete it.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get_administrators(self, gym_id: str) -> list[GymAdministrator]:
        rows = await self.store.query(Query(ADMINISTRATORS).where("gymId", "==", gym_id))
        admins = [GymAdministrator.from_document(row) for row in rows]
        return sorted(admins, key=lambda a: (a.role.rank, -a.added_at.timestamp()))

    async def get_admin_role(self, user_id: str, gym_id: str) -> AdminRole | None:
        rows = await self.store.query(
            Query(ADMINISTRATORS).where("userId", "==", user_id).where("gymId", "==", gym_id).take(1)
        )
        if not rows:
            return None
        return GymAdministrator.from_document(rows[0]).role

    async def can_manage_gym(self, user_id: str, gym_id: str) -> bool:
        return await self.get_admin_role(user_id, gym_id) is not None

    async def add_administrator(
        self, user_id: str, gym_id: str, role: AdminRole, added_by: str
    ) -> GymAdministrator:
        if await self.can_manage_gym(user_id, gym_id):
            raise ValidationError("This user is already an administrator")
        admin = GymAdministrator(
            id=str(uuid.uuid4()),
            user_id=user_id,
            gym_id=gym_id,
            role=role,
            added_by=added_by,
        )
        await self.store.set(ADMINISTRATORS, admin.id, admin.to_document())
        logger.info("Added %s as %s of gym %s", user_id, role, gym_id)
        return admin

    async def remove_administrator(self, admin_id: str) -> None:
        data = await self.store.get(ADMINISTRATORS, admin_id)
        if data is None:
            raise NotFoundError("Administrator not found")
        if GymAdministrator.from_document(data).role is AdminRole.OWNER:
            raise PermissionDeniedError("Cannot remove the owner")
        await self.store.delete(ADMINISTRATORS, admin_id)

    async def can_edit_content(self, user: User, item: ActivityItem) -> bool:
        if item.author.id == user.id:
            return True
        gym = item_gym(item)
        if gym is None:
            return False
        return await self.can_manage_gym(user.id, gym.id)

    async def can_delete_content(self, user: User, item: ActivityItem) -> bool:
        if item.author.id == user.id:
            return True
        gym = item_gym(item)
        if gym is None:
            return False
        role = await self.get_admin_role(user.id, gym.id)
        return role is not None and role.can_delete_content
