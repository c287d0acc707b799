"""Gym screens: profile, administrators and creation."""

from __future__ import annotations

import uuid

import structlog
from pydantic import BaseModel, ConfigDict, Field

from cragline.activity.engagement import Engagement, EngagementState, EngagingViewModel
from cragline.activity.repository import ActivityRepository
from cragline.activity.schemas import ActivityItem
from cragline.activity.viewmodel import ActivityFilter, with_attendance
from cragline.errors import CraglineError, NotFoundError, PermissionDeniedError, ValidationError
from cragline.gyms.schemas import AdminRole, ClimbingType, Gym, GymAdministrator
from cragline.gyms.service import GymService, PermissionsService
from cragline.session import Session
from cragline.users.schemas import User
from cragline.users.service import UserRepository
from cragline.viewmodel import ViewModel, ViewState

logger = structlog.get_logger()


class GymProfileState(EngagementState):
    gym: Gym | None = None
    activities: list[ActivityItem] = Field(default_factory=list)
    selected_filter: ActivityFilter = ActivityFilter.ALL
    is_loading_activities: bool = False
    is_favorite: bool = False
    administrator_role: AdminRole | None = None
    is_deleted: bool = False

    @property
    def is_administrator(self) -> bool:
        return self.administrator_role is not None

    @property
    def filtered_activities(self) -> list[ActivityItem]:
        return [item for item in self.activities if self.selected_filter.matches(item)]


class GymProfileViewModel(EngagingViewModel[GymProfileState]):
    item_fields = ("activities",)

    def __init__(
        self,
        gym_id: str,
        repository: ActivityRepository,
        permissions: PermissionsService,
        session: Session,
        engagement: Engagement | None = None,
    ) -> None:
        super().__init__(GymProfileState(), engagement or Engagement(repository, session))
        self.gym_id = gym_id
        self.repository = repository
        self.permissions = permissions
        self.session = session

    @property
    def gyms(self) -> GymService:
        return self.repository.gyms

    async def load_initial_data(self) -> None:
        self._set(is_loading=True, is_loading_activities=True, error_message=None, has_error=False)
        try:
            gym = await self.gyms.get_gym(self.gym_id)
            if gym is None:
                raise NotFoundError("Gym not found")
            activities = await self.repository.fetch_gym_items(self.gym_id)
            role, favorite, liked = None, False, frozenset()
            if self.session.user_id:
                role = await self.permissions.get_admin_role(self.session.user_id, self.gym_id)
                favorite = await self.gyms.is_favorite(self.session.user_id, self.gym_id)
                liked = await self.engagement.load()
        except CraglineError as exc:
            self._fail(exc, is_loading_activities=False)
            return
        self._set(
            gym=gym,
            activities=activities,
            administrator_role=role,
            is_favorite=favorite,
            liked_item_ids=liked,
            is_loading=False,
            is_loading_activities=False,
        )

    def filter_activities(self, selected: ActivityFilter) -> None:
        self._set(selected_filter=selected)

    async def toggle_favorite(self) -> None:
        try:
            user_id = self.session.require_user()
            if self.state.is_favorite:
                await self.gyms.remove_favorite(user_id, self.gym_id)
            else:
                await self.gyms.add_favorite(user_id, self.gym_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(is_favorite=not self.state.is_favorite)

    async def join_visit(self, visit_id: str) -> None:
        await self._attend(visit_id, joining=True)

    async def leave_visit(self, visit_id: str) -> None:
        await self._attend(visit_id, joining=False)

    async def delete_item(self, item_id: str) -> None:
        item = next((i for i in self.state.activities if i.id == item_id), None)
        try:
            if item is None:
                raise NotFoundError("Activity item not found")
            user = await self._current_user()
            if not await self.permissions.can_delete_content(user, item):
                raise PermissionDeniedError()
            await self.repository.delete_item(item_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(activities=[i for i in self.state.activities if i.id != item_id])

    async def update_gym(self, updated: Gym) -> None:
        try:
            self._require_role(AdminRole.OWNER, AdminRole.ADMIN)
            await self.gyms.update_gym(updated)
        except CraglineError as exc:
            self._fail(exc, prefix="Failed to update gym")
            return
        self._set(gym=updated)

    async def delete_gym(self) -> None:
        try:
            self._require_role(AdminRole.OWNER)
            await self.gyms.delete_gym(self.gym_id)
        except CraglineError as exc:
            self._fail(exc, prefix="Failed to delete gym")
            return
        logger.info("gym_deleted", gym_id=self.gym_id)
        self._set(gym=None, activities=[], is_deleted=True)

    def _require_role(self, *roles: AdminRole) -> None:
        if self.state.administrator_role not in roles:
            raise PermissionDeniedError()

    async def _current_user(self) -> User:
        return await self.repository.users.get_user(self.session.require_user())

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
        self._set(activities=with_attendance(self.state.activities, visit_id, user_id, joining))


class AdministratorRow(BaseModel):
    """An administrator joined with their user record (if it still exists)."""

    model_config = ConfigDict(frozen=True)

    admin: GymAdministrator
    user: User | None = None

    @property
    def id(self) -> str:
        return self.admin.id

    @property
    def role(self) -> AdminRole:
        return self.admin.role


class GymAdminsState(ViewState):
    administrators: list[AdministratorRow] = Field(default_factory=list)
    current_user_role: AdminRole | None = None
    search_text: str = ""
    search_results: list[User] = Field(default_factory=list)
    is_searching: bool = False


class GymAdminsViewModel(ViewModel[GymAdminsState]):
    min_search_length = 3

    def __init__(
        self,
        gym_id: str,
        permissions: PermissionsService,
        users: UserRepository,
        session: Session,
    ) -> None:
        super().__init__(GymAdminsState())
        self.gym_id = gym_id
        self.permissions = permissions
        self.users = users
        self.session = session

    async def load_admins(self) -> None:
        self._set(is_loading=True)
        try:
            admins = await self.permissions.get_administrators(self.gym_id)
            people = await self.users.get_users_map([a.user_id for a in admins])
        except CraglineError as exc:
            self._fail(exc, prefix="Error loading administrators")
            return
        mine = next((a.role for a in admins if a.user_id == self.session.user_id), None)
        rows = [AdministratorRow(admin=a, user=people.get(a.user_id)) for a in admins]
        self._set(administrators=rows, current_user_role=mine, is_loading=False)

    async def add_admin(self, user_id: str, role: AdminRole) -> None:
        self._set(is_loading=True)
        try:
            added_by = self.session.require_user()
            admin = await self.permissions.add_administrator(user_id, self.gym_id, role, added_by)
            user = await self.users.get_user(user_id)
        except CraglineError as exc:
            self._fail(exc, prefix="Error adding administrator")
            return
        rows = [*self.state.administrators, AdministratorRow(admin=admin, user=user)]
        rows.sort(key=lambda r: (r.role.rank, -r.admin.added_at.timestamp()))
        self._set(administrators=rows, is_loading=False)

    async def remove_admin(self, admin_id: str) -> None:
        row = next((r for r in self.state.administrators if r.id == admin_id), None)
        if row is not None and row.role is AdminRole.OWNER:
            self._set(error_message="Cannot remove the owner", has_error=True)
            return
        self._set(is_loading=True)
        try:
            await self.permissions.remove_administrator(admin_id)
        except CraglineError as exc:
            self._fail(exc, prefix="Error removing administrator")
            return
        self._set(
            administrators=[r for r in self.state.administrators if r.id != admin_id],
            is_loading=False,
        )

    async def search_users(self, text: str) -> None:
        self._set(search_text=text)
        if len(text.strip()) < self.min_search_length:
            self._set(search_results=[])
            return
        self._set(is_searching=True)
        try:
            results = await self.users.search_users(text.strip())
        except CraglineError as exc:
            self._fail(exc, prefix="Error searching users", is_searching=False)
            return
        self._set(search_results=results, is_searching=False)


class CreateGymState(ViewState):
    created_gym: Gym | None = None


class CreateGymViewModel(ViewModel[CreateGymState]):
    """Creates a gym and records the session user as its owner."""

    def __init__(self, gyms: GymService, permissions: PermissionsService, session: Session) -> None:
        super().__init__(CreateGymState())
        self.gyms = gyms
        self.permissions = permissions
        self.session = session

    async def create_gym(
        self,
        name: str,
        email: str,
        location: str,
        climbing_types: list[ClimbingType],
        amenities: list[str] | None = None,
        description: str | None = None,
    ) -> None:
        self._set(is_loading=True, error_message=None, has_error=False)
        try:
            owner_id = self.session.require_user()
            if not name.strip() or not email.strip() or not location.strip():
                raise ValidationError("Name, email and location are required")
            if not climbing_types:
                raise ValidationError("Select at least one climbing type")
            gym = Gym(
                id=str(uuid.uuid4()),
                name=name.strip(),
                email=email.strip(),
                location=location.strip(),
                description=(description or "").strip() or None,
                climbing_types=climbing_types,
                amenities=sorted(set(amenities or [])),
            )
            await self.gyms.create_gym(gym)
            await self.permissions.add_administrator(owner_id, gym.id, AdminRole.OWNER, owner_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(created_gym=gym, is_loading=False)
