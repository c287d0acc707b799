"""Profile screen: a user's items, stats and follow state."""

from __future__ import annotations

from pydantic import Field

from cragline.activity.engagement import Engagement, EngagementState, EngagingViewModel
from cragline.activity.repository import ActivityRepository
from cragline.activity.schemas import ActivityItem, BetaPost
from cragline.errors import CraglineError, NotFoundError, ValidationError
from cragline.session import Session
from cragline.users.schemas import User


class ProfileState(EngagementState):
    displayed_user: User | None = None
    is_current_user_profile: bool = True
    user_posts: list[ActivityItem] = Field(default_factory=list)
    post_count: int = 0
    beta_count: int = 0
    logged_hours: int = 0
    follower_count: int = 0
    following_count: int = 0
    is_following: bool = False
    is_follow_processing: bool = False
    is_editing_profile: bool = False
    edited_first_name: str = ""
    edited_last_name: str = ""
    edited_bio: str = ""

    @property
    def display_name(self) -> str:
        return self.displayed_user.full_name if self.displayed_user else ""


class ProfileViewModel(EngagingViewModel[ProfileState]):
    item_fields = ("user_posts",)

    def __init__(
        self,
        repository: ActivityRepository,
        session: Session,
        engagement: Engagement | None = None,
    ) -> None:
        super().__init__(ProfileState(), engagement or Engagement(repository, session))
        self.repository = repository
        self.session = session

    @property
    def users(self):
        return self.repository.users

    @property
    def relationships(self):
        return self.repository.relationships

    async def load_user_data(self, user_id: str | None = None) -> None:
        """Load a profile. Without ``user_id`` the session user's own profile is shown."""
        target = user_id or self.session.user_id
        if target is None:
            self._fail(NotFoundError("No user available"))
            return
        self._set(
            is_loading=True,
            error_message=None,
            has_error=False,
            is_current_user_profile=target == self.session.user_id,
        )
        try:
            self.users.forget(target)
            user = await self.users.get_user(target)
            posts = await self.repository.fetch_user_items(target)
            followers = await self.relationships.follower_count(target)
            following = len(await self.relationships.get_following_ids(target))
            is_following = False
            if self.session.user_id and target != self.session.user_id:
                is_following = await self.relationships.is_following(self.session.user_id, target)
            liked = await self.engagement.load() if self.session.is_authenticated else frozenset()
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(
            displayed_user=user,
            user_posts=posts,
            post_count=user.post_count,
            logged_hours=user.logged_hours,
            beta_count=sum(isinstance(p, BetaPost) for p in posts),
            follower_count=followers,
            following_count=following,
            is_following=is_following,
            liked_item_ids=liked,
            is_loading=False,
        )

    async def toggle_follow(self) -> None:
        user = self.state.displayed_user
        if user is None or self.state.is_current_user_profile or self.state.is_follow_processing:
            return
        self._set(is_follow_processing=True)
        try:
            me = self.session.require_user()
            if self.state.is_following:
                await self.relationships.unfollow(me, user.id)
            else:
                await self.relationships.follow(me, user.id)
            follower_count = await self.relationships.follower_count(user.id)
        except CraglineError as exc:
            self._fail(exc, is_follow_processing=False)
            return
        self._set(
            is_following=not self.state.is_following,
            follower_count=follower_count,
            is_follow_processing=False,
        )

    def start_editing(self) -> None:
        user = self.state.displayed_user
        if user is None or not self.state.is_current_user_profile:
            return
        self._set(
            is_editing_profile=True,
            edited_first_name=user.first_name,
            edited_last_name=user.last_name,
            edited_bio=user.bio or "",
        )

    def cancel_editing(self) -> None:
        self._set(is_editing_profile=False)

    def set_edited_fields(self, first_name: str | None = None, last_name: str | None = None, bio: str | None = None) -> None:
        changes = {
            "edited_first_name": first_name,
            "edited_last_name": last_name,
            "edited_bio": bio,
        }
        self._set(**{k: v for k, v in changes.items() if v is not None})

    async def save_profile(self) -> None:
        user = self.state.displayed_user
        if user is None or not self.state.is_editing_profile:
            return
        first, last = self.state.edited_first_name.strip(), self.state.edited_last_name.strip()
        try:
            if not first or not last:
                raise ValidationError("First and last name are required")
            updated = user.model_copy(
                update={"first_name": first, "last_name": last, "bio": self.state.edited_bio.strip() or None}
            )
            await self.users.update_user(updated)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(displayed_user=updated, is_editing_profile=False)
