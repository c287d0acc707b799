"""Home feed composition.

Curated (featured) items are preferred; when none of a kind are featured the
whole pool is used instead, capped, so the home feed is never empty just
because nothing was flagged.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from pydantic import Field

from cragline.activity.engagement import Engagement, EngagementState, EngagingViewModel
from cragline.activity.repository import ActivityRepository
from cragline.activity.schemas import ActivityBase, ActivityKind, BetaPost, EventPost, GymWithVisits
from cragline.config import get_settings
from cragline.errors import CraglineError
from cragline.schemas import utcnow
from cragline.session import Session


def upcoming_events(items: Sequence[ActivityBase], now: datetime) -> list[EventPost]:
    """Events dated after ``now``, soonest first."""
    events = [item for item in items if isinstance(item, EventPost) and item.event_date > now]
    return sorted(events, key=lambda e: e.event_date)


def recent_betas(items: Sequence[ActivityBase]) -> list[BetaPost]:
    """Beta posts, newest first."""
    betas = [item for item in items if isinstance(item, BetaPost)]
    return sorted(betas, key=lambda b: b.created_at, reverse=True)


def compose_featured(
    featured: Sequence[ActivityBase],
    pool: Sequence[ActivityBase],
    now: datetime,
    limit: int = 10,
) -> tuple[list[EventPost], list[BetaPost]]:
    """Pick home-feed events and betas, falling back to ``pool`` per kind."""
    events = upcoming_events(featured, now) or upcoming_events(pool, now)[:limit]
    betas = recent_betas(featured) or recent_betas(pool)[:limit]
    return events, betas


class HomeState(EngagementState):
    events: list[EventPost] = Field(default_factory=list)
    beta_posts: list[BetaPost] = Field(default_factory=list)
    friend_visits_today: list[GymWithVisits] = Field(default_factory=list)
    is_loading_events: bool = False
    is_loading_betas: bool = False
    selected_item_for_comments: ActivityBase | None = None
    showing_comments: bool = False

    @property
    def friend_visit_count(self) -> int:
        return sum(len(gym.visitors) for gym in self.friend_visits_today)


class HomeViewModel(EngagingViewModel[HomeState]):
    item_fields = ("events", "beta_posts")

    def __init__(
        self,
        repository: ActivityRepository,
        session: Session,
        engagement: Engagement | None = None,
        fallback_limit: int | None = None,
    ) -> None:
        super().__init__(HomeState(), engagement or Engagement(repository, session))
        self.repository = repository
        self.session = session
        self.fallback_limit = fallback_limit or get_settings().featured_fallback_limit

    async def load_featured_content(self, now: datetime | None = None) -> None:
        now = now or utcnow()
        self._set(is_loading_events=True, is_loading_betas=True)
        try:
            featured_events = upcoming_events(await self.repository.fetch_featured(ActivityKind.EVENT), now)
            featured_betas = recent_betas(await self.repository.fetch_featured(ActivityKind.BETA))
            pool: list = []
            if not featured_events or not featured_betas:
                pool = await self.repository.fetch_all()
            events, betas = compose_featured(
                [*featured_events, *featured_betas], pool, now, self.fallback_limit
            )
        except CraglineError as exc:
            self._fail(exc, is_loading_events=False, is_loading_betas=False)
            return
        self._set(events=events, beta_posts=betas, is_loading_events=False, is_loading_betas=False)

    async def load_friend_visits(self, now: datetime | None = None) -> None:
        if not self.session.is_authenticated:
            self._set(friend_visits_today=[])
            return
        try:
            visits = await self.repository.fetch_friends_visits_today(self.session.require_user(), now)
        except CraglineError as exc:
            self._fail(exc)
            return
        self._set(friend_visits_today=visits)

    def show_comments_for_item(self, item: ActivityBase) -> None:
        self._set(selected_item_for_comments=item, showing_comments=True)

    def dismiss_comments(self) -> None:
        self._set(selected_item_for_comments=None, showing_comments=False)
