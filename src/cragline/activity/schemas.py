"""Activity feed documents.

Items form a closed family keyed by the persisted ``type`` field. Documents
store ``authorId``/``gymId`` references; ``hydrate`` joins the referenced
user and gym back in on read.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from pydantic import Field, TypeAdapter, field_validator
from pydantic import ValidationError as SchemaError

from cragline.gyms.schemas import Gym
from cragline.schemas import StoreModel, utcnow
from cragline.users.schemas import User

logger = logging.getLogger(__name__)

ACTIVITY_ITEMS = "activityItems"


def likes_path(item_id: str) -> str:
    return f"{ACTIVITY_ITEMS}/{item_id}/likes"


def comments_path(item_id: str) -> str:
    return f"{ACTIVITY_ITEMS}/{item_id}/comments"


class ActivityKind(StrEnum):
    BASIC = "basic"
    BETA = "beta"
    EVENT = "event"
    VISIT = "visit"
    UNKNOWN = "unknown"


class MediaType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    NONE = "none"


class VisitStatus(StrEnum):
    PLANNED = "planned"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Media(StoreModel):
    id: str
    url: str
    type: MediaType = MediaType.IMAGE
    thumbnail_url: str | None = Field(None, alias="thumbnailURL")
    uploaded_at: datetime = Field(default_factory=utcnow)
    owner_id: str


class ActivityBase(StoreModel):
    id: str
    author: User
    created_at: datetime = Field(default_factory=utcnow)
    like_count: int = 0
    comment_count: int = 0
    is_featured: bool = False

    @field_validator("like_count", "comment_count")
    @classmethod
    def clamp_counter(cls, v: int) -> int:
        return max(0, v)

    def with_like_delta(self, delta: int) -> Self:
        return self.model_copy(update={"like_count": max(0, self.like_count + delta)})

    def with_comment_delta(self, delta: int) -> Self:
        return self.model_copy(update={"comment_count": max(0, self.comment_count + delta)})

    def to_document(self, **kwargs: Any) -> dict[str, Any]:
        data = super().to_document(exclude={"author", "gym"}, **kwargs)
        data["authorId"] = self.author.id
        gym = getattr(self, "gym", None)
        if gym is not None:
            data["gymId"] = gym.id
        return data


class BasicPost(ActivityBase):
    kind: Literal["basic"] = Field("basic", alias="type")
    content: str
    media_items: list[Media] | None = None


class BetaPost(ActivityBase):
    kind: Literal["beta"] = Field("beta", alias="type")
    content: str
    media_items: list[Media] | None = None
    gym: Gym
    view_count: int = Field(0, ge=0)


class EventPost(ActivityBase):
    kind: Literal["event"] = Field("event", alias="type")
    title: str
    description: str | None = None
    media_items: list[Media] | None = None
    event_date: datetime
    location: str
    max_attendees: int = Field(0, ge=0)
    registered: int = Field(0, ge=0)
    gym: Gym | None = None


class GroupVisit(ActivityBase):
    kind: Literal["visit"] = Field("visit", alias="type")
    gym: Gym
    visit_date: datetime
    duration: float = Field(0, ge=0)  # seconds
    description: str | None = None
    attendees: list[str] = Field(default_factory=list)
    status: VisitStatus = VisitStatus.PLANNED

    def has_attendee(self, user_id: str) -> bool:
        return user_id in self.attendees

    def with_attendee(self, user_id: str) -> GroupVisit:
        if self.has_attendee(user_id):
            return self
        return self.model_copy(update={"attendees": [*self.attendees, user_id]})

    def without_attendee(self, user_id: str) -> GroupVisit:
        return self.model_copy(update={"attendees": [a for a in self.attendees if a != user_id]})


ActivityItem = Annotated[
    BasicPost | BetaPost | EventPost | GroupVisit,
    Field(discriminator="kind"),
]

_item_adapter: TypeAdapter[ActivityItem] = TypeAdapter(ActivityItem)

# Variants whose creation counts towards the author's post count.
POST_KINDS = frozenset({ActivityKind.BASIC, ActivityKind.BETA, ActivityKind.EVENT})


def activity_kind(item: Any) -> ActivityKind:
    match item:
        case BasicPost():
            return ActivityKind.BASIC
        case BetaPost():
            return ActivityKind.BETA
        case EventPost():
            return ActivityKind.EVENT
        case GroupVisit():
            return ActivityKind.VISIT
        case _:
            return ActivityKind.UNKNOWN


def document_kind(data: dict[str, Any]) -> ActivityKind:
    try:
        return ActivityKind(data.get("type"))
    except ValueError:
        return ActivityKind.UNKNOWN


def item_gym(item: ActivityItem) -> Gym | None:
    match item:
        case BetaPost(gym=gym) | EventPost(gym=gym) | GroupVisit(gym=gym):
            return gym
        case _:
            return None


def hydrate(data: dict[str, Any], author: User, gym: Gym | None = None) -> ActivityItem | None:
    """Build an item from its document plus the referenced author and gym.

    Unknown types and malformed documents are skipped (``None``).
    """
    if document_kind(data) is ActivityKind.UNKNOWN:
        logger.debug("Skipping activity %s with unknown type %r", data.get("id"), data.get("type"))
        return None
    payload = {k: v for k, v in data.items() if k not in ("authorId", "gymId")}
    payload["author"] = author
    if gym is not None:
        payload["gym"] = gym
    try:
        return _item_adapter.validate_python(payload)
    except SchemaError as exc:
        logger.warning("Skipping malformed activity %s: %s", data.get("id"), exc.error_count())
        return None


class Comment(StoreModel):
    id: str
    author: User
    content: str
    timestamp: datetime = Field(default_factory=utcnow, alias="timeStamp")

    def to_document(self, **kwargs: Any) -> dict[str, Any]:
        data = super().to_document(exclude={"author"}, **kwargs)
        data["authorId"] = self.author.id
        return data


class VisitorInfo(StoreModel):
    user: User
    visit_date: datetime


class GymWithVisits(StoreModel):
    gym: Gym
    visitors: list[VisitorInfo]
