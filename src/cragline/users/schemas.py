"""User and follow-edge documents."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from cragline.schemas import StoreModel, utcnow

USERS = "users"
RELATIONSHIPS = "userRelationships"


class User(StoreModel):
    id: str
    email: str
    first_name: str
    last_name: str
    bio: str | None = None
    post_count: int = 0
    logged_hours: int = Field(0, ge=0)
    image_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("post_count")
    @classmethod
    def clamp_post_count(cls, v: int) -> int:
        return max(0, v)

    @field_validator("image_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, v: str | None) -> str | None:
        return v or None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def initial(self) -> str:
        return self.first_name[:1].upper() or "?"

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name and bio."""
        needle = query.lower()
        return (
            needle in self.first_name.lower()
            or needle in self.last_name.lower()
            or (self.bio is not None and needle in self.bio.lower())
        )


def relationship_id(follower_id: str, following_id: str) -> str:
    return f"{follower_id}_{following_id}"


class UserRelationship(StoreModel):
    """Directed follow edge. The id is derived from the ordered pair."""

    id: str
    follower_id: str
    following_id: str
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def between(cls, follower_id: str, following_id: str) -> UserRelationship:
        return cls(
            id=relationship_id(follower_id, following_id),
            follower_id=follower_id,
            following_id=following_id,
        )
