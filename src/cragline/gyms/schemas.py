"""Gym directory documents."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field, computed_field, field_validator

from cragline.schemas import StoreModel, utcnow

GYMS = "gyms"
ADMINISTRATORS = "gymAdministrators"
FAVORITES = "userFavorites"


class ClimbingType(StrEnum):
    BOULDERING = "bouldering"
    LEAD = "lead"
    TOP_ROPE = "topRope"


class AdminRole(StrEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"

    @property
    def rank(self) -> int:
        return {AdminRole.OWNER: 0, AdminRole.ADMIN: 1, AdminRole.MANAGER: 2}[self]

    @property
    def can_delete_content(self) -> bool:
        return self in (AdminRole.OWNER, AdminRole.ADMIN)


class Gym(StoreModel):
    id: str
    email: str
    name: str
    description: str | None = None
    location: str
    climbing_types: list[ClimbingType] = Field(default_factory=list, alias="climbingType")
    amenities: list[str] = Field(default_factory=list)
    events: list[str] = Field(default_factory=list)
    image_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("image_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, v: str | None) -> str | None:
        return v or None


class GymAdministrator(StoreModel):
    id: str
    user_id: str
    gym_id: str
    role: AdminRole
    added_at: datetime = Field(default_factory=utcnow)
    added_by: str


def favorite_id(user_id: str, gym_id: str) -> str:
    return f"{user_id}_{gym_id}"


class GymFavorite(StoreModel):
    """Join entity. Favoriting the same pair twice yields the same id."""

    user_id: str
    gym_id: str
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        return favorite_id(self.user_id, self.gym_id)
