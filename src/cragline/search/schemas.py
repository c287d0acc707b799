"""Search filters and the result union."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from cragline.activity.schemas import BetaPost, EventPost
from cragline.users.schemas import User


class SearchFilter(StrEnum):
    ALL = "all"
    USERS = "users"
    BETAS = "betas"
    EVENTS = "events"
    VISITS = "visits"

    @property
    def includes_users(self) -> bool:
        return self in (SearchFilter.ALL, SearchFilter.USERS)

    @property
    def includes_activities(self) -> bool:
        return self is not SearchFilter.USERS


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)


class UserResult(_Result):
    kind: Literal["user"] = "user"
    user: User

    @property
    def id(self) -> str:
        return f"user-{self.user.id}"


class BetaResult(_Result):
    kind: Literal["beta"] = "beta"
    beta: BetaPost

    @property
    def id(self) -> str:
        return f"beta-{self.beta.id}"


class EventResult(_Result):
    kind: Literal["event"] = "event"
    event: EventPost

    @property
    def id(self) -> str:
        return f"event-{self.event.id}"


SearchResult = Annotated[UserResult | BetaResult | EventResult, Field(discriminator="kind")]
