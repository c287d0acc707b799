"""Shared pydantic base for persisted documents."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


class StoreModel(BaseModel):
    """Entity persisted as a camelCase document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_document(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(by_alias=True, **kwargs)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Self:
        return cls.model_validate(data)
