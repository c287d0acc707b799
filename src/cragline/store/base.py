"""Document-store boundary.

Every read and write in the client goes through a ``DocumentStore``. The
store speaks plain dicts keyed by the persisted (camelCase) field names;
schemas convert to and from models. Collections are slash paths, so
subcollections look like ``activityItems/<id>/likes``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

Document = dict[str, Any]
SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]

VALID_OPERATORS = {"==", "!=", "<", "<=", ">", ">=", "in", "array_contains"}


def collection_path(*parts: str) -> str:
    """Join collection/document segments into a store path."""
    return "/".join(p.strip("/") for p in parts)


@dataclass(frozen=True)
class Increment:
    """Server-side numeric increment sentinel for ``update``."""

    amount: int = 1


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in VALID_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class Query:
    """Immutable query description, built fluently."""

    collection: str
    filters: tuple[Filter, ...] = ()
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None
    start_after: str | None = None  # document id cursor

    def where(self, field_name: str, op: str, value: Any) -> Query:
        return replace(self, filters=(*self.filters, Filter(field_name, op, value)))

    def order(self, field_name: str, *, descending: bool = False) -> Query:
        return replace(self, order_by=field_name, descending=descending)

    def take(self, count: int) -> Query:
        return replace(self, limit=count)

    def after(self, doc_id: str | None) -> Query:
        return replace(self, start_after=doc_id)


@dataclass
class Subscription:
    """Handle for a realtime listener. Call ``unsubscribe`` on teardown."""

    _cancel: Callable[[], None]
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._cancel()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class DocumentStore(Protocol):
    """CRUD plus realtime snapshots over a remote document database.

    Writes are visible to subsequent reads from the same client. There is no
    cross-document transaction: two ``update`` calls are two writes.
    """

    async def get(self, collection: str, doc_id: str) -> Document | None: ...

    async def set(self, collection: str, doc_id: str, data: Document, *, merge: bool = False) -> None: ...

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        """Patch fields. Dotted keys address nested map entries. Raises NotFoundError."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def query(self, query: Query) -> list[Document]: ...

    async def batch_update(self, writes: Sequence[tuple[str, str, Document]]) -> None:
        """Apply several ``update`` writes as one batch."""
        ...

    def subscribe(
        self,
        query: Query,
        on_update: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Deliver the full result set now and after every change."""
        ...
