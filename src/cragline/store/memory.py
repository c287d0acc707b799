"""In-process document store.

Used for tests, previews and offline development. Behaves like the remote
store from the caller's side: dict-in/dict-out, full-snapshot listeners,
``Increment`` sentinels and dotted map paths.
"""

from __future__ import annotations

import copy
import itertools
from collections import defaultdict
from collections.abc import Sequence
from typing import Any

import structlog

from cragline.errors import NotFoundError
from cragline.store.base import (
    Document,
    ErrorCallback,
    Filter,
    Increment,
    Query,
    SnapshotCallback,
    Subscription,
)

logger = structlog.get_logger()


def _matches(doc: Document, flt: Filter) -> bool:
    value = _read_path(doc, flt.field)
    match flt.op:
        case "==":
            return value == flt.value
        case "!=":
            return value != flt.value
        case "in":
            return value in flt.value
        case "array_contains":
            return isinstance(value, list) and flt.value in value
    if value is None:
        return False
    match flt.op:
        case "<":
            return value < flt.value
        case "<=":
            return value <= flt.value
        case ">":
            return value > flt.value
        case ">=":
            return value >= flt.value
    return False


def _read_path(doc: Document, path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _apply(doc: Document, path: str, value: Any) -> None:
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    leaf = parts[-1]
    if isinstance(value, Increment):
        current = target.get(leaf) or 0
        target[leaf] = current + value.amount
    else:
        target[leaf] = copy.deepcopy(value)


class MemoryDocumentStore:
    """Dict-backed ``DocumentStore`` with synchronous snapshot delivery."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = defaultdict(dict)
        self._listeners: dict[int, tuple[Query, SnapshotCallback, ErrorCallback | None]] = {}
        self._ids = itertools.count(1)

    # --- reads ---

    async def get(self, collection: str, doc_id: str) -> Document | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            return None
        return {"id": doc_id, **copy.deepcopy(doc)}

    async def query(self, query: Query) -> list[Document]:
        return self._run(query)

    # --- writes ---

    async def set(self, collection: str, doc_id: str, data: Document, *, merge: bool = False) -> None:
        docs = self._collections[collection]
        if merge and doc_id in docs:
            for key, value in data.items():
                _apply(docs[doc_id], key, value)
        else:
            fresh: Document = {}
            for key, value in data.items():
                _apply(fresh, key, value)
            docs[doc_id] = fresh
        self._notify({collection})

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        self._update(collection, doc_id, changes)
        self._notify({collection})

    async def delete(self, collection: str, doc_id: str) -> None:
        if self._collections.get(collection, {}).pop(doc_id, None) is not None:
            self._notify({collection})

    async def batch_update(self, writes: Sequence[tuple[str, str, Document]]) -> None:
        for collection, doc_id, _ in writes:
            if doc_id not in self._collections.get(collection, {}):
                raise NotFoundError(f"No document {collection}/{doc_id}")
        for collection, doc_id, changes in writes:
            self._update(collection, doc_id, changes)
        self._notify({collection for collection, _, _ in writes})

    # --- realtime ---

    def subscribe(
        self,
        query: Query,
        on_update: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        listener_id = next(self._ids)
        self._listeners[listener_id] = (query, on_update, on_error)
        logger.debug("store_listener_added", collection=query.collection, listener=listener_id)
        self._deliver(listener_id)
        return Subscription(lambda: self._listeners.pop(listener_id, None))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # --- internals ---

    def _update(self, collection: str, doc_id: str, changes: Document) -> None:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            raise NotFoundError(f"No document {collection}/{doc_id}")
        for key, value in changes.items():
            _apply(doc, key, value)

    def _run(self, query: Query) -> list[Document]:
        rows = [
            {"id": doc_id, **doc}
            for doc_id, doc in self._collections.get(query.collection, {}).items()
            if all(_matches(doc, flt) for flt in query.filters)
        ]
        if query.order_by:
            key = query.order_by
            present = [d for d in rows if _read_path(d, key) is not None]
            missing = [d for d in rows if _read_path(d, key) is None]
            present.sort(key=lambda d: _read_path(d, key), reverse=query.descending)
            rows = present + missing
        if query.start_after is not None:
            ids = [d.get("id") for d in rows]
            if query.start_after in ids:
                rows = rows[ids.index(query.start_after) + 1 :]
        if query.limit is not None:
            rows = rows[: query.limit]
        return copy.deepcopy(rows)

    def _notify(self, collections: set[str]) -> None:
        for listener_id, (query, _, _) in list(self._listeners.items()):
            if query.collection in collections:
                self._deliver(listener_id)

    def _deliver(self, listener_id: int) -> None:
        entry = self._listeners.get(listener_id)
        if entry is None:
            return
        query, on_update, on_error = entry
        try:
            on_update(self._run(query))
        except Exception as exc:
            logger.warning("store_listener_failed", collection=query.collection, error=str(exc))
            if on_error is not None:
                on_error(exc)
