"""Firestore-backed document store.

Reads and writes go through ``google.cloud.firestore.AsyncClient``. The async
client has no realtime API, so listeners run on the sync client's
``on_snapshot`` watch thread and are marshalled back onto the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import structlog
from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from cragline.config import Settings
from cragline.errors import NotFoundError, StoreError
from cragline.store.base import (
    Document,
    ErrorCallback,
    Increment,
    Query,
    SnapshotCallback,
    Subscription,
)

logger = structlog.get_logger()


def _encode(value: Any) -> Any:
    if isinstance(value, Increment):
        return firestore.Increment(value.amount)
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    return value


def _snapshot_data(snapshot: Any) -> Document:
    data = snapshot.to_dict() or {}
    data.setdefault("id", snapshot.id)
    return data


class FirestoreDocumentStore:
    """``DocumentStore`` over Cloud Firestore."""

    def __init__(
        self,
        client: firestore.AsyncClient,
        listener_client: firestore.Client | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._client = client
        self._listener_client = listener_client
        self._loop = loop

    @classmethod
    def from_settings(cls, settings: Settings) -> FirestoreDocumentStore:
        kwargs = {"project": settings.firestore_project, "database": settings.firestore_database}
        return cls(firestore.AsyncClient(**kwargs), firestore.Client(**kwargs))

    async def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            snapshot = await self._client.collection(collection).document(doc_id).get()
        except GoogleAPICallError as exc:
            raise StoreError(str(exc)) from exc
        return _snapshot_data(snapshot) if snapshot.exists else None

    async def set(self, collection: str, doc_id: str, data: Document, *, merge: bool = False) -> None:
        try:
            await self._client.collection(collection).document(doc_id).set(_encode(data), merge=merge)
        except GoogleAPICallError as exc:
            raise StoreError(str(exc)) from exc

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        try:
            await self._client.collection(collection).document(doc_id).update(_encode(changes))
        except NotFound as exc:
            raise NotFoundError(f"No document {collection}/{doc_id}") from exc
        except GoogleAPICallError as exc:
            raise StoreError(str(exc)) from exc

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._client.collection(collection).document(doc_id).delete()
        except GoogleAPICallError as exc:
            raise StoreError(str(exc)) from exc

    async def query(self, query: Query) -> list[Document]:
        try:
            q = self._build(self._client, query)
            if query.start_after is not None:
                cursor = await self._client.collection(query.collection).document(query.start_after).get()
                if cursor.exists:
                    q = q.start_after(cursor)
            return [_snapshot_data(doc) async for doc in q.stream()]
        except GoogleAPICallError as exc:
            raise StoreError(str(exc)) from exc

    async def batch_update(self, writes: Sequence[tuple[str, str, Document]]) -> None:
        batch = self._client.batch()
        for collection, doc_id, changes in writes:
            batch.update(self._client.collection(collection).document(doc_id), _encode(changes))
        try:
            await batch.commit()
        except NotFound as exc:
            raise NotFoundError(str(exc)) from exc
        except GoogleAPICallError as exc:
            raise StoreError(str(exc)) from exc

    def subscribe(
        self,
        query: Query,
        on_update: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        if self._listener_client is None:
            raise StoreError("Realtime listeners need a sync Firestore client")
        loop = self._loop or asyncio.get_running_loop()

        def deliver(docs: list[Document]) -> None:
            try:
                on_update(docs)
            except Exception as exc:
                logger.warning("store_listener_failed", collection=query.collection, error=str(exc))
                if on_error is not None:
                    on_error(exc)

        def on_snapshot(snapshots: list[Any], _changes: Any, _read_time: Any) -> None:
            loop.call_soon_threadsafe(deliver, [_snapshot_data(s) for s in snapshots])

        watch = self._build(self._listener_client, query).on_snapshot(on_snapshot)
        logger.debug("store_listener_added", collection=query.collection)
        return Subscription(watch.unsubscribe)

    @staticmethod
    def _build(client: Any, query: Query) -> Any:
        q = client.collection(query.collection)
        for flt in query.filters:
            q = q.where(filter=FieldFilter(flt.field, flt.op, flt.value))
        if query.order_by:
            direction = firestore.Query.DESCENDING if query.descending else firestore.Query.ASCENDING
            q = q.order_by(query.order_by, direction=direction)
        if query.limit is not None:
            q = q.limit(query.limit)
        return q
