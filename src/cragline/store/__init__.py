"""Document-store boundary and its implementations."""

from cragline.config import Settings
from cragline.store.base import (
    Document,
    DocumentStore,
    Filter,
    Increment,
    Query,
    Subscription,
    collection_path,
)
from cragline.store.memory import MemoryDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "Filter",
    "Increment",
    "MemoryDocumentStore",
    "Query",
    "Subscription",
    "collection_path",
    "create_store",
]


def create_store(settings: Settings) -> DocumentStore:
    """Build the store selected by ``settings.store_backend``."""
    if settings.store_backend == "firestore":
        from cragline.store.firestore import FirestoreDocumentStore

        return FirestoreDocumentStore.from_settings(settings)
    if settings.store_backend == "memory":
        return MemoryDocumentStore()
    raise ValueError(f"Unknown store backend: {settings.store_backend}")
