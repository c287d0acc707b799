"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio

from cragline.activity.repository import ActivityRepository
from cragline.config import get_settings
from cragline.gyms.schemas import ClimbingType, Gym
from cragline.gyms.service import GymService, PermissionsService
from cragline.session import Session
from cragline.store import MemoryDocumentStore
from cragline.users.schemas import User
from cragline.users.service import RelationshipService, UserRepository

NOW = datetime(2025, 4, 10, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Isolate tests from CRAGLINE_* variables in the environment."""
    for key in ("CRAGLINE_FEED_PAGE_SIZE", "CRAGLINE_SEARCH_MIN_QUERY_LENGTH", "CRAGLINE_STORE_BACKEND"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def users(store) -> UserRepository:
    return UserRepository(store)


@pytest.fixture
def relationships(store, users) -> RelationshipService:
    return RelationshipService(store, users)


@pytest.fixture
def gyms(store) -> GymService:
    return GymService(store)


@pytest.fixture
def permissions(store) -> PermissionsService:
    return PermissionsService(store)


@pytest.fixture
def activities(store, users, gyms, relationships) -> ActivityRepository:
    return ActivityRepository(store, users, gyms, relationships)


def _make_user(user_id: str, first: str, last: str, bio: str | None = None) -> User:
    return User(
        id=user_id,
        email=f"{user_id}@example.com",
        first_name=first,
        last_name=last,
        bio=bio,
        created_at=NOW - timedelta(days=30),
    )


@pytest_asyncio.fixture
async def alice(users) -> User:
    """Signed-in user in most tests."""
    return await users.create_user(_make_user("alice", "Alice", "Honnold", bio="Slab enthusiast"))


@pytest_asyncio.fixture
async def bob(users) -> User:
    return await users.create_user(_make_user("bob", "Bob", "Sharma"))


@pytest_asyncio.fixture
async def carol(users) -> User:
    return await users.create_user(_make_user("carol", "Carol", "Ondra"))


@pytest_asyncio.fixture
async def gym(gyms) -> Gym:
    """Seeded bouldering gym."""
    return await gyms.create_gym(
        Gym(
            id="gym-1",
            email="hello@boulderbarn.test",
            name="Boulder Barn",
            location="12 Crag Street, Sheffield",
            climbing_types=[ClimbingType.BOULDERING],
            amenities=["cafe", "showers"],
            created_at=NOW - timedelta(days=100),
        )
    )


@pytest.fixture
def session(alice) -> Session:
    return Session(user_id=alice.id)


@pytest.fixture
def make_user():
    """Build (not store) a user: ``make_user(id, first, last, bio=None)``."""
    return _make_user
