"""In-memory document store: queries, writes, sentinels and listeners."""

from __future__ import annotations

import pytest

from cragline.errors import NotFoundError
from cragline.store import Increment, MemoryDocumentStore, Query, collection_path


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


async def _seed(store: MemoryDocumentStore) -> None:
    await store.set("climbs", "a", {"grade": 5, "crag": "stanage", "tags": ["slab"]})
    await store.set("climbs", "b", {"grade": 7, "crag": "froggatt", "tags": ["crack", "slab"]})
    await store.set("climbs", "c", {"grade": 6, "crag": "stanage", "tags": []})
    await store.set("climbs", "d", {"crag": "curbar"})


class TestReadsAndWrites:
    """Test basic CRUD."""

    @pytest.mark.asyncio
    async def test_get_includes_id(self, store):
        await store.set("users", "u1", {"firstName": "Ada"})
        assert await store.get("users", "u1") == {"id": "u1", "firstName": "Ada"}

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get("users", "nope") is None

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store):
        await store.set("users", "u1", {"tags": ["a"]})
        doc = await store.get("users", "u1")
        doc["tags"].append("b")
        assert (await store.get("users", "u1"))["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_set_replaces_without_merge(self, store):
        await store.set("users", "u1", {"a": 1, "b": 2})
        await store.set("users", "u1", {"a": 3})
        assert await store.get("users", "u1") == {"id": "u1", "a": 3}

    @pytest.mark.asyncio
    async def test_set_merge_keeps_other_fields(self, store):
        await store.set("users", "u1", {"a": 1, "b": 2})
        await store.set("users", "u1", {"a": 3}, merge=True)
        assert await store.get("users", "u1") == {"id": "u1", "a": 3, "b": 2}

    @pytest.mark.asyncio
    async def test_update_dotted_path_and_increment(self, store):
        await store.set("conversations", "c1", {"unreadCounts": {"bob": 2}})
        await store.update("conversations", "c1", {"unreadCounts.bob": Increment(1), "unreadCounts.amy": 0})
        doc = await store.get("conversations", "c1")
        assert doc["unreadCounts"] == {"bob": 3, "amy": 0}

    @pytest.mark.asyncio
    async def test_increment_missing_field_starts_at_zero(self, store):
        await store.set("items", "i1", {})
        await store.update("items", "i1", {"likeCount": Increment(-1)})
        assert (await store.get("items", "i1"))["likeCount"] == -1

    @pytest.mark.asyncio
    async def test_update_missing_document_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.update("items", "ghost", {"a": 1})

    @pytest.mark.asyncio
    async def test_delete_is_silent_for_missing(self, store):
        await store.delete("items", "ghost")
        await store.set("items", "i1", {})
        await store.delete("items", "i1")
        assert await store.get("items", "i1") is None

    @pytest.mark.asyncio
    async def test_batch_update_is_all_or_nothing(self, store):
        await store.set("items", "i1", {"n": 0})
        with pytest.raises(NotFoundError):
            await store.batch_update([("items", "i1", {"n": 1}), ("items", "ghost", {"n": 1})])
        assert (await store.get("items", "i1"))["n"] == 0

    def test_collection_path_joins_segments(self):
        assert collection_path("activityItems", "/x/", "likes") == "activityItems/x/likes"


class TestQueries:
    """Test filters, ordering and cursors."""

    @pytest.mark.asyncio
    async def test_equality_filter(self, store):
        await _seed(store)
        rows = await store.query(Query("climbs").where("crag", "==", "stanage"))
        assert sorted(r["id"] for r in rows) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_in_and_array_contains(self, store):
        await _seed(store)
        assert {r["id"] for r in await store.query(Query("climbs").where("crag", "in", ["curbar", "froggatt"]))} == {
            "b",
            "d",
        }
        assert {r["id"] for r in await store.query(Query("climbs").where("tags", "array_contains", "slab"))} == {
            "a",
            "b",
        }

    @pytest.mark.asyncio
    async def test_range_filter_skips_missing_field(self, store):
        await _seed(store)
        rows = await store.query(Query("climbs").where("grade", ">=", 6))
        assert {r["id"] for r in rows} == {"b", "c"}

    @pytest.mark.asyncio
    async def test_order_puts_missing_values_last(self, store):
        await _seed(store)
        rows = await store.query(Query("climbs").order("grade", descending=True))
        assert [r["id"] for r in rows] == ["b", "c", "a", "d"]

    @pytest.mark.asyncio
    async def test_cursor_then_limit(self, store):
        await _seed(store)
        rows = await store.query(Query("climbs").order("grade").after("a").take(1))
        assert [r["id"] for r in rows] == ["c"]

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            Query("climbs").where("grade", "~=", 1)


class TestSubscriptions:
    """Test realtime snapshot delivery."""

    @pytest.mark.asyncio
    async def test_initial_snapshot_and_updates(self, store):
        seen: list[list[str]] = []
        sub = store.subscribe(Query("climbs").order("grade"), lambda rows: seen.append([r["id"] for r in rows]))
        await store.set("climbs", "x", {"grade": 3})
        await store.set("other", "y", {"grade": 1})
        await store.set("climbs", "z", {"grade": 1})
        assert seen == [[], ["x"], ["z", "x"]]
        sub.unsubscribe()
        await store.set("climbs", "w", {"grade": 2})
        assert len(seen) == 3
        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent(self, store):
        sub = store.subscribe(Query("climbs"), lambda rows: None)
        sub.unsubscribe()
        sub.unsubscribe()
        assert sub.active is False

    @pytest.mark.asyncio
    async def test_subscription_as_context_manager(self, store):
        with store.subscribe(Query("climbs"), lambda rows: None):
            assert store.listener_count == 1
        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_listener_error_goes_to_error_callback(self, store):
        errors: list[Exception] = []

        def boom(rows):
            raise RuntimeError("listener broke")

        store.subscribe(Query("climbs"), boom, errors.append)
        await store.set("climbs", "x", {})
        assert len(errors) == 2
        assert str(errors[0]) == "listener broke"
