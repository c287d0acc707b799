"""Search screen and comment threads."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from cragline.activity.comments import CommentRepository, CommentsViewModel
from cragline.activity.schemas import ACTIVITY_ITEMS, BasicPost, BetaPost, EventPost
from cragline.activity.viewmodel import ActivityFeedViewModel
from cragline.errors import StoreError
from cragline.search.schemas import BetaResult, EventResult, SearchFilter, UserResult
from cragline.search.viewmodel import SearchViewModel, match_activities


@pytest.fixture
def search(activities, users) -> SearchViewModel:
    return SearchViewModel(activities, users)


class TestSearch:
    """Test query validation and result composition."""

    @pytest.mark.asyncio
    async def test_one_character_query_makes_no_store_call(self, activities, users):
        activities.fetch_all = AsyncMock()
        users.search_users = AsyncMock()
        vm = SearchViewModel(activities, users)
        await vm.search("g")
        assert vm.state.search_results == []
        activities.fetch_all.assert_not_awaited()
        users.search_users.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_location_matches_case_insensitively(self, search, activities, alice, now):
        event = await activities.create_event_post(alice, "Summer comp", now + timedelta(days=4), "Gym Name", 50)
        search.set_filter(SearchFilter.EVENTS)
        await search.search("gym")
        assert [r.id for r in search.state.search_results] == [f"event-{event.id}"]
        assert isinstance(search.state.search_results[0], EventResult)

    @pytest.mark.asyncio
    async def test_all_filter_mixes_users_and_activities(self, search, activities, alice, gym):
        beta = await activities.create_beta_post(alice, "Honnold-style slab beta", gym)
        await activities.create_basic_post(alice, "Honnold fan club")
        await search.search("honnold")
        results = search.state.search_results
        assert [type(r) for r in results] == [UserResult, BetaResult]
        assert results[1].id == f"beta-{beta.id}"

    @pytest.mark.asyncio
    async def test_users_filter_skips_activities(self, search, activities, alice):
        activities.fetch_all = AsyncMock()
        search.set_filter(SearchFilter.USERS)
        await search.search("alice")
        assert [r.id for r in search.state.search_results] == ["user-alice"]
        activities.fetch_all.assert_not_awaited()

    def test_basic_posts_never_match(self, alice):
        post = BasicPost(id="p", author=alice, content="gym day")
        assert match_activities([post], "gym", SearchFilter.ALL) == []

    def test_beta_matches_gym_name(self, alice, gym):
        beta = BetaPost(id="b", author=alice, content="toe hook", gym=gym)
        assert match_activities([beta], "barn", SearchFilter.BETAS) == [BetaResult(beta=beta)]
        assert match_activities([beta], "barn", SearchFilter.EVENTS) == []

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_stops_searching(self, search, activities):
        activities.fetch_all = AsyncMock(side_effect=StoreError("offline"))
        search.set_filter(SearchFilter.BETAS)
        await search.search("crimp")
        assert search.state.has_error and not search.state.is_searching

    @pytest.mark.asyncio
    async def test_cancel_clears(self, search, alice):
        await search.search("alice")
        search.cancel_search()
        assert search.state.search_text == "" and search.state.search_results == []


class TestComments:
    """Test the comment thread and the counters it drives."""

    @pytest.fixture
    def comments(self, store, users) -> CommentRepository:
        return CommentRepository(store, users)

    @pytest.mark.asyncio
    async def test_add_then_delete(self, store, activities, comments, session, alice, bob):
        post = await activities.create_basic_post(bob, "Flashed it")
        deltas: list[tuple[str, int]] = []
        vm = CommentsViewModel(comments, session, post.id, on_count_change=lambda i, d: deltas.append((i, d)))

        vm.set_text("  Nice one!  ")
        await vm.add_comment()
        assert [c.content for c in vm.state.comments] == ["Nice one!"]
        assert vm.state.new_comment_text == ""
        assert (await store.get(ACTIVITY_ITEMS, post.id))["commentCount"] == 1

        await vm.delete_comment(vm.state.comments[0].id)
        assert vm.state.comments == []
        assert (await store.get(ACTIVITY_ITEMS, post.id))["commentCount"] == 0
        assert deltas == [(post.id, 1), (post.id, -1)]

    @pytest.mark.asyncio
    async def test_fetch_oldest_first(self, activities, comments, session, alice, bob):
        post = await activities.create_basic_post(bob, "Flashed it")
        vm = CommentsViewModel(comments, session, post.id)
        for text in ("first", "second"):
            vm.set_text(text)
            await vm.add_comment()
        fresh = CommentsViewModel(comments, session, post.id)
        await fresh.fetch_comments()
        assert [c.content for c in fresh.state.comments] == ["first", "second"]
        assert fresh.state.comments[0].author.id == alice.id

    @pytest.mark.asyncio
    async def test_blank_comment_ignored(self, comments, session):
        comments.add_comment = AsyncMock()
        vm = CommentsViewModel(comments, session, "item")
        vm.set_text("   ")
        await vm.add_comment()
        comments.add_comment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_missing_comment(self, comments, session):
        vm = CommentsViewModel(comments, session, "item")
        await vm.delete_comment("ghost")
        assert vm.state.error_message == "Error deleting comment: Comment not found"

    @pytest.mark.asyncio
    async def test_feed_mirrors_comment_count(self, activities, comments, session, bob, now):
        await activities.create_event_post(bob, "Comp", now + timedelta(days=1), "Hall", 10)
        feed = ActivityFeedViewModel(activities, session)
        await feed.refresh()
        item = feed.state.activity_items[0]
        assert isinstance(item, EventPost)
        vm = CommentsViewModel(comments, session, item.id, on_count_change=feed.adjust_comment_count)
        vm.set_text("I'm in")
        await vm.add_comment()
        assert feed.state.activity_items[0].comment_count == 1
