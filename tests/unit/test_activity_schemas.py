"""Activity item variants: documents, hydration and counters."""

from __future__ import annotations

from datetime import timedelta

import pytest

from cragline.activity.schemas import (
    ActivityKind,
    BasicPost,
    BetaPost,
    EventPost,
    GroupVisit,
    Media,
    activity_kind,
    document_kind,
    hydrate,
    item_gym,
)
from cragline.gyms.schemas import Gym


@pytest.fixture
def author(make_user):
    return make_user("alice", "Alice", "Honnold")


@pytest.fixture
def barn():
    return Gym(id="gym-1", email="g@example.com", name="Boulder Barn", location="Sheffield")


class TestDocuments:
    """Test the persisted shape of items."""

    def test_document_references_author_and_gym(self, author, barn):
        post = BetaPost(id="b1", author=author, content="Heel hook the arete", gym=barn)
        doc = post.to_document()
        assert doc["type"] == "beta"
        assert doc["authorId"] == "alice"
        assert doc["gymId"] == "gym-1"
        assert "author" not in doc and "gym" not in doc
        assert doc["likeCount"] == 0

    def test_basic_post_has_no_gym_reference(self, author):
        doc = BasicPost(id="p1", author=author, content="Sent it").to_document()
        assert doc["type"] == "basic"
        assert "gymId" not in doc

    def test_media_thumbnail_alias(self, author):
        media = Media(id="m1", url="https://cdn/x.jpg", thumbnail_url="https://cdn/t.jpg", owner_id="alice")
        assert media.to_document()["thumbnailURL"] == "https://cdn/t.jpg"


class TestHydrate:
    """Test turning documents back into typed items."""

    def test_round_trips_each_variant(self, author, barn, now):
        items = [
            BasicPost(id="p1", author=author, content="Sent it"),
            BetaPost(id="b1", author=author, content="Crimp left", gym=barn),
            EventPost(id="e1", author=author, title="Comp", event_date=now, location="Hall"),
            GroupVisit(id="v1", author=author, gym=barn, visit_date=now, attendees=["alice"]),
        ]
        for item in items:
            restored = hydrate(item.to_document(), author, item_gym(item))
            assert type(restored) is type(item)
            assert restored.id == item.id

    def test_unknown_type_skipped(self, author):
        assert hydrate({"id": "x", "type": "poll", "authorId": "alice"}, author) is None
        assert document_kind({"type": "poll"}) is ActivityKind.UNKNOWN

    def test_malformed_document_skipped(self, author):
        assert hydrate({"id": "e1", "type": "event", "authorId": "alice"}, author) is None

    def test_negative_counters_clamped(self, author):
        post = hydrate({"id": "p1", "type": "basic", "content": "x", "likeCount": -3}, author)
        assert post.like_count == 0


class TestCounters:
    """Test local counter adjustments."""

    def test_like_delta_floors_at_zero(self, author):
        post = BasicPost(id="p1", author=author, content="x", like_count=1)
        assert post.with_like_delta(-1).like_count == 0
        assert post.with_like_delta(-1).with_like_delta(-1).like_count == 0
        assert post.like_count == 1

    def test_comment_delta(self, author):
        post = BasicPost(id="p1", author=author, content="x")
        assert post.with_comment_delta(2).comment_count == 2


class TestVisits:
    """Test attendee helpers."""

    def test_attendees_never_duplicated(self, author, barn, now):
        visit = GroupVisit(id="v1", author=author, gym=barn, visit_date=now + timedelta(hours=2))
        joined = visit.with_attendee("bob").with_attendee("bob")
        assert joined.attendees == ["bob"]
        assert joined.without_attendee("bob").attendees == []

    def test_kind_and_gym_dispatch(self, author, barn, now):
        event = EventPost(id="e1", author=author, title="Comp", event_date=now, location="Hall")
        assert activity_kind(event) is ActivityKind.EVENT
        assert item_gym(event) is None
        assert activity_kind(object()) is ActivityKind.UNKNOWN
