"""View-model base, session, errors, settings and store selection."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import Field

from cragline.config import Settings, get_settings
from cragline.errors import NotAuthenticatedError, NotFoundError, StoreError, user_message
from cragline.session import ANONYMOUS, Session
from cragline.store import MemoryDocumentStore, Subscription, create_store
from cragline.viewmodel import ViewModel, ViewState


class CounterState(ViewState):
    count: int = 0
    names: list[str] = Field(default_factory=list)


class CounterViewModel(ViewModel[CounterState]):
    def __init__(self) -> None:
        super().__init__(CounterState())

    def bump(self) -> None:
        self._set(count=self.state.count + 1)

    def rename(self, names: list[str]) -> None:
        self._set(names=names)

    def fail(self, exc: Exception, prefix: str | None = None) -> None:
        self._fail(exc, prefix=prefix)


class TestViewModel:
    """Test state diffs and teardown."""

    def test_listeners_receive_only_changes(self):
        vm = CounterViewModel()
        diffs: list[dict] = []
        vm.subscribe(diffs.append)
        vm.bump()
        vm._set(count=1)
        assert diffs == [{"count": 1}]

    def test_new_list_is_a_change(self):
        vm = CounterViewModel()
        diffs: list[dict] = []
        vm.subscribe(diffs.append)
        vm.rename(["a"])
        vm.rename(list(vm.state.names))
        assert len(diffs) == 2

    def test_unsubscribe(self):
        vm = CounterViewModel()
        diffs: list[dict] = []
        subscription = vm.subscribe(diffs.append)
        subscription.unsubscribe()
        vm.bump()
        assert diffs == []

    def test_fail_sets_message_and_clears_loading(self):
        vm = CounterViewModel()
        vm._set(is_loading=True)
        vm.fail(StoreError("boom"), prefix="Error loading")
        assert vm.state.error_message == "Error loading: boom"
        assert vm.state.has_error and not vm.state.is_loading
        vm._clear_error()
        assert vm.state.error_message is None and not vm.state.has_error

    def test_close_releases_held_subscriptions(self):
        vm = CounterViewModel()
        released: list[bool] = []
        vm._hold(Subscription(lambda: released.append(True)))
        vm.close()
        vm.close()
        assert released == [True]

    @pytest.mark.asyncio
    async def test_drain_waits_for_spawned_work(self):
        vm = CounterViewModel()

        async def later():
            await asyncio.sleep(0)
            vm.bump()

        vm._spawn(later())
        await vm.drain()
        assert vm.state.count == 1


class TestSessionAndErrors:
    """Test the session context and error messages."""

    def test_require_user(self):
        assert Session(user_id="alice").require_user() == "alice"
        assert not ANONYMOUS.is_authenticated
        with pytest.raises(NotAuthenticatedError):
            ANONYMOUS.require_user()

    def test_user_message(self):
        assert user_message(NotFoundError("User not found")) == "User not found"
        assert user_message(NotFoundError()) == "Not found"
        assert user_message(RuntimeError("internal detail")) == "Something went wrong"


class TestSettings:
    """Test configuration loading and store selection."""

    def test_defaults(self):
        settings = Settings()
        assert settings.feed_page_size == 10
        assert settings.search_min_query_length == 2
        assert settings.store_backend == "memory"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("CRAGLINE_FEED_PAGE_SIZE", "25")
        get_settings.cache_clear()
        assert get_settings().feed_page_size == 25

    def test_create_store(self):
        assert isinstance(create_store(Settings(store_backend="memory")), MemoryDocumentStore)
        with pytest.raises(ValueError):
            create_store(Settings(store_backend="sqlite"))
