"""View-model base: an explicit state container with diff subscriptions.

Each view-model owns one immutable state object. Mutations replace it and
publish only the changed fields to subscribers. Store failures are caught
here and turned into ``error_message`` / ``has_error``; they never reach the
presentation layer as raw exceptions.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict

from cragline.errors import user_message
from cragline.store import Subscription

logger = structlog.get_logger()

StateListener = Callable[[dict[str, Any]], None]


class ViewState(BaseModel):
    """Fields every screen state carries."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    is_loading: bool = False
    error_message: str | None = None
    has_error: bool = False


S = TypeVar("S", bound=ViewState)


def _changed(old: Any, new: Any) -> bool:
    # Containers and models are compared by identity: each mutation builds a new one.
    if isinstance(new, (list, dict, set, tuple, BaseModel)):
        return new is not old
    return old != new


class ViewModel(Generic[S]):
    def __init__(self, state: S) -> None:
        self._state = state
        self._listeners: list[StateListener] = []
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: StateListener) -> Subscription:
        """Register for state diffs. Returns a handle to stop listening."""
        self._listeners.append(listener)
        return Subscription(lambda: self._listeners.remove(listener))

    def close(self) -> None:
        """Dispose realtime listeners and cancel in-flight work."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    async def drain(self) -> None:
        """Wait for every task started with ``_spawn`` (including ones they start)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- helpers for subclasses ---

    def _set(self, **changes: Any) -> dict[str, Any]:
        diff = {k: v for k, v in changes.items() if _changed(getattr(self._state, k), v)}
        if not diff:
            return diff
        self._state = self._state.model_copy(update=diff)
        for listener in list(self._listeners):
            listener(diff)
        return diff

    def _clear_error(self) -> None:
        self._set(error_message=None, has_error=False)

    def _fail(self, exc: Exception, prefix: str | None = None, **changes: Any) -> None:
        message = user_message(exc)
        if prefix:
            message = f"{prefix}: {message}"
        logger.warning(
            "view_model_error",
            view_model=type(self).__name__,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        self._set(error_message=message, has_error=True, is_loading=False, **changes)

    def _hold(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


__all__ = ["StateListener", "ViewModel", "ViewState"]
