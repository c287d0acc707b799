"""Search across users and activity items."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import Field

from cragline.activity.repository import ActivityRepository
from cragline.activity.schemas import ActivityItem, BasicPost, BetaPost, EventPost, GroupVisit
from cragline.config import get_settings
from cragline.errors import CraglineError
from cragline.search.schemas import BetaResult, EventResult, SearchFilter, SearchResult, UserResult
from cragline.users.service import UserRepository
from cragline.viewmodel import ViewModel, ViewState


def _contains(text: str | None, needle: str) -> bool:
    return text is not None and needle in text.lower()


def match_activities(
    items: Sequence[ActivityItem], query: str, selected: SearchFilter
) -> list[SearchResult]:
    """Beta and event hits for ``query``, in the order the items were given.

    Basic posts and group visits never produce results, whatever the filter.
    """
    needle = query.lower()
    results: list[SearchResult] = []
    for item in items:
        match item:
            case BetaPost():
                if selected in (SearchFilter.ALL, SearchFilter.BETAS) and (
                    _contains(item.content, needle) or _contains(item.gym.name, needle)
                ):
                    results.append(BetaResult(beta=item))
            case EventPost():
                if selected in (SearchFilter.ALL, SearchFilter.EVENTS) and (
                    _contains(item.title, needle)
                    or _contains(item.description, needle)
                    or _contains(item.location, needle)
                    or _contains(item.gym.name if item.gym else None, needle)
                ):
                    results.append(EventResult(event=item))
            case BasicPost() | GroupVisit():
                pass
    return results


class SearchState(ViewState):
    search_text: str = ""
    selected_filter: SearchFilter = SearchFilter.ALL
    is_searching: bool = False
    search_results: list[SearchResult] = Field(default_factory=list)


class SearchViewModel(ViewModel[SearchState]):
    def __init__(
        self,
        activities: ActivityRepository,
        users: UserRepository,
        min_query_length: int | None = None,
    ) -> None:
        super().__init__(SearchState())
        self.activities = activities
        self.users = users
        self.min_query_length = min_query_length or get_settings().search_min_query_length

    def set_query(self, text: str) -> None:
        self._set(search_text=text)

    def set_filter(self, selected: SearchFilter) -> None:
        self._set(selected_filter=selected)

    async def search(self, text: str | None = None) -> None:
        if text is not None:
            self._set(search_text=text)
        query, selected = self.state.search_text, self.state.selected_filter
        if len(query) < self.min_query_length:
            self._set(search_results=[], is_searching=False)
            return
        self._set(is_searching=True, has_error=False, error_message=None)
        try:
            results: list[SearchResult] = []
            if selected.includes_users:
                results.extend(UserResult(user=u) for u in await self.users.search_users(query))
            if selected.includes_activities:
                results.extend(match_activities(await self.activities.fetch_all(), query, selected))
        except CraglineError as exc:
            self._fail(exc, is_searching=False)
            return
        self._set(search_results=results, is_searching=False)

    def cancel_search(self) -> None:
        self._set(search_text="", search_results=[])
