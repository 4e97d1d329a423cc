"""Stateful up/down navigation through a history."""

from __future__ import annotations

from dataclasses import replace

from .base import (
    CommandLineSearch,
    History,
    HistoryNavigationQuery,
    NavigationMode,
    SearchDirection,
    SearchFilter,
    SearchKind,
    SearchQuery,
)
from .item import HistoryItem, HistorySessionId


class HistoryCursor:
    """Moves through a history according to a navigation query.

    Consecutive entries with the same command line are skipped.
    """

    def __init__(
        self,
        query: HistoryNavigationQuery,
        session: HistorySessionId | None = None,
    ) -> None:
        self._query = query
        self._current: HistoryItem | None = None
        self._skip_dupes = True
        self._session = session

    def back(self, history: History) -> None:
        """Move to an older entry; stays put when there is none."""
        self._navigate(history, SearchDirection.BACKWARD)

    def forward(self, history: History) -> None:
        """Move to a newer entry; past the newest the cursor holds nothing."""
        self._navigate(history, SearchDirection.FORWARD)

    def _search_filter(self) -> SearchFilter:
        mode = self._query.mode
        if mode is NavigationMode.PREFIX_SEARCH:
            flt = SearchFilter.from_text_search(
                CommandLineSearch(SearchKind.PREFIX, self._query.text), self._session
            )
        elif mode is NavigationMode.SUBSTRING_SEARCH:
            flt = SearchFilter.from_text_search(
                CommandLineSearch(SearchKind.SUBSTRING, self._query.text),
                self._session,
            )
        else:
            flt = SearchFilter.anything(self._session)
        if self._skip_dupes and self._current is not None:
            flt = replace(flt, not_command_line=self._current.command_line)
        return flt

    def _navigate(self, history: History, direction: SearchDirection) -> None:
        if direction is SearchDirection.FORWARD and self._current is None:
            # Without a starting point, going forward means we are at the end.
            return
        start_id = self._current.id if self._current is not None else None
        results = history.search(
            SearchQuery(
                direction=direction,
                start_id=start_id,
                limit=1,
                filter=self._search_filter(),
            )
        )
        if len(results) == 1:
            self._current = results[0]
        elif direction is SearchDirection.FORWARD:
            self._current = None

    def string_at_cursor(self) -> str | None:
        """The command line at the cursor, if any."""
        return self._current.command_line if self._current is not None else None

    def get_navigation(self) -> HistoryNavigationQuery:
        """The navigation query this cursor follows."""
        return self._query