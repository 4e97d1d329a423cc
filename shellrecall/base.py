"""Queries, filters, errors and the abstract history interface."""

from __future__ import annotations

import enum
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from .item import HistoryItem, HistoryItemId, HistorySessionId


class HistoryError(Exception):
    """Base class of all history errors."""


class HistoryFeatureUnsupported(HistoryError):
    """The history backend does not support the requested feature."""

    def __init__(self, history: str, feature: str) -> None:
        super().__init__(f"{history} does not support {feature}")
        self.history = history
        self.feature = feature


class HistoryDatabaseError(HistoryError):
    """The history database reported an error."""


class OtherHistoryError(HistoryError):
    """Any other failure of a history backend."""


class NavigationMode(enum.Enum):
    """How a history cursor moves through the entries."""

    NORMAL = "normal"
    PREFIX_SEARCH = "prefix_search"
    SUBSTRING_SEARCH = "substring_search"


@dataclass(frozen=True)
class HistoryNavigationQuery:
    """Browsing mode together with its text.

    For NORMAL the text holds the manually entered line before browsing;
    for the search modes it is the prefix or substring searched for.
    """

    mode: NavigationMode
    text: str = ""


class SearchKind(enum.Enum):
    """How a command line is compared with a search text."""

    PREFIX = "prefix"
    SUBSTRING = "substring"
    EXACT = "exact"


@dataclass(frozen=True)
class CommandLineSearch:
    """A search on the text of the command line."""

    kind: SearchKind
    text: str

    def matches(self, text: str) -> bool:
        """Whether the given command line satisfies this search."""
        if self.kind is SearchKind.PREFIX:
            return text.startswith(self.text)
        if self.kind is SearchKind.SUBSTRING:
            return self.text in text
        return text == self.text


class SearchDirection(enum.Enum):
    """Order in which the history is traversed."""

    BACKWARD = "backward"
    FORWARD = "forward"


@dataclass
class SearchFilter:
    """Additional filters for querying a history."""

    command_line: CommandLineSearch | None = None
    not_command_line: str | None = None
    hostname: str | None = None
    cwd_exact: str | None = None
    cwd_prefix: str | None = None
    exit_successful: bool | None = None
    session: HistorySessionId | None = None

    @classmethod
    def from_text_search(
        cls, cmd: CommandLineSearch, session: HistorySessionId | None
    ) -> SearchFilter:
        """Filter on the command line text."""
        return cls(command_line=cmd, session=session)

    @classmethod
    def from_text_search_cwd(
        cls, cwd: str, cmd: CommandLineSearch, session: HistorySessionId | None
    ) -> SearchFilter:
        """Filter on the command line text and an exact working directory."""
        return cls(command_line=cmd, cwd_exact=cwd, session=session)

    @classmethod
    def anything(cls, session: HistorySessionId | None) -> SearchFilter:
        """Match every entry of the given session."""
        return cls(session=session)


@dataclass
class SearchQuery:
    """A query against a history."""

    direction: SearchDirection = SearchDirection.BACKWARD
    start_time: datetime | None = None
    end_time: datetime | None = None
    start_id: HistoryItemId | None = None
    end_id: HistoryItemId | None = None
    limit: int | None = None
    filter: SearchFilter = field(default_factory=SearchFilter)

    @classmethod
    def all_that_contain_rev(cls, contains: str) -> SearchQuery:
        """All entries containing the text, most recent first."""
        return cls(
            direction=SearchDirection.BACKWARD,
            filter=SearchFilter.from_text_search(
                CommandLineSearch(SearchKind.SUBSTRING, contains), None
            ),
        )

    @classmethod
    def last_with_search(cls, filter: SearchFilter) -> SearchQuery:
        """The most recent entry matching the filter."""
        return cls(direction=SearchDirection.BACKWARD, limit=1, filter=filter)

    @classmethod
    def last_with_prefix(
        cls, prefix: str, session: HistorySessionId | None
    ) -> SearchQuery:
        """The most recent entry starting with the prefix."""
        return cls.last_with_search(
            SearchFilter.from_text_search(
                CommandLineSearch(SearchKind.PREFIX, prefix), session
            )
        )

    @classmethod
    def last_with_prefix_and_cwd(
        cls, prefix: str, session: HistorySessionId | None
    ) -> SearchQuery:
        """The most recent entry starting with the prefix run in the current directory."""
        search = CommandLineSearch(SearchKind.PREFIX, prefix)
        try:
            cwd = os.getcwd()
        except OSError:
            return cls.last_with_search(SearchFilter.from_text_search(search, session))
        return cls.last_with_search(
            SearchFilter.from_text_search_cwd(cwd, search, session)
        )

    @classmethod
    def everything(
        cls, direction: SearchDirection, session: HistorySessionId | None
    ) -> SearchQuery:
        """All entries in the given direction."""
        return cls(direction=direction, filter=SearchFilter.anything(session))


class History(ABC):
    """A store of previously run commands."""

    @abstractmethod
    def save(self, item: HistoryItem) -> HistoryItem:
        """Store an item; a new id is assigned when the item has none."""

    @abstractmethod
    def load(self, id: HistoryItemId) -> HistoryItem:
        """Load the item with the given id."""

    @abstractmethod
    def count(self, query: SearchQuery) -> int:
        """Count the results of a query."""

    def count_all(self) -> int:
        """Total number of items."""
        return self.count(SearchQuery.everything(SearchDirection.FORWARD, None))

    @abstractmethod
    def search(self, query: SearchQuery) -> list[HistoryItem]:
        """Return the results of a query."""

    @abstractmethod
    def update(
        self, id: HistoryItemId, updater: Callable[[HistoryItem], HistoryItem]
    ) -> None:
        """Replace an item by the result of applying the updater to it."""

    @abstractmethod
    def clear(self) -> None:
        """Delete all items."""

    @abstractmethod
    def delete(self, id: HistoryItemId) -> None:
        """Remove one item."""

    @abstractmethod
    def sync(self) -> None:
        """Make sure the history is written to its storage."""

    @abstractmethod
    def session(self) -> HistorySessionId | None:
        """The session id of this history, if any."""