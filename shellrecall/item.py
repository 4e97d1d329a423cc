"""History items and the identifiers that go with them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any


@dataclass(frozen=True, order=True)
class HistoryItemId:
    """Unique id of a history item; more recent items have higher ids."""

    value: int

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value


@dataclass(frozen=True)
class HistorySessionId:
    """Id of the editor session in which a command was run."""

    value: int

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value


@dataclass
class HistoryItem:
    """One command that was run, with optional context about the run."""

    command_line: str
    id: HistoryItemId | None = None
    start_timestamp: datetime | None = None
    session_id: HistorySessionId | None = None
    hostname: str | None = None
    cwd: str | None = None
    duration: timedelta | None = None
    exit_status: int | None = None
    more_info: Any = None

    @classmethod
    def from_command_line(cls, cmd: str) -> HistoryItem:
        """Create an item holding only the command line."""
        return cls(command_line=str(cmd))