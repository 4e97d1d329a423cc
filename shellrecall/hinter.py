"""Fish-style hints that complete the current line from the history."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .base import History, HistoryError, HistoryFeatureUnsupported, SearchQuery

LIGHT_GRAY = 37
"""ANSI foreground code of the light gray used for hints by default."""

_RESET = "\x1b[0m"

# An approximation of Unicode word boundaries: CRLF pairs, runs of spaces,
# words (letters, digits and underscores, joined across inner apostrophes,
# full stops and colons), and any other single character.
_SEGMENT = re.compile(
    r"\r\n"
    r"|[^\S\r\n\t\v\f\x1c-\x1f\x85\u2028\u2029]+"
    r"|\w+(?:['.:\u2019\u00b7]\w+)*"
    r"|.",
    re.DOTALL,
)


@dataclass(frozen=True)
class Style:
    """A terminal text style: an optional ANSI foreground code and attributes."""

    foreground: int | None = None
    bold: bool = False
    dimmed: bool = False
    italic: bool = False
    underline: bool = False

    def paint(self, text: str) -> str:
        """Wrap the text in the escape sequences of this style."""
        codes = [
            code
            for code, enabled in (
                ("1", self.bold),
                ("2", self.dimmed),
                ("3", self.italic),
                ("4", self.underline),
            )
            if enabled
        ]
        if self.foreground is not None:
            codes.append(str(self.foreground))
        if not codes:
            return text
        return f"\x1b[{';'.join(codes)}m{text}{_RESET}"


def is_whitespace_str(s: str) -> bool:
    """Whether every character of the string is whitespace (true for '')."""
    return all(char.isspace() for char in s)


def get_first_token(string: str) -> str:
    """Leading whitespace of the string followed by its first word segment."""
    taken: list[str] = []
    for match in _SEGMENT.finditer(string):
        segment = match.group()
        taken.append(segment)
        if not is_whitespace_str(segment):
            break
    return "".join(taken)


def _remainder(command_line: str, line: str) -> str:
    return command_line[len(line):]


class Hinter(ABC):
    """Produces the hint shown after the current line."""

    @abstractmethod
    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        """Compute the hint for the line and return it formatted for display."""

    @abstractmethod
    def complete_hint(self) -> str:
        """The current hint without formatting."""

    @abstractmethod
    def next_hint_token(self) -> str:
        """The first token of the current hint, for incremental completion."""


class _HistoryHinter(Hinter):
    def __init__(self, style: Style | None = None, min_chars: int = 1) -> None:
        self._style = style if style is not None else Style(foreground=LIGHT_GRAY)
        self._min_chars = min_chars
        self._current_hint = ""

    def with_style(self, style: Style):
        """Set the style applied to the hint; returns the hinter itself."""
        self._style = style
        return self

    def with_min_chars(self, min_chars: int):
        """Set how many characters enable hints; returns the hinter itself."""
        self._min_chars = min_chars
        return self

    @abstractmethod
    def _find_hint(self, line: str, history: History) -> str:
        """The unformatted hint for the line."""

    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        if len(line) >= self._min_chars:
            self._current_hint = self._find_hint(line, history)
        else:
            self._current_hint = ""
        if use_ansi_coloring and self._current_hint:
            return self._style.paint(self._current_hint)
        return self._current_hint

    def complete_hint(self) -> str:
        return self._current_hint

    def next_hint_token(self) -> str:
        return get_first_token(self._current_hint)


class DefaultHinter(_HistoryHinter):
    """Hints the rest of the most recent history entry starting with the line."""

    def __init__(self, style: Style | None = None, min_chars: int = 1) -> None:
        super().__init__(style, min_chars)

    def with_style(self, style: Style) -> DefaultHinter:
        return super().with_style(style)

    def with_min_chars(self, min_chars: int) -> DefaultHinter:
        return super().with_min_chars(min_chars)

    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        return super().handle(line, pos, history, use_ansi_coloring)

    def complete_hint(self) -> str:
        return super().complete_hint()

    def next_hint_token(self) -> str:
        return super().next_hint_token()

    def _find_hint(self, line: str, history: History) -> str:
        found = history.search(SearchQuery.last_with_prefix(line, history.session()))
        return _remainder(found[0].command_line, line) if found else ""


class CwdAwareHinter(_HistoryHinter):
    """Like DefaultHinter, preferring entries run in the current directory."""

    def __init__(self, style: Style | None = None, min_chars: int = 1) -> None:
        super().__init__(style, min_chars)

    def with_style(self, style: Style) -> CwdAwareHinter:
        return super().with_style(style)

    def with_min_chars(self, min_chars: int) -> CwdAwareHinter:
        return super().with_min_chars(min_chars)

    def handle(
        self, line: str, pos: int, history: History, use_ansi_coloring: bool
    ) -> str:
        return super().handle(line, pos, history, use_ansi_coloring)

    def complete_hint(self) -> str:
        return super().complete_hint()

    def next_hint_token(self) -> str:
        return super().next_hint_token()

    @staticmethod
    def _search_prefix(line: str, history: History) -> list:
        try:
            return history.search(
                SearchQuery.last_with_prefix(line, history.session())
            )
        except HistoryError:
            return []

    def _find_hint(self, line: str, history: History) -> str:
        try:
            with_cwd = history.search(
                SearchQuery.last_with_prefix_and_cwd(line, history.session())
            )
        except HistoryFeatureUnsupported:
            with_cwd = self._search_prefix(line, history)
        except HistoryError:
            with_cwd = []
        if with_cwd:
            return _remainder(with_cwd[0].command_line, line)
        found = self._search_prefix(line, history)
        return _remainder(found[0].command_line, line) if found else ""