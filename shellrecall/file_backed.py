"""History kept in memory and optionally mirrored to a plain text file."""

from __future__ import annotations

import sys
from collections import deque
from itertools import islice
from pathlib import Path
from typing import Callable

from filelock import FileLock

from .base import (
    History,
    HistoryFeatureUnsupported,
    OtherHistoryError,
    SearchDirection,
    SearchQuery,
)
from .item import HistoryItem, HistoryItemId, HistorySessionId

HISTORY_SIZE = 1000
"""Default capacity of a FileBackedHistory."""

NEWLINE_ESCAPE = "<\\n>"
"""Marker that stands for a newline inside an entry stored on disk."""

_NAME = "FileBackedHistory"


def _encode_entry(text: str) -> str:
    return text.replace("\n", NEWLINE_ESCAPE)


def _decode_entry(text: str) -> str:
    return text.replace(NEWLINE_ESCAPE, "\n")


def _split_lines(data: str) -> list[str]:
    lines = data.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class FileBackedHistory(History):
    """History of plain command lines that allows up/down-arrow browsing.

    With an associated file, one entry per line, the unwritten entries are
    appended on sync; the file never grows beyond the capacity. Several
    histories may share one file: each sync merges with what others wrote.
    """

    def __init__(self, capacity: int = HISTORY_SIZE) -> None:
        if capacity >= sys.maxsize:
            raise OtherHistoryError(
                "History capacity too large to be addressed safely"
            )
        if capacity < 0:
            raise ValueError("History capacity must not be negative")
        self._capacity = capacity
        self._entries: deque[str] = deque()
        self._file: Path | None = None
        self._len_on_disk = 0
        self._session: HistorySessionId | None = None

    @classmethod
    def with_file(cls, capacity: int, file: str | Path) -> FileBackedHistory:
        """Create a history synchronised with the given file.

        The file is read if it exists and created otherwise, together with
        any missing parent directories.
        """
        history = cls(capacity)
        path = Path(file)
        path.parent.mkdir(parents=True, exist_ok=True)
        history._file = path
        history.sync()
        return history

    @staticmethod
    def _entry(id: HistoryItemId | None, command_line: str) -> HistoryItem:
        return HistoryItem(command_line=command_line, id=id)

    def save(self, item: HistoryItem) -> HistoryItem:
        """Append the command line unless it is empty or repeats the last one."""
        entry = item.command_line
        entry_id = None
        is_new = not self._entries or self._entries[-1] != entry
        if is_new and entry and self._capacity > 0:
            if len(self._entries) == self._capacity:
                self._entries.popleft()
                self._len_on_disk = max(0, self._len_on_disk - 1)
            self._entries.append(entry)
            entry_id = HistoryItemId(len(self._entries) - 1)
        return self._entry(entry_id, entry)

    def load(self, id: HistoryItemId) -> HistoryItem:
        index = id.value
        if not 0 <= index < len(self._entries):
            raise OtherHistoryError("Item does not exist")
        return self._entry(id, self._entries[index])

    def count(self, query: SearchQuery) -> int:
        return len(self.search(query))

    def search(self, query: SearchQuery) -> list[HistoryItem]:
        if query.start_time is not None or query.end_time is not None:
            raise HistoryFeatureUnsupported(_NAME, "filtering by time")
        flt = query.filter
        if (
            flt.hostname is not None
            or flt.cwd_exact is not None
            or flt.cwd_prefix is not None
            or flt.exit_successful is not None
        ):
            raise HistoryFeatureUnsupported(_NAME, "filtering by extra info")

        start = query.start_id.value if query.start_id is not None else None
        end = query.end_id.value if query.end_id is not None else None
        backward = query.direction is SearchDirection.BACKWARD
        low, high = (end, start) if backward else (start, end)

        size = len(self._entries)
        min_id = low + 1 if low is not None else 0
        max_id = high - 1 if high is not None else size - 1
        if max_id < 0 or min_id > size - 1 or min_id < 0:
            return []
        intrinsic_limit = max_id - min_id + 1
        if intrinsic_limit <= 0:
            return []
        if query.limit is None or query.limit < 0:
            limit = intrinsic_limit
        else:
            limit = min(intrinsic_limit, query.limit)

        window = list(
            islice(enumerate(self._entries), min_id, min_id + intrinsic_limit)
        )
        if backward:
            window.reverse()

        def accepted(pair: tuple[int, str]) -> bool:
            _, cmd = pair
            if flt.command_line is not None and not flt.command_line.matches(cmd):
                return False
            return flt.not_command_line is None or cmd != flt.not_command_line

        return [
            self._entry(HistoryItemId(idx), cmd)
            for idx, cmd in islice(filter(accepted, window), limit)
        ]

    def update(
        self, id: HistoryItemId, updater: Callable[[HistoryItem], HistoryItem]
    ) -> None:
        raise HistoryFeatureUnsupported(_NAME, "updating entries")

    def clear(self) -> None:
        """Forget all entries and remove the associated file."""
        self._entries.clear()
        self._len_on_disk = 0
        if self._file is not None:
            self._file.unlink()

    def delete(self, id: HistoryItemId) -> None:
        raise HistoryFeatureUnsupported(_NAME, "removing entries")

    def sync(self) -> None:
        """Write unwritten entries to the file, keeping at most `capacity` lines."""
        if self._file is None:
            return
        own_entries = list(islice(self._entries, self._len_on_disk, None))
        self._file.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self._file.with_name(self._file.name + ".lock")

        with FileLock(str(lock_path)), open(self._file, "a+b") as handle:
            handle.seek(0)
            from_file = [
                _decode_entry(line)
                for line in _split_lines(handle.read().decode("utf-8"))
            ]
            truncate = len(from_file) + len(own_entries) > self._capacity
            if truncate:
                keep = max(0, self._capacity - len(own_entries))
                foreign = from_file[len(from_file) - keep:]
                to_write = foreign + own_entries
                handle.seek(0)
                handle.truncate(0)
            else:
                foreign = from_file
                to_write = own_entries
            handle.write(
                "".join(_encode_entry(line) + "\n" for line in to_write).encode(
                    "utf-8"
                )
            )
            handle.flush()

        self._entries = deque(foreign + own_entries)
        self._len_on_disk = len(self._entries)

    def session(self) -> HistorySessionId | None:
        return self._session

    def close(self) -> None:
        """Write outstanding entries to the associated file, if any."""
        self.sync()

    def __enter__(self) -> FileBackedHistory:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()