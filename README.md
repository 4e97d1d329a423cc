# shellrecall

Command history for interactive line editors: persistent storage, filtered
search, up/down-arrow navigation and fish-style autosuggestion hints.

## Installation

    pip install shellrecall

## Modules

- `shellrecall.item` – `HistoryItem`, `HistoryItemId`, `HistorySessionId`
- `shellrecall.base` – the abstract `History` interface, `SearchQuery`,
  `SearchFilter`, `CommandLineSearch`, `SearchKind`, `SearchDirection`,
  `HistoryNavigationQuery`, `NavigationMode` and the error classes
- `shellrecall.file_backed` – `FileBackedHistory`, `HISTORY_SIZE`
- `shellrecall.sqlite_backed` – `SqliteBackedHistory`
- `shellrecall.cursor` – `HistoryCursor`
- `shellrecall.hinter` – `DefaultHinter`, `CwdAwareHinter`, `Style`,
  `get_first_token`

## Storing history

Both backends implement `History`: `save`, `load`, `search`, `count`,
`count_all`, `update`, `delete`, `clear`, `sync` and `session`. Both can be
used as context managers; leaving the block calls `close()`.

### FileBackedHistory

Keeps plain command lines in memory (default capacity `HISTORY_SIZE`, 1000),
optionally mirrored to a text file with one entry per line; newlines inside an
entry are stored as `<\n>`. Empty lines and a line equal to the previous one
are not stored, and the oldest entry is dropped once `capacity` is reached.

```python
from shellrecall.file_backed import FileBackedHistory
from shellrecall.item import HistoryItem

with FileBackedHistory.with_file(1000, "history.txt") as history:
    history.save(HistoryItem.from_command_line("ls -l"))
    history.save(HistoryItem.from_command_line("cd /tmp"))
# leaving the block calls sync(), writing unsaved entries to the file
```

`with_file` creates missing parent directories and reads the file if it
exists. `sync()` takes a lock (`<file>.lock`) and merges with entries other
histories wrote to the same file, truncating it to `capacity` lines. `clear()`
empties the history and deletes the file.

Only the command line is kept. `update` and `delete` raise
`HistoryFeatureUnsupported`, as does `search` with a time range or a filter on
hostname, working directory or exit status.

### SqliteBackedHistory

Stores full `HistoryItem`s (start time, session, hostname, working directory,
duration, exit status and JSON-serialisable `more_info`) in SQLite and supports
every filter. Changes are committed immediately, so `sync()` does nothing.

```python
from datetime import timedelta
from shellrecall.sqlite_backed import SqliteBackedHistory
from shellrecall.item import HistoryItem

with SqliteBackedHistory.with_file("history.db") as history:
    saved = history.save(HistoryItem(command_line="make", cwd="/src",
                                     exit_status=0,
                                     duration=timedelta(seconds=2)))
    history.update(saved.id, lambda item: item)
    history.delete(saved.id)
```

`SqliteBackedHistory.in_memory()` gives a database that lives only as long as
the object. Saving an item that already has an id updates that row. Database
failures raise `HistoryDatabaseError`.

## Searching

```python
from shellrecall.base import (
    CommandLineSearch, SearchDirection, SearchFilter, SearchKind, SearchQuery,
)

latest_ls = history.search(SearchQuery.last_with_prefix("ls", None))
everything = history.search(SearchQuery.everything(SearchDirection.FORWARD, None))
two_with_zip = history.search(SearchQuery(
    direction=SearchDirection.FORWARD,
    limit=2,
    filter=SearchFilter.from_text_search(
        CommandLineSearch(SearchKind.SUBSTRING, "zip"), None),
))
```

`SearchQuery.last_with_prefix_and_cwd` additionally restricts to entries run
in the current working directory. All errors derive from `HistoryError`
(`HistoryFeatureUnsupported`, `HistoryDatabaseError`, `OtherHistoryError`).

## Browsing

`HistoryCursor` walks a history one entry at a time, optionally restricted to
a prefix or substring, and skips consecutive duplicates. `back()` stops at the
oldest match; `forward()` past the newest leaves the cursor empty.

```python
from shellrecall.base import HistoryNavigationQuery, NavigationMode
from shellrecall.cursor import HistoryCursor

cursor = HistoryCursor(
    HistoryNavigationQuery(NavigationMode.PREFIX_SEARCH, "find"), None)
cursor.back(history)
print(cursor.string_at_cursor())
```

## Hints

`DefaultHinter` suggests the remainder of the most recent command starting
with the current line; `CwdAwareHinter` prefers commands run in the current
directory and falls back to any matching command.

```python
from shellrecall.hinter import DefaultHinter, Style

hinter = DefaultHinter().with_min_chars(2).with_style(Style(foreground=36, italic=True))
shown = hinter.handle("ls", 2, history, use_ansi_coloring=True)
hinter.complete_hint()     # full suggestion, uncoloured
hinter.next_hint_token()   # leading whitespace and the next word only
```

## What it does not do

This package holds history and computes hints; it is not a line editor. It
reads no keys, draws no prompt and paints nothing on the terminal except the
ANSI codes `Style.paint` puts around a hint. It has no command-line program.