"""History stored in an SQLite database, with rich per-command context."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from .base import (
    History,
    HistoryDatabaseError,
    SearchDirection,
    SearchKind,
    SearchQuery,
)
from .item import HistoryItem, HistoryItemId, HistorySessionId

SQLITE_APPLICATION_ID = 1151497937

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)

_STRICT = " strict" if sqlite3.sqlite_version_info >= (3, 37, 0) else ""

_SCHEMA = f"""
create table if not exists history (
    id integer primary key autoincrement,
    command_line text not null,
    start_timestamp integer,
    session_id integer,
    hostname text,
    cwd text,
    duration_ms integer,
    exit_status integer,
    more_info text
){_STRICT};
create index if not exists idx_history_time on history(start_timestamp);
create index if not exists idx_history_cwd on history(cwd);
create index if not exists idx_history_exit_status on history(exit_status);
create index if not exists idx_history_cmd on history(command_line);
"""

_UPSERT = """
insert into history
    (id, start_timestamp, command_line, session_id, hostname, cwd,
     duration_ms, exit_status, more_info)
values
    (:id, :start_timestamp, :command_line, :session_id, :hostname, :cwd,
     :duration_ms, :exit_status, :more_info)
on conflict (id) do update set
    start_timestamp = excluded.start_timestamp,
    command_line = excluded.command_line,
    session_id = excluded.session_id,
    hostname = excluded.hostname,
    cwd = excluded.cwd,
    duration_ms = excluded.duration_ms,
    exit_status = excluded.exit_status,
    more_info = excluded.more_info
"""


def _to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // _MILLISECOND


def _from_millis(millis: int) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return datetime.now(timezone.utc)


def _database_error(err: Exception) -> HistoryDatabaseError:
    return HistoryDatabaseError(repr(err))


def _row_to_item(row: sqlite3.Row) -> HistoryItem:
    more_info = row["more_info"]
    if more_info is not None:
        try:
            more_info = json.loads(more_info)
        except ValueError as err:
            raise HistoryDatabaseError(
                f"could not deserialize more_info: {err}"
            ) from err
    timestamp = row["start_timestamp"]
    session_id = row["session_id"]
    duration = row["duration_ms"]
    return HistoryItem(
        id=HistoryItemId(row["id"]),
        start_timestamp=_from_millis(timestamp) if timestamp is not None else None,
        command_line=row["command_line"],
        session_id=HistorySessionId(session_id) if session_id is not None else None,
        hostname=row["hostname"],
        cwd=row["cwd"],
        duration=timedelta(milliseconds=duration) if duration is not None else None,
        exit_status=row["exit_status"],
        more_info=more_info,
    )


class SqliteBackedHistory(History):
    """History stored in an SQLite database.

    Besides the command line it keeps the start time, session, host, working
    directory, duration, exit status and arbitrary JSON-serialisable info.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        session: HistorySessionId | None = None,
        session_timestamp: datetime | None = None,
    ) -> None:
        connection.isolation_level = None
        connection.row_factory = sqlite3.Row
        try:
            for pragma in (
                "journal_mode = wal",
                "synchronous = normal",
                "mmap_size = 1000000000",
                "foreign_keys = on",
                f"application_id = {SQLITE_APPLICATION_ID}",
            ):
                connection.execute(f"PRAGMA {pragma}").fetchall()
            version = connection.execute(
                "SELECT user_version FROM pragma_user_version"
            ).fetchone()[0]
        except sqlite3.Error as err:
            raise _database_error(err) from err
        if version != 0:
            raise HistoryDatabaseError(f"Unknown database version {version}")
        try:
            connection.executescript(_SCHEMA)
        except sqlite3.Error as err:
            raise _database_error(err) from err
        self._db = connection
        self._session = session
        self._session_timestamp = session_timestamp

    @classmethod
    def with_file(
        cls,
        file: str | Path,
        session: HistorySessionId | None = None,
        session_timestamp: datetime | None = None,
    ) -> SqliteBackedHistory:
        """Open (or create) a database file, creating missing parent directories."""
        path = Path(file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise HistoryDatabaseError(str(err)) from err
        try:
            connection = sqlite3.connect(str(path))
        except sqlite3.Error as err:
            raise _database_error(err) from err
        return cls(connection, session, session_timestamp)

    @classmethod
    def in_memory(cls) -> SqliteBackedHistory:
        """Create a history held in memory only."""
        try:
            connection = sqlite3.connect(":memory:")
        except sqlite3.Error as err:
            raise _database_error(err) from err
        return cls(connection, None, None)

    def save(self, item: HistoryItem) -> HistoryItem:
        """Insert the item, or update it when its id already exists."""
        params: dict[str, Any] = {
            "id": int(item.id) if item.id is not None else None,
            "start_timestamp": (
                _to_millis(item.start_timestamp)
                if item.start_timestamp is not None
                else None
            ),
            "command_line": item.command_line,
            "session_id": int(item.session_id) if item.session_id is not None else None,
            "hostname": item.hostname,
            "cwd": item.cwd,
            "duration_ms": (
                item.duration // _MILLISECOND if item.duration is not None else None
            ),
            "exit_status": item.exit_status,
            "more_info": (
                json.dumps(item.more_info) if item.more_info is not None else None
            ),
        }
        try:
            cursor = self._db.execute(_UPSERT, params)
        except sqlite3.Error as err:
            raise _database_error(err) from err
        new_id = params["id"] if params["id"] is not None else cursor.lastrowid
        item.id = HistoryItemId(new_id)
        return item

    def load(self, id: HistoryItemId) -> HistoryItem:
        try:
            row = self._db.execute(
                "select * from history where id = :id", {"id": int(id)}
            ).fetchone()
        except sqlite3.Error as err:
            raise _database_error(err) from err
        if row is None:
            raise HistoryDatabaseError("Query returned no rows")
        return _row_to_item(row)

    def count(self, query: SearchQuery) -> int:
        sql, params = self._construct_query(query, "coalesce(count(*), 0)")
        try:
            return self._db.execute(sql, params).fetchone()[0]
        except sqlite3.Error as err:
            raise _database_error(err) from err

    def search(self, query: SearchQuery) -> list[HistoryItem]:
        sql, params = self._construct_query(query, "*")
        try:
            rows = self._db.execute(sql, params).fetchall()
        except sqlite3.Error as err:
            raise _database_error(err) from err
        return [_row_to_item(row) for row in rows]

    def update(
        self, id: HistoryItemId, updater: Callable[[HistoryItem], HistoryItem]
    ) -> None:
        self.save(updater(self.load(id)))

    def clear(self) -> None:
        """Delete every item and vacuum so the data is really gone."""
        try:
            self._db.execute("delete from history")
            self._db.execute("VACUUM")
        except sqlite3.Error as err:
            raise _database_error(err) from err

    def delete(self, id: HistoryItemId) -> None:
        try:
            cursor = self._db.execute("delete from history where id = ?", (int(id),))
        except sqlite3.Error as err:
            raise _database_error(err) from err
        if cursor.rowcount == 0:
            raise HistoryDatabaseError("Could not find item")

    def sync(self) -> None:
        """Nothing to do: every change is committed immediately."""

    def session(self) -> HistorySessionId | None:
        return self._session

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    def __enter__(self) -> SqliteBackedHistory:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _construct_query(
        self, query: SearchQuery, select_expression: str
    ) -> tuple[str, dict[str, Any]]:
        ascending = query.direction is SearchDirection.FORWARD
        order = "asc" if ascending else "desc"
        wheres: list[str] = []
        params: dict[str, Any] = {}

        if query.start_time is not None:
            wheres.append(
                "start_timestamp > :start_time"
                if ascending
                else "start_timestamp < :start_time"
            )
            params["start_time"] = _to_millis(query.start_time)
        if query.end_time is not None:
            wheres.append(
                ":end_time >= start_timestamp"
                if ascending
                else ":end_time <= start_timestamp"
            )
            params["end_time"] = _to_millis(query.end_time)
        if query.start_id is not None:
            wheres.append("id > :start_id" if ascending else "id < :start_id")
            params["start_id"] = int(query.start_id)
        if query.end_id is not None:
            wheres.append(":end_id >= id" if ascending else ":end_id <= id")
            params["end_id"] = int(query.end_id)

        limit = ""
        if query.limit is not None:
            params["limit"] = query.limit
            limit = "limit :limit"

        flt = query.filter
        if flt.command_line is not None:
            search = flt.command_line
            if search.kind is SearchKind.EXACT:
                pattern = search.text
            elif search.kind is SearchKind.PREFIX:
                pattern = f"{search.text}%"
            else:
                pattern = f"%{search.text}%"
            wheres.append("command_line like :command_line")
            params["command_line"] = pattern
        if flt.not_command_line is not None:
            wheres.append("command_line != :not_cmd")
            params["not_cmd"] = flt.not_command_line
        if flt.hostname is not None:
            wheres.append("hostname = :hostname")
            params["hostname"] = flt.hostname
        if flt.cwd_exact is not None:
            wheres.append("cwd = :cwd")
            params["cwd"] = flt.cwd_exact
        if flt.cwd_prefix is not None:
            wheres.append("cwd like :cwd_like")
            params["cwd_like"] = f"{flt.cwd_prefix}%"
        if flt.exit_successful is not None:
            wheres.append("exit_status = 0" if flt.exit_successful else "exit_status != 0")
        if flt.session is not None and self._session_timestamp is not None:
            wheres.append(
                "(session_id = :session_id OR start_timestamp < :session_timestamp)"
            )
            params["session_id"] = int(flt.session)
            params["session_timestamp"] = _to_millis(self._session_timestamp)

        condition = " and ".join(wheres) or "true"
        sql = (
            f"SELECT {select_expression} FROM history "
            f"WHERE ({condition}) ORDER BY id {order} {limit}"
        )
        return sql, params