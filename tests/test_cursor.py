import threading

import pytest

from shellrecall.base import (
    HistoryNavigationQuery,
    NavigationMode,
    SearchDirection,
    SearchQuery,
)
from shellrecall.cursor import HistoryCursor
from shellrecall.file_backed import FileBackedHistory
from shellrecall.item import HistoryItem
from shellrecall.sqlite_backed import SqliteBackedHistory


@pytest.fixture(params=["file", "sqlite"])
def hist(request):
    if request.param == "file":
        history = FileBackedHistory()
        yield history
    else:
        history = SqliteBackedHistory.in_memory()
        yield history
        history.close()


def normal_cursor():
    return HistoryCursor(HistoryNavigationQuery(NavigationMode.NORMAL, ""), None)


def prefix_cursor(text):
    return HistoryCursor(HistoryNavigationQuery(NavigationMode.PREFIX_SEARCH, text), None)


def substring_cursor(text):
    return HistoryCursor(
        HistoryNavigationQuery(NavigationMode.SUBSTRING_SEARCH, text), None
    )


def save_all(history, entries):
    for entry in entries:
        history.save(HistoryItem.from_command_line(entry))


def all_texts(history):
    return [
        item.command_line
        for item in history.search(SearchQuery.everything(SearchDirection.FORWARD, None))
    ]


def test_accessing_empty_history_returns_nothing():
    assert normal_cursor().string_at_cursor() is None


def test_going_forward_in_empty_history_does_not_error_out(hist):
    cursor = normal_cursor()
    cursor.forward(hist)
    assert cursor.string_at_cursor() is None


def test_going_backwards_in_empty_history_does_not_error_out(hist):
    cursor = normal_cursor()
    cursor.back(hist)
    assert cursor.string_at_cursor() is None


def test_going_backwards_bottoms_out(hist):
    save_all(hist, ["command1", "command2"])
    cursor = normal_cursor()
    for _ in range(5):
        cursor.back(hist)
    assert cursor.string_at_cursor() == "command1"


def test_going_forwards_bottoms_out(hist):
    save_all(hist, ["command1", "command2"])
    cursor = normal_cursor()
    for _ in range(5):
        cursor.forward(hist)
    assert cursor.string_at_cursor() is None


def test_appends_only_unique():
    history = FileBackedHistory()
    save_all(history, ["unique_old", "test", "test", "unique"])
    assert history.count_all() == 3


def test_prefix_search_works(hist):
    save_all(hist, ["find me as well", "test", "find me"])
    cursor = prefix_cursor("find")
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me"
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me as well"


def test_prefix_search_bottoms_out(hist):
    save_all(hist, ["find me as well", "test", "find me"])
    cursor = prefix_cursor("find")
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me"
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me as well"
    for _ in range(4):
        cursor.back(hist)
    assert cursor.string_at_cursor() == "find me as well"


def test_prefix_search_returns_to_none(hist):
    save_all(hist, ["find me as well", "test", "find me"])
    cursor = prefix_cursor("find")
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me"
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me as well"
    cursor.forward(hist)
    assert cursor.string_at_cursor() == "find me"
    cursor.forward(hist)
    assert cursor.string_at_cursor() is None
    cursor.forward(hist)
    assert cursor.string_at_cursor() is None


def test_prefix_search_ignores_consecutive_equivalent_entries_going_backwards(hist):
    save_all(hist, ["find me as well", "find me once", "test", "find me once"])
    cursor = prefix_cursor("find")
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me once"
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me as well"


def test_prefix_search_ignores_consecutive_equivalent_entries_going_forwards(hist):
    save_all(hist, ["find me once", "test", "find me once", "find me as well"])
    cursor = prefix_cursor("find")
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me as well"
    cursor.back(hist)
    cursor.back(hist)
    assert cursor.string_at_cursor() == "find me once"
    cursor.forward(hist)
    assert cursor.string_at_cursor() == "find me as well"
    cursor.forward(hist)
    assert cursor.string_at_cursor() is None


def test_substring_search_works(hist):
    save_all(
        hist,
        [
            "substring",
            "don't find me either",
            "prefix substring",
            "don't find me",
            "prefix substring suffix",
        ],
    )
    cursor = substring_cursor("substring")
    cursor.back(hist)
    assert cursor.string_at_cursor() == "prefix substring suffix"
    cursor.back(hist)
    assert cursor.string_at_cursor() == "prefix substring"
    cursor.back(hist)
    assert cursor.string_at_cursor() == "substring"


def test_substring_search_with_empty_value_returns_none(hist):
    save_all(hist, ["substring"])
    cursor = substring_cursor("")
    assert cursor.string_at_cursor() is None


def test_get_navigation_returns_query():
    query = HistoryNavigationQuery(NavigationMode.PREFIX_SEARCH, "git")
    cursor = HistoryCursor(query, None)
    assert cursor.get_navigation() == query


def test_writes_to_new_file(tmp_path):
    histfile = tmp_path / "nested_path" / ".history"
    entries = ["test", "text", "more test text"]
    with FileBackedHistory.with_file(5, histfile) as history:
        save_all(history, entries)
    with FileBackedHistory.with_file(5, histfile) as reading:
        assert all_texts(reading) == entries


def test_persists_newlines_in_entries(tmp_path):
    histfile = tmp_path / ".history"
    entries = [
        "test",
        "multiline\nentry\nunix",
        "multiline\r\nentry\r\nwindows",
        "more test text",
    ]
    with FileBackedHistory.with_file(5, histfile) as history:
        save_all(history, entries)
    with FileBackedHistory.with_file(5, histfile) as reading:
        assert all_texts(reading) == entries


def test_truncates_file_to_capacity(tmp_path):
    histfile = tmp_path / ".history"
    capacity = 5
    expected_truncated = ["test 4", "test 5", "test 6", "test 7", "test 8"]

    with FileBackedHistory.with_file(capacity, histfile) as history:
        save_all(history, ["test 1", "test 2"])

    with FileBackedHistory.with_file(capacity, histfile) as history:
        save_all(history, ["test 3", "test 4"])
        assert all_texts(history) == ["test 1", "test 2", "test 3", "test 4"]

    with FileBackedHistory.with_file(capacity, histfile) as history:
        save_all(history, ["test 5", "test 6", "test 7", "test 8"])
        assert all_texts(history) == expected_truncated

    with FileBackedHistory.with_file(capacity, histfile) as reading:
        assert all_texts(reading) == expected_truncated


def test_truncates_too_large_file(tmp_path):
    histfile = tmp_path / ".history"
    previous = [f"test {i}" for i in range(1, 9)]
    expected = ["test 4", "test 5", "test 6", "test 7", "test 8"]

    with FileBackedHistory.with_file(10, histfile) as history:
        save_all(history, previous)

    with FileBackedHistory.with_file(5, histfile) as history:
        assert all_texts(history) == expected

    with FileBackedHistory.with_file(5, histfile) as reading:
        assert all_texts(reading) == expected


def test_concurrent_histories_do_not_erase_each_other(tmp_path):
    histfile = tmp_path / ".history"
    capacity = 7

    with FileBackedHistory.with_file(capacity, histfile) as history:
        save_all(history, ["test 1", "test 2", "test 3", "test 4", "test 5"])

    with FileBackedHistory.with_file(capacity, histfile) as hist_a:
        with FileBackedHistory.with_file(capacity, histfile) as hist_b:
            save_all(hist_b, ["B1", "B2", "B3"])
        save_all(hist_a, ["A1", "A2", "A3"])

    with FileBackedHistory.with_file(capacity, histfile) as reading:
        assert all_texts(reading) == ["test 5", "B1", "B2", "B3", "A1", "A2", "A3"]


def test_concurrent_histories_are_threadsafe(tmp_path):
    histfile = tmp_path / ".history"
    num_threads = 16
    capacity = 2 * num_threads + 1

    with FileBackedHistory.with_file(capacity, histfile) as history:
        save_all(history, [f"initial {i}" for i in range(capacity)])

    errors = []

    def worker(i):
        try:
            with FileBackedHistory.with_file(capacity, histfile) as hist:
                hist.save(HistoryItem.from_command_line(f"A{i}"))
                hist.sync()
                hist.save(HistoryItem.from_command_line(f"B{i}"))
        except Exception as err:  # collected and asserted below
            errors.append(err)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(num_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    with FileBackedHistory.with_file(capacity, histfile) as reading:
        actual = all_texts(reading)

    assert f"initial {capacity - 1}" in actual
    for i in range(num_threads):
        assert f"A{i}" in actual
        assert f"B{i}" in actual