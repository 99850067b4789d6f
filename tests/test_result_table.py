import csv
import io
import locale
import logging

import pytest

from sqllab.services.models import QueryResult
from sqllab.ui.result_table import (
    MemoryClipboard,
    ResultTable,
    SortDirection,
    render_cell,
    use_system_collation,
)


def make_result(columns, rows, limited=False):
    return QueryResult(
        columns=tuple(columns),
        rows=tuple(tuple(r) for r in rows),
        row_count=len(rows),
        duration=3,
        limited=limited,
    )


class BrokenClipboard:
    def write_text(self, text):
        raise RuntimeError("clipboard unavailable")


def test_query_result_rejects_ragged_rows():
    with pytest.raises(ValueError):
        make_result(["a", "b"], [[1, 2], [3]])


def test_render_cell():
    assert render_cell(None) == "NULL"
    assert render_cell("") == ""
    assert render_cell(42) == "42"
    assert render_cell(1.5) == "1.5"
    assert render_cell({"a": [1, 2]}) == '{"a": [1, 2]}'
    assert render_cell(b"\x01\xab") == "X'01AB'"


def test_sort_numeric_column_puts_nulls_last():
    table = ResultTable()
    table.show(result=make_result(["n", "s"], [[2, "b"], [None, "a"], [1, "c"]]))

    table.toggle_sort(0)
    assert table.displayed_rows == [(1, "c"), (2, "b"), (None, "a")]

    table.toggle_sort(0)
    assert table.sort_direction == SortDirection.DESC
    assert table.displayed_rows == [(2, "b"), (1, "c"), (None, "a")]


def test_sort_numbers_numerically_not_as_text():
    table = ResultTable()
    table.show(result=make_result(["n"], [[10], [9], [100], [2.5]]))
    table.toggle_sort(0)
    assert [r[0] for r in table.displayed_rows] == [2.5, 9, 10, 100]


def test_sort_text_and_mixed_values():
    table = ResultTable()
    table.show(result=make_result(["v"], [["pear"], [None], ["apple"], ["fig"]]))
    table.toggle_sort(0)
    assert [r[0] for r in table.displayed_rows] == ["apple", "fig", "pear", None]


@pytest.fixture
def user_collation(monkeypatch):
    saved = locale.setlocale(locale.LC_COLLATE)
    locale.setlocale(locale.LC_COLLATE, "C")
    try:
        for name in ("en_US.UTF-8", "en_GB.UTF-8", "de_DE.UTF-8"):
            monkeypatch.setenv("LC_ALL", name)
            use_system_collation()
            if locale.setlocale(locale.LC_COLLATE) != "C":
                yield locale.setlocale(locale.LC_COLLATE)
                break
        else:
            pytest.skip("no UTF-8 language locale installed")
    finally:
        locale.setlocale(locale.LC_COLLATE, saved)


def test_sort_text_follows_user_locale(user_collation):
    table = ResultTable()
    table.show(result=make_result(["v"], [[v] for v in ["fig", "éclair", "b", "A", "a", "B"]]))
    table.toggle_sort(0)
    ordered = [r[0] for r in table.displayed_rows]
    # accents sort with their base letter and case variants stay together
    assert [v.lower() for v in ordered] == ["a", "a", "b", "b", "éclair", "fig"]


def test_use_system_collation_keeps_current_locale_when_unknown(monkeypatch, caplog):
    saved = locale.setlocale(locale.LC_COLLATE)
    monkeypatch.setenv("LC_ALL", "xx_NOPE.UTF-8")
    with caplog.at_level(logging.WARNING, logger="sqllab.ui"):
        use_system_collation()
    assert locale.setlocale(locale.LC_COLLATE) == saved
    assert "could not apply system collation" in caplog.text


def test_new_column_resets_to_ascending():
    table = ResultTable()
    table.show(result=make_result(["a", "b"], [[1, 2]]))
    table.toggle_sort(0)
    table.toggle_sort(0)
    table.toggle_sort(1)
    assert (table.sort_column, table.sort_direction) == (1, SortDirection.ASC)


def test_reset_sort_restores_original_order():
    table = ResultTable()
    table.show(result=make_result(["n"], [[3], [1], [2]]))
    table.toggle_sort(0)
    table.reset_sort()
    assert table.sort_column is None
    assert table.displayed_rows == [(3,), (1,), (2,)]


def test_sort_rejects_unknown_column():
    table = ResultTable()
    with pytest.raises(IndexError):
        table.toggle_sort(0)
    table.show(result=make_result(["a"], [[1]]))
    with pytest.raises(IndexError):
        table.toggle_sort(3)


def test_error_replaces_table():
    table = ResultTable()
    table.show(result=make_result(["a"], [[1]]))
    table.show(error="no such table: x")
    assert table.result is None
    assert table.displayed_rows == []
    state = table.state()
    assert state["error"] == "no such table: x"
    assert state["rows"] == []
    assert table.render_text() == "Error: no such table: x"


def test_csv_quoting():
    table = ResultTable()
    table.show(result=make_result(["c1", "c2"], [["a,b", None], ['x"y', 3]]))
    assert table.to_csv() == 'c1,c2\n"a,b",\n"x""y",3'


def test_csv_follows_displayed_order():
    table = ResultTable()
    table.show(result=make_result(["n"], [[2], [None], [1]]))
    table.toggle_sort(0)
    assert table.to_csv() == "n\n1\n2\n"


def test_csv_round_trips_through_csv_reader():
    values = ["plain", "comma, inside", 'say "hi"', "multi\nline", "  padded  "]
    table = ResultTable()
    table.show(result=make_result(["text", "odd,name"], [[v, None] for v in values]))

    parsed = list(csv.reader(io.StringIO(table.to_csv())))
    assert parsed[0] == ["text", "odd,name"]
    assert [row[0] for row in parsed[1:]] == values
    assert all(row[1] == "" for row in parsed[1:])


def test_copy_csv_writes_clipboard_and_notifies():
    clipboard = MemoryClipboard()
    copied = []
    table = ResultTable(clipboard=clipboard)
    table.on_copied(copied.append)
    table.show(result=make_result(["a"], [[1], [2]]))

    assert table.copy_csv() is True
    assert clipboard.text == "a\n1\n2"
    assert copied == [2]
    assert table.last_copied == clipboard.text


def test_copy_csv_failure_is_logged_not_raised(caplog):
    copied = []
    table = ResultTable(clipboard=BrokenClipboard())
    table.on_copied(copied.append)
    table.show(result=make_result(["a"], [[1]]))

    with caplog.at_level(logging.ERROR, logger="sqllab.ui"):
        assert table.copy_csv() is False
    assert "failed to write CSV to clipboard" in caplog.text
    assert copied == []
    assert table.last_copied is None


def test_copy_csv_without_result():
    assert ResultTable().copy_csv() is False


def test_render_text_grid():
    table = ResultTable()
    table.show(result=make_result(["id", "region"], [[1, "EU"], [2, None]], limited=True))
    lines = table.render_text().splitlines()
    assert lines[0] == "id | region"
    assert lines[2] == "1  | EU    "
    assert lines[3] == "2  | NULL  "
    assert lines[-1] == "(results limited to 2 rows)"
