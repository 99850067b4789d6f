"""
Result table view
Holds one query outcome (a QueryResult or an error message) and everything the
lab UI does with it locally: header-click sorting, cell rendering and CSV export.
"""
import json
import locale
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, List, Optional, Sequence

from sqllab.core.logging import get_logger
from sqllab.services.models import QueryResult

logger = get_logger("sqllab.ui")

NULL_MARKER = "NULL"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class MemoryClipboard:
    """Clipboard sink that keeps the last text written.

    The real system clipboard lives in the user's browser; the HTTP layer hands
    this text back to it.
    """

    def __init__(self):
        self.text: Optional[str] = None

    def write_text(self, text: str):
        self.text = text


def use_system_collation():
    """Collate text by the user's locale (LC_ALL/LC_COLLATE/LANG) instead of code points."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning("could not apply system collation, keeping %s: %s", locale.setlocale(locale.LC_COLLATE), e)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def render_cell(value: Any) -> str:
    if value is None:
        return NULL_MARKER
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "X'" + bytes(value).hex().upper() + "'"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def compare_values(a: Any, b: Any) -> int:
    """Ascending order of two non-null cells: numbers numerically, the rest by locale."""
    if _is_number(a) and _is_number(b):
        return (a > b) - (a < b)
    return locale.strcoll(render_cell(a), render_cell(b))


def _csv_quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _csv_field(value: Any) -> str:
    if value is None:
        return ""
    if _is_number(value):
        return str(value)
    return _csv_quote(render_cell(value))


def _csv_header(name: str) -> str:
    if any(ch in name for ch in ',"\r\n'):
        return _csv_quote(name)
    return name


class ResultTable:
    """Stateful view over a QueryResult or an error string."""

    def __init__(self, clipboard=None):
        self.clipboard = clipboard if clipboard is not None else MemoryClipboard()
        self.result: Optional[QueryResult] = None
        self.error: Optional[str] = None
        self.sort_column: Optional[int] = None
        self.sort_direction = SortDirection.ASC
        self.last_copied: Optional[str] = None
        self._copied_listeners: List[Callable[[int], None]] = []

    def show(self, result: Optional[QueryResult] = None, error: Optional[str] = None):
        """Replace what is displayed. An error hides the table entirely."""
        self.result = None if error else result
        self.error = error or None

    def toggle_sort(self, column: int):
        if self.result is None or not 0 <= column < len(self.result.columns):
            raise IndexError(f"no column at index {column}")
        if self.sort_column == column:
            self.sort_direction = (
                SortDirection.DESC if self.sort_direction == SortDirection.ASC else SortDirection.ASC
            )
        else:
            self.sort_column = column
            self.sort_direction = SortDirection.ASC

    def reset_sort(self):
        self.sort_column = None
        self.sort_direction = SortDirection.ASC

    @property
    def columns(self) -> Sequence[str]:
        return self.result.columns if self.result is not None else ()

    @property
    def displayed_rows(self) -> List[Sequence[Any]]:
        if self.result is None:
            return []
        rows = list(self.result.rows)
        col = self.sort_column
        if col is None or col >= len(self.result.columns):
            return rows

        descending = self.sort_direction == SortDirection.DESC

        def cmp(ra, rb):
            a, b = ra[col], rb[col]
            # nulls go after real values whichever way we sort
            if a is None and b is None:
                return 0
            if a is None:
                return 1
            if b is None:
                return -1
            result = compare_values(a, b)
            return -result if descending else result

        return sorted(rows, key=cmp_to_key(cmp))

    def rendered_rows(self) -> List[List[str]]:
        return [[render_cell(v) for v in row] for row in self.displayed_rows]

    def to_csv(self) -> str:
        lines = [",".join(_csv_header(c) for c in self.columns)]
        for row in self.displayed_rows:
            lines.append(",".join(_csv_field(v) for v in row))
        return "\n".join(lines)

    def on_copied(self, callback: Callable[[int], None]):
        """Register a listener called with the row count after a successful copy."""
        self._copied_listeners.append(callback)

    def copy_csv(self) -> bool:
        if self.result is None:
            return False
        text = self.to_csv()
        try:
            self.clipboard.write_text(text)
        except Exception:
            logger.exception("failed to write CSV to clipboard")
            return False
        self.last_copied = text
        row_count = len(self.result.rows)
        for callback in self._copied_listeners:
            callback(row_count)
        return True

    def render_text(self, max_rows: int = 100, max_width: int = 30) -> str:
        """Plain-text grid of the displayed rows, for terminals and JSON-RPC clients."""
        if self.error:
            return f"Error: {self.error}"
        if self.result is None:
            return "No query has been run."
        if not self.result.columns:
            return "Query returned no columns."

        rows = self.rendered_rows()
        widths = []
        for i, col in enumerate(self.columns):
            width = max([len(col)] + [len(r[i]) for r in rows])
            widths.append(min(width, max_width))

        lines = [" | ".join(c.ljust(w)[:w] for c, w in zip(self.columns, widths))]
        lines.append("-" * len(lines[0]))
        for row in rows[:max_rows]:
            lines.append(" | ".join(v.ljust(w)[:w] for v, w in zip(row, widths)))

        if len(rows) > max_rows:
            lines.append(f"\n... and {len(rows) - max_rows} more rows")
        if self.result.limited:
            lines.append(f"(results limited to {len(rows)} rows)")
        return "\n".join(lines)

    def state(self) -> dict:
        return {
            "columns": list(self.columns),
            "rows": self.rendered_rows(),
            "rowCount": self.result.row_count if self.result is not None else 0,
            "duration": self.result.duration if self.result is not None else None,
            "limited": self.result.limited if self.result is not None else False,
            "error": self.error,
            "sort": {
                "column": self.sort_column,
                "direction": self.sort_direction.value,
            },
        }
