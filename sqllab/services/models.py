from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one lab query. Rows are positionally aligned with columns."""
    columns: Tuple[str, ...]
    rows: Tuple[Tuple[Any, ...], ...]
    row_count: int
    duration: int  # milliseconds
    limited: bool = False

    def __post_init__(self):
        width = len(self.columns)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"row {i} has {len(row)} values, expected {width}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": list(self.columns),
            "rows": [list(r) for r in self.rows],
            "rowCount": self.row_count,
            "duration": self.duration,
            "limited": self.limited,
        }


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type: str
    notnull: bool
    pk: bool


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: List[ColumnInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": [
                {"name": c.name, "type": c.type, "notnull": c.notnull, "pk": c.pk}
                for c in self.columns
            ],
        }
