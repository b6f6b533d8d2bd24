"""
table.py — Canonical in-memory table shared by the decoder, pipeline and encoder

A table is headers + rows + the snapshot of rows as decoded. Tables are
immutable; every pass builds a new one through CanonicalTable.replace(), which
always carries original_rows forward.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

Cell = Union[str, int, float, bool, None]
Row = tuple


class CellKind(enum.Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EMPTY = "empty"


def cell_kind(value: Cell) -> CellKind:
    """Classify a cell. Booleans are checked before numbers since bool subclasses int."""
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, (int, float)):
        return CellKind.NUMBER
    if isinstance(value, str):
        return CellKind.STRING
    raise TypeError(f"Unsupported cell value {value!r} ({type(value).__name__})")


def is_blank(value: Cell) -> bool:
    """A cell is blank when absent or the empty string; 0, False and '  ' are not."""
    return value is None or value == ""


def display_value(value: Cell) -> str:
    kind = cell_kind(value)
    if kind is CellKind.EMPTY:
        return ""
    if kind is CellKind.BOOLEAN:
        return "TRUE" if value else "FALSE"
    if kind is CellKind.NUMBER and isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def freeze_rows(rows: Iterable[Iterable[Cell]]) -> tuple[Row, ...]:
    return tuple(tuple(row) for row in rows)


@dataclass(frozen=True)
class CanonicalTable:
    headers: tuple[str, ...]
    rows: tuple[Row, ...]
    original_rows: tuple[Row, ...] = field(default=None, repr=False, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", tuple(self.headers))
        object.__setattr__(self, "rows", freeze_rows(self.rows))
        if self.original_rows is None:
            object.__setattr__(self, "original_rows", self.rows)
        else:
            object.__setattr__(self, "original_rows", freeze_rows(self.original_rows))

    @classmethod
    def from_grid(cls, headers: Iterable[str], rows: Iterable[Iterable[Cell]]) -> "CanonicalTable":
        return cls(headers=tuple(headers), rows=freeze_rows(rows))

    def replace(
        self,
        *,
        headers: Optional[Iterable[str]] = None,
        rows: Optional[Iterable[Iterable[Cell]]] = None,
    ) -> "CanonicalTable":
        return CanonicalTable(
            headers=self.headers if headers is None else tuple(headers),
            rows=self.rows if rows is None else freeze_rows(rows),
            original_rows=self.original_rows,
        )

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return self._span(self.rows)

    def _span(self, rows: tuple[Row, ...]) -> int:
        longest = max((len(row) for row in rows), default=0)
        return max(len(self.headers), longest)

    def padded_rows(self, limit: Optional[int] = None, *, original: bool = False) -> list[list[Cell]]:
        """Rows right-padded with None to the table width, for display."""
        rows = self.original_rows if original else self.rows
        width = self._span(rows)
        if limit is not None:
            rows = rows[:limit]
        return [list(row) + [None] * (width - len(row)) for row in rows]

    def display_headers(self, width: Optional[int] = None) -> list[str]:
        """Unique, non-blank column labels. The table's own headers are left as they are."""
        labels: list[str] = []
        seen: dict[str, int] = {}
        for idx in range(self.width if width is None else width):
            raw = self.headers[idx] if idx < len(self.headers) else ""
            label = raw.strip() or f"Column {idx + 1}"
            count = seen.get(label, 0) + 1
            seen[label] = count
            labels.append(label if count == 1 else f"{label} ({count})")
        return labels

    def to_frame(self, limit: Optional[int] = None, *, original: bool = False):
        """Preview of the working (or original) rows as a string DataFrame."""
        import pandas as pd

        body = [[display_value(value) for value in row] for row in self.padded_rows(limit, original=original)]
        width = self._span(self.original_rows if original else self.rows)
        return pd.DataFrame(body, columns=self.display_headers(width))

    def summary(self) -> dict:
        return {
            "rows": self.row_count,
            "columns": self.width,
            "original_rows": len(self.original_rows),
            "empty_rows": sum(1 for row in self.rows if all(is_blank(value) for value in row)),
        }
