"""
pipeline.py — Fixed, ordered cleaning passes over a CanonicalTable

Public API:
    options = FormatOptions(clean_data=True, format_dates=False)
    result  = format_table(table, options)

Passes run in this order when enabled, each on the previous pass's output:
    trim_cells           collapse whitespace runs in string cells
    standardize_headers  "first NAME!!" -> "First Name"
    drop_empty_rows      rows whose cells are all None / ""
    normalize_dates      workbook serials and ISO-prefixed strings -> M/D/YYYY

Every pass is pure: it never mutates its input and never touches
original_rows. Nothing here sleeps, reads files or logs.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields
from datetime import date, datetime, timedelta
from typing import Any, Callable, Mapping

from sheet_formatter.errors import OptionsError
from sheet_formatter.table import CanonicalTable, Cell, CellKind, cell_kind, is_blank

WHITESPACE_RUN_RE = re.compile(r"\s+")
NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
UNDERSCORE_RUN_RE = re.compile(r"_+")
ISO_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

# Windows epoch; counting from 1899-12-30 absorbs the phantom 1900-02-29.
EXCEL_EPOCH = datetime(1899, 12, 30)
SERIAL_DATE_MIN = 25_000
SERIAL_DATE_MAX = 50_000
SECONDS_PER_DAY = 86_400

# camelCase keys used by the browser app's options payload
CAMEL_CASE_KEYS = {
    "cleanData": "clean_data",
    "standardizeHeaders": "standardize_headers",
    "removeEmpty": "remove_empty",
    "formatDates": "format_dates",
    "addSummary": "add_summary",
    "customPrompt": "custom_prompt",
}


@dataclass(frozen=True)
class FormatOptions:
    clean_data: bool = True
    standardize_headers: bool = True
    remove_empty: bool = True
    format_dates: bool = True
    # Reserved: accepted and carried, no transformation attached yet.
    add_summary: bool = False
    custom_prompt: str = ""

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "FormatOptions":
        """Build options from snake_case or camelCase keys; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for raw_key, value in payload.items():
            key = CAMEL_CASE_KEYS.get(raw_key, raw_key)
            if key not in known:
                raise OptionsError(f"Unknown formatting option: {raw_key}")
            if key == "custom_prompt":
                if value is None:
                    value = ""
                if not isinstance(value, str):
                    raise OptionsError("custom_prompt must be a string")
            elif not isinstance(value, bool):
                raise OptionsError(f"{raw_key} must be true or false, got {value!r}")
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def reserved_in_use(self) -> list[str]:
        """Reserved options the caller set; they have no effect on the output."""
        used = []
        if self.add_summary:
            used.append("add_summary")
        if self.custom_prompt.strip():
            used.append("custom_prompt")
        return used


def _map_cells(table: CanonicalTable, fn: Callable[[Cell], Cell]) -> CanonicalTable:
    return table.replace(rows=[[fn(value) for value in row] for row in table.rows])


# ── Trim ───────────────────────────────────────────────────────────────────────

def trim_cell(value: Cell) -> Cell:
    if cell_kind(value) is CellKind.STRING:
        return WHITESPACE_RUN_RE.sub(" ", value).strip()
    return value


def trim_cells(table: CanonicalTable) -> CanonicalTable:
    return _map_cells(table, trim_cell)


# ── Headers ────────────────────────────────────────────────────────────────────

def standardize_header(header: str) -> str:
    slug = NON_ALNUM_RE.sub("_", header.lower())
    slug = UNDERSCORE_RUN_RE.sub("_", slug).strip("_")
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("_"))


def standardize_headers(table: CanonicalTable) -> CanonicalTable:
    # Collisions ("E-mail" and "e mail") are kept as-is.
    return table.replace(headers=[standardize_header(header) for header in table.headers])


# ── Empty rows ─────────────────────────────────────────────────────────────────

def is_empty_row(row: tuple) -> bool:
    return all(is_blank(value) for value in row)


def drop_empty_rows(table: CanonicalTable) -> CanonicalTable:
    return table.replace(rows=[row for row in table.rows if not is_empty_row(row)])


# ── Dates ──────────────────────────────────────────────────────────────────────

def _short_date(value: date) -> str:
    """Default short date rendering (en-US): month/day/year without padding."""
    return f"{value.month}/{value.day}/{value.year}"


def serial_to_date(serial: float) -> date:
    days = math.floor(serial)
    # Time of day rounds to the nearest second; 23:59:59.5 and later is the next day.
    if (serial - days) * SECONDS_PER_DAY >= SECONDS_PER_DAY - 0.5:
        days += 1
    return (EXCEL_EPOCH + timedelta(days=days)).date()


def normalize_date_cell(value: Cell) -> Cell:
    kind = cell_kind(value)
    if kind is CellKind.NUMBER:
        if SERIAL_DATE_MIN < value < SERIAL_DATE_MAX:
            return _short_date(serial_to_date(value))
        return value
    if kind is CellKind.STRING:
        match = ISO_DATE_PREFIX_RE.match(value)
        if not match:
            return value
        year, month, day = (int(part) for part in match.groups())
        try:
            parsed = date(year, month, day)
        except ValueError:
            return value
        return _short_date(parsed)
    return value


def normalize_dates(table: CanonicalTable) -> CanonicalTable:
    return _map_cells(table, normalize_date_cell)


# ── Pipeline ───────────────────────────────────────────────────────────────────

PASSES: tuple[tuple[str, Callable[[CanonicalTable], CanonicalTable]], ...] = (
    ("clean_data", trim_cells),
    ("standardize_headers", standardize_headers),
    ("remove_empty", drop_empty_rows),
    ("format_dates", normalize_dates),
)


def format_table(table: CanonicalTable, options: FormatOptions) -> CanonicalTable:
    result = table
    for option_name, apply_pass in PASSES:
        if getattr(options, option_name):
            result = apply_pass(result)
    return result


def _changed_cells(before: CanonicalTable, after: CanonicalTable) -> int:
    count = 0
    for old_row, new_row in zip(before.rows, after.rows):
        for old, new in zip(old_row, new_row):
            if old != new or type(old) is not type(new):
                count += 1
    return count


def describe_changes(table: CanonicalTable, options: FormatOptions) -> dict[str, int]:
    """Per-pass change counts for the same run format_table would do."""
    counts = {"cells_trimmed": 0, "headers_renamed": 0, "rows_dropped": 0, "dates_normalized": 0}
    current = table
    if options.clean_data:
        trimmed = trim_cells(current)
        counts["cells_trimmed"] = _changed_cells(current, trimmed)
        current = trimmed
    if options.standardize_headers:
        renamed = standardize_headers(current)
        counts["headers_renamed"] = sum(1 for old, new in zip(current.headers, renamed.headers) if old != new)
        current = renamed
    if options.remove_empty:
        kept = drop_empty_rows(current)
        counts["rows_dropped"] = current.row_count - kept.row_count
        current = kept
    if options.format_dates:
        dated = normalize_dates(current)
        counts["dates_normalized"] = _changed_cells(current, dated)
        current = dated
    counts["rows_out"] = current.row_count
    return counts
