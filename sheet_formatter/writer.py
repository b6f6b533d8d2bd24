from __future__ import annotations

import io
import math
import re
from pathlib import Path

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from sheet_formatter.errors import EncodeError
from sheet_formatter.settings import OUTPUT_SHEET_TITLE, OUTPUT_SUFFIX
from sheet_formatter.table import CanonicalTable, display_value

OUTPUT_EXTENSION = ".xlsx"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
HEADER_COLOR = "4F46E5"
EXTENSION_RE = re.compile(r"\.[^/.]+$")


def _style_header(ws, col_widths: list[int]) -> None:
    """Bold white header on a solid fill, frozen first row, column widths."""
    fill = PatternFill("solid", fgColor=HEADER_COLOR)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(table: CanonicalTable, min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    widths = [min_width] * table.width
    for i, header in enumerate(table.headers):
        widths[i] = max(widths[i], min(max_width, len(header) + 2))
    for row in table.rows[:sample]:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(display_value(value)) + 2))
    return widths


def _writable_row(row: tuple) -> list:
    for value in row:
        # NaN and inf have no .xlsx representation; openpyxl would drop them silently.
        if isinstance(value, float) and not math.isfinite(value):
            raise EncodeError(f"Could not write the formatted workbook: {value!r} is not a finite number")
    return list(row)


def encode(table: CanonicalTable) -> bytes:
    """
    Serialize a table to a single-sheet .xlsx workbook.

    Cell values are written as-is; anything openpyxl refuses (unsupported
    types, illegal control characters, non-finite numbers) surfaces as
    EncodeError.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = OUTPUT_SHEET_TITLE
    try:
        ws.append(list(table.headers))
        for row in table.rows:
            ws.append(_writable_row(row))
        if table.headers:
            _style_header(ws, _infer_col_widths(table))
        buffer = io.BytesIO()
        wb.save(buffer)
    except (IllegalCharacterError, TypeError, ValueError) as exc:
        raise EncodeError(f"Could not write the formatted workbook: {exc}") from exc
    return buffer.getvalue()


def output_filename(original_name: str) -> str:
    """'sales.csv' -> 'sales_formatted.xlsx'; names without an extension get the suffix appended."""
    target = OUTPUT_SUFFIX + OUTPUT_EXTENSION
    if EXTENSION_RE.search(original_name):
        return EXTENSION_RE.sub(target, original_name)
    return original_name + target


def save_bytes(data: bytes, path: Path, *, overwrite: bool = False) -> Path:
    if path.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing output: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
