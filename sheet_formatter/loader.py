"""
loader.py — Decode spreadsheet bytes into a CanonicalTable

Supports: .xlsx .xlsm (openpyxl), .xls (pandas + xlrd), .csv .tsv (chardet + csv)

Public API:
    check_upload("report.xlsx", size)     # accept-list + size limit
    table = decode(data, "report.xlsx")
    table = load_file("path/to/report.csv")

The first sheet (by storage order) is used. Its first row becomes the headers,
every header coerced to text; the remaining rows keep their native cell types.
"""

from __future__ import annotations

import csv
import io
import math
import re
from collections import Counter
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import BinaryIO, Union

import chardet
from openpyxl import load_workbook
from openpyxl.utils.datetime import to_excel

from sheet_formatter import settings
from sheet_formatter.errors import (
    EmptyFileError,
    FileTooLargeError,
    ParseError,
    ReadError,
    UnsupportedFormatError,
)
from sheet_formatter.table import CanonicalTable, Cell

# ── Format groups ──────────────────────────────────────────────────────────────
WORKBOOK_FORMATS = {".xlsx", ".xlsm"}
LEGACY_WORKBOOK_FORMATS = {".xls"}
TEXT_FORMATS = {".csv", ".tsv"}
DECODABLE_FORMATS = WORKBOOK_FORMATS | LEGACY_WORKBOOK_FORMATS | TEXT_FORMATS

# The upload widget offers these too, but nothing here can decode them.
DOCUMENT_FORMATS = {".docx", ".doc", ".pdf", ".txt", ".json"}
ACCEPTED_UPLOAD_FORMATS = DECODABLE_FORMATS | DOCUMENT_FORMATS

NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
LEADING_ZERO_RE = re.compile(r"^[+-]?0\d")
BOOLEAN_TEXT = {"true": True, "false": False}


def file_suffix(filename: str) -> str:
    return Path(filename).suffix.lower()


def check_upload(filename: str, size: int) -> str:
    """
    Validate an upload before decoding. Returns the lower-cased suffix.

    Document formats pass the upload widget but have no decoder; they are
    rejected here by name rather than failing later as a parse error.
    """
    suffix = file_suffix(filename)
    if suffix not in ACCEPTED_UPLOAD_FORMATS:
        supported = ", ".join(sorted(DECODABLE_FORMATS))
        raise UnsupportedFormatError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. Supported: {supported}"
        )
    if suffix in DOCUMENT_FORMATS:
        raise UnsupportedFormatError(
            f"{suffix} files can be selected but cannot be formatted yet; "
            "only .xlsx, .xlsm, .xls, .csv and .tsv spreadsheets are decoded."
        )
    limit = settings.max_upload_bytes()
    if size > limit:
        raise FileTooLargeError(size, limit)
    return suffix


def read_upload(source: Union[str, Path, BinaryIO]) -> bytes:
    """Read a path or an open binary stream to completion."""
    try:
        if isinstance(source, (str, Path)):
            return Path(source).read_bytes()
        if hasattr(source, "getvalue"):
            return bytes(source.getvalue())
        return bytes(source.read())
    except OSError as exc:
        raise ReadError(f"Failed to read the file: {exc}") from exc


# ══════════════════════════════════════════════════════════════════════════════
# CELL COERCION
# ══════════════════════════════════════════════════════════════════════════════

def _workbook_value(value: object, *, whole_floats_as_int: bool = False) -> Cell:
    """Map an openpyxl/pandas value onto the table's cell kinds."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (datetime, date, time, timedelta)):
        # Dates go back to the serial number the workbook stores.
        value = to_excel(value)
        whole_floats_as_int = True
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        if whole_floats_as_int and value.is_integer():
            return int(value)
        return value
    if isinstance(value, int):
        return value
    return str(value)


def _header_text(value: Cell) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def sniff_text_cell(raw: str) -> Cell:
    """Give a delimited-text cell the type a spreadsheet app would read it as."""
    if raw == "":
        return None
    stripped = raw.strip()
    lowered = stripped.lower()
    if lowered in BOOLEAN_TEXT:
        return BOOLEAN_TEXT[lowered]
    if NUMBER_RE.match(stripped) and not LEADING_ZERO_RE.match(stripped):
        if not any(marker in stripped for marker in (".", "e", "E")):
            return int(stripped)
        number = float(stripped)
        # "1e999" overflows to inf, which a workbook cannot store.
        if math.isfinite(number):
            return number
    return raw


def _trim_trailing_blanks(row: list) -> list:
    end = len(row)
    while end and (row[end - 1] is None or row[end - 1] == ""):
        end -= 1
    return row[:end]


def _grid_to_table(grid: list[list[Cell]]) -> CanonicalTable:
    rows = [_trim_trailing_blanks(list(row)) for row in grid]
    while rows and not rows[-1]:
        rows.pop()
    if not rows:
        raise EmptyFileError("The file appears to be empty")
    headers = [_header_text(value) for value in rows[0]]
    return CanonicalTable.from_grid(headers, rows[1:])


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Also strips embedded null bytes so the csv reader doesn't choke.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to scoring each candidate delimiter by
    column-count consistency and column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in [",", ";", "\t", "|"]:
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            continue
        widths = Counter(len(row) for row in rows)
        mode_width, mode_count = widths.most_common(1)[0]
        score = (mode_width * 2.0) + (mode_count / len(rows)) * mode_width
        if len(rows[0]) == mode_width:
            score += 1.0
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT DECODERS
# ══════════════════════════════════════════════════════════════════════════════

def _decode_text(data: bytes, suffix: str) -> CanonicalTable:
    if not data.strip():
        raise EmptyFileError("The file appears to be empty")
    text = _read_text_safely(data, _detect_encoding(data))
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    try:
        grid = [[sniff_text_cell(cell) for cell in row] for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as exc:
        raise ParseError(f"Could not parse {suffix} file: {exc}") from exc
    return _grid_to_table(grid)


def _decode_workbook(data: bytes) -> CanonicalTable:
    try:
        # Full load: iter_rows then follows the cells, not the stored <dimension>.
        wb = load_workbook(io.BytesIO(data), data_only=True)
    except Exception as exc:
        raise ParseError(
            "Failed to process the Excel file. Please ensure it's a valid Excel file."
        ) from exc
    try:
        if not wb.worksheets:
            raise EmptyFileError("The workbook has no sheets")
        ws = wb.worksheets[0]
        grid = [[_workbook_value(value) for value in row] for row in ws.iter_rows(values_only=True)]
    except EmptyFileError:
        raise
    except Exception as exc:
        raise ParseError(f"Could not read workbook: {exc}") from exc
    finally:
        wb.close()
    return _grid_to_table(grid)


def _decode_legacy_workbook(data: bytes) -> CanonicalTable:
    import pandas as pd

    try:
        import xlrd  # noqa: F401
    except ImportError as exc:
        raise ParseError(".xls files require xlrd. Run: pip install xlrd") from exc

    try:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, engine="xlrd")
    except Exception as exc:
        raise ParseError(
            "Failed to process the Excel file. Please ensure it's a valid Excel file."
        ) from exc
    frame = df.astype(object).where(df.notna(), None)
    grid = [[_workbook_value(value, whole_floats_as_int=True) for value in row] for row in frame.values.tolist()]
    return _grid_to_table(grid)


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def decode(data: bytes, filename: str) -> CanonicalTable:
    """
    Decode file bytes into a CanonicalTable.

    Raises:
        UnsupportedFormatError  if the extension has no decoder.
        EmptyFileError          if the first sheet has zero rows.
        ParseError              if the bytes are not a readable workbook/table.
    """
    suffix = file_suffix(filename)
    if suffix in WORKBOOK_FORMATS:
        return _decode_workbook(data)
    if suffix in LEGACY_WORKBOOK_FORMATS:
        return _decode_legacy_workbook(data)
    if suffix in TEXT_FORMATS:
        return _decode_text(data, suffix)
    supported = ", ".join(sorted(DECODABLE_FORMATS))
    raise UnsupportedFormatError(
        f"Unsupported file type '{suffix or '[missing extension]'}'. Supported: {supported}"
    )


def load_file(path: Union[str, Path]) -> CanonicalTable:
    """Check, read and decode a file on disk."""
    path = Path(path)
    if not path.exists():
        raise ReadError(f"File not found: {path}")
    check_upload(path.name, path.stat().st_size)
    return decode(read_upload(path), path.name)
