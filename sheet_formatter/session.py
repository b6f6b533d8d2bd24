"""
session.py — One upload/format cycle, independent of any UI toolkit

States move upload -> preview -> complete; reset() returns to upload. Every
format run starts from the decoded table, never from a previous result, and a
failed upload or format leaves the tables already held untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sheet_formatter.errors import FormatterError
from sheet_formatter.loader import check_upload, decode
from sheet_formatter.pipeline import FormatOptions, describe_changes, format_table
from sheet_formatter.table import CanonicalTable
from sheet_formatter.writer import encode, output_filename

STATE_UPLOAD = "upload"
STATE_PREVIEW = "preview"
STATE_COMPLETE = "complete"


@dataclass
class FormatSession:
    state: str = STATE_UPLOAD
    file_name: str = ""
    original: Optional[CanonicalTable] = None
    formatted: Optional[CanonicalTable] = None
    options: Optional[FormatOptions] = None
    changes: dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None

    def upload(self, filename: str, data: bytes) -> CanonicalTable:
        self.error = None
        try:
            check_upload(filename, len(data))
            table = decode(data, filename)
        except FormatterError as exc:
            self.error = str(exc)
            raise
        self.file_name = filename
        self.original = table
        self.formatted = None
        self.options = None
        self.changes = {}
        self.state = STATE_PREVIEW
        return table

    def format(self, options: FormatOptions) -> CanonicalTable:
        if self.original is None:
            raise FormatterError("Upload a file before formatting.")
        self.error = None
        try:
            result = format_table(self.original, options)
            changes = describe_changes(self.original, options)
        except FormatterError as exc:
            self.error = str(exc)
            self.state = STATE_PREVIEW
            raise
        self.formatted = result
        self.options = options
        self.changes = changes
        self.state = STATE_COMPLETE
        return result

    def export(self) -> tuple[str, bytes]:
        if self.formatted is None:
            raise FormatterError("Format the file before downloading.")
        try:
            data = encode(self.formatted)
        except FormatterError as exc:
            self.error = str(exc)
            raise
        return output_filename(self.file_name), data

    def reset(self) -> None:
        self.state = STATE_UPLOAD
        self.file_name = ""
        self.original = None
        self.formatted = None
        self.options = None
        self.changes = {}
        self.error = None
