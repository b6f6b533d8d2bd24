"""Error kinds raised by the sheet-formatter core.

Every error is terminal for the operation that raised it. The core never
retries and never logs; surfaces turn these into messages or exit codes.
"""

from __future__ import annotations


class FormatterError(Exception):
    """Base class for every error the core raises."""


class ReadError(FormatterError):
    """The byte source could not be read to completion."""


class ParseError(FormatterError):
    """The bytes are not a recognizable workbook or delimited table."""


class EmptyFileError(FormatterError):
    """The first sheet holds zero rows, not even a header row."""


class UnsupportedFormatError(FormatterError):
    """The file extension has no decoder behind it."""


class FileTooLargeError(FormatterError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"File is {size / (1024 * 1024):.1f} MB; the limit is {limit / (1024 * 1024):.0f} MB."
        )
        self.size = size
        self.limit = limit


class EncodeError(FormatterError):
    """The table could not be serialized to a workbook."""


class OptionsError(FormatterError):
    """A formatting options payload was malformed."""
