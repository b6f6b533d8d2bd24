"""Local spreadsheet formatting: decode, clean, and re-encode tabular files."""

__version__ = "0.1.0"
