"""Environment-driven settings and JSON options files."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from sheet_formatter.errors import OptionsError

DEFAULT_MAX_UPLOAD_MB = 10
DEFAULT_PREVIEW_ROWS = 5
OUTPUT_SUFFIX = "_formatted"
OUTPUT_SHEET_TITLE = "Formatted Data"
SUPPORTED_OPTIONS_SUFFIXES = {".json", ".yml", ".yaml"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise OptionsError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise OptionsError(f"{name} must be positive, got {value}")
    return value


def max_upload_bytes() -> int:
    return _env_int("SHEET_FORMATTER_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB) * 1024 * 1024


def preview_rows() -> int:
    return _env_int("SHEET_FORMATTER_PREVIEW_ROWS", DEFAULT_PREVIEW_ROWS)


def output_stamp_override() -> str | None:
    return os.environ.get("SHEET_FORMATTER_OUTPUT_STAMP") or None


def load_options_file(path: Path) -> dict[str, Any]:
    """Read a JSON options file. YAML is recognised but not supported yet."""
    if not path.exists():
        raise OptionsError(f"Options file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_OPTIONS_SUFFIXES:
        raise OptionsError("Options file must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise OptionsError("YAML options files are not supported yet. Use JSON for now.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise OptionsError(f"Could not read options file: {exc}") from exc
    if not isinstance(payload, dict):
        raise OptionsError("Options file root must be a JSON object.")
    return payload
