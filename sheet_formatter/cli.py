from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sheet_formatter import __version__ as TOOL_VERSION
from sheet_formatter import settings
from sheet_formatter.contracts import build_payload, build_run_summary
from sheet_formatter.errors import (
    EmptyFileError,
    EncodeError,
    ParseError,
)
from sheet_formatter.loader import load_file
from sheet_formatter.pipeline import FormatOptions, describe_changes, format_table
from sheet_formatter.table import CanonicalTable
from sheet_formatter.writer import encode, output_filename, save_bytes

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_ENCODE_FAILED = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SheetFormatterArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = settings.output_stamp_override()
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "sheet-formatter-output" / f"{input_path.stem}-{timestamp_token()}"


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, EncodeError):
        return EXIT_ENCODE_FAILED
    if isinstance(exc, (ParseError, EmptyFileError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def render_preview_text(table: CanonicalTable, rows: int) -> str:
    if not table.width:
        return "[no columns]\n"
    if not table.row_count:
        return " | ".join(table.display_headers()) + "\n[no data rows]\n"
    return table.to_frame(rows).to_string(index=False) + "\n"


def render_format_summary(summary: dict[str, Any]) -> str:
    changes = summary["changes"]
    lines = [
        "sheet-formatter format",
        f"Input: {summary['input_file']}",
        f"Output: {summary['output_file'] or '[dry run]'}",
        f"Rows in: {summary['rows_in']}",
        f"Rows out: {changes['rows_out']}",
        f"Cells trimmed: {changes['cells_trimmed']}",
        f"Headers renamed: {changes['headers_renamed']}",
        f"Empty rows dropped: {changes['rows_dropped']}",
        f"Dates normalized: {changes['dates_normalized']}",
    ]
    if summary["warnings"]:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in summary["warnings"])
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = SheetFormatterArgumentParser(
        prog="sheet-formatter",
        description="Clean up a spreadsheet and save it as a formatted .xlsx workbook.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview = subparsers.add_parser("preview", help="Show the first rows of a file.")
    preview.add_argument("input", help="Input file path")
    preview.add_argument("--rows", type=int, default=None, help="Rows to show (default: SHEET_FORMATTER_PREVIEW_ROWS or 5)")
    preview.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    fmt = subparsers.add_parser("format", help="Format a file and write <name>_formatted.xlsx.")
    fmt.add_argument("input", help="Input file path")
    fmt.add_argument("output_positional", nargs="?", default=None, help="Optional output path")
    fmt.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    fmt.add_argument("--output", dest="output_flag", help="Explicit output path")
    fmt.add_argument("--options", dest="options_path", help="JSON file with formatting options")
    fmt.add_argument("--no-clean-data", dest="clean_data", action="store_const", const=False, default=None, help="Skip whitespace cleanup")
    fmt.add_argument("--no-standardize-headers", dest="standardize_headers", action="store_const", const=False, default=None, help="Keep headers as they are")
    fmt.add_argument("--no-remove-empty", dest="remove_empty", action="store_const", const=False, default=None, help="Keep empty rows")
    fmt.add_argument("--no-format-dates", dest="format_dates", action="store_const", const=False, default=None, help="Leave date cells alone")
    fmt.add_argument("--add-summary", dest="add_summary", action="store_const", const=True, default=None, help="Reserved; accepted but not applied")
    fmt.add_argument("--prompt", dest="custom_prompt", default=None, help="Reserved free-text instruction; accepted but not applied")
    fmt.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    fmt.add_argument("--dry-run", action="store_true", help="Run the pipeline without writing outputs")
    fmt.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    fmt.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter options file.")
    config_init.add_argument("--path", default="sheet-formatter.json", help="Options file output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def resolve_options(args: argparse.Namespace) -> FormatOptions:
    options = FormatOptions()
    if args.options_path:
        options = FormatOptions.from_mapping(settings.load_options_file(Path(args.options_path)))
    overrides = {
        name: getattr(args, name)
        for name in ("clean_data", "standardize_headers", "remove_empty", "format_dates", "add_summary", "custom_prompt")
        if getattr(args, name) is not None
    }
    return dataclasses.replace(options, **overrides)


def format_output_path(args: argparse.Namespace, input_path: Path) -> Path:
    if args.output_flag and args.output_positional:
        raise CliError("Use either positional output or --output, not both.", EXIT_COMMAND_ERROR)
    explicit = args.output_flag or args.output_positional
    if explicit:
        return Path(explicit)
    out_dir = Path(args.out_dir) if args.out_dir else default_output_dir(input_path)
    return out_dir / output_filename(input_path.name)


def run_preview(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        rows = args.rows if args.rows is not None else settings.preview_rows()
        if rows < 0:
            raise CliError("--rows must not be negative.", EXIT_COMMAND_ERROR)
        table = load_file(input_path)
        if args.json:
            payload = build_payload(
                "sheet_formatter.preview",
                build_run_summary(command="preview", input_path=input_path, metrics=table.summary()),
                headers=list(table.headers),
                rows=[list(row) for row in table.rows[:rows]],
            )
            print(json_dumps(payload))
        else:
            print(render_preview_text(table, rows), end="")
            if table.row_count > rows:
                eprint(f"Showing {min(rows, table.row_count)} of {table.row_count} rows")
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_format(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        options = resolve_options(args)
        output_path = format_output_path(args, input_path)
        if not args.dry_run and output_path.exists() and not args.force:
            raise CliError(f"Refusing to overwrite existing output: {output_path}", EXIT_COMMAND_ERROR)

        table = load_file(input_path)
        formatted = format_table(table, options)
        changes = describe_changes(table, options)
        data = encode(formatted)

        warnings = [f"Option '{name}' is reserved and has no effect yet." for name in options.reserved_in_use()]
        if not args.dry_run:
            save_bytes(data, output_path, overwrite=args.force)

        written = None if args.dry_run else output_path
        summary = {
            "input_file": str(input_path),
            "output_file": str(written) if written else None,
            "rows_in": table.row_count,
            "changes": changes,
            "warnings": warnings,
        }
        if args.json:
            payload = build_payload(
                "sheet_formatter.format_summary",
                build_run_summary(
                    command="format",
                    input_path=input_path,
                    output_path=written,
                    metrics=changes,
                    warnings=warnings,
                ),
                options=options.to_dict(),
                headers=list(formatted.headers),
                **summary,
            )
            print(json_dumps(payload))
        else:
            emit_human(render_format_summary(summary).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json_dumps(FormatOptions().to_dict()) + "\n", encoding="utf-8")
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "preview":
            return run_preview(args)
        if args.command == "format":
            return run_format(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
