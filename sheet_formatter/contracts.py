"""Shared versioned contracts for sheet-formatter JSON outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sheet_formatter import __version__ as TOOL_VERSION

CONTRACT_VERSIONS = {
    "sheet_formatter.preview": "1.0.0",
    "sheet_formatter.format_summary": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_path: Path,
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "sheet-formatter",
        "command": command,
        "tool_version": TOOL_VERSION,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def build_payload(contract_name: str, run_summary: dict[str, Any], **body: Any) -> dict[str, Any]:
    contract = build_contract(contract_name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "run_summary": run_summary,
        **body,
    }
