#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sheet_formatter import settings  # noqa: E402
from sheet_formatter.errors import FormatterError  # noqa: E402
from sheet_formatter.loader import ACCEPTED_UPLOAD_FORMATS, DOCUMENT_FORMATS  # noqa: E402
from sheet_formatter.pipeline import FormatOptions  # noqa: E402
from sheet_formatter.session import STATE_COMPLETE, STATE_UPLOAD, FormatSession  # noqa: E402
from sheet_formatter.table import CanonicalTable  # noqa: E402
from sheet_formatter.writer import XLSX_MIME  # noqa: E402

OPTION_LABELS = [
    ("clean_data", "Clean Data", "Remove inconsistencies and standardize formatting"),
    ("standardize_headers", "Standardize Headers", "Convert headers to consistent naming conventions"),
    ("remove_empty", "Remove Empty Rows", "Drop rows where every cell is blank"),
    ("format_dates", "Format Dates", "Standardize date formats across the spreadsheet"),
]


def ensure_state() -> None:
    st.session_state.setdefault("session", FormatSession())
    st.session_state.setdefault("upload_signature", None)
    st.session_state.setdefault("uploader_key", 0)


def upload_signature(name: str, size: int) -> str:
    return f"{name}:{size}"


def preview_caption(total_rows: int, max_rows: int) -> Optional[str]:
    if total_rows <= max_rows:
        return None
    return f"Showing {max_rows} of {total_rows} rows"


def options_from_inputs(values: dict) -> FormatOptions:
    return FormatOptions.from_mapping(values)


def change_metrics(changes: dict[str, int]) -> list[tuple[str, int]]:
    return [
        ("Cells trimmed", changes.get("cells_trimmed", 0)),
        ("Headers renamed", changes.get("headers_renamed", 0)),
        ("Rows dropped", changes.get("rows_dropped", 0)),
        ("Dates normalized", changes.get("dates_normalized", 0)),
    ]


def render_preview(table: CanonicalTable, title: str, *, original: bool = False) -> None:
    max_rows = settings.preview_rows()
    total = len(table.original_rows) if original else table.row_count
    st.markdown(f"**{title}**")
    if not total:
        st.info("No data rows to show.")
        return
    frame: pd.DataFrame = table.to_frame(max_rows, original=original)
    st.dataframe(frame, width="stretch", hide_index=True)
    caption = preview_caption(total, max_rows)
    if caption:
        st.caption(caption)


def render_options(disabled: bool) -> dict:
    st.subheader("Formatting options")
    values: dict = {}
    for key, label, help_text in OPTION_LABELS:
        values[key] = st.checkbox(label, value=True, help=help_text, key=f"opt_{key}", disabled=disabled)
    with st.expander("Advanced options"):
        values["add_summary"] = st.checkbox(
            "Add summary sheet", value=False, key="opt_add_summary", disabled=disabled
        )
        values["custom_prompt"] = st.text_area(
            "Custom instructions (optional)",
            key="opt_custom_prompt",
            height=90,
            disabled=disabled,
            placeholder="Enter specific instructions for how you want your data formatted...",
        )
        st.caption("These advanced options are recorded but not applied yet.")
    return values


def render_upload(session: FormatSession) -> None:
    st.subheader("Upload your spreadsheet")
    limit_mb = settings.max_upload_bytes() // (1024 * 1024)
    upload = st.file_uploader(
        f"Excel or CSV file (up to {limit_mb} MB)",
        type=[ext.lstrip(".") for ext in sorted(ACCEPTED_UPLOAD_FORMATS)],
        key=f"upload_{st.session_state['uploader_key']}",
    )
    st.caption(
        "Word, PDF, text and JSON files can be selected, but only "
        + ", ".join(sorted(ext for ext in ACCEPTED_UPLOAD_FORMATS if ext not in DOCUMENT_FORMATS))
        + " files are formatted."
    )
    if upload is None:
        return
    signature = upload_signature(upload.name, upload.size)
    if signature == st.session_state["upload_signature"]:
        return
    st.session_state["upload_signature"] = signature
    try:
        with st.spinner("Reading file..."):
            session.upload(upload.name, upload.getvalue())
    except FormatterError as exc:
        st.error(str(exc))
        return
    st.rerun()


def render_download(session: FormatSession) -> None:
    try:
        file_name, data = session.export()
    except FormatterError:
        st.error(session.error or "Could not build the formatted workbook.")
        return
    st.download_button(
        "Download formatted file",
        data=data,
        file_name=file_name,
        mime=XLSX_MIME,
        type="primary",
        width="stretch",
    )


def start_over() -> None:
    st.session_state["session"].reset()
    st.session_state["upload_signature"] = None
    st.session_state["uploader_key"] += 1


def set_visuals() -> None:
    st.set_page_config(page_title="sheet-formatter", page_icon="📊", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        .block-container { max-width: 1100px; padding-top: 2rem; }
        div[data-testid="stMetricValue"] { font-size: 1.4rem; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    set_visuals()
    ensure_state()
    session: FormatSession = st.session_state["session"]

    st.title("sheet-formatter")
    st.caption("Upload a spreadsheet, pick the cleanup you want, and download a formatted .xlsx file.")

    if session.error:
        st.error(session.error)

    if session.state == STATE_UPLOAD:
        render_upload(session)
        return

    if session.state == STATE_COMPLETE and session.formatted is not None:
        st.success("Formatting complete. Your data is ready for download.")
        metrics = st.columns(4)
        for column, (label, value) in zip(metrics, change_metrics(session.changes)):
            column.metric(label, value)
        if session.options and session.options.reserved_in_use():
            st.info("Advanced options were recorded but not applied: " + ", ".join(session.options.reserved_in_use()))
        render_download(session)
        left, right = st.columns(2)
        with left:
            render_preview(session.original, "Original Data", original=True)
        with right:
            render_preview(session.formatted, "Formatted Data")
        st.button("Format another file", on_click=start_over, width="stretch")
        return

    st.subheader(f"Review {session.file_name}")
    render_preview(session.original, "Original Data Preview", original=True)
    values = render_options(disabled=False)
    if st.button("Format", type="primary", width="stretch"):
        try:
            options = options_from_inputs(values)
            with st.spinner("Formatting..."):
                session.format(options)
        except FormatterError as exc:
            st.error(str(exc))
        else:
            st.rerun()
    st.button("Upload a different file", on_click=start_over)


if __name__ == "__main__":
    main()
