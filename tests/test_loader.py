from __future__ import annotations

import io
import os
import re
import tempfile
import unittest
import zipfile
from datetime import datetime
from pathlib import Path
from unittest import mock

from openpyxl import Workbook

from sheet_formatter.errors import (
    EmptyFileError,
    FileTooLargeError,
    ParseError,
    ReadError,
    UnsupportedFormatError,
)
from sheet_formatter.loader import check_upload, decode, load_file, read_upload, sniff_text_cell


def workbook_bytes(*sheets: tuple[str, list[list]]) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets:
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def with_stale_dimension(data: bytes, ref: str = "A1") -> bytes:
    """Rewrite every sheet's stored <dimension> the way some third-party writers leave it."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as source, zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
        for item in source.infolist():
            content = source.read(item.filename)
            if item.filename.startswith("xl/worksheets/sheet"):
                content = re.sub(rb'<dimension ref="[^"]*"\s*/>', f'<dimension ref="{ref}"/>'.encode(), content)
            target.writestr(item, content)
    return buffer.getvalue()


class WorkbookDecodeTests(unittest.TestCase):
    def test_first_row_becomes_text_headers_and_cells_keep_types(self):
        data = workbook_bytes(
            ("Sheet1", [["name", 2024, None, "ok"], ["Ada", 10, 1.5, True], ["Grace", -3, "x", False]])
        )
        table = decode(data, "people.xlsx")

        self.assertEqual(table.headers, ("name", "2024", "", "ok"))
        self.assertEqual(table.rows, (("Ada", 10, 1.5, True), ("Grace", -3, "x", False)))
        self.assertIsInstance(table.rows[0][1], int)
        self.assertIsInstance(table.rows[0][3], bool)
        self.assertEqual(table.original_rows, table.rows)

    def test_first_sheet_by_storage_order_is_used(self):
        data = workbook_bytes(
            ("Alpha", [["a"], ["from alpha"]]),
            ("Beta", [["b"], ["from beta"]]),
        )
        table = decode(data, "multi.xlsx")
        self.assertEqual(table.headers, ("a",))
        self.assertEqual(table.rows, (("from alpha",),))

    def test_date_cells_come_back_as_serial_numbers(self):
        data = workbook_bytes(("Sheet1", [["when"], [datetime(2023, 3, 15)]]))
        table = decode(data, "dates.xlsx")
        self.assertEqual(table.rows, ((45000,),))

    def test_ragged_rows_are_tolerated(self):
        data = workbook_bytes(("Sheet1", [["a", "b", "c"], [1], [2, 3, 4, 5]]))
        table = decode(data, "ragged.xlsx")
        self.assertEqual(table.headers, ("a", "b", "c"))
        self.assertEqual(table.rows, ((1,), (2, 3, 4, 5)))
        self.assertEqual(table.width, 4)

    def test_stale_stored_dimension_does_not_hide_cells(self):
        data = with_stale_dimension(
            workbook_bytes(("Sheet1", [["name", "email", "age"], ["Ada", "ada@example.com", 36]]))
        )
        self.assertIn(b'<dimension ref="A1"/>', zipfile.ZipFile(io.BytesIO(data)).read("xl/worksheets/sheet1.xml"))

        table = decode(data, "stale.xlsx")
        self.assertEqual(table.headers, ("name", "email", "age"))
        self.assertEqual(table.rows, (("Ada", "ada@example.com", 36),))

    def test_header_only_sheet_decodes_to_zero_rows(self):
        table = decode(workbook_bytes(("Sheet1", [["a", "b"]])), "headers.xlsx")
        self.assertEqual(table.headers, ("a", "b"))
        self.assertEqual(table.rows, ())

    def test_empty_sheet_raises_empty_file_error(self):
        with self.assertRaisesRegex(EmptyFileError, "appears to be empty"):
            decode(workbook_bytes(("Sheet1", [])), "empty.xlsx")

    def test_garbage_bytes_raise_parse_error(self):
        with self.assertRaises(ParseError):
            decode(b"this is not a zip archive", "broken.xlsx")

    def test_truncated_workbook_raises_parse_error(self):
        data = workbook_bytes(("Sheet1", [["a"], [1]]))
        with self.assertRaises(ParseError):
            decode(data[: len(data) // 2], "truncated.xlsx")

    def test_xlsm_suffix_uses_the_workbook_decoder(self):
        table = decode(workbook_bytes(("Sheet1", [["a"], [1]])), "macro.xlsm")
        self.assertEqual(table.rows, ((1,),))


class TextDecodeTests(unittest.TestCase):
    def test_csv_cells_are_typed_like_a_spreadsheet(self):
        data = b"name,score,active,ratio\nAda,10,TRUE,0.5\nGrace,11,false,1e3\n"
        table = decode(data, "people.csv")
        self.assertEqual(table.headers, ("name", "score", "active", "ratio"))
        self.assertEqual(table.rows, (("Ada", 10, True, 0.5), ("Grace", 11, False, 1000.0)))

    def test_csv_keeps_whitespace_and_leading_zero_text(self):
        data = b"id,note\n007,  padded  \n"
        table = decode(data, "ids.csv")
        self.assertEqual(table.rows, (("007", "  padded  "),))

    def test_csv_empty_cells_are_none_and_blank_lines_are_kept(self):
        data = b"a,b\n1,\n\n3,4\n"
        table = decode(data, "gaps.csv")
        self.assertEqual(table.rows, ((1,), (), (3, 4)))

    def test_semicolon_delimiter_is_detected(self):
        data = b"name;city\nAda;London\nGrace;New York\n"
        table = decode(data, "semi.csv")
        self.assertEqual(table.headers, ("name", "city"))
        self.assertEqual(table.rows[1], ("Grace", "New York"))

    def test_tsv_uses_tabs(self):
        table = decode(b"a\tb\n1\t2\n", "data.tsv")
        self.assertEqual(table.headers, ("a", "b"))
        self.assertEqual(table.rows, ((1, 2),))

    def test_utf8_bom_is_not_part_of_the_first_header(self):
        table = decode("\ufeffname,city\nAda,London\n".encode("utf-8"), "bom.csv")
        self.assertEqual(table.headers, ("name", "city"))

    def test_empty_csv_raises_empty_file_error(self):
        with self.assertRaises(EmptyFileError):
            decode(b"", "empty.csv")
        with self.assertRaises(EmptyFileError):
            decode(b"\n\n", "blank.csv")

    def test_sniff_text_cell(self):
        self.assertIsNone(sniff_text_cell(""))
        self.assertEqual(sniff_text_cell("-4"), -4)
        self.assertEqual(sniff_text_cell(" 12 "), 12)
        self.assertEqual(sniff_text_cell(".5"), 0.5)
        self.assertIs(sniff_text_cell("True"), True)
        self.assertEqual(sniff_text_cell("0"), 0)
        self.assertEqual(sniff_text_cell("0012"), "0012")
        self.assertEqual(sniff_text_cell("12abc"), "12abc")
        self.assertEqual(sniff_text_cell("   "), "   ")

    def test_overflowing_numbers_stay_text(self):
        self.assertEqual(sniff_text_cell("1e999"), "1e999")
        self.assertEqual(sniff_text_cell("-1e999"), "-1e999")
        self.assertEqual(sniff_text_cell("1e300"), 1e300)
        table = decode(b"a,b\n1e999,x\n", "huge.csv")
        self.assertEqual(table.rows, (("1e999", "x"),))


class UploadChecksTests(unittest.TestCase):
    def test_spreadsheet_formats_pass(self):
        for name in ("a.xlsx", "b.XLS", "c.csv", "d.tsv", "e.xlsm"):
            self.assertEqual(check_upload(name, 10), Path(name).suffix.lower())

    def test_document_formats_are_accepted_by_the_widget_but_not_decoded(self):
        for name in ("a.docx", "b.doc", "c.pdf", "d.txt", "e.json"):
            with self.assertRaisesRegex(UnsupportedFormatError, "cannot be formatted yet"):
                check_upload(name, 10)

    def test_unknown_extensions_are_rejected(self):
        with self.assertRaisesRegex(UnsupportedFormatError, "Unsupported file type '.exe'"):
            check_upload("tool.exe", 10)
        with self.assertRaisesRegex(UnsupportedFormatError, r"\[missing extension\]"):
            check_upload("README", 10)

    def test_size_limit_defaults_to_ten_megabytes(self):
        check_upload("big.csv", 10 * 1024 * 1024)
        with self.assertRaises(FileTooLargeError):
            check_upload("big.csv", 10 * 1024 * 1024 + 1)

    def test_size_limit_can_be_overridden_from_environment(self):
        with mock.patch.dict(os.environ, {"SHEET_FORMATTER_MAX_UPLOAD_MB": "1"}):
            with self.assertRaisesRegex(FileTooLargeError, "limit is 1 MB"):
                check_upload("big.csv", 2 * 1024 * 1024)

    def test_decode_rejects_undecodable_suffix(self):
        with self.assertRaises(UnsupportedFormatError):
            decode(b"{}", "data.json")


class ReadTests(unittest.TestCase):
    def test_read_upload_from_path_and_stream(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a.csv"
            path.write_bytes(b"a\n1\n")
            self.assertEqual(read_upload(path), b"a\n1\n")
            with path.open("rb") as handle:
                self.assertEqual(read_upload(handle), b"a\n1\n")
        self.assertEqual(read_upload(io.BytesIO(b"xyz")), b"xyz")

    def test_unreadable_source_raises_read_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ReadError):
                read_upload(Path(tmpdir) / "missing.csv")
            with self.assertRaises(ReadError):
                read_upload(Path(tmpdir))

    def test_load_file_checks_reads_and_decodes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "people.xlsx"
            path.write_bytes(workbook_bytes(("Sheet1", [["name"], ["Ada"]])))
            table = load_file(path)
            self.assertEqual(table.rows, (("Ada",),))
            with self.assertRaises(ReadError):
                load_file(Path(tmpdir) / "missing.xlsx")


if __name__ == "__main__":
    unittest.main()
