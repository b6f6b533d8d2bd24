from __future__ import annotations

import io
import unittest

import openpyxl

from sheet_formatter.errors import FormatterError, ParseError, UnsupportedFormatError
from sheet_formatter.pipeline import FormatOptions
from sheet_formatter.session import STATE_COMPLETE, STATE_PREVIEW, STATE_UPLOAD, FormatSession

MESSY_CSV = b"first name,E-MAIL!!\n  Jo Smith ,jo@example.com\n,\nAl,al@example.com\n"


class FormatSessionTests(unittest.TestCase):
    def test_upload_moves_to_preview(self):
        session = FormatSession()
        table = session.upload("people.csv", MESSY_CSV)

        self.assertEqual(session.state, STATE_PREVIEW)
        self.assertEqual(session.file_name, "people.csv")
        self.assertIs(session.original, table)
        self.assertEqual(table.headers, ("first name", "E-MAIL!!"))
        self.assertIsNone(session.error)

    def test_format_then_export(self):
        session = FormatSession()
        session.upload("people.csv", MESSY_CSV)
        result = session.format(FormatOptions())

        self.assertEqual(session.state, STATE_COMPLETE)
        self.assertEqual(result.headers, ("First Name", "E Mail"))
        self.assertEqual(result.rows, (("Jo Smith", "jo@example.com"), ("Al", "al@example.com")))
        self.assertEqual(session.changes["rows_dropped"], 1)

        name, data = session.export()
        self.assertEqual(name, "people_formatted.xlsx")
        ws = openpyxl.load_workbook(io.BytesIO(data)).active
        self.assertEqual(ws.title, "Formatted Data")
        self.assertEqual(ws["A2"].value, "Jo Smith")

    def test_reformatting_starts_from_the_uploaded_table(self):
        session = FormatSession()
        session.upload("people.csv", MESSY_CSV)
        session.format(FormatOptions())
        again = session.format(FormatOptions(clean_data=False, standardize_headers=False, remove_empty=False))

        self.assertEqual(again.headers, ("first name", "E-MAIL!!"))
        self.assertEqual(again.rows[0][0], "  Jo Smith ")
        self.assertEqual(len(again.rows), 3)

    def test_failed_upload_keeps_previous_tables(self):
        session = FormatSession()
        session.upload("people.csv", MESSY_CSV)
        session.format(FormatOptions())
        formatted = session.formatted

        with self.assertRaises(ParseError):
            session.upload("broken.xlsx", b"not a workbook")
        self.assertIn("Failed to process the Excel file", session.error)
        self.assertIs(session.formatted, formatted)
        self.assertEqual(session.file_name, "people.csv")
        self.assertEqual(session.state, STATE_COMPLETE)

    def test_unsupported_upload_reports_error(self):
        session = FormatSession()
        with self.assertRaises(UnsupportedFormatError):
            session.upload("notes.pdf", b"%PDF-1.4")
        self.assertEqual(session.state, STATE_UPLOAD)
        self.assertIn("cannot be formatted yet", session.error)

    def test_successful_upload_clears_previous_error(self):
        session = FormatSession()
        with self.assertRaises(FormatterError):
            session.upload("tool.exe", b"MZ")
        session.upload("people.csv", MESSY_CSV)
        self.assertIsNone(session.error)

    def test_format_and_export_need_earlier_steps(self):
        session = FormatSession()
        with self.assertRaisesRegex(FormatterError, "Upload a file"):
            session.format(FormatOptions())
        with self.assertRaisesRegex(FormatterError, "Format the file"):
            session.export()
        session.upload("people.csv", MESSY_CSV)
        with self.assertRaisesRegex(FormatterError, "Format the file"):
            session.export()

    def test_reset_returns_to_upload(self):
        session = FormatSession()
        session.upload("people.csv", MESSY_CSV)
        session.format(FormatOptions(add_summary=True))
        session.reset()

        self.assertEqual(session.state, STATE_UPLOAD)
        self.assertIsNone(session.original)
        self.assertIsNone(session.formatted)
        self.assertIsNone(session.options)
        self.assertEqual(session.changes, {})
        self.assertEqual(session.file_name, "")


if __name__ == "__main__":
    unittest.main()
