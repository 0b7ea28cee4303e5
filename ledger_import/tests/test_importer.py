"""Tests for synthesizer selection and the one-call preview."""

from datetime import date
from unittest.mock import patch

import pytest

from ledger_import.models import Category, ImportBucket, ImportKind, ParsedDocument
from ledger_import.parsers.validation import UnrecognizedFormatError
from ledger_import.services.importer import (
    ImportStrategy,
    is_pdf,
    preview_import,
    source_lines,
    summarize_buckets,
    synthesize,
)
from ledger_import.services.mapper import map_document

REFERENCE = date(2026, 2, 11)

ARCO_CSV = """Date,Description,Amount,Category
11/10/2025,ARCO#82639,45.44,Transportation-Fuel
"""

PAYSTUB_LINES = [
    "ACME CORP",
    "Pay Period: 12/08/2025 - 12/21/2025",
    "Pay Date: 12/24/2025",
    "Gross Pay 4,284.00",
    "Federal Income Tax 553.97",
    "Net Pay 2,817.83",
]

TRANSPORTATION = Category(id="transportation", name="Transportation")


class TestSourceLines:
    """Test source normalization."""

    def test_text_bytes_and_lists(self):
        """Should split text, decode bytes and copy line lists."""
        assert source_lines("a\nb") == ["a", "b"]
        assert source_lines(b"\xef\xbb\xbfa\r\nb") == ["a", "b"]
        assert source_lines(("a", "b")) == ["a", "b"]

    @patch("ledger_import.services.importer.extract_pdf_lines")
    def test_pdf_bytes(self, mock_extract):
        """Should route PDF bytes through text extraction."""
        mock_extract.return_value = ["Net Pay 2,817.83"]

        assert source_lines(b"%PDF-1.4 fake") == ["Net Pay 2,817.83"]
        mock_extract.assert_called_once_with(b"%PDF-1.4 fake")

    def test_is_pdf(self):
        """Should detect PDFs by their magic bytes."""
        assert is_pdf(b"%PDF-1.7") is True
        assert is_pdf(b"Date,Amount") is False


class TestSynthesize:
    """Test the fallback chain."""

    def test_export_text_is_tabular(self):
        """Should read delimited exports with the tabular synthesizer."""
        strategy, document = synthesize(ARCO_CSV)

        assert strategy == ImportStrategy.TABULAR
        assert document.rows[0][1] == "ARCO#82639"

    def test_screenshot_lines_fall_through_to_ocr(self):
        """Should fall through to OCR lines when there is no delimiter."""
        strategy, document = synthesize(["DoorDash $20.78 2/2/26"], reference_date=REFERENCE)

        assert strategy == ImportStrategy.OCR_LINES
        assert document.rows[0][2] == "20.78"
        assert document.rows[0][0] == "2026-02-02"

    @patch("ledger_import.services.importer.extract_pdf_lines")
    def test_paystub_pdf(self, mock_extract):
        """Should fall back to paystub mode when a PDF is not a statement."""
        mock_extract.return_value = PAYSTUB_LINES

        strategy, document = synthesize(b"%PDF-1.4 fake", reference_date=date(2026, 1, 5))

        assert strategy == ImportStrategy.PAYSTUB
        assert document.rows == (("2025-12-21", "Paycheck", "2817.83", "", "income"),)

    def test_nothing_matches(self):
        """Should return an empty canonical document when no synthesizer applies."""
        strategy, document = synthesize("Hello world")

        assert strategy is None
        assert document == ParsedDocument.canonical()

    def test_pinned_strategy_errors_propagate(self):
        """Should raise instead of falling back when the caller pins a strategy."""
        with pytest.raises(UnrecognizedFormatError):
            synthesize("Hello", strategy=ImportStrategy.TABULAR)

    def test_pinned_strategy(self):
        """Should run only the pinned synthesizer."""
        strategy, document = synthesize(PAYSTUB_LINES, strategy=ImportStrategy.PAYSTUB, reference_date=date(2026, 1, 5))

        assert strategy == ImportStrategy.PAYSTUB
        assert len(document.rows) == 1


class TestSummarizeBuckets:
    """Test bucket tallies."""

    def test_counts_and_message(self):
        """Should count every bucket and the included rows per kind."""
        document = ParsedDocument.canonical([
            ["2026-02-02", "DoorDash", "20.78", "", "expense"],
            ["2026-02-03", "Safeway", "50.00", "Groceries", "expense"],
            ["2026-02-05", "PAYROLL DIRECT DEPOSIT", "2500.00", "", "income"],
        ])
        rows = map_document(document, [Category(id="groceries", name="Groceries")], [], [], [], {})

        summary = summarize_buckets(rows)

        assert summary.total == 3
        assert summary.count(ImportBucket.NEEDS_MORE_DATA) == 1
        assert summary.count(ImportBucket.READY) == 1
        assert summary.count(ImportBucket.PAYMENT) == 1
        assert summary.count(ImportBucket.POSSIBLE_MATCH) == 0
        assert summary.message == "1 expenses, 1 incomes will be imported."

    def test_empty(self):
        """Should report zero rows."""
        summary = summarize_buckets([])

        assert summary.total == 0
        assert summary.message == "0 expenses, 0 incomes will be imported."


class TestPreviewImport:
    """Test the one-call preview."""

    def test_csv_bytes(self):
        """Should synthesize, map and tally an uploaded export."""
        preview = preview_import(ARCO_CSV.encode("utf-8"), categories=[TRANSPORTATION])

        assert preview.strategy == "tabular"
        assert len(preview.rows) == 1
        assert preview.rows[0].selected_category == TRANSPORTATION
        assert preview.summary.included_expenses == 1

    def test_single_payment_line(self):
        """Should bucket an undated screenshot payment as a payment, not missing data."""
        preview = preview_import(["Payment +$1,030.27"], reference_date=REFERENCE)

        assert preview.strategy == "ocr_lines"
        row = preview.rows[0]
        assert row.date == REFERENCE
        assert row.amount == 1030.27
        assert row.kind == ImportKind.INCOME
        assert row.bucket == ImportBucket.PAYMENT
        assert row.include_in_import is True
        assert preview.summary.count(ImportBucket.PAYMENT) == 1
        assert preview.summary.included_incomes == 1

    def test_allowed_kinds(self):
        """Should pass the accepted kinds through to the mapper."""
        preview = preview_import(PAYSTUB_LINES, strategy=ImportStrategy.PAYSTUB, reference_date=date(2026, 1, 5),
                                 allowed_kinds=[ImportKind.EXPENSE])

        assert preview.rows[0].is_blocked is True
        assert preview.summary.blocked == 1
        assert preview.summary.included_incomes == 0

    def test_unrecognized_source(self):
        """Should return an empty preview for unrecognized text."""
        preview = preview_import("Hello world")

        assert preview.strategy == "none"
        assert preview.rows == []
        assert preview.summary.total == 0
