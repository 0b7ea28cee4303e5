"""Tests for PDF text extraction."""

from unittest.mock import MagicMock, patch

import pytest

from ledger_import.parsers.pdf_text import extract_pdf_lines
from ledger_import.parsers.validation import ValidationError


def make_pdf(*page_texts):
    """Helper to build a pdfplumber stand-in whose pages return the given text."""
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)

    pdf = MagicMock()
    pdf.pages = pages
    pdf.__enter__.return_value = pdf
    return pdf


class TestExtractPdfLines:
    """Test line extraction."""

    @patch("ledger_import.parsers.pdf_text.pdfplumber.open")
    def test_flattens_pages(self, mock_open):
        """Should return normalized non-empty lines from every page in order."""
        mock_open.return_value = make_pdf("February 09, 2026\n\n  APPLECARD   PAYMENT -$1,030.27 ", None, "Page 2 of 2")

        lines = extract_pdf_lines(b"%PDF-1.4 fake")

        assert lines == ["February 09, 2026", "APPLECARD PAYMENT -$1,030.27", "Page 2 of 2"]

    @patch("ledger_import.parsers.pdf_text.pdfplumber.open")
    def test_no_text_layer(self, mock_open):
        """Should return no lines for a scanned PDF."""
        mock_open.return_value = make_pdf(None, "")

        assert extract_pdf_lines(b"%PDF-1.4 fake") == []

    @patch("ledger_import.parsers.pdf_text.pdfplumber.open")
    def test_unreadable_pdf(self, mock_open):
        """Should wrap extraction failures in a validation error."""
        mock_open.side_effect = Exception("No /Root object")

        with pytest.raises(ValidationError, match="Could not read PDF"):
            extract_pdf_lines(b"not really a pdf")

    def test_empty_contents(self):
        """Should reject empty contents before opening."""
        with pytest.raises(ValidationError, match="empty"):
            extract_pdf_lines(b"")
