"""Tests for the tabular synthesizer."""

import pytest

from ledger_import.parsers.tabular import (
    detect_delimiter,
    looks_like_header,
    parse_tabular_bytes,
    parse_tabular_text,
)
from ledger_import.parsers.validation import UnrecognizedFormatError, ValidationError

ARCO_CSV = """Date,Description,Amount,Category
11/10/2025,ARCO#82639,45.44,Transportation-Fuel
"""

APPLE_CARD_CSV = """Transaction Date,Clearing Date,Description,Merchant,Category,Type,Amount (USD)
02/02/2026,02/03/2026,"DOORDASH*DASHPASS SAN FRANCISCO CA",DoorDash,Restaurants,Purchase,9.99
02/03/2026,02/03/2026,"ACH DEPOSIT INTERNET TRANSFER",Apple Card,Payment,Payment,-1030.27
"""


class TestDetectDelimiter:
    """Test delimiter detection."""

    def test_comma_tab_semicolon(self):
        """Should pick the most frequent delimiter."""
        assert detect_delimiter("Date,Description,Amount") == ","
        assert detect_delimiter("Date\tDescription\tAmount") == "\t"
        assert detect_delimiter("Date;Description;Amount") == ";"

    def test_none(self):
        """Should return None when no delimiter is present."""
        assert detect_delimiter("DoorDash $20.78") is None

    def test_header_check(self):
        """Should reject a dated line posing as a header."""
        assert looks_like_header("Date,Amount", ["Date", "Amount"]) is True
        assert looks_like_header("February 09, 2026", ["February 09", "2026"]) is False
        assert looks_like_header("12.50,4.00", ["12.50", "4.00"]) is False


class TestParseTabularText:
    """Test structural splitting."""

    def test_arco_row(self):
        """Should keep the header row and the raw field text."""
        document = parse_tabular_text(ARCO_CSV)

        assert document.headers == ("Date", "Description", "Amount", "Category")
        assert document.rows == (("11/10/2025", "ARCO#82639", "45.44", "Transportation-Fuel"),)

    def test_quoted_fields(self):
        """Should keep delimiters inside quotes."""
        document = parse_tabular_text('Date,Description,Amount\n01/02/2026,"STARBUCKS, INC",5.25\n')
        assert document.rows[0][1] == "STARBUCKS, INC"

    def test_tab_separated(self):
        """Should split tab-separated exports."""
        document = parse_tabular_text("Date\tDescription\tAmount\n01/02/2026\tCOFFEE\t4.50\n")
        assert document.rows == (("01/02/2026", "COFFEE", "4.50"),)

    def test_semicolon_separated(self):
        """Should split semicolon-separated exports."""
        document = parse_tabular_text("Date;Description;Amount\n01/02/2026;COFFEE;4.50\n")
        assert document.rows == (("01/02/2026", "COFFEE", "4.50"),)

    def test_pads_and_truncates_to_header_width(self):
        """Should give every row exactly as many fields as the header."""
        document = parse_tabular_text(
            "Date,Description,Amount\n"
            "01/02/2026,COFFEE,4.50\n"
            "01/03/2026,LUNCH\n"
            "01/04/2026,BOOKS,12.00,extra\n"
            "01/05/2026,GAS,30.00\n"
        )

        assert document.rows[1] == ("01/03/2026", "LUNCH", "")
        assert document.rows[2] == ("01/04/2026", "BOOKS", "12.00")
        assert all(len(row) == 3 for row in document.rows)

    def test_skips_blank_lines_and_bom(self):
        """Should ignore blank lines and a leading byte order mark."""
        document = parse_tabular_text("\ufeffDate,Amount\n\n01/02/2026,4.50\n\n")

        assert document.headers == ("Date", "Amount")
        assert len(document.rows) == 1

    def test_apple_card_layout(self):
        """Should keep all seven Apple Card columns."""
        document = parse_tabular_text(APPLE_CARD_CSV)

        assert len(document.headers) == 7
        assert document.rows[1][6] == "-1030.27"

    def test_header_only(self):
        """Should return an empty document for a header with no rows."""
        document = parse_tabular_text("Date,Description,Amount\n")
        assert document.is_empty


class TestNotTabular:
    """Test structural rejection."""

    def test_no_delimiter(self):
        """Should reject OCR lines with no delimiter."""
        with pytest.raises(UnrecognizedFormatError, match="no delimiter"):
            parse_tabular_text("DoorDash $20.78 2/2/26\nSafeway $50.00 2/3/26")

    def test_dated_first_line(self):
        """Should reject statement text whose first line is a date."""
        with pytest.raises(UnrecognizedFormatError, match="not a header"):
            parse_tabular_text("February 09, 2026\nAPPLECARD GSBANK PAYMENT -$1,030.27 $3,397.03")

    def test_ragged_rows(self):
        """Should reject text whose rows mostly disagree with the header width."""
        with pytest.raises(UnrecognizedFormatError, match="header width"):
            parse_tabular_text("Order summary, details\nItem one\nItem two\nItem three, a, b")

    def test_empty_text(self):
        """Should reject empty text."""
        with pytest.raises(UnrecognizedFormatError):
            parse_tabular_text("")


class TestParseTabularBytes:
    """Test decoding raw exports."""

    def test_decodes_and_parses(self):
        """Should decode bytes with a BOM and split them."""
        document = parse_tabular_bytes(b"\xef\xbb\xbf" + ARCO_CSV.encode("utf-8"))
        assert document.headers[0] == "Date"

    def test_empty_file(self):
        """Should reject an empty file."""
        with pytest.raises(ValidationError, match="empty"):
            parse_tabular_bytes(b"")
