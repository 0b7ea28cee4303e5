"""Tests for the statement text synthesizer."""

from datetime import date

import pytest

from ledger_import.models import CANONICAL_HEADERS
from ledger_import.parsers.statement_text import (
    looks_like_summary,
    parse_statement_lines,
    statement_period_end,
)
from ledger_import.parsers.validation import UnrecognizedFormatError


def parse_rows(lines: list[str], reference_date: date | None = date(2026, 2, 11)) -> list[tuple[str, ...]]:
    """Helper to parse statement lines and return raw rows."""
    document = parse_statement_lines(lines, reference_date=reference_date)
    assert document.headers == CANONICAL_HEADERS
    return list(document.rows)


class TestStatementPeriod:
    """Test statement period detection."""

    def test_for_the_period(self):
        """Should read the end of 'for the period X to Y'."""
        lines = ["Account Statement", "For the period 01/10/2026 to 02/09/2026"]
        assert statement_period_end(lines) == date(2026, 2, 9)

    def test_opening_closing_date(self):
        """Should read the end of 'Opening/Closing Date X - Y'."""
        assert statement_period_end(["Opening/Closing Date 11/22/2025 - 12/21/2025"]) == date(2025, 12, 21)

    def test_closing_date(self):
        """Should read a lone closing date."""
        assert statement_period_end(["Closing Date: 01/14/2026"]) == date(2026, 1, 14)

    def test_falls_back_to_latest_date(self):
        """Should use the latest full date when no period is named."""
        lines = ["Statement 01/14/2026", "Payment due 02/05/2026"]
        assert statement_period_end(lines) == date(2026, 2, 5)


class TestLooksLikeSummary:
    """Test summary and disclosure detection."""

    def test_totals_and_pages(self):
        """Should flag totals, balances and page footers."""
        assert looks_like_summary("Total payments for this period") is True
        assert looks_like_summary("New Balance") is True
        assert looks_like_summary("Page 1 of 3") is True

    def test_rates(self):
        """Should flag APR and percentage rows."""
        assert looks_like_summary("Purchases 25.74% (v)") is True
        assert looks_like_summary("Cash advance APR") is True

    def test_transactions(self):
        """Should not flag ordinary merchants."""
        assert looks_like_summary("STARBUCKS STORE 12345") is False


class TestParseStatementLines:
    """Test register row extraction."""

    def test_leading_date_register(self):
        """Should date rows by their leading MM/DD and take the first figure."""
        rows = parse_rows([
            "Account Statement",
            "For the period 01/10/2026 to 02/09/2026",
            "02/09 APPLECARD GSBANK PAYMENT ACH WEB x8892 -1,030.27 3,397.03",
            "02/06 ATM TRANSACTION FEE - WITHDRAWAL -3.00 4,427.30",
            "02/05 CALIFORNIA EDD DI DEPOSIT ACH CREDIT 2,792.00 4,533.80",
            "Total fees for this period 3.00",
            "Page 1 of 2",
        ])

        assert rows == [
            ("2026-02-09", "APPLECARD GSBANK PAYMENT ACH WEB x8892", "1030.27", "", "income"),
            ("2026-02-06", "ATM TRANSACTION FEE - WITHDRAWAL", "3.00", "", "expense"),
            ("2026-02-05", "CALIFORNIA EDD DI DEPOSIT ACH CREDIT", "2792.00", "", "income"),
        ]

    def test_section_dates(self):
        """Should date undated lines by the full-date line above them."""
        rows = parse_rows([
            "February 09, 2026",
            "APPLECARD GSBANK PAYMENT -$1,030.27 $3,397.03",
            "February 06, 2026",
            "OPENAI *CHATGPT SUBSCR $40.00 $4,427.30",
            "New Balance $4,427.30",
        ])

        assert rows == [
            ("2026-02-09", "APPLECARD GSBANK PAYMENT", "1030.27", "", "income"),
            ("2026-02-06", "OPENAI *CHATGPT SUBSCR", "40.00", "", "expense"),
        ]

    def test_skips_points_and_rate_lines(self):
        """Should never turn rewards points or APR rows into transactions."""
        rows = parse_rows([
            "Opening/Closing Date 11/22/2025 - 12/21/2025",
            "12/10 AMAZON MARKETPLACE 11.92",
            "12/12 Rewards points earned 1,192.00",
            "12/15 AUTOMATIC PAYMENT - THANK YOU -277.64",
            "Purchases 25.74% (v) 0.00",
        ])

        assert ("2025-12-10", "AMAZON MARKETPLACE", "11.92", "", "expense") in rows
        assert ("2025-12-15", "AUTOMATIC PAYMENT - THANK YOU", "277.64", "", "income") in rows
        assert all(row[2] != "1192.00" for row in rows)
        assert len(rows) == 2

    def test_year_boundary(self):
        """Should put December rows in the prior year for a January statement."""
        rows = parse_rows([
            "For the period 12/15/2025 to 01/14/2026",
            "12/20 STARBUCKS 25.00",
            "01/06 01/07 OPENAI *CHATGPT SUBSCR 40.00",
        ])

        assert rows[0][0] == "2025-12-20"
        assert rows[1][0] == "2026-01-06"
        assert rows[1][1] == "OPENAI *CHATGPT SUBSCR"

    def test_empty_input(self):
        """Should return an empty document for empty input."""
        assert parse_rows([]) == []

    def test_rejects_text_without_dates(self):
        """Should reject text that has no dated lines."""
        with pytest.raises(UnrecognizedFormatError, match="Not a statement"):
            parse_statement_lines(["Hello world", "Lunch 12.50"])

    def test_rejects_text_without_amounts(self):
        """Should reject dated text with no figures."""
        with pytest.raises(UnrecognizedFormatError):
            parse_statement_lines(["February 09, 2026", "Nothing happened"])
