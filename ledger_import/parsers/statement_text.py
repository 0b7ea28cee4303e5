"""Synthesizer for text extracted from bank and card statement PDFs."""

import re
from datetime import date

from ledger_import.config import settings
from ledger_import.models import ParsedDocument
from ledger_import.parsers.dates import (
    DateContext,
    FULL_NUMERIC_DATE,
    iter_full_dates,
    parse_date_text,
    parse_full_date_line,
    to_iso,
)
from ledger_import.parsers.validation import (
    AMOUNT_PATTERN,
    ParseResult,
    UnrecognizedFormatError,
    find_amount_tokens,
    format_amount,
    log_parse_result,
    logger,
    normalize_whitespace,
    split_amount_token,
)
from ledger_import.parsers.vocabulary import infer_kind

# Register lines start with a transaction date, optionally followed by a posting date.
LEADING_DATES = re.compile(
    r"^\s*(\d{1,2}/\d{1,2}(?:/(?:\d{4}|\d{2}))?)\*?(?:\s+\d{1,2}/\d{1,2}(?:/(?:\d{4}|\d{2}))?\*?)?\s+"
)

PERIOD_PATTERNS = [
    re.compile(r"for\s+the\s+period\s+\d{1,2}/\d{1,2}/\d{2,4}\s+(?:to|through|-)\s+(\d{1,2}/\d{1,2}/\d{2,4})", re.I),
    re.compile(r"opening/closing\s+date\s+\d{1,2}/\d{1,2}/\d{2,4}\s*-\s*(\d{1,2}/\d{1,2}/\d{2,4})", re.I),
    re.compile(r"closing\s+date:?\s+(\d{1,2}/\d{1,2}/\d{2,4})", re.I),
]

SUMMARY_KEYWORDS = [
    "transaction summary",
    "total payments for this period",
    "total fees for this period",
    "total interest for this period",
    "total year-to-date",
    "year-to-date",
    "minimum payment due",
    "payment due date",
    "closing date",
    "payments and credits",
    "interest charge",
    "percentage rate",
    "new balance",
    "previous balance",
    "balance",
    "points",
    "rewards",
]

_SUMMARY_PATTERNS = [
    re.compile(r"\bapr\b", re.I),
    re.compile(r"\d+(?:\.\d+)?%"),
    re.compile(r"\bpage\s+\d+\s+of\s+\d+\b", re.I),
]


def looks_like_summary(description: str) -> bool:
    """Disclosure, total and rate lines that carry figures but are not transactions."""
    lower = description.lower()
    if any(keyword in lower for keyword in SUMMARY_KEYWORDS):
        return True
    return any(pattern.search(description) for pattern in _SUMMARY_PATTERNS)


def statement_period_end(lines: list[str]) -> date | None:
    """
    Closing date of the statement period.

    Looks for "for the period X to Y", "opening/closing date X - Y" and
    "closing date X" in that order, else the latest full date anywhere.
    """
    for pattern in PERIOD_PATTERNS:
        for line in lines:
            match = pattern.search(line)
            if match:
                parsed = parse_date_text(match.group(1))
                if parsed:
                    return parsed

    all_dates = [found for line in lines for found in iter_full_dates(line)]
    return max(all_dates) if all_dates else None


def _leading_date(token: str, context: DateContext) -> date | None:
    token = token.rstrip("*")
    if FULL_NUMERIC_DATE.fullmatch(token):
        return parse_date_text(token)
    month, day = (int(part) for part in token.split("/"))
    return context.infer(month, day)


def _parse_register_line(line: str, row_date: date, result: ParseResult) -> list[str] | None:
    matches = find_amount_tokens(line)
    if not matches:
        return None

    # First figure is the transaction; any later one is the running balance.
    parsed = split_amount_token(matches[0].group(0))
    if parsed is None:
        result.warnings.append(f"Unreadable amount: {line!r}")
        return None
    amount, sign = parsed

    description = normalize_whitespace(AMOUNT_PATTERN.sub(" ", line)).strip(" -|")
    if not description or not any(c.isalpha() for c in description):
        return None
    if looks_like_summary(description):
        logger.debug(f"Statement: skipping summary line {line!r}")
        return None

    decision = infer_kind(description, sign)
    return [to_iso(row_date), description, format_amount(amount), "", decision.kind.value]


def parse_statement_lines(lines: list[str], reference_date: date | None = None) -> ParsedDocument:
    """
    Extract register rows from statement text lines.

    Full-date lines ("February 09, 2026", "02/09/2026") open a dated section
    for the lines below them; lines starting with MM/DD carry their own date,
    with the year taken from the statement period. Lines seen before any date
    are preamble and skipped.

    Args:
        lines: Extracted text lines in page order
        reference_date: Fallback "now" when the statement names no period

    Raises:
        UnrecognizedFormatError: If the text has no dates or no amounts at all
    """
    result = ParseResult(rows=[])
    normalized = [text for text in (normalize_whitespace(line) for line in lines or []) if text]
    if not normalized:
        return ParsedDocument.canonical()

    period_end = statement_period_end(normalized)
    context = DateContext.from_lines(
        normalized,
        period_end or reference_date or date.today(),
        grace_days=settings.date_grace_days,
    )

    section_date: date | None = None
    saw_date = False
    saw_amount = False

    for line in normalized:
        result.total_lines_processed += 1

        header = parse_full_date_line(line)
        if header:
            section_date = header
            saw_date = True
            continue

        if find_amount_tokens(line):
            saw_amount = True

        leading = LEADING_DATES.match(line)
        if leading:
            row_date = _leading_date(leading.group(1), context)
            if row_date is None:
                result.lines_skipped += 1
                result.warnings.append(f"Invalid date {leading.group(1)!r}")
                continue
            saw_date = True
            remainder = line[leading.end():]
        elif section_date:
            row_date = section_date
            remainder = line
        else:
            result.lines_skipped += 1
            continue

        row = _parse_register_line(remainder, row_date, result)
        if row is None:
            result.lines_skipped += 1
            continue
        result.rows.append(row)

    if not saw_date or not saw_amount:
        logger.warning("Statement: no dated register lines found")
        raise UnrecognizedFormatError("Not a statement: no dates or amounts found")

    log_parse_result(result, "Statement")
    return ParsedDocument.canonical(result.rows)
