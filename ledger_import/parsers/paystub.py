"""Paystub mode: one net-pay income row from extracted paystub text."""

import re
from datetime import date

from ledger_import.config import settings
from ledger_import.models import ParsedDocument
from ledger_import.parsers.dates import DateContext, date_range_end, find_date, to_iso
from ledger_import.parsers.validation import (
    UnrecognizedFormatError,
    find_amount_tokens,
    format_amount,
    logger,
    normalize_whitespace,
    split_amount_token,
)

NET_LABEL = re.compile(r"\b(net pay|take home pay|take-home pay|check amount|net amount)\b", re.IGNORECASE)
PAY_DATE_LABEL = re.compile(r"\b(pay date|pay day|check date|payment date)\b", re.IGNORECASE)
PERIOD_LABEL = re.compile(r"\b(pay period|period ending|period end|period)\b", re.IGNORECASE)
GROSS_OR_TAX = re.compile(r"\b(gross|earned|tax|withholding|social security|medicare|deduction)", re.IGNORECASE)


def _as_lines(lines_or_text: str | list[str]) -> list[str]:
    if isinstance(lines_or_text, str):
        raw = lines_or_text.splitlines()
    else:
        raw = lines_or_text or []
    return [text for text in (normalize_whitespace(line) for line in raw) if text]


def find_net_pay(lines: list[str]) -> float | None:
    """
    First figure after a net/take-home label.

    The figure may sit on the label line or on the line below it (table
    layouts). Gross and tax lines are never read.
    """
    for index, line in enumerate(lines):
        label = NET_LABEL.search(line)
        if not label or GROSS_OR_TAX.search(line):
            continue

        candidates = [line[label.end():]]
        if index + 1 < len(lines) and not GROSS_OR_TAX.search(lines[index + 1]):
            candidates.append(lines[index + 1])

        for text in candidates:
            matches = find_amount_tokens(text)
            if not matches:
                continue
            parsed = split_amount_token(matches[0].group(0))
            if parsed and parsed[0] > 0:
                return parsed[0]
    return None


def find_pay_date(lines: list[str], context: DateContext) -> date | None:
    """Pay-period end, else the labeled pay date, else None."""
    period_lines = [line for line in lines if PERIOD_LABEL.search(line)]
    for line in period_lines + lines:
        end = date_range_end(line, context)
        if end:
            return end

    for line in period_lines:
        if "end" in line.lower():
            found = find_date(line[PERIOD_LABEL.search(line).end():], context)
            if found:
                return found

    for line in lines:
        label = PAY_DATE_LABEL.search(line)
        if label:
            found = find_date(line[label.end():], context)
            if found:
                return found
    return None


def parse_paystub_text(lines_or_text: str | list[str], reference_date: date | None = None) -> ParsedDocument:
    """
    Turn paystub text into a single "Paycheck" income row.

    Args:
        lines_or_text: Extracted lines, or the full text
        reference_date: Date used when the stub names no period or pay date

    Raises:
        UnrecognizedFormatError: If no net pay figure is present
    """
    lines = _as_lines(lines_or_text)
    reference = reference_date or date.today()

    net = find_net_pay(lines)
    if net is None:
        logger.warning("Paystub: no net pay figure found")
        raise UnrecognizedFormatError("Not a paystub: no net pay figure found")

    context = DateContext.from_lines(lines, reference, grace_days=settings.date_grace_days)
    pay_date = find_pay_date(lines, context)
    if pay_date is None:
        logger.debug("Paystub: no period or pay date, using reference date")

    logger.info(f"Paystub: net pay {net:.2f}")
    return ParsedDocument.canonical(
        [[to_iso(pay_date or reference), "Paycheck", format_amount(net), "", "income"]]
    )
