"""Synthesizer for OCR lines recognized from card and bank app screenshots.

Screenshot text arrives as short visual lines in reading order. A row may be
on one line ("ARCO $27.50 2/3/26"), split over several ("DoorDash",
"$20.78 > 2%", "2/2/26"), or laid out as separate columns of merchants,
dates and amounts. Every line is first classified into a ``LineKind``; a
single forward fold then assembles rows from the classified lines.
"""

import re
from dataclasses import dataclass, field
import datetime
from datetime import date
from enum import Enum

from ledger_import.config import settings
from ledger_import.models import ParsedDocument
from ledger_import.parsers.dates import (
    DateContext,
    date_range_end,
    find_date,
    month_year_header,
    strip_date_tokens,
    to_iso,
)
from ledger_import.parsers.validation import (
    AMOUNT_PATTERN,
    ParseResult,
    find_amount_tokens,
    format_amount,
    log_parse_result,
    logger,
    normalize_whitespace,
    split_amount_token,
)
from ledger_import.parsers.vocabulary import infer_kind

# List chrome and paystub breakdown lines that never describe a transaction.
REJECTION_KEYWORDS = [
    "search or ask a question",
    "latest card transactions",
    "recent transactions",
    "sort by",
    "statement balance",
    "download statement",
    "order summary",
    "item(s) subtotal",
    "shipping & handling",
    "estimated tax to be collected",
    "payment method",
    "card ending",
    "federal income tax",
    "state and local taxes",
    "social security and medicare",
]

# Paystub breakdown rows ("Regular 80.00 $3,200.00") open with one of these labels.
PAYSTUB_BREAKDOWN = re.compile(r"^(?:hours|regular|overtime|double ot)\b", re.IGNORECASE)

# Incidental detail under a merchant; never replaces the active merchant.
DETAIL_LINE_PREFIXES = ("from ", "card number used")

DETAIL_LINE_KEYWORDS = [
    "apple pay",
    "pending",
    "hour ago",
    "hours ago",
    "today",
    "yesterday",
    "saturday",
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
]

UI_LABELS = {
    "card transactions",
    "transactions",
    "activity",
    "recent activity",
    "see all",
    "show more",
    "see details",
    "details",
    "done",
    "back",
    "edit",
    "search",
    "wallet",
    "posted",
    "total",
}

ALLOWED_NUMERIC_MERCHANTS = {"76"}

PAYCHECK_TITLE = re.compile(r"^pay\s?check(?:s)?(?:\s+(?:details|breakdown|summary))?$", re.IGNORECASE)
TAX_LINE = re.compile(r"\b(federal income tax|state and local taxes|social security|medicare|withholding)\b", re.IGNORECASE)

RECEIPT_CHROME = [
    "search",
    "see details",
    "order summary",
    "order placed",
    "grand total",
    "item(s) subtotal",
    "shipping & handling",
    "payment method",
    "track package",
]

_STATUS_TIME = re.compile(r"^\d{1,2}:\d{2}(?:\s?[AP]M)?$", re.IGNORECASE)
_PERCENT_BADGE = re.compile(r"^[-+]?\d{1,3}(?:\.\d+)?%$")
_PERCENT_TOKEN = re.compile(r"[▲▼↑↓]?\s*[-+]?\d{1,3}(?:\.\d+)?%")
_LOCATION_LINE = re.compile(r"^[A-Za-z .'\-]+,\s?[A-Z]{2}$")
_GLYPHS = re.compile(r"[›>‹<…]|\.{3,}")
_REJECTION_PHRASES = re.compile(
    r"\b(?:" + "|".join(re.escape(keyword) for keyword in REJECTION_KEYWORDS) + r")(?!\w)", re.IGNORECASE
)
_DETAIL_WORDS = re.compile(
    r"\b(?:" + "|".join(re.escape(keyword) for keyword in DETAIL_LINE_KEYWORDS) + r")\b", re.IGNORECASE
)
_NAME_WORD = re.compile(r"[a-z]{3,}", re.IGNORECASE)


class LineKind(str, Enum):
    """What a single recognized line contributes to a row."""

    NOISE = "noise"
    HEADER = "header"
    MERCHANT = "merchant"
    AMOUNT = "amount"
    DATE = "date"
    COMBINED = "combined"


@dataclass(frozen=True)
class ClassifiedLine:
    """One recognized line and the fields extracted from it."""

    kind: LineKind
    text: str
    description: str = ""
    amount: float | None = None
    sign: str = ""
    date: datetime.date | None = None


@dataclass
class _DraftRow:
    description: str
    amount: float
    sign: str
    date: datetime.date | None = None


@dataclass
class _ScanState:
    """Carried state for one fold over the classified lines."""

    rows: list[_DraftRow] = field(default_factory=list)
    section_date: date | None = None
    pending_row: int | None = None
    active_merchant: str | None = None
    active_merchant_date: date | None = None


# Line predicates


def is_rejected(text: str) -> bool:
    normalized = normalize_whitespace(text)
    return bool(PAYSTUB_BREAKDOWN.match(normalized) or _REJECTION_PHRASES.search(normalized))


def is_detail_line(text: str) -> bool:
    """
    Incidental detail such as "Apple Pay", "Pending" or "From PNC Bank".

    Detail words must make up the whole line: "Sunday Riley" and
    "TGI Fridays" are merchants.
    """
    lower = normalize_whitespace(text).lower()
    if lower.startswith(DETAIL_LINE_PREFIXES):
        return True
    if not _DETAIL_WORDS.search(lower):
        return False
    return not _NAME_WORD.search(_DETAIL_WORDS.sub(" ", lower))


def is_chrome(text: str) -> bool:
    """Status-bar times, percent badges, bare glyphs and app labels."""
    if not any(c.isalnum() for c in text):
        return True
    if _STATUS_TIME.match(text) or _PERCENT_BADGE.match(text):
        return True
    return _GLYPHS.sub("", text).strip().lower() in UI_LABELS


def looks_like_location(text: str) -> bool:
    return bool(_LOCATION_LINE.match(text))


def is_usable_merchant(text: str) -> bool:
    normalized = normalize_whitespace(text)
    if not normalized or is_chrome(normalized):
        return False
    if "%" in normalized or looks_like_location(normalized):
        return False

    if is_rejected(normalized) or is_detail_line(normalized):
        return False

    if any(c.isalpha() for c in normalized):
        return True
    return normalized in ALLOWED_NUMERIC_MERCHANTS


def clean_description(text: str) -> str:
    """Strip amounts, dates, glyphs and percent badges from a line, keeping the words."""
    cleaned = AMOUNT_PATTERN.sub(" ", text)
    cleaned = _GLYPHS.sub(" ", cleaned)
    cleaned = _PERCENT_TOKEN.sub(" ", cleaned)
    cleaned = strip_date_tokens(cleaned)
    return normalize_whitespace(cleaned).strip(" -|•·")


def select_amount(matches: list[re.Match[str]]) -> re.Match[str] | None:
    """A signed figure beats an unsigned one; otherwise the first figure wins."""
    if not matches:
        return None
    for match in matches:
        if "-" in match.group(0) or "+" in match.group(0) or match.group(0).startswith("("):
            return match
    return matches[0]


def classify_line(line: str, context: DateContext) -> ClassifiedLine:
    """Tag one recognized line; the fold consumes these in order."""
    text = normalize_whitespace(line)
    if not text or is_chrome(text):
        return ClassifiedLine(LineKind.NOISE, text)

    header = month_year_header(text)
    if header:
        return ClassifiedLine(LineKind.HEADER, text, date=header)

    matches = find_amount_tokens(text)
    if matches:
        if is_rejected(text):
            return ClassifiedLine(LineKind.NOISE, text)

        selected = select_amount(matches)
        parsed = split_amount_token(selected.group(0))
        if parsed is None:
            return ClassifiedLine(LineKind.NOISE, text)
        amount, sign = parsed

        line_date = find_date(AMOUNT_PATTERN.sub(" ", text), context)
        description = clean_description(text)
        kind = LineKind.COMBINED if is_usable_merchant(description) else LineKind.AMOUNT
        return ClassifiedLine(kind, text, description=description, amount=amount, sign=sign, date=line_date)

    range_end = date_range_end(text, context)
    line_date = range_end or find_date(text, context)
    if line_date:
        return ClassifiedLine(LineKind.DATE, text, date=line_date)

    if is_usable_merchant(text):
        return ClassifiedLine(LineKind.MERCHANT, text, description=clean_description(text) or text)

    return ClassifiedLine(LineKind.NOISE, text)


# Special layouts


def _first_amount(line: str) -> float | None:
    match = select_amount(find_amount_tokens(line))
    if match is None:
        return None
    parsed = split_amount_token(match.group(0))
    return parsed[0] if parsed else None


def parse_receipt(lines: list[str], context: DateContext) -> list[str] | None:
    """An order receipt ("Order summary" ... "Grand Total") becomes one expense row."""
    lowers = [line.lower() for line in lines]
    if not any("order summary" in l for l in lowers) or not any("grand total" in l for l in lowers):
        return None

    total_line = next(line for line, lower in zip(lines, lowers) if "grand total" in lower)
    amount = _first_amount(total_line)
    if amount is None:
        return None

    placed_line = next((line for line, lower in zip(lines, lowers) if "order placed" in lower), "")
    placed = find_date(placed_line, context) if placed_line else None

    description = next(
        (
            clean_description(line)
            for line, lower in zip(lines, lowers)
            if not any(chrome in lower for chrome in RECEIPT_CHROME) and any(c.isalpha() for c in line)
        ),
        "",
    ) or "Online Order"

    return [to_iso(placed or context.reference_date), description, format_amount(amount), "", "expense"]


def parse_paycheck(lines: list[str], classified: list[ClassifiedLine], context: DateContext) -> list[str] | None:
    """
    A paycheck screenshot becomes one "Paycheck" income row carrying the net figure.

    Detected by a paycheck title line, a take-home label, or payroll signals
    occurring together (pay-period range, earned/take-home label, tax lines)
    even when the word "paycheck" never appears.
    """
    lowers = [line.lower() for line in lines]
    has_title = any(PAYCHECK_TITLE.match(line) for line in lines)
    take_home_line = next(
        (line for line, lower in zip(lines, lowers) if "take home pay" in lower or "net pay" in lower), None
    )
    earned_line = next(
        (line for line, lower in zip(lines, lowers) if "earned this period" in lower or "gross pay" in lower), None
    )
    range_end = next((d for d in (date_range_end(line, context) for line in lines) if d), None)
    tax_lines = [line for line in lines if TAX_LINE.search(line)]

    payroll_signals = range_end is not None and (take_home_line or earned_line) and tax_lines
    if not (has_title or take_home_line or payroll_signals):
        return None

    net = _first_amount(take_home_line) if take_home_line else None
    if net is None:
        net = next((c.amount for c in classified if c.kind == LineKind.AMOUNT), None)
    if net is None and earned_line:
        gross = _first_amount(earned_line)
        withheld = sum(_first_amount(line) or 0.0 for line in tax_lines)
        if gross is not None:
            net = gross - withheld
    if net is None or net <= 0:
        return None

    return [to_iso(range_end or context.reference_date), "Paycheck", format_amount(net), "", "income"]


# List scan


def _emit(state: _ScanState, description: str, line: ClassifiedLine) -> None:
    row_date = line.date or state.active_merchant_date or state.section_date
    state.rows.append(_DraftRow(description=description, amount=line.amount, sign=line.sign, date=row_date))
    state.pending_row = len(state.rows) - 1 if row_date is None else None
    state.active_merchant = None
    state.active_merchant_date = None


def _fold(classified: list[ClassifiedLine]) -> tuple[list[_DraftRow], ParseResult]:
    state = _ScanState()
    result = ParseResult(rows=[])

    for line in classified:
        result.total_lines_processed += 1
        if line.kind == LineKind.HEADER:
            state.section_date = line.date
            state.active_merchant = None
        elif line.kind == LineKind.COMBINED:
            _emit(state, line.description, line)
        elif line.kind == LineKind.AMOUNT:
            if state.active_merchant:
                _emit(state, state.active_merchant, line)
            else:
                result.lines_skipped += 1
                result.warnings.append(f"Amount without merchant: {line.text!r}")
        elif line.kind == LineKind.DATE:
            if state.pending_row is not None and state.rows[state.pending_row].date is None:
                state.rows[state.pending_row].date = line.date
                state.pending_row = None
            elif state.active_merchant:
                state.active_merchant_date = line.date
            else:
                state.section_date = line.date
        elif line.kind == LineKind.MERCHANT:
            state.active_merchant = line.description
            state.active_merchant_date = None
        else:
            result.lines_skipped += 1

    return [row for row in state.rows if row.description], result


def _amount_runs(classified: list[ClassifiedLine]) -> list[int]:
    """Lengths of contiguous amount-only runs, ignoring noise between them."""
    runs: list[int] = []
    in_run = False
    for line in classified:
        if line.kind == LineKind.NOISE:
            continue
        if line.kind == LineKind.AMOUNT:
            if in_run:
                runs[-1] += 1
            else:
                runs.append(1)
            in_run = True
        else:
            in_run = False
    return runs


def looks_columnar(classified: list[ClassifiedLine]) -> bool:
    """Merchants and amounts captured as separate columns rather than per row."""
    if any(line.kind == LineKind.COMBINED for line in classified):
        return False
    runs = _amount_runs(classified)
    return len(runs) == 1 and runs[0] >= 2


def reconstruct_columns(classified: list[ClassifiedLine]) -> list[_DraftRow]:
    """
    Pair merchant lines with amount lines positionally.

    When merchants outnumber amounts, the trailing merchants are used. A single
    date line right after a merchant dates that merchant; a contiguous run of
    dates as long as the pairing is applied in order.
    """
    seeds: list[list] = []  # [description, date]
    amounts: list[ClassifiedLine] = []
    date_runs: list[tuple[int | None, list[date]]] = []  # (preceding seed index, dates)
    section_date: date | None = None
    previous: LineKind | None = None

    for line in classified:
        if line.kind == LineKind.NOISE:
            continue
        if line.kind == LineKind.MERCHANT:
            seeds.append([line.description, None])
        elif line.kind == LineKind.AMOUNT:
            amounts.append(line)
        elif line.kind == LineKind.HEADER:
            section_date = line.date
        elif line.kind == LineKind.DATE:
            if previous == LineKind.DATE:
                date_runs[-1][1].append(line.date)
            else:
                owner = len(seeds) - 1 if previous == LineKind.MERCHANT else None
                date_runs.append((owner, [line.date]))
        previous = line.kind

    pair_count = min(len(seeds), len(amounts))
    if pair_count == 0:
        return []

    for owner, dates in date_runs:
        if owner is not None and len(dates) == 1:
            seeds[owner][1] = dates[0]

    offset = len(seeds) - pair_count
    paired_seeds = seeds[offset:]
    paired_amounts = amounts[len(amounts) - pair_count:]

    column_dates = next((dates for _, dates in date_runs if len(dates) == pair_count and pair_count > 1), None)

    rows = []
    for index, (seed, amount_line) in enumerate(zip(paired_seeds, paired_amounts)):
        row_date = column_dates[index] if column_dates else seed[1]
        rows.append(
            _DraftRow(
                description=seed[0],
                amount=amount_line.amount,
                sign=amount_line.sign,
                date=row_date or amount_line.date or section_date,
            )
        )
    return rows


def _to_fields(row: _DraftRow) -> list[str]:
    decision = infer_kind(row.description, row.sign)
    return [to_iso(row.date), row.description, format_amount(row.amount), "", decision.kind.value]


def parse_ocr_lines(lines: list[str], reference_date: date | None = None) -> ParsedDocument:
    """
    Reconstruct transaction rows from recognized screenshot lines.

    Args:
        lines: OCR lines in reading order
        reference_date: "Now" for relative dates, missing years and rows that
            carry no date at all (defaults to today)

    Returns:
        Canonical Date/Description/Amount/Category/Type document; empty when
        no line carries an amount.
    """
    reference = reference_date or date.today()
    normalized = [text for text in (normalize_whitespace(line) for line in lines or []) if text]
    if not normalized:
        logger.info("OCR lines: no text")
        return ParsedDocument.canonical()

    context = DateContext.from_lines(normalized, reference, grace_days=settings.date_grace_days)

    receipt = parse_receipt(normalized, context)
    if receipt:
        logger.info("OCR lines: detected order receipt")
        return ParsedDocument.canonical([receipt])

    classified = [classify_line(line, context) for line in normalized]

    paycheck = parse_paycheck(normalized, classified, context)
    if paycheck:
        logger.info("OCR lines: detected paycheck screenshot")
        return ParsedDocument.canonical([paycheck])

    if looks_columnar(classified):
        logger.debug("OCR lines: amounts form a single column, pairing positionally")
        rows = reconstruct_columns(classified)
        result = ParseResult(rows=[], total_lines_processed=len(classified))
    else:
        rows, result = _fold(classified)
        if not rows:
            rows = reconstruct_columns(classified)

    # A screenshot row with no date of its own was captured on the reference day
    for index, row in enumerate(rows):
        if row.date is None:
            result.warnings.append(f"Row {index + 1} ({row.description!r}) has no date, using {reference}")
            row.date = reference

    result.rows = [_to_fields(row) for row in rows]

    log_parse_result(result, "OCR lines")
    return ParsedDocument.canonical(result.rows)
