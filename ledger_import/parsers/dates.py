"""Date grammar shared by the synthesizers and the mapper."""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ledger_import.parsers.validation import normalize_whitespace

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_MONTH = (
    r"(?:Jan|January|Feb|February|Mar|March|Apr|April|May|Jun|June|Jul|July|Aug|August"
    r"|Sep|Sept|September|Oct|October|Nov|November|Dec|December)"
)

MONTH_DAY_YEAR = re.compile(rf"\b({_MONTH})\.?\s+(\d{{1,2}}),?\s+(\d{{4}}|\d{{2}})\b(?![.,]\d)", re.IGNORECASE)
MONTH_YEAR_HEADER = re.compile(rf"^({_MONTH})\s+(\d{{4}})$", re.IGNORECASE)
FULL_NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\b")
SHORT_NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?\b")
ISO_DATE = re.compile(r"\b(\d{4})[-/](\d{1,2})[-/](\d{1,2})\b")
MONTH_RANGE = re.compile(
    rf"({_MONTH})\.?\s+(\d{{1,2}})(?:,?\s+(\d{{4}}))?\s*-\s*(?:({_MONTH})\.?\s+)?(\d{{1,2}})(?:,?\s+(\d{{4}}))?",
    re.IGNORECASE,
)
NUMERIC_RANGE = re.compile(
    r"\b\d{1,2}/\d{1,2}(?:/(?:\d{4}|\d{2}))?\s*(?:-|to|through)\s*(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?\b",
    re.IGNORECASE,
)
TODAY = re.compile(r"\btoday\b", re.IGNORECASE)
YESTERDAY = re.compile(r"\byesterday\b", re.IGNORECASE)
RELATIVE_AGO = re.compile(r"\b(\d+)\s*(hour|hours|hr|hrs|minute|minutes|min|mins)\s+ago\b", re.IGNORECASE)
# A weekday is a date only as its own token: "Saturday", "Saturday, 3:15 PM", never "Sunday Riley".
WEEKDAY = re.compile(
    r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b(?=\s*(?:$|[,•·|\-]|\d|at\b))",
    re.IGNORECASE,
)

# Order matters: ranges before single dates, full before short.
_STRIPPABLE = [MONTH_RANGE, MONTH_DAY_YEAR, ISO_DATE, FULL_NUMERIC_DATE, SHORT_NUMERIC_DATE,
               RELATIVE_AGO, WEEKDAY, TODAY, YESTERDAY]


def _expand_year(text: str) -> int:
    year = int(text)
    return year + 2000 if year < 100 else year


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


@dataclass(frozen=True)
class DateContext:
    """Reference day plus the years seen in a document, for filling in missing years."""

    reference_date: date
    candidate_years: tuple[int, ...] = ()
    grace_days: int = 7

    @classmethod
    def from_lines(cls, lines: list[str], reference_date: date, grace_days: int = 7) -> "DateContext":
        years: set[int] = set()
        for line in lines:
            for found in iter_full_dates(line):
                years.add(found.year)
        return cls(reference_date=reference_date, candidate_years=tuple(sorted(years)), grace_days=grace_days)

    def infer(self, month: int, day: int) -> date | None:
        """Pick a year for a month/day, preferring dates not past the reference plus grace."""
        ref_year = self.reference_date.year
        if self.candidate_years:
            years = set(self.candidate_years) | {ref_year}
        else:
            years = {ref_year - 1, ref_year, ref_year + 1}

        candidates = [d for d in (_safe_date(y, month, day) for y in sorted(years)) if d]
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        horizon = self.reference_date + timedelta(days=self.grace_days)
        return min(candidates, key=lambda d: (d > horizon, abs((d - self.reference_date).days)))


def iter_full_dates(text: str) -> list[date]:
    """Every date in the text that carries its own year."""
    found: list[date] = []
    normalized = normalize_whitespace(text)
    for match in MONTH_DAY_YEAR.finditer(normalized):
        parsed = _safe_date(_expand_year(match.group(3)), MONTHS[match.group(1).lower()], int(match.group(2)))
        if parsed:
            found.append(parsed)
    for match in FULL_NUMERIC_DATE.finditer(normalized):
        parsed = _safe_date(_expand_year(match.group(3)), int(match.group(1)), int(match.group(2)))
        if parsed:
            found.append(parsed)
    return found


def parse_date_text(text: str) -> date | None:
    """
    Parse a standalone date field.

    Accepts M/D/YYYY, M/D/YY, YYYY-MM-DD, YYYY/MM/DD and month-name forms
    such as "February 9, 2026" or "Feb 09, 2026".
    """
    t = normalize_whitespace(text)
    if not t:
        return None

    formats = [
        "%m/%d/%Y",  # 12/30/2024
        "%m/%d/%y",  # 12/30/24
        "%Y-%m-%d",  # 2024-12-30
        "%Y/%m/%d",  # 2024/12/30
    ]
    for fmt in formats:
        try:
            return datetime.strptime(t, fmt).date()
        except ValueError:
            continue

    match = MONTH_DAY_YEAR.fullmatch(t)
    if match:
        return _safe_date(_expand_year(match.group(3)), MONTHS[match.group(1).lower()], int(match.group(2)))

    return None


def parse_full_date_line(text: str) -> date | None:
    """A line that is nothing but a dated section header."""
    t = normalize_whitespace(text).rstrip(":")
    if not t:
        return None
    return parse_date_text(t)


def month_year_header(text: str) -> date | None:
    """'December 2025' style headers resolve to the first of that month."""
    match = MONTH_YEAR_HEADER.match(normalize_whitespace(text))
    if not match:
        return None
    return _safe_date(int(match.group(2)), MONTHS[match.group(1).lower()], 1)


def relative_date(text: str, reference_date: date) -> date | None:
    """Resolve today/yesterday/'N hours ago'/weekday names against the reference day."""
    normalized = normalize_whitespace(text)
    if not normalized:
        return None

    if TODAY.search(normalized):
        return reference_date
    if YESTERDAY.search(normalized):
        return reference_date - timedelta(days=1)
    if RELATIVE_AGO.search(normalized):
        return reference_date

    match = WEEKDAY.search(normalized)
    if match:
        wanted = WEEKDAYS.index(match.group(1).lower())
        offset = (reference_date.weekday() - wanted) % 7
        return reference_date - timedelta(days=offset)

    return None


def find_date(text: str, context: DateContext) -> date | None:
    """First date expressed anywhere in a line, explicit forms before relative ones."""
    normalized = normalize_whitespace(text)
    if not normalized:
        return None

    match = MONTH_DAY_YEAR.search(normalized)
    if match:
        parsed = _safe_date(_expand_year(match.group(3)), MONTHS[match.group(1).lower()], int(match.group(2)))
        if parsed:
            return parsed

    match = ISO_DATE.search(normalized)
    if match:
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed

    match = SHORT_NUMERIC_DATE.search(normalized)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        if match.group(3):
            parsed = _safe_date(_expand_year(match.group(3)), month, day)
        else:
            parsed = context.infer(month, day)
        if parsed:
            return parsed

    return relative_date(normalized, context.reference_date)


def date_range_end(text: str, context: DateContext) -> date | None:
    """End date of a pay/statement period such as 'Dec 8 - Dec 21' or '12/08/2025 - 12/21/2025'."""
    normalized = normalize_whitespace(text)

    match = MONTH_RANGE.search(normalized)
    if match:
        start_month = MONTHS[match.group(1).lower()]
        end_month = MONTHS[match.group(4).lower()] if match.group(4) else start_month
        end_day = int(match.group(5))
        year_text = match.group(6) or match.group(3)
        if year_text:
            return _safe_date(int(year_text), end_month, end_day)
        return context.infer(end_month, end_day)

    match = NUMERIC_RANGE.search(normalized)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        if match.group(3):
            return _safe_date(_expand_year(match.group(3)), month, day)
        return context.infer(month, day)

    return None


def strip_date_tokens(text: str) -> str:
    """Remove every date-like token from a line, leaving the surrounding words."""
    cleaned = normalize_whitespace(text)
    for pattern in _STRIPPABLE:
        cleaned = pattern.sub(" ", cleaned)
    return normalize_whitespace(cleaned)


def to_iso(value: date | None) -> str:
    return value.isoformat() if value else ""
