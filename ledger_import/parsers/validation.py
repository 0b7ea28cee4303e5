"""Shared validation utilities for the row synthesizers."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date

# Configure logging for parsers
logger = logging.getLogger("ledger_import.parsers")

# One decimal convention: "." decimal point, "," thousands separator.
AMOUNT_PATTERN = re.compile(r"(?<![\d.,])[-+]?\$?\(?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)?(?!\d)")

_MINUS_VARIANTS = str.maketrans({"\u2212": "-", "\u2013": "-", "\u2014": "-", "\u00a0": " "})


@dataclass
class ParseResult:
    """Bookkeeping for one synthesis pass."""

    rows: list[list[str]]
    total_lines_processed: int = 0
    lines_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate the share of processed lines that became rows."""
        if self.total_lines_processed == 0:
            return 0.0
        return (len(self.rows) / self.total_lines_processed) * 100


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


class UnrecognizedFormatError(ValidationError):
    """Raised by a synthesizer when the input is structurally not its format."""

    pass


def validate_file_contents(contents: bytes, min_size: int = 1) -> None:
    """
    Validate raw contents before decoding.

    Raises:
        ValidationError: If the contents are empty or too small
    """
    if not contents:
        raise ValidationError("File is empty")

    if len(contents) < min_size:
        raise ValidationError(f"File too small ({len(contents)} bytes), minimum {min_size} bytes expected")


def decode_text_contents(contents: bytes) -> str:
    """
    Decode exported text, trying the common encodings in order.

    Returns:
        Decoded text content

    Raises:
        ValidationError: If the contents are empty or cannot be decoded
    """
    validate_file_contents(contents)

    # utf-8-sig first so a BOM never leaks into the first header cell
    encodings = ["utf-8-sig", "utf-8", "latin-1", "cp1252"]
    for encoding in encodings:
        try:
            return contents.decode(encoding)
        except UnicodeDecodeError:
            continue

    raise ValidationError("Could not decode file with any supported encoding (utf-8, latin-1, cp1252)")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs and unify minus/dash glyphs."""
    if not text:
        return ""
    return " ".join(text.translate(_MINUS_VARIANTS).split())


def validate_amount(amount: float, min_val: float = -1_000_000, max_val: float = 1_000_000) -> bool:
    """Check that an amount is finite and within reasonable bounds."""
    if amount is None:
        return False

    # NaN or infinity
    if amount != amount or abs(amount) == float("inf"):
        return False

    return min_val <= amount <= max_val


def validate_date(txn_date: date, min_year: int = 2000, max_year: int = 2100) -> bool:
    """Check that a date falls inside the accepted year range."""
    if txn_date is None:
        return False

    return min_year <= txn_date.year <= max_year


def validate_description(description: str, min_length: int = 1, max_length: int = 500) -> bool:
    """Check that a description has some content and is not absurdly long."""
    if not description:
        return False

    length = len(description.strip())
    return min_length <= length <= max_length


def clean_amount_string(amount_str: str) -> str:
    """
    Clean an amount string for parsing.

    Args:
        amount_str: Raw amount string

    Returns:
        Cleaned amount string ready for float conversion
    """
    if not amount_str:
        return "0"

    # Remove currency symbols and whitespace
    cleaned = normalize_whitespace(amount_str).replace("$", "").replace(" ", "").strip()

    # Remove thousand separators
    cleaned = cleaned.replace(",", "")

    # Explicit leading plus
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    # Handle parentheses for negative numbers
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1].lstrip("-")

    # Handle trailing minus sign
    if cleaned.endswith("-"):
        cleaned = "-" + cleaned[:-1]

    return cleaned


def parse_amount_safe(amount_str: str, default: float = 0.0) -> tuple[float, bool]:
    """
    Safely parse an amount string.

    Returns:
        Tuple of (parsed amount, success flag)
    """
    if not amount_str or not amount_str.strip():
        return default, False

    try:
        cleaned = clean_amount_string(amount_str)
        if not cleaned or cleaned == "-":
            return default, False

        amount = float(cleaned)

        if not validate_amount(amount):
            return default, False

        return amount, True
    except (ValueError, TypeError):
        return default, False


def amount_has_explicit_sign(amount_str: str) -> bool:
    """True when the text carries a leading +/- or accounting parentheses."""
    trimmed = normalize_whitespace(amount_str).replace("$", "").strip()
    if not trimmed:
        return False
    if trimmed[0] in "+-" or trimmed.endswith("-"):
        return True
    return trimmed.startswith("(") and trimmed.endswith(")")


def split_amount_token(token: str) -> tuple[float, str] | None:
    """
    Split an amount token into its unsigned magnitude and sign marker.

    Returns:
        (magnitude, sign) where sign is "+", "-" or "" for unsigned text,
        or None when the token is not a number.
    """
    value, ok = parse_amount_safe(token)
    if not ok:
        return None

    stripped = normalize_whitespace(token).replace("$", "").strip()
    if value < 0:
        sign = "-"
    elif stripped.startswith("+"):
        sign = "+"
    else:
        sign = ""
    return abs(value), sign


def find_amount_tokens(text: str) -> list[re.Match[str]]:
    """All currency figures in a line, in reading order."""
    return list(AMOUNT_PATTERN.finditer(text))


def format_amount(value: float) -> str:
    """Render an unsigned magnitude the way synthesized rows carry it."""
    return f"{abs(value):.2f}"


def log_parse_result(result: ParseResult, parser_name: str) -> None:
    """
    Log parsing results for debugging.

    Args:
        result: The parse result
        parser_name: Name of the synthesizer
    """
    logger.info(
        f"{parser_name}: Produced {len(result.rows)} rows "
        f"(processed {result.total_lines_processed}, "
        f"skipped {result.lines_skipped})"
    )

    if result.errors:
        for error in result.errors[:5]:  # Log first 5 errors
            logger.warning(f"{parser_name}: {error}")

    if result.warnings:
        for warning in result.warnings[:5]:  # Log first 5 warnings
            logger.debug(f"{parser_name}: {warning}")
