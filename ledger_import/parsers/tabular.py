"""Synthesizer for delimiter-separated exports (CSV, TSV, semicolon files)."""

import csv
from io import StringIO

from ledger_import.models import ParsedDocument
from ledger_import.parsers.dates import parse_full_date_line
from ledger_import.parsers.validation import (
    ParseResult,
    UnrecognizedFormatError,
    ValidationError,
    decode_text_contents,
    log_parse_result,
    logger,
)

# Tie-break order when two delimiters appear equally often.
DELIMITERS = [",", "\t", ";"]


def detect_delimiter(line: str) -> str | None:
    """Most frequent of comma/tab/semicolon in the header line, or None."""
    best = None
    best_count = 0
    for delimiter in DELIMITERS:
        count = line.count(delimiter)
        if count > best_count:
            best, best_count = delimiter, count
    return best


def looks_like_header(line: str, headers: list[str]) -> bool:
    """Column labels: every non-empty cell has a letter and the line is not itself a date."""
    labels = [header for header in headers if header]
    if len(labels) < 2:
        return False
    if parse_full_date_line(line):
        return False
    return all(any(c.isalpha() for c in label) for label in labels)


def parse_tabular_text(text: str) -> ParsedDocument:
    """
    Split delimiter-separated text into a document keyed by its own header row.

    Example:
        Date,Description,Amount,Category
        11/10/2025,ARCO#82639,45.44,Transportation-Fuel

    This is a structural split only; field semantics are left to the mapper.

    Raises:
        UnrecognizedFormatError: If the first non-empty line has no delimiter
    """
    result = ParseResult(rows=[])

    lines = [line for line in (text or "").splitlines() if line.strip()]
    if not lines:
        raise UnrecognizedFormatError("Not tabular: no content")

    delimiter = detect_delimiter(lines[0])
    if delimiter is None:
        raise UnrecognizedFormatError("Not tabular: no delimiter found in the first line")

    reader = csv.reader(StringIO("\n".join(lines)), delimiter=delimiter)
    try:
        records = list(reader)
    except csv.Error as e:
        raise UnrecognizedFormatError(f"Not tabular: {e}") from e

    headers = [cell.strip().lstrip("\ufeff").strip() for cell in records[0]]
    width = len(headers)

    if not looks_like_header(lines[0], headers):
        raise UnrecognizedFormatError(f"Not tabular: first line is not a header row: {lines[0][:60]!r}")

    data = [record for record in records[1:] if any(cell.strip() for cell in record)]
    aligned = sum(1 for record in data if len(record) == width)
    if data and aligned * 2 < len(data):
        raise UnrecognizedFormatError(f"Not tabular: only {aligned} of {len(data)} rows match the header width")

    for record in records[1:]:
        result.total_lines_processed += 1

        if not any(cell.strip() for cell in record):
            result.lines_skipped += 1
            continue

        if len(record) < width:
            result.warnings.append(f"Row {result.total_lines_processed}: padded {width - len(record)} missing field(s)")
            record = record + [""] * (width - len(record))
        elif len(record) > width:
            result.warnings.append(f"Row {result.total_lines_processed}: dropped {len(record) - width} extra field(s)")
            record = record[:width]

        result.rows.append([cell.strip() for cell in record])

    logger.debug(f"Tabular: delimiter {delimiter!r}, {width} columns")
    log_parse_result(result, "Tabular")

    return ParsedDocument(headers=tuple(headers), rows=tuple(tuple(r) for r in result.rows))


def parse_tabular_bytes(contents: bytes) -> ParsedDocument:
    """
    Decode an exported file and split it.

    Raises:
        ValidationError: If the file is empty or cannot be decoded
        UnrecognizedFormatError: If the text is not delimiter-separated
    """
    try:
        text = decode_text_contents(contents)
    except ValidationError as e:
        logger.error(f"Tabular validation failed: {e}")
        raise

    return parse_tabular_text(text)
