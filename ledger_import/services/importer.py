"""Import entry points: synthesizer selection, one-call preview and bucket tallies."""

import logging
from datetime import date
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from ledger_import.config import ImportSettings
from ledger_import.models import (
    BucketSummary,
    Category,
    ExistingRecord,
    ImportBucket,
    ImportCandidateRow,
    ImportKind,
    ImportPreview,
    MerchantRule,
    ParsedDocument,
    PlannedExpenseRecord,
)
from ledger_import.parsers.ocr_lines import parse_ocr_lines
from ledger_import.parsers.paystub import parse_paystub_text
from ledger_import.parsers.pdf_text import extract_pdf_lines
from ledger_import.parsers.statement_text import parse_statement_lines
from ledger_import.parsers.tabular import parse_tabular_text
from ledger_import.parsers.validation import UnrecognizedFormatError, decode_text_contents
from ledger_import.services.mapper import map_document

logger = logging.getLogger(__name__)

Source = Union[str, bytes, Sequence[str]]


class ImportStrategy(str, Enum):
    """Row synthesizer used for a source."""

    TABULAR = "tabular"
    OCR_LINES = "ocr_lines"
    STATEMENT = "statement"
    PAYSTUB = "paystub"


# Tried in order when the caller does not pin a strategy.
DEFAULT_CHAIN = (ImportStrategy.TABULAR, ImportStrategy.OCR_LINES, ImportStrategy.STATEMENT)
PDF_CHAIN = (ImportStrategy.STATEMENT, ImportStrategy.PAYSTUB)


def is_pdf(contents: bytes) -> bool:
    return contents[:5] == b"%PDF-"


def source_lines(source: Source) -> list[str]:
    """Lines of a source given as text, raw file bytes or already-split lines."""
    if isinstance(source, bytes):
        if is_pdf(source):
            return extract_pdf_lines(source)
        return decode_text_contents(source).splitlines()
    if isinstance(source, str):
        return source.splitlines()
    return list(source or [])


def run_strategy(strategy: ImportStrategy, lines: list[str], reference_date: Optional[date] = None) -> ParsedDocument:
    """
    Run one synthesizer.

    Raises:
        UnrecognizedFormatError: If the lines are structurally not this format
    """
    if strategy == ImportStrategy.TABULAR:
        return parse_tabular_text("\n".join(lines))
    if strategy == ImportStrategy.OCR_LINES:
        return parse_ocr_lines(lines, reference_date)
    if strategy == ImportStrategy.STATEMENT:
        return parse_statement_lines(lines, reference_date)
    if strategy == ImportStrategy.PAYSTUB:
        return parse_paystub_text(lines, reference_date)
    raise ValueError(f"Unsupported strategy: {strategy}")


def synthesize(
    source: Source,
    strategy: Optional[ImportStrategy] = None,
    reference_date: Optional[date] = None,
) -> tuple[Optional[ImportStrategy], ParsedDocument]:
    """
    Turn a source into a parsed document.

    A pinned strategy runs alone and its errors propagate. Otherwise each
    strategy in the chain is tried until one returns rows; a strategy that
    rejects the format or finds nothing hands over to the next.

    Returns:
        (strategy that produced the rows or None, document); an empty
        canonical document when nothing matched.
    """
    lines = source_lines(source)

    if strategy is not None:
        return strategy, run_strategy(strategy, lines, reference_date)

    chain = PDF_CHAIN if isinstance(source, bytes) and is_pdf(source) else DEFAULT_CHAIN
    for candidate in chain:
        try:
            document = run_strategy(candidate, lines, reference_date)
        except UnrecognizedFormatError as e:
            logger.debug(f"{candidate.value}: {e}")
            continue

        if document.is_empty:
            logger.debug(f"{candidate.value}: no rows, trying next strategy")
            continue

        logger.info(f"Using {candidate.value} synthesizer ({len(document.rows)} rows)")
        return candidate, document

    logger.info("No synthesizer produced rows")
    return None, ParsedDocument.canonical()


def summarize_buckets(rows: Sequence[ImportCandidateRow]) -> BucketSummary:
    """Tally mapped rows per bucket and included rows per kind."""
    counts = {bucket: 0 for bucket in ImportBucket}
    for row in rows:
        counts[row.bucket] += 1

    return BucketSummary(
        counts=counts,
        included_expenses=sum(1 for row in rows if row.include_in_import and row.kind == ImportKind.EXPENSE),
        included_incomes=sum(1 for row in rows if row.include_in_import and row.kind == ImportKind.INCOME),
        blocked=sum(1 for row in rows if row.is_blocked),
        total=len(rows),
    )


def preview_import(
    source: Source,
    categories: Sequence[Category] = (),
    existing_expenses: Sequence[ExistingRecord] = (),
    existing_planned_expenses: Sequence[PlannedExpenseRecord] = (),
    existing_incomes: Sequence[ExistingRecord] = (),
    learned_rules: Optional[dict[str, MerchantRule]] = None,
    *,
    strategy: Optional[ImportStrategy] = None,
    reference_date: Optional[date] = None,
    allowed_kinds: Optional[Iterable[ImportKind]] = None,
    settings: Optional[ImportSettings] = None,
) -> ImportPreview:
    """Synthesize, map and tally a source in one call."""
    used, document = synthesize(source, strategy, reference_date)
    rows = map_document(
        document,
        categories,
        existing_expenses,
        existing_planned_expenses,
        existing_incomes,
        learned_rules or {},
        allowed_kinds=allowed_kinds,
        settings=settings,
    )
    summary = summarize_buckets(rows)
    logger.info(summary.message)

    return ImportPreview(
        strategy=used.value if used else "none",
        document=document,
        rows=rows,
        summary=summary,
    )
