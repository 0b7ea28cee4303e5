"""Text extraction from PDF statements and paystubs."""

from io import BytesIO

import pdfplumber

from ledger_import.parsers.validation import (
    ValidationError,
    logger,
    normalize_whitespace,
    validate_file_contents,
)


def extract_pdf_lines(contents: bytes) -> list[str]:
    """
    Extract normalized, non-empty text lines from every page in order.

    Page boundaries are flattened; a page with no text layer contributes nothing.

    Raises:
        ValidationError: If the file is empty or cannot be opened as a PDF
    """
    try:
        validate_file_contents(contents)
    except ValidationError as e:
        logger.error(f"PDF validation failed: {e}")
        raise

    lines: list[str] = []
    try:
        with pdfplumber.open(BytesIO(contents)) as pdf:
            for page in pdf.pages:
                text = page.extract_text()
                if not text:
                    continue
                for raw in text.splitlines():
                    line = normalize_whitespace(raw)
                    if line:
                        lines.append(line)
    except Exception as e:
        logger.error(f"PDF extraction error: {e}")
        raise ValidationError(f"Could not read PDF: {e}") from e

    if not lines:
        logger.warning("PDF: No text content extracted")

    return lines
