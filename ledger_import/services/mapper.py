"""Classification and bucketing of synthesized rows into import candidates."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence

from ledger_import.config import ImportSettings, settings as default_settings
from ledger_import.models import (
    Category,
    ExistingRecord,
    ImportBucket,
    ImportCandidateRow,
    ImportKind,
    MerchantRule,
    ParsedDocument,
    PlannedExpenseRecord,
)
from ledger_import.parsers.dates import parse_date_text
from ledger_import.parsers.validation import (
    amount_has_explicit_sign,
    normalize_whitespace,
    parse_amount_safe,
    validate_amount,
    validate_date,
    validate_description,
)
from ledger_import.parsers.vocabulary import has_payment_vocabulary, infer_kind
from ledger_import.services.categories import CategorySuggestion, find_category, suggest_category
from ledger_import.services.dedup import find_record_match
from ledger_import.services.learning import MerchantRuleMatcher, RuleMatch
from ledger_import.services.merchant import normalize_key

logger = logging.getLogger(__name__)

# Substring keys per field, tried in order against lowercased headers.
HEADER_KEYS = {
    "date": ["transaction date", "date", "posted"],
    "posted_date": ["posted date", "clearing date"],
    "description": ["description", "details", "memo", "name", "payee"],
    "merchant": ["merchant"],
    "amount": ["amount", "amt", "value", "total"],
    "debit": ["debit", "withdrawal", "outflow", "charge"],
    "credit": ["credit", "deposit", "inflow"],
    "category": ["category", "classification"],
    "type": ["transaction type", "type"],
}

# Apple Card export: Transaction Date, Clearing Date, Description, Merchant, Category, Type, Amount
APPLE_CARD_LAYOUT = {
    "date": 0,
    "posted_date": 1,
    "description": 2,
    "merchant": 3,
    "category": 4,
    "type": 5,
    "amount": 6,
}


class HeaderMap:
    """Resolves row fields by header name rather than position."""

    def __init__(self, headers: Sequence[str]):
        self.headers = list(headers)
        self._lower = [header.strip().lower() for header in self.headers]
        self.is_apple_card = self._detect_apple_card()
        self._indexes = {field: self._first_index(keys) for field, keys in HEADER_KEYS.items()}

    def _has(self, needle: str) -> bool:
        return any(needle in header for header in self._lower)

    def _detect_apple_card(self) -> bool:
        # Merchant + Type separate it from bank exports that also carry two date columns
        return (
            self._has("merchant")
            and self._has("type")
            and self._has("transaction date")
            and (self._has("posted date") or self._has("clearing date"))
            and self._has("amount")
        )

    def _first_index(self, keys: list[str]) -> Optional[int]:
        for key in keys:
            for index, header in enumerate(self._lower):
                if key in header:
                    return index
        return None

    def value(self, fields: Sequence[str], field: str) -> str:
        """Trimmed field text, or "" when the column is absent."""
        if self.is_apple_card and len(fields) >= 7:
            index = APPLE_CARD_LAYOUT.get(field)
            if index is None:
                return ""
        else:
            index = self._indexes.get(field)
        if index is None or index >= len(fields):
            return ""
        return fields[index].strip()


@dataclass(frozen=True)
class ResolvedAmount:
    """Signed amount plus the sign marker the kind table reads."""

    value: float
    sign: str


def resolve_raw_amount(amount_text: str, debit_text: str = "", credit_text: str = "") -> Optional[ResolvedAmount]:
    """
    Pick the amount for a row.

    An explicitly signed amount column wins, then a non-zero debit (outflow),
    then a non-zero credit (inflow), then the plain amount column.
    """
    if amount_text and amount_has_explicit_sign(amount_text):
        value, ok = parse_amount_safe(amount_text)
        if ok:
            return ResolvedAmount(value, "-" if value < 0 else "+")

    if debit_text:
        value, ok = parse_amount_safe(debit_text)
        if ok and abs(value) > 0.0001:
            return ResolvedAmount(-abs(value), "-")

    if credit_text:
        value, ok = parse_amount_safe(credit_text)
        if ok and abs(value) > 0.0001:
            return ResolvedAmount(abs(value), "+")

    if amount_text:
        value, ok = parse_amount_safe(amount_text)
        if ok:
            return ResolvedAmount(value, "-" if value < 0 else "")

    return None


def _resolve_category(
    category_text: str,
    categories: Sequence[Category],
    learned: Optional[RuleMatch],
    config: ImportSettings,
) -> tuple[Optional[Category], Optional[Category], float, str]:
    """(selected, suggested, confidence, reason) for one row."""
    hint = suggest_category(category_text, list(categories)) if category_text else None

    if hint and hint.category and hint.confidence >= config.category_ready_threshold:
        return hint.category, hint.category, hint.confidence, hint.reason

    if learned and learned.rule.preferred_category:
        preferred = learned.rule.preferred_category
        category = find_category(list(categories), preferred.id) or preferred
        return category, category, learned.confidence, "Learned mapping"

    if hint and hint.category and hint.confidence >= config.category_possible_threshold:
        return None, hint.category, hint.confidence, f"Suggested ({hint.reason})"

    reason = hint.reason if isinstance(hint, CategorySuggestion) else "No category"
    return None, None, 0.0, reason


def _missing_fields(txn_date: Optional[date], amount: Optional[ResolvedAmount], description: str) -> list[str]:
    missing = []
    if txn_date is None:
        missing.append("date")
    if amount is None:
        missing.append("amount")
    if not validate_description(description):
        missing.append("description")
    return missing


def map_document(
    document: ParsedDocument,
    categories: Sequence[Category],
    existing_expenses: Sequence[ExistingRecord],
    existing_planned_expenses: Sequence[PlannedExpenseRecord],
    existing_incomes: Sequence[ExistingRecord],
    learned_rules: dict[str, MerchantRule],
    *,
    allowed_kinds: Optional[Iterable[ImportKind]] = None,
    settings: Optional[ImportSettings] = None,
) -> list[ImportCandidateRow]:
    """
    Classify every document row into an import candidate.

    Output order and length follow the document rows. Field-level defects
    never drop a row: it is marked missing and lands in needs_more_data.

    Args:
        document: Rows from one synthesizer
        categories: The user's categories
        existing_expenses: Recorded variable expenses, for possible matches
        existing_planned_expenses: Planned expenses, for possible duplicates
        existing_incomes: Recorded incomes, for possible matches
        learned_rules: Merchant key -> rule snapshot
        allowed_kinds: Kinds this import accepts; other kinds are blocked
        settings: Thresholds and windows (defaults to the global settings)
    """
    config = settings or default_settings
    header_map = HeaderMap(document.headers)
    matcher = MerchantRuleMatcher(learned_rules, config)
    allowed = set(allowed_kinds) if allowed_kinds is not None else None

    rows: list[ImportCandidateRow] = []
    for index, fields in enumerate(document.rows):
        rows.append(
            _map_row(
                index + 2,  # header is line 1
                fields,
                header_map,
                categories,
                existing_expenses,
                existing_planned_expenses,
                existing_incomes,
                matcher,
                allowed,
                config,
            )
        )

    logger.info(
        f"Mapped {len(rows)} rows "
        f"({sum(1 for row in rows if row.include_in_import)} included, "
        f"{sum(1 for row in rows if row.is_missing_required_data)} missing data)"
    )
    return rows


def _map_row(
    source_line: int,
    fields: Sequence[str],
    header_map: HeaderMap,
    categories: Sequence[Category],
    existing_expenses: Sequence[ExistingRecord],
    existing_planned_expenses: Sequence[PlannedExpenseRecord],
    existing_incomes: Sequence[ExistingRecord],
    matcher: MerchantRuleMatcher,
    allowed: Optional[set[ImportKind]],
    config: ImportSettings,
) -> ImportCandidateRow:
    date_text = header_map.value(fields, "date")
    posted_text = header_map.value(fields, "posted_date")
    description_text = header_map.value(fields, "description")
    merchant_text = header_map.value(fields, "merchant")
    amount_text = header_map.value(fields, "amount")
    debit_text = header_map.value(fields, "debit")
    credit_text = header_map.value(fields, "credit")
    category_text = header_map.value(fields, "category")
    type_text = header_map.value(fields, "type")

    txn_date = parse_date_text(posted_text) or parse_date_text(date_text)
    if txn_date and not validate_date(txn_date, config.min_year, config.max_year):
        logger.debug(f"Line {source_line}: date {txn_date} outside accepted years")
        txn_date = None

    resolved = resolve_raw_amount(amount_text, debit_text, credit_text)
    if resolved and not validate_amount(resolved.value, -config.max_amount, config.max_amount):
        resolved = None

    source_description = normalize_whitespace(description_text or merchant_text)
    raw_merchant = merchant_text or description_text
    source_key = normalize_key(raw_merchant)
    description_key = normalize_key(description_text)

    decision = infer_kind(
        source_description,
        resolved.sign if resolved else "",
        type_text=type_text,
        category_text=category_text,
    )
    kind = decision.kind

    learned = matcher.lookup(source_key, description_key)
    display = source_description
    if learned and learned.rule.preferred_display_name:
        display = learned.rule.preferred_display_name.strip() or display

    selected, suggested, confidence, reason = _resolve_category(category_text, categories, learned, config)

    amount = abs(resolved.value) if resolved else 0.0
    missing = _missing_fields(txn_date, resolved, source_description)

    blocked_reason = None
    if allowed is not None and kind not in allowed:
        blocked_reason = f"{kind.value.capitalize()} rows are not accepted in this import"

    matched_record = None
    if missing:
        bucket = ImportBucket.NEEDS_MORE_DATA
        reason = f"Missing required data: {', '.join(missing)}"
    else:
        bucket, matched_record, match_reason = _bucket_for(
            kind,
            txn_date,
            amount,
            (source_key, description_key),
            selected,
            source_description,
            type_text,
            existing_expenses,
            existing_planned_expenses,
            existing_incomes,
            config,
        )
        reason = match_reason or reason

    include = bucket in (ImportBucket.READY, ImportBucket.PAYMENT) and not missing and blocked_reason is None

    return ImportCandidateRow(
        source_line=source_line,
        original_date_text=posted_text or date_text,
        original_description_text=description_text or merchant_text,
        original_amount_text=amount_text or debit_text or credit_text,
        original_category_text=category_text,
        original_type_text=type_text,
        date=txn_date,
        description=display,
        amount=amount,
        kind=kind,
        selected_category=selected,
        suggested_category=suggested,
        category_confidence=confidence,
        source_merchant_key=source_key,
        description_merchant_key=description_key,
        bucket=bucket,
        match_reason=reason,
        matched_record=matched_record,
        blocked_reason=blocked_reason,
        include_in_import=include,
        is_missing_required_data=bool(missing),
        final_amount=amount,
    )


def _bucket_for(
    kind: ImportKind,
    txn_date: date,
    amount: float,
    merchant_keys: tuple[str, ...],
    selected: Optional[Category],
    description: str,
    type_text: str,
    existing_expenses: Sequence[ExistingRecord],
    existing_planned_expenses: Sequence[PlannedExpenseRecord],
    existing_incomes: Sequence[ExistingRecord],
    config: ImportSettings,
) -> tuple[ImportBucket, Optional[ExistingRecord], str]:
    """Bucket for a complete row, first match wins."""
    category_id = selected.id if selected else None

    # A planned expense on the same day and amount outranks any payment wording
    planned = find_record_match(
        existing_planned_expenses, txn_date, amount, merchant_keys, category_id, "planned expense", config
    )
    if planned:
        return ImportBucket.POSSIBLE_DUPLICATE, planned.record, planned.reason

    if kind == ImportKind.EXPENSE:
        recorded = find_record_match(existing_expenses, txn_date, amount, merchant_keys, category_id, "expense", config)
        if recorded:
            return ImportBucket.POSSIBLE_MATCH, recorded.record, recorded.reason
    else:
        recorded = find_record_match(existing_incomes, txn_date, amount, merchant_keys, None, "income", config)
        if recorded:
            return ImportBucket.POSSIBLE_MATCH, recorded.record, recorded.reason

        if has_payment_vocabulary(description) or has_payment_vocabulary(type_text):
            return ImportBucket.PAYMENT, None, "Payment or deposit"
        return ImportBucket.READY, None, ""

    if selected is None:
        return ImportBucket.NEEDS_MORE_DATA, None, ""
    return ImportBucket.READY, None, ""


def rebucket_row(
    row: ImportCandidateRow,
    existing_expenses: Sequence[ExistingRecord] = (),
    existing_planned_expenses: Sequence[PlannedExpenseRecord] = (),
    existing_incomes: Sequence[ExistingRecord] = (),
    allowed_kinds: Optional[Iterable[ImportKind]] = None,
    settings: Optional[ImportSettings] = None,
) -> ImportCandidateRow:
    """
    Re-run bucketing for a row after a review edit.

    The kind, category and description on the row are taken as given; the
    include flag resets to the bucket default.
    """
    config = settings or default_settings
    allowed = set(allowed_kinds) if allowed_kinds is not None else None

    missing = _missing_fields(
        row.date,
        None if not parse_amount_safe(row.original_amount_text)[1] else ResolvedAmount(row.amount, ""),
        row.description.strip(),
    )

    blocked_reason = None
    if allowed is not None and row.kind not in allowed:
        blocked_reason = f"{row.kind.value.capitalize()} rows are not accepted in this import"

    matched_record = None
    if missing:
        bucket = ImportBucket.NEEDS_MORE_DATA
        reason = f"Missing required data: {', '.join(missing)}"
    else:
        keys = (row.source_merchant_key, row.description_merchant_key, normalize_key(row.description))
        bucket, matched_record, reason = _bucket_for(
            row.kind,
            row.date,
            row.amount,
            keys,
            row.selected_category,
            row.description,
            row.original_type_text,
            existing_expenses,
            existing_planned_expenses,
            existing_incomes,
            config,
        )

    include = bucket in (ImportBucket.READY, ImportBucket.PAYMENT) and not missing and blocked_reason is None

    return ImportCandidateRow.model_validate(
        {
            **row.model_dump(),
            "bucket": bucket,
            "match_reason": reason,
            "matched_record": matched_record,
            "blocked_reason": blocked_reason,
            "include_in_import": include,
            "is_missing_required_data": bool(missing),
        }
    )
