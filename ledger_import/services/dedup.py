"""Duplicate and match detection against existing record snapshots."""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from ledger_import.config import ImportSettings, settings as default_settings
from ledger_import.models import ExistingRecord
from ledger_import.services.merchant import normalize_key


@dataclass(frozen=True)
class RecordMatch:
    """An existing record that looks like the imported row."""

    record: ExistingRecord
    reason: str
    ambiguous: bool = False


def within_window(left: date, right: date, window_days: int) -> bool:
    return abs((left - right).days) <= max(0, window_days)


def same_day_and_amount(
    records: Sequence[ExistingRecord],
    txn_date: date,
    amount: float,
    config: Optional[ImportSettings] = None,
) -> list[ExistingRecord]:
    """Records inside the day window whose effective amount equals ``amount``."""
    config = config or default_settings
    return [
        record
        for record in records
        if within_window(record.date, txn_date, config.duplicate_day_window)
        and abs(abs(record.effective_amount) - amount) <= config.amount_tolerance
    ]


def _similar_title(record: ExistingRecord, keys: set[str]) -> bool:
    record_key = normalize_key(record.description)
    if not record_key:
        return False
    return any(record_key in key or key in record_key for key in keys)


def find_record_match(
    records: Sequence[ExistingRecord],
    txn_date: Optional[date],
    amount: float,
    merchant_keys: Sequence[str] = (),
    category_id: Optional[str] = None,
    label: str = "record",
    config: Optional[ImportSettings] = None,
) -> Optional[RecordMatch]:
    """
    Best existing record for an imported row, or None.

    Date and amount decide whether anything matches at all. When several
    records qualify, the merchant key and then the category pick one; if
    neither does, the first is returned flagged as ambiguous.
    """
    if txn_date is None or not records:
        return None

    candidates = same_day_and_amount(records, txn_date, amount, config)
    if not candidates:
        return None

    keys = {key for key in merchant_keys if key}

    by_merchant = [record for record in candidates if normalize_key(record.description) in keys]
    if len(by_merchant) == 1:
        return RecordMatch(by_merchant[0], f"Same date, amount and merchant as {label} {by_merchant[0].description!r}")

    if len(candidates) == 1:
        return RecordMatch(candidates[0], f"Same date and amount as {label} {candidates[0].description!r}")

    if category_id:
        by_category = [record for record in candidates if record.category_id == category_id]
        if len(by_category) == 1:
            return RecordMatch(by_category[0], f"Same date, amount and category as {label} {by_category[0].description!r}")

    # Generic titles such as "Gas" or "Phone" still identify a single record
    similar = [record for record in candidates if _similar_title(record, keys)]
    if len(similar) == 1:
        return RecordMatch(similar[0], f"Same date and amount, similar title to {label} {similar[0].description!r}")

    pool = by_merchant or candidates
    return RecordMatch(
        pool[0],
        f"Ambiguous: {len(pool)} {label}s share this date and amount",
        ambiguous=True,
    )
