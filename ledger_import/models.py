"""Data models for the import pipeline."""

import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

CANONICAL_HEADERS: tuple[str, ...] = ("Date", "Description", "Amount", "Category", "Type")


class ImportKind(str, Enum):
    """Direction of money for a candidate row."""

    EXPENSE = "expense"
    INCOME = "income"


class ImportBucket(str, Enum):
    """Readiness classification assigned by the mapper."""

    READY = "ready"
    POSSIBLE_MATCH = "possible_match"
    POSSIBLE_DUPLICATE = "possible_duplicate"
    NEEDS_MORE_DATA = "needs_more_data"
    PAYMENT = "payment"


class ParsedDocument(BaseModel):
    """Raw rows produced by a synthesizer, before classification."""

    model_config = ConfigDict(frozen=True)

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()

    @model_validator(mode="after")
    def _rows_match_headers(self) -> "ParsedDocument":
        width = len(self.headers)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"Row {index + 1} has {len(row)} fields, expected {width}")
        return self

    @classmethod
    def canonical(cls, rows: list[list[str]] | None = None) -> "ParsedDocument":
        """Build a document with the Date/Description/Amount/Category/Type headers."""
        return cls(headers=CANONICAL_HEADERS, rows=tuple(tuple(r) for r in rows or []))

    @property
    def is_empty(self) -> bool:
        return not self.rows


class Category(BaseModel):
    """A user category, referenced by id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class MerchantRule(BaseModel):
    """A learned correction keyed by merchant key."""

    model_config = ConfigDict(frozen=True)

    merchant_key: str
    preferred_display_name: str | None = None
    preferred_category: Category | None = None


class ExistingRecord(BaseModel):
    """Snapshot of an already recorded expense or income."""

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    amount: float
    category_id: str | None = None
    description: str = ""  # title, source or merchant text

    @property
    def effective_amount(self) -> float:
        return self.amount


class PlannedExpenseRecord(ExistingRecord):
    """Planned expense; the actual amount wins once it has been entered."""

    actual_amount: float = 0.0

    @property
    def effective_amount(self) -> float:
        if abs(self.actual_amount) > 0.0001:
            return self.actual_amount
        return self.amount


class ImportCandidateRow(BaseModel):
    """A classified, bucketed transaction proposal awaiting review."""

    model_config = ConfigDict(frozen=True)

    source_line: int
    original_date_text: str = ""
    original_description_text: str = ""
    original_amount_text: str = ""
    original_category_text: str = ""
    original_type_text: str = ""

    date: datetime.date | None = None
    description: str = ""
    amount: float = Field(default=0.0, ge=0)
    kind: ImportKind = ImportKind.EXPENSE

    selected_category: Category | None = None
    suggested_category: Category | None = None
    category_confidence: float = 0.0

    source_merchant_key: str = ""
    description_merchant_key: str = ""

    bucket: ImportBucket = ImportBucket.NEEDS_MORE_DATA
    match_reason: str = ""
    matched_record: ExistingRecord | None = None
    blocked_reason: str | None = None

    include_in_import: bool = False
    is_missing_required_data: bool = False
    final_amount: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _include_requires_complete_row(self) -> "ImportCandidateRow":
        if self.include_in_import and (self.is_blocked or self.is_missing_required_data):
            raise ValueError("Blocked or incomplete rows cannot be included in an import")
        return self

    @property
    def is_blocked(self) -> bool:
        return self.blocked_reason is not None


class BucketSummary(BaseModel):
    """Tally of candidate rows, computed from the mapped rows."""

    counts: dict[ImportBucket, int] = Field(default_factory=dict)
    included_expenses: int = 0
    included_incomes: int = 0
    blocked: int = 0
    total: int = 0

    def count(self, bucket: ImportBucket) -> int:
        return self.counts.get(bucket, 0)

    @property
    def message(self) -> str:
        return f"{self.included_expenses} expenses, {self.included_incomes} incomes will be imported."


class ImportPreview(BaseModel):
    """Mapped rows plus their summary, as returned by a one-call preview."""

    strategy: str
    document: ParsedDocument
    rows: list[ImportCandidateRow]
    summary: BucketSummary
