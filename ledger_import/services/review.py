"""Review session over mapped rows: user edits, commit plan and learned-rule updates."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ledger_import.config import ImportSettings
from ledger_import.models import (
    BucketSummary,
    Category,
    ExistingRecord,
    ImportBucket,
    ImportCandidateRow,
    ImportKind,
    MerchantRule,
    PlannedExpenseRecord,
)
from ledger_import.services.importer import summarize_buckets
from ledger_import.services.learning import rule_from_correction
from ledger_import.services.mapper import rebucket_row

logger = logging.getLogger(__name__)


@dataclass
class CommitPlan:
    """Rows the host should record, split by kind, plus rules to store."""

    expenses: list[ImportCandidateRow] = field(default_factory=list)
    incomes: list[ImportCandidateRow] = field(default_factory=list)
    rules: list[MerchantRule] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.expenses) + len(self.incomes)


class ImportReview:
    """
    Caller-side state for reviewing one import.

    Rows are frozen, so every edit swaps in a rebucketed copy. Rows are
    addressed by their source line.
    """

    def __init__(
        self,
        rows: Sequence[ImportCandidateRow],
        existing_expenses: Sequence[ExistingRecord] = (),
        existing_planned_expenses: Sequence[PlannedExpenseRecord] = (),
        existing_incomes: Sequence[ExistingRecord] = (),
        allowed_kinds: Optional[Iterable[ImportKind]] = None,
        settings: Optional[ImportSettings] = None,
    ):
        self.rows = list(rows)
        self.existing_expenses = existing_expenses
        self.existing_planned_expenses = existing_planned_expenses
        self.existing_incomes = existing_incomes
        self.allowed_kinds = set(allowed_kinds) if allowed_kinds is not None else None
        self.settings = settings
        self.remembered: set[int] = set()
        self.renamed: set[int] = set()

    def _index(self, source_line: int) -> int:
        for index, row in enumerate(self.rows):
            if row.source_line == source_line:
                return index
        raise KeyError(f"No row for source line {source_line}")

    def row(self, source_line: int) -> ImportCandidateRow:
        return self.rows[self._index(source_line)]

    def _apply(self, source_line: int, **changes) -> ImportCandidateRow:
        index = self._index(source_line)
        edited = self.rows[index].model_copy(update=changes)
        updated = rebucket_row(
            edited,
            self.existing_expenses,
            self.existing_planned_expenses,
            self.existing_incomes,
            self.allowed_kinds,
            self.settings,
        )
        self.rows[index] = updated
        return updated

    def set_category(self, source_line: int, category: Optional[Category]) -> ImportCandidateRow:
        """Pick a category; the choice is remembered for the merchant on commit."""
        self.remembered.add(source_line)
        return self._apply(source_line, selected_category=category)

    def set_description(self, source_line: int, description: str) -> ImportCandidateRow:
        """Rename the row; the new name is remembered for the merchant on commit."""
        self.remembered.add(source_line)
        self.renamed.add(source_line)
        return self._apply(source_line, description=(description or "").strip())

    def set_kind(self, source_line: int, kind: ImportKind) -> ImportCandidateRow:
        """Flip expense/income. Income drops the category; expense falls back to the suggestion."""
        current = self.row(source_line)
        if current.kind == kind:
            return current

        if kind == ImportKind.INCOME:
            return self._apply(source_line, kind=kind, selected_category=None)
        return self._apply(
            source_line,
            kind=kind,
            selected_category=current.selected_category or current.suggested_category,
        )

    def set_include(self, source_line: int, include: bool) -> ImportCandidateRow:
        """
        Check or uncheck a row.

        Raises:
            ValueError: If a blocked or incomplete row is checked
        """
        index = self._index(source_line)
        current = self.rows[index]
        if include and (current.is_blocked or current.is_missing_required_data):
            raise ValueError(f"Line {source_line} cannot be included: {current.blocked_reason or current.match_reason}")
        if include and current.kind == ImportKind.EXPENSE and current.selected_category is None:
            raise ValueError(f"Line {source_line} needs a category before it can be included")

        updated = current.model_copy(update={"include_in_import": include})
        self.rows[index] = updated
        return updated

    def toggle_include(self, source_line: int) -> ImportCandidateRow:
        return self.set_include(source_line, not self.row(source_line).include_in_import)

    def toggle_remember(self, source_line: int) -> bool:
        """Flip whether the row's merchant mapping is stored on commit. Returns the new state."""
        self._index(source_line)
        if source_line in self.remembered:
            self.remembered.discard(source_line)
            return False
        self.remembered.add(source_line)
        return True

    def rows_in(self, bucket: ImportBucket) -> list[ImportCandidateRow]:
        return [row for row in self.rows if row.bucket == bucket]

    @property
    def summary(self) -> BucketSummary:
        return summarize_buckets(self.rows)

    def rules_for(self, row: ImportCandidateRow) -> list[MerchantRule]:
        """
        Rules for both merchant keys of a row.

        Only a renamed row carries a display name; income rows never carry a category.
        """
        category = row.selected_category if row.kind == ImportKind.EXPENSE else None
        name = row.description if row.source_line in self.renamed else None
        rules = []
        for key in dict.fromkeys([row.source_merchant_key, row.description_merchant_key]):
            rule = rule_from_correction(key, name, category)
            if rule:
                rules.append(rule)
        return rules

    def commit_plan(self) -> CommitPlan:
        """Included, complete rows and the rules learned from remembered edits."""
        plan = CommitPlan()
        for row in self.rows:
            if not row.include_in_import or row.is_missing_required_data:
                continue
            if row.kind == ImportKind.EXPENSE:
                plan.expenses.append(row)
            else:
                plan.incomes.append(row)
            if row.source_line in self.remembered:
                plan.rules.extend(self.rules_for(row))

        logger.info(f"Commit plan: {len(plan.expenses)} expenses, {len(plan.incomes)} incomes, {len(plan.rules)} rules")
        return plan
