"""Income/expense vocabulary and the single ordered kind decision table.

Every synthesizer and the mapper classify direction of money through
``infer_kind`` so that screenshot, statement and spreadsheet rows can never
disagree about the same description.
"""

import re
from dataclasses import dataclass

from ledger_import.models import ImportKind

# "PAYMENT POS001" style descriptors are card purchases at a terminal.
POS_PAYMENT = re.compile(r"\bpayment\s+pos\d*\b|\bpos\d*\b.*\bpayment\b|\bpayment\b.*\bpos\d*\b", re.IGNORECASE)

EXPENSE_OVERRIDES = [
    "card purchase",
    "debit card",
]

# Money arriving: transfers in, bill payments credited to a card, payroll.
PAYMENT_VOCABULARY = [
    "payment",
    "thank you",
    "autopay",
    "auto pay",
    "deposit",
    "direct dep",
    "paycheck",
    "pay check",
    "payroll",
    "take home pay",
]

INCOME_VOCABULARY = PAYMENT_VOCABULARY + [
    "refund",
    "reversal",
    "adjustment",
    "cashback",
    "cash back",
]

_CREDIT_WORD = re.compile(r"\bcredit\b", re.IGNORECASE)
_CREDIT_CARD = re.compile(r"\bcredit\s+card\b", re.IGNORECASE)

EXPENSE_VOCABULARY = [
    "purchase",
    "withdrawal",
    "fee",
    "interest",
    "marketplace",
    "atm",
]

# Explicit type column values from spreadsheet exports.
TYPE_EXPENSE_WORDS = ["expense", "purchase", "debit", "sale", "fee", "interest", "withdrawal", "charge"]
TYPE_INCOME_WORDS = ["income", "payment", "credit", "refund", "reversal", "return", "deposit"]


@dataclass(frozen=True)
class KindDecision:
    """Outcome of the decision table plus which rule fired."""

    kind: ImportKind
    reason: str


def _contains_any(text: str, words: list[str]) -> bool:
    return any(word in text for word in words)


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def has_income_vocabulary(description: str) -> bool:
    lower = description.lower()
    if _contains_any(lower, INCOME_VOCABULARY):
        return True
    return bool(_CREDIT_WORD.search(lower)) and not _CREDIT_CARD.search(lower)


def has_expense_vocabulary(description: str) -> bool:
    lower = description.lower()
    return any(_has_word(lower, word) for word in EXPENSE_VOCABULARY)


def has_payment_vocabulary(text: str) -> bool:
    """Payment/deposit/payroll wording, the signal for the payment bucket."""
    lower = (text or "").lower()
    if POS_PAYMENT.search(lower):
        return False
    return _contains_any(lower, PAYMENT_VOCABULARY)


def kind_from_type_text(type_text: str) -> ImportKind | None:
    """Map an explicit type column value ("Sale", "Payment", "income") to a kind."""
    lower = (type_text or "").strip().lower()
    if not lower:
        return None
    if _contains_any(lower, TYPE_EXPENSE_WORDS):
        return ImportKind.EXPENSE
    if _contains_any(lower, TYPE_INCOME_WORDS):
        return ImportKind.INCOME
    return None


def infer_kind(description: str, sign: str = "", type_text: str = "", category_text: str = "") -> KindDecision:
    """
    Resolve income vs expense with one ordered rule list.

    Rules, first match wins:
        1. explicit type text
        2. point-of-sale payment wording or card-purchase phrases -> expense
        3. income vocabulary in the description or category -> income
        4. expense vocabulary -> expense
        5. literal sign: "+" income, "-" expense
        6. default expense
    """
    explicit = kind_from_type_text(type_text)
    if explicit is not None:
        return KindDecision(explicit, "type column")

    lower = (description or "").lower()
    if POS_PAYMENT.search(lower) or _contains_any(lower, EXPENSE_OVERRIDES):
        return KindDecision(ImportKind.EXPENSE, "point-of-sale payment")

    if has_income_vocabulary(lower) or _contains_any((category_text or "").lower(), ["payment", "refund", "reversal"]):
        return KindDecision(ImportKind.INCOME, "income vocabulary")

    if has_expense_vocabulary(lower):
        return KindDecision(ImportKind.EXPENSE, "expense vocabulary")

    if sign == "+":
        return KindDecision(ImportKind.INCOME, "positive sign")
    if sign == "-":
        return KindDecision(ImportKind.EXPENSE, "negative sign")

    return KindDecision(ImportKind.EXPENSE, "default")
