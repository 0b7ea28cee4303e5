"""Category-name matching for category hints carried by imported rows."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ledger_import.models import Category

logger = logging.getLogger(__name__)

# Concept buckets. A hint and a user category landing in the same bucket are
# a strong (not exact) match: "Food & Drink" -> "Dining", "Transportation-Fuel" -> "Transportation".
CATEGORY_SYNONYMS = {
    "dining": ["dining", "restaurant", "restaurants", "food", "drink", "eat", "fast food", "bakery", "food & drink"],
    "coffee": ["coffee", "cafe", "coffee shop", "starbucks"],
    "groceries": ["groceries", "grocery", "supermarket", "market"],
    "transportation": [
        "transportation", "transport", "transit", "fuel", "gas", "gasoline",
        "automotive", "service station", "uber", "lyft", "parking", "rideshare",
    ],
    "shopping": [
        "shopping", "shop", "retail", "merchandise", "department store",
        "electronics", "clothing", "home improvement",
    ],
    "health": ["health", "wellness", "medical", "pharmacy", "doctor", "dental", "vision", "fitness"],
    "utilities": [
        "utility", "utilities", "bills", "bills & utilities", "electric", "power",
        "water", "internet", "phone", "cable",
    ],
    "entertainment": ["entertainment", "movies", "music", "games"],
    "travel": ["travel", "hotel", "hotels", "lodging", "air", "airline", "airlines", "car rental"],
    "subscriptions": ["subscription", "subscriptions", "membership", "streaming"],
    "income": ["income", "salary", "payroll", "paycheck", "refund", "reward", "rewards", "cashback"],
}

EXACT_CONFIDENCE = 1.0
PLURAL_CONFIDENCE = 0.95
SYNONYM_CONFIDENCE = 0.90
CONTAINS_CONFIDENCE = 0.74

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class CategorySuggestion:
    """Best category for a hint, how sure we are, and which rule matched."""

    category: Optional[Category]
    confidence: float
    reason: str


def normalize_name(name: str) -> str:
    """Lowercase, '&' as 'and', alphanumerics only: 'Food & Drink' -> 'foodanddrink'."""
    lowered = (name or "").strip().lower().replace("&", "and")
    return _NON_ALNUM.sub("", lowered)


def strip_trailing_s(key: str) -> str:
    if len(key) > 3 and key.endswith("s"):
        return key[:-1]
    return key


def tokenize(name: str) -> set[str]:
    return {part for part in _NON_ALNUM.split((name or "").lower()) if len(part) > 2}


def concepts_for(name: str) -> list[str]:
    """Concept buckets a category name belongs to, in table order."""
    normalized = normalize_name(name)
    if not normalized:
        return []
    words = set(_NON_ALNUM.split((name or "").lower().replace("&", " ")))

    found = []
    for concept, synonyms in CATEGORY_SYNONYMS.items():
        for synonym in synonyms:
            if " " in synonym or "&" in synonym:
                hit = normalize_name(synonym) in normalized
            else:
                hit = synonym in words or normalize_name(synonym) == normalized
            if hit:
                found.append(concept)
                break
    return found


def suggest_category(hint: str, categories: list[Category]) -> CategorySuggestion:
    """
    Resolve a free-text category hint against the user's categories.

    Rules, first match wins:
        1. exact normalized name (1.0)
        2. singular/plural (0.95)
        3. same synonym bucket (0.90)
        4. either name contains the other (0.74)
        5. token overlap (0.55 - 0.70)
    """
    raw = (hint or "").strip()
    key = normalize_name(raw)
    if not key:
        return CategorySuggestion(None, 0.0, "No category hint")
    if not categories:
        return CategorySuggestion(None, 0.0, "No categories")

    keyed = [(category, normalize_name(category.name)) for category in categories]

    for category, name_key in keyed:
        if name_key == key:
            return CategorySuggestion(category, EXACT_CONFIDENCE, "Exact match")

    singular = strip_trailing_s(key)
    for category, name_key in keyed:
        if strip_trailing_s(name_key) == singular:
            return CategorySuggestion(category, PLURAL_CONFIDENCE, "Singular/plural match")

    for concept in concepts_for(raw):
        for category, _ in keyed:
            if concept in concepts_for(category.name):
                return CategorySuggestion(category, SYNONYM_CONFIDENCE, f"Synonym bucket: {concept}")

    for category, name_key in keyed:
        if name_key and (name_key in key or key in name_key):
            return CategorySuggestion(category, CONTAINS_CONFIDENCE, "Contains match")

    hint_tokens = tokenize(raw)
    best: Optional[CategorySuggestion] = None
    for category, _ in keyed:
        category_tokens = tokenize(category.name)
        if not hint_tokens or not category_tokens:
            continue
        overlap = len(hint_tokens & category_tokens)
        if overlap == 0:
            continue
        ratio = overlap / max(len(hint_tokens), len(category_tokens))
        score = min(0.70, max(0.55, ratio + 0.35))
        if best is None or score > best.confidence:
            best = CategorySuggestion(category, score, "Token overlap")

    if best:
        return best

    logger.debug(f"No category match for hint {raw!r}")
    return CategorySuggestion(None, 0.0, "No match")


def find_category(categories: list[Category], category_id: str) -> Optional[Category]:
    return next((category for category in categories if category.id == category_id), None)
