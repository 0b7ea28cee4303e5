"""Lookup of learned merchant rules by merchant key.

Merchant keys come from bank descriptors that drift between exports
("BLUE BOTTLE" vs "BLUE BOTTLE COFFEE"), so an exact lookup is backed by a
guarded fuzzy match over a token index.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from rapidfuzz.distance import JaroWinkler

from ledger_import.config import ImportSettings, settings as default_settings
from ledger_import.models import Category, MerchantRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleMatch:
    """A learned rule and the stored key it was found under."""

    rule: MerchantRule
    matched_key: str
    confidence: float


def tokenize_key(key: str) -> set[str]:
    """Space-separated tokens, plus hyphen-collapsed variants ("7-ELEVEN" -> "7ELEVEN")."""
    tokens: set[str] = set()
    for part in key.upper().split():
        tokens.add(part)
        collapsed = part.replace("-", "")
        if collapsed and collapsed != part:
            tokens.add(collapsed)
    return tokens


def condense(key: str) -> str:
    return key.upper().replace(" ", "").replace("-", "")


def overlap_coefficient(intersection: int, a_count: int, b_count: int) -> float:
    denom = min(a_count, b_count)
    if denom <= 0:
        return 0.0
    return intersection / denom


class MerchantRuleMatcher:
    """Exact-then-fuzzy matcher over a snapshot of learned rules."""

    def __init__(self, rules: dict[str, MerchantRule], config: Optional[ImportSettings] = None):
        self.rules = rules or {}
        self.config = config or default_settings
        self._tokens_by_key: dict[str, set[str]] = {}
        self._token_index: dict[str, list[str]] = {}

        for key in self.rules:
            tokens = tokenize_key(key)
            self._tokens_by_key[key] = tokens
            for token in tokens:
                self._token_index.setdefault(token, []).append(key)

    def score(self, query_key: str, candidate_key: str) -> float:
        """Similarity of two merchant keys in [0, 1]; 0 when no token is shared."""
        query_tokens = tokenize_key(query_key)
        candidate_tokens = self._tokens_by_key.get(candidate_key) or tokenize_key(candidate_key)

        shared = len(query_tokens & candidate_tokens)
        if shared == 0:
            return 0.0

        overlap = overlap_coefficient(shared, len(query_tokens), len(candidate_tokens))
        query_condensed = condense(query_key)
        candidate_condensed = condense(candidate_key)
        similarity = JaroWinkler.similarity(query_condensed, candidate_condensed)

        score = 0.80 * overlap + 0.20 * similarity

        # One shared token out of three or more is too ambiguous
        if shared == 1 and len(query_tokens) >= 3:
            score *= 0.85

        if query_condensed in candidate_condensed or candidate_condensed in query_condensed:
            score = min(1.0, score + 0.05)

        return score

    def match(self, merchant_key: str) -> Optional[RuleMatch]:
        """
        Find the rule for a merchant key.

        An exact key wins outright. Otherwise the best fuzzy candidate must
        reach the configured threshold and beat the runner-up by the
        configured margin; anything less is no match.
        """
        key = (merchant_key or "").strip()
        if not key:
            return None

        exact = self.rules.get(key)
        if exact is not None:
            return RuleMatch(rule=exact, matched_key=key, confidence=1.0)

        if not self.config.fuzzy_rule_matching:
            return None

        query_tokens = tokenize_key(key)
        if not query_tokens:
            return None

        candidates: set[str] = set()
        for token in query_tokens:
            candidates.update(self._token_index.get(token, []))

        if not candidates and len(self.rules) <= self.config.rule_full_scan_limit:
            candidates = set(self.rules)
        if not candidates:
            return None

        scored = sorted(
            ((self.score(key, candidate), candidate) for candidate in candidates),
            key=lambda pair: (-pair[0], pair[1]),
        )
        best_score, best_key = scored[0]
        runner_up = scored[1][0] if len(scored) > 1 else 0.0

        if best_score <= 0.0 or best_score < self.config.rule_match_threshold:
            return None
        if best_score - runner_up < self.config.rule_match_margin:
            logger.debug(f"Ambiguous learned rule for {key!r}: {best_key!r} {best_score:.3f} vs {runner_up:.3f}")
            return None

        return RuleMatch(rule=self.rules[best_key], matched_key=best_key, confidence=best_score)

    def lookup(self, *merchant_keys: str) -> Optional[RuleMatch]:
        """First match over keys tried in order (source key, then description key)."""
        for merchant_key in merchant_keys:
            found = self.match(merchant_key)
            if found:
                return found
        return None


def rule_from_correction(
    merchant_key: str,
    display_override: Optional[str] = None,
    category: Optional[Category] = None,
) -> Optional[MerchantRule]:
    """
    Build the rule a host should store after the user corrects a row.

    Returns None when there is nothing worth remembering (empty key, or no
    name override and no category).
    """
    key = (merchant_key or "").strip()
    name = (display_override or "").strip() or None
    if not key or (name is None and category is None):
        return None
    return MerchantRule(merchant_key=key, preferred_display_name=name, preferred_category=category)
