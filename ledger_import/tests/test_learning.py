"""Tests for learned merchant rule lookup."""

import pytest

from ledger_import.config import ImportSettings
from ledger_import.models import Category, MerchantRule
from ledger_import.services.learning import (
    MerchantRuleMatcher,
    rule_from_correction,
    tokenize_key,
)

DINING = Category(id="dining", name="Dining")


def make_rules(*keys: str) -> dict[str, MerchantRule]:
    """Helper to build a rule snapshot that maps every key to Dining."""
    return {key: MerchantRule(merchant_key=key, preferred_category=DINING) for key in keys}


class TestTokenizeKey:
    """Test key tokenization."""

    def test_hyphen_variants(self):
        """Should index hyphenated tokens with and without the hyphen."""
        assert tokenize_key("7-ELEVEN STORE") == {"7-ELEVEN", "7ELEVEN", "STORE"}


class TestMerchantRuleMatcher:
    """Test exact and fuzzy matching."""

    def test_exact_key(self):
        """Should return an exact key with full confidence."""
        matcher = MerchantRuleMatcher(make_rules("BLUE BOTTLE"))

        found = matcher.match("BLUE BOTTLE")

        assert found.matched_key == "BLUE BOTTLE"
        assert found.confidence == 1.0

    def test_fuzzy_longer_descriptor(self):
        """Should match a descriptor that extends a stored key."""
        matcher = MerchantRuleMatcher(make_rules("BLUE BOTTLE", "SAFEWAY"))

        found = matcher.match("BLUE BOTTLE COFFEE")

        assert found is not None
        assert found.matched_key == "BLUE BOTTLE"
        assert found.confidence == pytest.approx(1.0)

    def test_ambiguous_candidates(self):
        """Should refuse to pick between two equally good rules."""
        matcher = MerchantRuleMatcher(make_rules("STARBUCKS STORE", "STARBUCKS CAFE"))

        assert matcher.match("STARBUCKS") is None

    def test_fuzzy_disabled(self):
        """Should only match exact keys when fuzzy matching is off."""
        config = ImportSettings(fuzzy_rule_matching=False)
        matcher = MerchantRuleMatcher(make_rules("BLUE BOTTLE"), config)

        assert matcher.match("BLUE BOTTLE COFFEE") is None
        assert matcher.match("BLUE BOTTLE") is not None

    def test_no_shared_token(self):
        """Should never match keys with nothing in common."""
        matcher = MerchantRuleMatcher(make_rules("BLUE BOTTLE"))

        assert matcher.match("SAFEWAY") is None

    def test_empty_key(self):
        """Should return None for an empty key."""
        assert MerchantRuleMatcher(make_rules("BLUE BOTTLE")).match("  ") is None

    def test_empty_rules(self):
        """Should handle an empty snapshot."""
        assert MerchantRuleMatcher({}).match("BLUE BOTTLE") is None

    def test_lookup_order(self):
        """Should try keys in order and skip empty ones."""
        matcher = MerchantRuleMatcher(make_rules("DOORDASH"))

        found = matcher.lookup("", "DOORDASH")

        assert found.rule.preferred_category == DINING


class TestRuleFromCorrection:
    """Test building rules from user corrections."""

    def test_category_only(self):
        """Should store a category without a name override."""
        rule = rule_from_correction("DOORDASH", None, DINING)

        assert rule.merchant_key == "DOORDASH"
        assert rule.preferred_display_name is None
        assert rule.preferred_category == DINING

    def test_name_only(self):
        """Should store a trimmed name override."""
        rule = rule_from_correction(" DOORDASH ", "  DoorDash ")

        assert rule.merchant_key == "DOORDASH"
        assert rule.preferred_display_name == "DoorDash"

    def test_nothing_to_remember(self):
        """Should return None for an empty key or an empty correction."""
        assert rule_from_correction("", "DoorDash", DINING) is None
        assert rule_from_correction("DOORDASH", "   ", None) is None
