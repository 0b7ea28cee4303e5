"""Tests for the SQLite learning store."""

import pytest

from ledger_import.db.learning_store import LearningStore
from ledger_import.models import Category, MerchantRule

DINING = Category(id="dining", name="Dining")
GROCERIES = Category(id="groceries", name="Groceries")


@pytest.fixture
def store(tmp_path):
    """Store backed by a temporary database file."""
    return LearningStore(db_path=tmp_path / "learning.db")


class TestLearningStore:
    """Test rule persistence."""

    def test_upsert_and_fetch(self, store):
        """Should return stored rules keyed by merchant key."""
        store.upsert_rule("home", MerchantRule(merchant_key="DOORDASH", preferred_category=DINING))

        rules = store.fetch_rules("home")

        assert list(rules) == ["DOORDASH"]
        assert rules["DOORDASH"].preferred_category == DINING
        assert rules["DOORDASH"].preferred_display_name is None

    def test_upsert_replaces(self, store):
        """Should keep one rule per key with the latest values."""
        store.upsert_rule("home", MerchantRule(merchant_key="SAFEWAY", preferred_category=DINING))
        store.upsert_rule(
            "home",
            MerchantRule(merchant_key="SAFEWAY", preferred_display_name="Safeway", preferred_category=GROCERIES),
        )

        rule = store.fetch_rules("home")["SAFEWAY"]

        assert store.rule_count("home") == 1
        assert rule.preferred_display_name == "Safeway"
        assert rule.preferred_category == GROCERIES

    def test_workspaces_are_isolated(self, store):
        """Should never return another workspace's rules."""
        store.upsert_rule("home", MerchantRule(merchant_key="DOORDASH", preferred_category=DINING))

        assert store.fetch_rules("work") == {}

    def test_upsert_rules(self, store):
        """Should store a batch and report how many were written."""
        written = store.upsert_rules(
            "home",
            [
                MerchantRule(merchant_key="DOORDASH", preferred_category=DINING),
                MerchantRule(merchant_key="ARCO", preferred_display_name="Arco"),
            ],
        )

        assert written == 2
        assert store.fetch_rules("home")["ARCO"].preferred_category is None

    def test_delete_rule(self, store):
        """Should report whether a rule was deleted."""
        store.upsert_rule("home", MerchantRule(merchant_key="DOORDASH", preferred_category=DINING))

        assert store.delete_rule("home", "DOORDASH") is True
        assert store.delete_rule("home", "DOORDASH") is False
        assert store.rule_count("home") == 0
