"""SQLite persistence for learned merchant rules."""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from ledger_import.config import settings
from ledger_import.models import Category, MerchantRule

# SQL schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS merchant_rules (
    workspace_id TEXT NOT NULL,
    merchant_key TEXT NOT NULL,
    preferred_display_name TEXT,
    preferred_category_id TEXT,
    preferred_category_name TEXT,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (workspace_id, merchant_key)
);

CREATE INDEX IF NOT EXISTS idx_merchant_rules_workspace ON merchant_rules(workspace_id);
"""


class LearningStore:
    """Learned merchant rules, scoped per workspace."""

    def __init__(self, db_path: Path | None = None):
        if db_path is None:
            settings.ensure_directories()
        self.db_path = db_path or settings.learning_db_path
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def fetch_rules(self, workspace_id: str) -> dict[str, MerchantRule]:
        """Snapshot of every rule in a workspace, keyed by merchant key."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT merchant_key, preferred_display_name, preferred_category_id, preferred_category_name
                FROM merchant_rules WHERE workspace_id = ?
                """,
                (workspace_id,),
            )
            rules = [self._row_to_rule(row) for row in cursor.fetchall()]
            return {rule.merchant_key: rule for rule in rules}

    def upsert_rule(self, workspace_id: str, rule: MerchantRule) -> None:
        """Insert or replace the rule for a merchant key."""
        category = rule.preferred_category
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO merchant_rules
                (workspace_id, merchant_key, preferred_display_name, preferred_category_id, preferred_category_name)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(workspace_id, merchant_key) DO UPDATE SET
                    preferred_display_name = excluded.preferred_display_name,
                    preferred_category_id = excluded.preferred_category_id,
                    preferred_category_name = excluded.preferred_category_name,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    workspace_id,
                    rule.merchant_key,
                    rule.preferred_display_name,
                    category.id if category else None,
                    category.name if category else None,
                ),
            )
            conn.commit()

    def upsert_rules(self, workspace_id: str, rules: list[MerchantRule]) -> int:
        """Store several rules. Returns how many were written."""
        for rule in rules:
            self.upsert_rule(workspace_id, rule)
        return len(rules)

    def delete_rule(self, workspace_id: str, merchant_key: str) -> bool:
        """Forget a rule. Returns True if one existed."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM merchant_rules WHERE workspace_id = ? AND merchant_key = ?",
                (workspace_id, merchant_key),
            )
            conn.commit()
            return cursor.rowcount > 0

    def rule_count(self, workspace_id: str) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) as count FROM merchant_rules WHERE workspace_id = ?", (workspace_id,)
            )
            return cursor.fetchone()["count"]

    def _row_to_rule(self, row: sqlite3.Row) -> MerchantRule:
        """Convert a database row to a MerchantRule model."""
        category = None
        if row["preferred_category_id"]:
            category = Category(id=row["preferred_category_id"], name=row["preferred_category_name"] or "")
        return MerchantRule(
            merchant_key=row["merchant_key"],
            preferred_display_name=row["preferred_display_name"],
            preferred_category=category,
        )
