"""Tests for import settings."""

import logging

from ledger_import.config import ImportSettings


class TestImportSettings:
    """Test settings loading and derived paths."""

    def test_environment_prefix(self, monkeypatch):
        """Should read tunables from LEDGER_IMPORT_ variables."""
        monkeypatch.setenv("LEDGER_IMPORT_DUPLICATE_DAY_WINDOW", "2")
        monkeypatch.setenv("LEDGER_IMPORT_FUZZY_RULE_MATCHING", "false")

        config = ImportSettings()

        assert config.duplicate_day_window == 2
        assert config.fuzzy_rule_matching is False

    def test_learning_db_path(self, tmp_path):
        """Should keep dev and prod rules in separate files."""
        assert ImportSettings(data_dir=tmp_path, dev_mode=True).learning_db_path == tmp_path / "learning_dev.db"
        assert ImportSettings(data_dir=tmp_path, dev_mode=False).learning_db_path == tmp_path / "learning_prod.db"

    def test_ensure_directories(self, tmp_path):
        """Should create the data directory."""
        config = ImportSettings(data_dir=tmp_path / "nested" / "data")

        config.ensure_directories()

        assert config.data_dir.is_dir()

    def test_log_config(self, tmp_path, caplog):
        """Should log the active thresholds."""
        config = ImportSettings(data_dir=tmp_path)

        with caplog.at_level(logging.INFO, logger="ledger_import.config"):
            config.log_config()

        assert "Import configuration loaded" in caplog.text
        assert "learning_dev.db" in caplog.text or "learning_prod.db" in caplog.text
