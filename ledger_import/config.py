"""Configuration management for the import pipeline."""

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ImportSettings(BaseSettings):
    """Import tuning loaded from environment variables."""

    # Duplicate / match detection
    duplicate_day_window: int = 0  # 0 = exact calendar day
    amount_tolerance: float = 0.005

    # Category suggestion thresholds
    category_ready_threshold: float = 0.86
    category_possible_threshold: float = 0.55

    # Learned merchant rules
    fuzzy_rule_matching: bool = True
    rule_match_threshold: float = 0.88
    rule_match_margin: float = 0.04
    rule_full_scan_limit: int = 150

    # Date inference
    date_grace_days: int = 7
    min_year: int = 2000
    max_year: int = 2100

    # Amount sanity bound
    max_amount: float = 1_000_000

    # Development mode
    dev_mode: bool = True

    # Data directory (host-side learning store)
    data_dir: Path = Path.home() / ".ledger_import"

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_IMPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def learning_db_path(self) -> Path:
        """Get the SQLite path for learned merchant rules."""
        suffix = "dev" if self.dev_mode else "prod"
        return self.data_dir / f"learning_{suffix}.db"

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def log_config(self) -> None:
        """Log the active import configuration."""
        logger.info("Import configuration loaded")
        logger.info(f"Duplicate window:    {self.duplicate_day_window} day(s), tolerance {self.amount_tolerance}")
        logger.info(
            f"Category thresholds: ready {self.category_ready_threshold}, "
            f"possible {self.category_possible_threshold}"
        )
        logger.info(
            f"Rule matching:       fuzzy={self.fuzzy_rule_matching} "
            f"threshold {self.rule_match_threshold} margin {self.rule_match_margin}"
        )
        logger.info(f"Date grace:          {self.date_grace_days} day(s), years {self.min_year}-{self.max_year}")
        logger.info(f"Dev Mode:            {self.dev_mode}")
        logger.info(f"Learning store:      {self.learning_db_path}")


# Global settings instance
settings = ImportSettings()
