"""Application settings and environment configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


# Largest delay accepted by a single-shot timer on the platforms the ledger
# was first written for (2**31 - 1 milliseconds, roughly 24.8 days).
MAX_TIMER_DELAY_MS = 2_147_483_647


@dataclass
class Settings:
    """Runtime configuration resolved from environment variables."""

    data_file: Optional[str] = None
    backup_dir: Optional[str] = None
    rescan_interval_seconds: float = 60.0
    max_timer_delay_ms: int = MAX_TIMER_DELAY_MS
    log_level: str = "INFO"
    display_timezone: str = "UTC"
    notification_history: int = 50

    def __post_init__(self) -> None:
        env_data_file = os.getenv("LEDGER_DATA_FILE")
        env_backup_dir = os.getenv("LEDGER_BACKUP_DIR")
        env_rescan = os.getenv("LEDGER_RESCAN_INTERVAL_SECONDS")
        env_max_delay = os.getenv("LEDGER_MAX_TIMER_DELAY_MS")
        env_log_level = os.getenv("LEDGER_LOG_LEVEL")
        env_timezone = os.getenv("LEDGER_DISPLAY_TIMEZONE")
        env_history = os.getenv("LEDGER_NOTIFICATION_HISTORY")
        if env_data_file:
            self.data_file = env_data_file
        if env_backup_dir:
            self.backup_dir = env_backup_dir
        if env_rescan:
            self.rescan_interval_seconds = float(env_rescan)
        if env_max_delay:
            self.max_timer_delay_ms = int(env_max_delay)
        if env_log_level:
            self.log_level = env_log_level.upper()
        if env_timezone:
            self.display_timezone = env_timezone
        if env_history:
            self.notification_history = int(env_history)

    @property
    def data_path(self) -> Optional[Path]:
        """Location of the JSON document, or ``None`` for an in-memory ledger."""

        return Path(self.data_file) if self.data_file else None

    @property
    def resolved_backup_dir(self) -> Optional[Path]:
        """Backups go next to the data file unless a directory is configured."""

        if self.backup_dir:
            return Path(self.backup_dir)
        if self.data_path is not None:
            return self.data_path.parent / "backups"
        return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
