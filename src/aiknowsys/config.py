"""Configuration module for aiknowsys.

Loads configuration from environment variables with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

VALID_BACKENDS = ("json", "sqlite")

DB_PATH_ENV = "AIKNOWSYS_DB_PATH"


def _positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
        if value <= 0:
            raise ValueError(f"must be a positive integer, got {value}")
    except ValueError as e:
        raise ValueError(f"Invalid {name} value '{raw}': {e}") from e
    return value


def storage_from_env() -> str | None:
    """Read AIKNOWSYS_STORAGE alone, so storage selection does not depend on unrelated settings."""
    storage = os.getenv("AIKNOWSYS_STORAGE", "").strip().lower() or None
    if storage is not None and storage not in VALID_BACKENDS:
        raise ValueError(
            f"Invalid AIKNOWSYS_STORAGE value '{storage}': "
            f"must be one of {', '.join(VALID_BACKENDS)}"
        )
    return storage


def db_path_from_env() -> Path | None:
    # Empty string counts as unset so a cleared variable does not
    # resolve to the current directory
    raw_db = os.getenv(DB_PATH_ENV, "").strip()
    return Path(raw_db).expanduser().resolve() if raw_db else None


@dataclass
class Config:
    """Application configuration."""

    db_path: Path | None
    storage: str | None
    log_level: str
    pattern_window_days: int
    pattern_threshold: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path = db_path_from_env()
        storage = storage_from_env()

        log_level = os.getenv("AIKNOWSYS_LOG_LEVEL", "INFO").strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Invalid AIKNOWSYS_LOG_LEVEL value '{log_level}'")

        return cls(
            db_path=db_path,
            storage=storage,
            log_level=log_level,
            pattern_window_days=_positive_int("AIKNOWSYS_PATTERN_WINDOW_DAYS", "30"),
            pattern_threshold=_positive_int("AIKNOWSYS_PATTERN_THRESHOLD", "3"),
        )


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
