"""
Configuration management for the application.
"""

import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Host bridge
    host_api_url: str = "http://127.0.0.1:8765"
    host_timeout_seconds: float = 10.0

    # Storage
    db_path: Path = Path("./data/tab_grouper.db")

    # Grouping
    fallback_category: str = "Other"
    neighbor_scope: Literal["window", "all"] = "window"
    eligible_url_patterns: list[str] = ["http://*", "https://*"]

    # Cleanup scheduling
    cleanup_interval_seconds: float = 60.0
    cleanup_grace_ms: Optional[int] = None

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def set_debug_logging(enabled: bool) -> None:
    """Switch the package loggers between DEBUG and INFO."""
    logging.getLogger("tab_grouper").setLevel(logging.DEBUG if enabled else logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
