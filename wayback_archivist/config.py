"""Configuration for Wayback Archivist using pydantic-settings.

All settings are driven by environment variables with the WAYBACK_ prefix.
See .env.example for the full list of configurable options.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Archivist configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WAYBACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cdx_search_url: str = "http://web.archive.org/cdx/search/cdx"
    replay_url_template: str = "https://web.archive.org/web/{timestamp}if_/{url}"

    user_agent: str = "wayback-archivist/0.1 (contact: your-email@example.com)"
    timeout_total: float = 60.0

    dest_dir: Path = Path(".")
    page_size: int = 30
    download_delay_seconds: float = 1.0

    default_filetype: str = (
        "(image/(gif|p?jpeg|(x-)?png)|application/x-shockwave-flash|application/pdf)"
    )
    search_limit: int = 9999999

    search_max_attempts: int = 1
    backoff_multiplier: float = 1.0
    backoff_min: float = 1.0
    backoff_max: float = 30.0


def get_settings() -> Settings:
    """Load settings from environment."""
    return Settings()


def build_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared async HTTP transport for search and downloads."""
    logger.debug("Building HTTP client (timeout=%.1fs)", settings.timeout_total)
    return httpx.AsyncClient(
        timeout=settings.timeout_total,
        follow_redirects=True,
        headers={"user-agent": settings.user_agent},
    )
