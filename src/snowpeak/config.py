"""Runtime configuration for snowpeak.

Values come from environment variables (case-insensitive) or a ``.env`` file
in the working directory, e.g. ``LLM_API_KEY``, ``REFRESH_INTERVAL_HOURS``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root is 3 levels up from this file (src/snowpeak/config.py)
_PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Store
    db_path: Path = _PROJECT_ROOT / "data" / "cache" / "snowpeak.duckdb"

    # Freshness windows
    cache_ttl_seconds: int = 60 * 60
    memory_cache_ttl_seconds: int = 15 * 60

    # AI generation provider (OpenAI-compatible endpoint; Gemini by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_model: str = "gemini-2.0-flash"
    llm_timeout_seconds: float = 60.0
    llm_temperature: float = 0.1

    # Scraping provider
    scraper_enabled: bool = True
    scraper_base_url: str = "https://www.onthesnow.com"
    scraper_timeout_seconds: float = 15.0
    scraper_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    # Background refresh
    refresh_scheduler_enabled: bool = False
    refresh_interval_hours: float = 6.0
    refresh_startup_delay_seconds: float = 15.0
    refresh_delay_ms: int = 750
    refresh_max_resorts: int = 200

    # Email delivery (disabled when smtp_host is empty)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    alert_from_email: str = "SnowPeak Alerts <alerts@snowpeak.local>"

    # Manual trigger endpoints require "Authorization: Bearer <cron_secret>" when set
    cron_secret: Optional[str] = None

    allowed_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    """Get process-wide settings (loaded once)."""
    return Settings()
