"""
Lost Ark Market Sync — Configuration & Constants

Every endpoint, bound and cadence lives here. No hardcoded values in the
pipeline modules.

The settings object is built once at process start and handed to each
component's constructor:

    from lostark_market.config import load_settings
    settings = load_settings()
    runner = PipelineRunner(settings, engine, session_factory)
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lostark_market.errors import ConfigError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MarketSortKey(str, Enum):
    """Sort keys accepted by POST /markets/items."""
    GRADE = "GRADE"
    YDAY_AVG_PRICE = "YDAY_AVG_PRICE"
    RECENT_PRICE = "RECENT_PRICE"
    CURRENT_MIN_PRICE = "CURRENT_MIN_PRICE"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class PersistencePolicyKind(str, Enum):
    """Persisted table shape for one deployment."""
    SINGLE_TABLE = "single_table"   # lostark_market_items: attributes + latest price
    SPLIT = "split"                 # lostark_items + append-only lostark_market_prices


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for the market sync service.

    Loads from environment variables (and .env) with fallback defaults.
    Blank credentials are allowed at load time so read-only tooling can
    start; the run driver calls require_api_key()/require_database_url()
    before touching the network or the store.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # -----------------------------------------------------------------------
    # Market API
    # -----------------------------------------------------------------------
    API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("API_KEY", "LOSTARK_API_KEY"),
    )
    API_BASE_URL: str = "https://developer-lostark.game.onstove.com"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # -----------------------------------------------------------------------
    # Database
    # -----------------------------------------------------------------------
    DATABASE_URL: str = Field(
        default="",
        validation_alias=AliasChoices(
            "DATABASE_URL", "NEON_DATABASE_URL", "NETLIFY_DATABASE_URL"
        ),
    )
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # -----------------------------------------------------------------------
    # Sweep defaults
    # -----------------------------------------------------------------------
    MAX_PAGE: int = 50                          # Safety bound per sweep
    DEFAULT_CATEGORY_CODE: int = 50000
    DEFAULT_SORT: MarketSortKey = MarketSortKey.RECENT_PRICE
    DEFAULT_SORT_DIRECTION: SortDirection = SortDirection.ASC
    PERSISTENCE_POLICY: PersistencePolicyKind = PersistencePolicyKind.SINGLE_TABLE

    # -----------------------------------------------------------------------
    # Name search
    # -----------------------------------------------------------------------
    SEARCH_DEFAULT_LIMIT: int = 10
    SEARCH_MAX_LIMIT: int = 100                 # Upper clamp for caller-supplied limits

    # -----------------------------------------------------------------------
    # Scheduler — polling cadence
    # -----------------------------------------------------------------------
    PRICE_POLL_INTERVAL_MINUTES: int = 5
    CATALOG_REFRESH_INTERVAL_HOURS: int = 168   # Weekly
    CATALOG_REFRESH_POLICY: PersistencePolicyKind = PersistencePolicyKind.SPLIT
    SCHEDULER_TICK_SECONDS: int = 5

    # -----------------------------------------------------------------------
    # HTTP surface / logging
    # -----------------------------------------------------------------------
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    def require_api_key(self) -> str:
        if not self.API_KEY or not self.API_KEY.strip():
            raise ConfigError("API_KEY is not configured")
        return self.API_KEY.strip()

    def require_database_url(self) -> str:
        if not self.DATABASE_URL or not self.DATABASE_URL.strip():
            raise ConfigError(
                "DATABASE_URL / NEON_DATABASE_URL / NETLIFY_DATABASE_URL is not configured"
            )
        return self.DATABASE_URL.strip()


def load_settings(**overrides: Any) -> Settings:
    """Build the process-wide settings object. Call once at startup."""
    return Settings(**overrides)
