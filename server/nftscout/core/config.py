import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Look for .env in project root (parent of server/)
_env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"

MAGIC_EDEN_V2_URL = "https://api-mainnet.magiceden.dev/v2"
MAGIC_EDEN_V3_URL = "https://api-mainnet.magiceden.dev/v3/rtp/solana"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    # Environment
    env: Literal["development", "production"] = "development"

    # Server
    port: int = 8000

    # CORS - comma-separated origins or "*" for all (dev only)
    cors_origins: str = "*"

    # Upstream marketplace API (v2 first, v3 on 404)
    upstream_primary_url: str = MAGIC_EDEN_V2_URL
    upstream_secondary_url: str = MAGIC_EDEN_V3_URL
    upstream_user_agent: str = "Mozilla/5.0 (compatible; NFT-Indexer/1.0)"
    upstream_timeout_seconds: float = 10.0

    # Collection cache service
    collection_cache_ttl_seconds: float = 30.0
    min_request_interval_ms: int = 100
    max_retries: int = 2
    retry_backoff_seconds: float = 0.5
    rate_limit_backoff_seconds: float = 1.0  # per attempt on HTTP 429

    # Serve the fixed fallback collections when the upstream is unreachable
    fallback_collections_enabled: bool | None = None  # None = auto (enabled in dev)

    # Trending aggregator
    trending_timeframes: str = "1h,1d,7d"  # also the merge priority order
    trending_cache_ttl_seconds: float = 300.0
    session_store_path: str = ""  # empty = in-memory store

    # Search backend
    search_backend_url: str = "http://localhost:3001"
    search_backend_path: str = "/api/search"
    search_timeout_seconds: float = 8.0
    search_debounce_ms: int = 400
    search_min_query_length: int = 1
    search_page_size: int = 20

    # Trusted proxy IPs for X-Forwarded-For (comma-separated)
    trusted_proxies: str = "127.0.0.1,::1"

    # Rate limiting (disabled by default in dev, enable in prod)
    rate_limit_enabled: bool | None = None  # None = auto (disabled in dev, enabled in prod)
    search_rate_limit_per_minute: int = 60
    proxy_rate_limit_per_minute: int = 120

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_rate_limit_enabled(self) -> bool:
        """Check if rate limiting is enabled (auto-detect based on env if not set)."""
        if self.rate_limit_enabled is not None:
            return self.rate_limit_enabled
        return self.is_production

    @property
    def is_fallback_enabled(self) -> bool:
        """Fallback collections keep offline development usable; off in production."""
        if self.fallback_collections_enabled is not None:
            return self.fallback_collections_enabled
        return not self.is_production

    @property
    def timeframes(self) -> list[str]:
        return [tf.strip() for tf in self.trending_timeframes.split(",") if tf.strip()]


VALID_TIMEFRAMES = ("1h", "1d", "7d", "30d")


def validate_settings(settings: Settings) -> None:
    """Validate required settings and print helpful error messages."""
    errors = []

    unknown = [tf for tf in settings.timeframes if tf not in VALID_TIMEFRAMES]
    if unknown:
        errors.append(
            f"TRENDING_TIMEFRAMES contains unsupported values {unknown} - "
            f"use a comma-separated subset of {', '.join(VALID_TIMEFRAMES)}"
        )
    if not settings.timeframes:
        errors.append("TRENDING_TIMEFRAMES must name at least one timeframe")

    if settings.search_min_query_length < 0:
        errors.append("SEARCH_MIN_QUERY_LENGTH must not be negative")

    if settings.is_production:
        if settings.cors_origins == "*":
            errors.append(
                "CORS_ORIGINS should not be '*' in production - "
                "set to your frontend domain"
            )

    if not settings.is_production and settings.is_fallback_enabled:
        logging.warning(
            "Fallback collections enabled - upstream failures will serve fixed sample data"
        )

    if not settings.session_store_path:
        logging.info("SESSION_STORE_PATH not set - trending cache is kept in memory only")

    if errors:
        for error in errors:
            logging.error("Configuration error: %s", error)
        sys.exit(1)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    validate_settings(settings)
    return settings
