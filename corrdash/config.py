from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Normalize currency codes so cache keys stay consistent."""

        super().model_post_init(__context)

        object.__setattr__(self, "default_currency", self.default_currency.strip().lower())
        object.__setattr__(self, "directory_currency", self.directory_currency.strip().lower())

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Upstream API
    coingecko_api_key: str = Field(default="", description="Coingecko demo API key")
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Base URL for the Coingecko v3 REST API",
    )

    # Request pacing and retries
    request_min_interval_seconds: float = Field(
        default=1.1,
        ge=0,
        description="Minimum spacing between two outbound requests",
    )
    request_timeout_seconds: float = Field(default=15.0, description="Per-request HTTP timeout")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_initial_delay_seconds: float = Field(default=1.0, ge=0, description="First backoff delay")
    retry_max_delay_seconds: float = Field(default=10.0, ge=0, description="Backoff delay cap")

    # Cache Settings
    cache_ttl_seconds: float = Field(default=60.0, gt=0, description="Market data cache TTL in seconds")

    # Market data batching
    snapshot_batch_size: int = Field(default=5, ge=1, description="Parallel snapshot fetches per sub-batch")
    history_batch_size: int = Field(default=3, ge=1, description="Parallel history fetches per sub-batch")
    search_result_limit: int = Field(default=10, ge=1, description="Maximum tokens returned by search")
    listing_ranked_page_size: int = Field(
        default=250, ge=1, le=250, description="Coins fetched from /coins/markets to order the token listing"
    )
    default_currency: str = Field(default="usd", description="Quote currency when none is given")

    # Token directory
    directory_enabled: bool = Field(
        default=True,
        description="Start the background token directory alongside FastAPI",
    )
    directory_currency: str = Field(default="usd", description="Currency the directory snapshots are kept in")
    directory_batch_size: int = Field(default=10, ge=1, description="Token ids refreshed per directory batch")
    directory_batch_delay_seconds: float = Field(
        default=1.5,
        ge=0,
        description="Pause between two directory batches",
    )
    directory_cycle_pause_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Pause after a full pass over the token list (directory TTL)",
    )
    directory_restart_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before the directory loop resumes after a failed step",
    )
    directory_local_search_limit: int = Field(
        default=5,
        ge=1,
        description="Local matches that satisfy a directory search without going upstream",
    )
    directory_search_limit: int = Field(default=10, ge=1, description="Maximum directory search results")

    @property
    def has_coingecko_key(self) -> bool:
        return bool(self.coingecko_api_key)


# Global settings instance
settings = Settings()
