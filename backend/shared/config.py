"""
Central configuration for all Gameday Live services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared across all services."""

    model_config = SettingsConfigDict(
        env_prefix="GD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log entry")

    # ── Provider ─────────────────────────────────────────────
    provider_base_url: str = "https://api.collegefootballdata.com"
    provider_api_token: str = Field(default="", description="Bearer token sent on every provider request")
    provider_request_timeout_s: float = 10.0
    season_year: int = 2024

    # ── Polling ──────────────────────────────────────────────
    # Two consumers, two freshness policies: scoreboard lists vs a single game view.
    list_poll_interval_s: float = 90.0
    detail_poll_interval_s: float = 0.9
    min_poll_interval_s: float = 0.5
    poll_timeout_ratio: float = Field(
        default=0.8,
        gt=0.0,
        lt=1.0,
        description="Per-request timeout as a fraction of the poll interval",
    )

    # ── Play-by-play initial load ────────────────────────────
    play_by_play_retry_attempts: int = Field(default=3, ge=1)
    play_by_play_retry_delay_s: float = Field(default=2.0, ge=0.0)

    # ── Provider cache ───────────────────────────────────────
    static_cache_ttl_s: float = 3600.0
    live_cache_ttl_s: float = 0.0

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]
    view_idle_ttl_s: float = Field(
        default=300.0,
        ge=0.0,
        description="Close a view nobody has read for this long; 0 keeps views open until deleted",
    )
    view_reap_interval_s: float = Field(default=30.0, gt=0.0)

    # ── Console watcher ──────────────────────────────────────
    watch_game_ids: list[int] = Field(default_factory=list)

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @model_validator(mode="after")
    def check_poll_intervals(self) -> "Settings":
        """Reject cadences faster than the configured floor."""
        for name in ("list_poll_interval_s", "detail_poll_interval_s"):
            value = getattr(self, name)
            if value < self.min_poll_interval_s:
                raise ValueError(
                    f"{name}={value} is below min_poll_interval_s={self.min_poll_interval_s}"
                )
        return self

    @property
    def provider_base_url_str(self) -> str:
        return self.provider_base_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
