"""
Provider registry: builds the configured DataProvider for a service.
"""
from __future__ import annotations

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

from ingest.providers.base import DataProvider
from ingest.providers.cached import CachedProvider
from ingest.providers.cfbd import CollegeFootballDataProvider

logger = get_logger(__name__)


def build_provider(settings: Settings | None = None) -> DataProvider:
    """
    Build the live provider, wrapped in a cache when any TTL is configured.

    The returned provider is not started; call ``await provider.start()``.
    """
    settings = settings or get_settings()
    provider: DataProvider = CollegeFootballDataProvider(
        base_url=settings.provider_base_url_str,
        api_token=settings.provider_api_token,
        season=settings.season_year,
        timeout_s=settings.provider_request_timeout_s,
    )
    if settings.static_cache_ttl_s > 0 or settings.live_cache_ttl_s > 0:
        provider = CachedProvider(
            provider,
            static_ttl_s=settings.static_cache_ttl_s,
            live_ttl_s=settings.live_cache_ttl_s,
        )
    logger.info(
        "provider_built",
        base_url=settings.provider_base_url_str,
        static_cache_ttl_s=settings.static_cache_ttl_s,
        live_cache_ttl_s=settings.live_cache_ttl_s,
        authenticated=bool(settings.provider_api_token),
    )
    return provider
