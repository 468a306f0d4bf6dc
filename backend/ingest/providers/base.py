"""
Data provider contract.

`DataProvider` is the capability a polling session is handed; `BaseProvider`
is the abstract base for HTTP-backed implementations and handles HTTP
lifecycle, timing and outcome metrics around the provider-specific fetches.
"""
from __future__ import annotations

import abc
import time
from typing import Protocol, runtime_checkable

from shared.errors import ProviderError
from shared.models.domain import GameMetadata, GameSnapshot
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_FETCHES

logger = get_logger(__name__)


@runtime_checkable
class DataProvider(Protocol):
    """What a polling session needs from a source of game data."""

    async def start(self) -> None: ...

    async def close(self) -> None: ...

    async def fetch_live_snapshot(self, game_id: int) -> GameSnapshot:
        """Raises NetworkError or DecodeError."""
        ...

    async def fetch_static_game_info(self, game_id: int) -> GameMetadata:
        """Raises NetworkError or DecodeError."""
        ...


class BaseProvider(abc.ABC):
    """
    Abstract base class for HTTP game-data providers.

    Subclasses implement the underscore fetch methods; the public wrappers
    record timing and outcome, then re-raise so callers decide the policy.
    """

    def __init__(self, name: ProviderName, http_client: ProviderHTTPClient) -> None:
        self._name = name
        self._http = http_client

    @property
    def name(self) -> ProviderName:
        return self._name

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    async def fetch_live_snapshot(self, game_id: int) -> GameSnapshot:
        """Fetch one live play-by-play snapshot for a game."""
        start = time.perf_counter()
        try:
            snapshot = await self._fetch_live_snapshot(game_id)
        except ProviderError as exc:
            PROVIDER_FETCHES.labels(
                provider=self._name.value, operation="live_snapshot", outcome=type(exc).__name__
            ).inc()
            logger.warning(
                "provider_fetch_live_snapshot_error",
                provider=self._name.value,
                game_id=game_id,
                error=str(exc),
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        PROVIDER_FETCHES.labels(
            provider=self._name.value, operation="live_snapshot", outcome="success"
        ).inc()
        return snapshot

    async def fetch_static_game_info(self, game_id: int) -> GameMetadata:
        """Fetch schedule, venue, media and team data for a game."""
        start = time.perf_counter()
        try:
            metadata = await self._fetch_static_game_info(game_id)
        except ProviderError as exc:
            PROVIDER_FETCHES.labels(
                provider=self._name.value, operation="static_game_info", outcome=type(exc).__name__
            ).inc()
            logger.warning(
                "provider_fetch_static_game_info_error",
                provider=self._name.value,
                game_id=game_id,
                error=str(exc),
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        PROVIDER_FETCHES.labels(
            provider=self._name.value, operation="static_game_info", outcome="success"
        ).inc()
        return metadata

    # ── Abstract methods (each provider implements these) ───────────────
    @abc.abstractmethod
    async def _fetch_live_snapshot(self, game_id: int) -> GameSnapshot:
        """Provider-specific live snapshot fetch logic."""
        ...

    @abc.abstractmethod
    async def _fetch_static_game_info(self, game_id: int) -> GameMetadata:
        """Provider-specific static game info fetch logic."""
        ...
