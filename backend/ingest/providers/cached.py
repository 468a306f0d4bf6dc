"""
Caching decorator for any DataProvider.

Static game info is cached per game for a long TTL. Live snapshots may be
cached for a short TTL so several views polling the same game share one
upstream request; concurrent misses for the same game await a single fetch.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from shared.models.domain import GameMetadata, GameSnapshot
from shared.utils.logging import get_logger

from ingest.providers.base import DataProvider

logger = get_logger(__name__)

T = TypeVar("T")


def _consume_exception(task: asyncio.Task[object]) -> None:
    if not task.cancelled():
        task.exception()


class _TTLCache(Generic[T]):
    def __init__(self, ttl_s: float, clock: Callable[[], float]) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[int, tuple[float, T]] = {}
        self._pending: dict[int, asyncio.Task[T]] = {}

    @property
    def enabled(self) -> bool:
        return self._ttl_s > 0

    def get(self, key: int) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl_s:
            del self._entries[key]
            return None
        return value

    async def get_or_load(self, key: int, loader: Callable[[], Awaitable[T]]) -> T:
        cached = self.get(key)
        if cached is not None:
            return cached
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, loader))
            task.add_done_callback(_consume_exception)
            self._pending[key] = task
        # A cancelled waiter must not cancel the fetch other waiters share.
        return await asyncio.shield(task)

    async def _load(self, key: int, loader: Callable[[], Awaitable[T]]) -> T:
        try:
            value = await loader()
            self._entries[key] = (self._clock(), value)
            return value
        finally:
            self._pending.pop(key, None)

    def invalidate(self, key: Optional[int] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


class CachedProvider:
    """Wraps a DataProvider with per-game TTL caches."""

    def __init__(
        self,
        inner: DataProvider,
        static_ttl_s: float = 3600.0,
        live_ttl_s: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._inner = inner
        self._static: _TTLCache[GameMetadata] = _TTLCache(static_ttl_s, clock)
        self._live: _TTLCache[GameSnapshot] = _TTLCache(live_ttl_s, clock)

    async def start(self) -> None:
        await self._inner.start()

    async def close(self) -> None:
        await self._inner.close()

    async def fetch_static_game_info(self, game_id: int) -> GameMetadata:
        if not self._static.enabled:
            return await self._inner.fetch_static_game_info(game_id)
        return await self._static.get_or_load(
            game_id, lambda: self._inner.fetch_static_game_info(game_id)
        )

    async def fetch_live_snapshot(self, game_id: int) -> GameSnapshot:
        if not self._live.enabled:
            return await self._inner.fetch_live_snapshot(game_id)
        return await self._live.get_or_load(
            game_id, lambda: self._inner.fetch_live_snapshot(game_id)
        )

    def invalidate(self, game_id: Optional[int] = None) -> None:
        """Drop cached entries for one game, or for all games."""
        self._static.invalidate(game_id)
        self._live.invalidate(game_id)
        logger.debug("provider_cache_invalidated", game_id=game_id)
