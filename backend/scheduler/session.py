"""
Polling session for a single game view.

A session owns one GameState and one asyncio task that ticks at a fixed
rate. Ticks and play-by-play loads share one request slot, so at most one
live request is in flight; a tick that finds the slot taken is skipped,
while a play-by-play load waits for it. Stopping cancels both the ticker and the
in-flight request, and a run generation counter keeps any late result from a
previous run out of the state.
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Callable, Optional

import structlog

from shared.config import Settings, get_settings
from shared.errors import DecodeError, NetworkError, ProviderError
from shared.models.domain import GameSnapshot, GameState
from shared.utils.logging import game_log_context, get_logger
from shared.utils.metrics import ACTIVE_SESSIONS, SESSION_POLLS, STATE_PUBLISHES
from shared.utils.retry import retry_async

from ingest.providers.base import DataProvider
from scheduler.engine.polling import PollingPolicy
from scheduler.engine.reconciler import merge_snapshot, seed_state

logger = get_logger(__name__)

StateListener = Callable[[GameState], None]


class SessionNotStarted(RuntimeError):
    """Raised when an operation needs a game id but start() was never called."""


class PollingSession:
    """Keeps one game's state current while its view is active."""

    def __init__(
        self,
        provider: DataProvider,
        policy: PollingPolicy,
        settings: Settings | None = None,
    ) -> None:
        self._provider = provider
        self._policy = policy
        self._settings = settings or get_settings()
        self._game_id: Optional[int] = None
        self._state: Optional[GameState] = None
        self._last_snapshot: Optional[GameSnapshot] = None
        self._generation = 0
        self._ticker: Optional[asyncio.Task[None]] = None
        self._in_flight: Optional[asyncio.Task[bool]] = None
        self._fetch_lock = asyncio.Lock()
        self._start_lock = asyncio.Lock()
        self._listeners: list[StateListener] = []

    # ── Read side ───────────────────────────────────────────────────────

    @property
    def game_id(self) -> Optional[int]:
        return self._game_id

    @property
    def policy(self) -> PollingPolicy:
        return self._policy

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def is_fetching(self) -> bool:
        """True while a poll or play-by-play request holds the request slot."""
        return self._fetch_lock.locked()

    @property
    def state(self) -> Optional[GameState]:
        """A copy of the current state; consumers never see the live object."""
        return self._state.model_copy(deep=True) if self._state else None

    @property
    def last_snapshot(self) -> Optional[GameSnapshot]:
        return self._last_snapshot

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback for published states; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self, game_id: int) -> None:
        """
        Seed state from static game info and begin polling.

        Calling again for the running game id is a no-op; a different id
        stops the current run first.
        """
        async with self._start_lock:
            if self.is_running and self._game_id == game_id:
                return
            if self.is_running:
                await self.stop()

            self._generation += 1
            generation = self._generation
            self._game_id = game_id
            self._last_snapshot = None

            metadata = None
            try:
                metadata = await self._provider.fetch_static_game_info(game_id)
            except ProviderError as exc:
                logger.warning("static_game_info_unavailable", game_id=game_id, error=str(exc))

            if generation != self._generation:
                # stop() ran while static info was loading.
                return

            self._state = seed_state(game_id, metadata)
            self._publish()
            with game_log_context(game_id, cadence=self._policy.cadence.value):
                self._ticker = asyncio.create_task(
                    self._run(generation), name=f"poll:{game_id}:{generation}"
                )
            ACTIVE_SESSIONS.labels(cadence=self._policy.cadence.value).inc()
            logger.info(
                "polling_session_started",
                game_id=game_id,
                cadence=self._policy.cadence.value,
                interval_s=self._policy.interval_s,
                has_metadata=metadata is not None,
            )

    async def stop(self) -> None:
        """Cancel polling and any in-flight request. Safe to call repeatedly."""
        self._generation += 1
        was_running = self.is_running
        tasks = [t for t in (self._ticker, self._in_flight) if t is not None]
        self._ticker = None
        self._in_flight = None

        current = asyncio.current_task()
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            if task is current:
                continue
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if was_running:
            ACTIVE_SESSIONS.labels(cadence=self._policy.cadence.value).dec()
            logger.info("polling_session_stopped", game_id=self._game_id)

    # ── Polling ─────────────────────────────────────────────────────────

    async def _run(self, generation: int) -> None:
        # The ticker outlives the request that opened it.
        structlog.contextvars.unbind_contextvars("request_id")
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while generation == self._generation:
            if self.is_fetching:
                SESSION_POLLS.labels(cadence=self._policy.cadence.value, outcome="skipped").inc()
                logger.debug("poll_tick_skipped", game_id=self._game_id)
            else:
                self._in_flight = asyncio.create_task(self.poll())
            next_tick += self._policy.interval_s
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def poll(self) -> bool:
        """
        Fetch one snapshot and merge it.

        Returns True when the state was updated. Failures are logged and
        leave the state as it was; nothing is raised to the caller.
        """
        cadence = self._policy.cadence.value
        if self._game_id is None or self._state is None:
            return False
        if self.is_fetching:
            SESSION_POLLS.labels(cadence=cadence, outcome="skipped").inc()
            return False

        game_id = self._game_id
        generation = self._generation
        async with self._fetch_lock:
            try:
                snapshot = await self._fetch(game_id, self._policy.request_timeout_s)
            except ProviderError as exc:
                SESSION_POLLS.labels(cadence=cadence, outcome="failed").inc()
                logger.warning(
                    "live_poll_failed",
                    game_id=game_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return False
            except Exception as exc:
                SESSION_POLLS.labels(cadence=cadence, outcome="failed").inc()
                logger.error("live_poll_unexpected_error", game_id=game_id, error=str(exc), exc_info=True)
                return False

            if generation != self._generation:
                SESSION_POLLS.labels(cadence=cadence, outcome="discarded").inc()
                logger.debug("live_poll_discarded", game_id=game_id)
                return False

            self._apply(snapshot)
        SESSION_POLLS.labels(cadence=cadence, outcome="applied").inc()
        return True

    async def load_play_by_play(self) -> GameSnapshot:
        """
        One-shot play-by-play load with a bounded retry budget.

        Each attempt waits for any in-flight poll, then holds the request
        slot until its result is merged, so a slower older response can
        never land on top of a newer one.

        Raises:
            SessionNotStarted: If start() has not been called.
            ProviderError: The last failure once every attempt is used.
        """
        if self._game_id is None:
            raise SessionNotStarted("start() must be called before loading play-by-play")
        game_id = self._game_id
        generation = self._generation

        async def attempt() -> GameSnapshot:
            async with self._fetch_lock:
                snapshot = await self._fetch(game_id, self._settings.provider_request_timeout_s)
                if generation == self._generation and self._state is not None:
                    self._apply(snapshot)
                return snapshot

        return await retry_async(
            attempt,
            attempts=self._settings.play_by_play_retry_attempts,
            delay_s=self._settings.play_by_play_retry_delay_s,
            retry_on=(ProviderError,),
            operation="play_by_play",
        )

    # ── Internals ───────────────────────────────────────────────────────

    async def _fetch(self, game_id: int, timeout_s: float) -> GameSnapshot:
        """One live request, bounded by ``timeout_s`` and checked against ``game_id``."""
        try:
            snapshot = await asyncio.wait_for(
                self._provider.fetch_live_snapshot(game_id), timeout=timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise NetworkError(
                f"Live snapshot for game {game_id} timed out after {timeout_s:.2f}s",
                provider=self._provider_name,
            ) from exc
        if snapshot.game_id != game_id:
            raise DecodeError(
                f"Live snapshot for game {snapshot.game_id} returned for game {game_id}",
                provider=self._provider_name,
            )
        return snapshot

    @property
    def _provider_name(self) -> str:
        return type(self._provider).__name__

    def _apply(self, snapshot: GameSnapshot) -> None:
        assert self._state is not None
        merge_snapshot(self._state, snapshot)
        self._last_snapshot = snapshot
        self._publish()
        logger.debug(
            "game_state_merged",
            game_id=self._state.game_id,
            period=self._state.period,
            clock=self._state.clock,
            home_points=self._state.home_points,
            away_points=self._state.away_points,
        )

    def _publish(self) -> None:
        if self._state is None:
            return
        STATE_PUBLISHES.labels(cadence=self._policy.cadence.value).inc()
        for listener in list(self._listeners):
            try:
                listener(self._state.model_copy(deep=True))
            except Exception as exc:
                logger.error(
                    "state_listener_error",
                    game_id=self._state.game_id,
                    error=str(exc),
                    exc_info=True,
                )
