"""
Session manager and console watcher for Gameday Live.

The manager owns one PollingSession per open view. Views are keyed by an
opaque view id so two consumers watching the same game at different
cadences do not share a session. Views a client stops reading are closed
after ``GD_VIEW_IDLE_TTL_S``.

Running this module starts a watcher that polls every game listed in
``GD_WATCH_GAME_IDS`` at the detail cadence and logs each state update.
"""
from __future__ import annotations

import asyncio
import contextlib
import signal
import time
import uuid
from typing import Callable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import GameState
from shared.models.enums import PollCadence
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from ingest.providers.base import DataProvider
from ingest.providers.registry import build_provider
from scheduler.engine.polling import PollingPolicy
from scheduler.session import PollingSession

logger = get_logger(__name__)


class LiveSessionManager:
    """
    Opens, looks up and closes polling sessions by view id.

    Every open or lookup marks the view as read. With an idle TTL set, views
    nobody has read for longer than the TTL are closed by ``close_idle()``,
    which the reaper task started by ``start_reaper()`` runs periodically.
    """

    def __init__(
        self,
        provider: DataProvider,
        settings: Settings | None = None,
        *,
        idle_ttl_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._settings = settings or get_settings()
        self._idle_ttl_s = self._settings.view_idle_ttl_s if idle_ttl_s is None else idle_ttl_s
        self._clock = clock
        self._sessions: dict[str, PollingSession] = {}
        self._last_read: dict[str, float] = {}
        self._reaper: Optional[asyncio.Task[None]] = None

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    @property
    def idle_ttl_s(self) -> float:
        return self._idle_ttl_s

    async def open(
        self,
        game_id: int,
        cadence: PollCadence = PollCadence.DETAIL,
        interval_s: Optional[float] = None,
    ) -> tuple[str, PollingSession]:
        """Start a new session for ``game_id`` and return its view id."""
        policy = PollingPolicy.for_cadence(cadence, self._settings, interval_s=interval_s)
        session = PollingSession(self._provider, policy, self._settings)
        view_id = uuid.uuid4().hex
        self._sessions[view_id] = session
        self._last_read[view_id] = self._clock()
        try:
            await session.start(game_id)
        except BaseException:
            self._forget(view_id)
            await session.stop()
            raise
        logger.info(
            "view_opened",
            view_id=view_id,
            game_id=game_id,
            cadence=cadence.value,
            active=self.active_count,
        )
        return view_id, session

    def get(self, view_id: str) -> Optional[PollingSession]:
        session = self._sessions.get(view_id)
        if session is not None:
            self._last_read[view_id] = self._clock()
        return session

    async def close(self, view_id: str) -> bool:
        """Stop and forget a session. Returns False for an unknown view id."""
        session = self._forget(view_id)
        if session is None:
            return False
        await session.stop()
        logger.info("view_closed", view_id=view_id, game_id=session.game_id, active=self.active_count)
        return True

    async def close_idle(self) -> int:
        """Close every view unread for longer than the idle TTL. Returns how many closed."""
        if self._idle_ttl_s <= 0:
            return 0
        cutoff = self._clock() - self._idle_ttl_s
        idle = [view_id for view_id, seen in self._last_read.items() if seen < cutoff]
        sessions = [(view_id, self._forget(view_id)) for view_id in idle]
        await asyncio.gather(*(s.stop() for _, s in sessions if s is not None), return_exceptions=True)
        for view_id, session in sessions:
            logger.info(
                "view_expired",
                view_id=view_id,
                game_id=session.game_id if session else None,
                idle_ttl_s=self._idle_ttl_s,
            )
        return len(idle)

    def start_reaper(self) -> None:
        """Run ``close_idle()`` every ``view_reap_interval_s`` until ``close_all()``."""
        if self._idle_ttl_s <= 0 or (self._reaper is not None and not self._reaper.done()):
            return
        self._reaper = asyncio.create_task(self._reap_loop(), name="view-reaper")

    async def close_all(self) -> None:
        if self._reaper is not None:
            self._reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper
            self._reaper = None
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_read.clear()
        await asyncio.gather(*(s.stop() for s in sessions), return_exceptions=True)
        if sessions:
            logger.info("views_closed", count=len(sessions))

    async def _reap_loop(self) -> None:
        interval_s = self._settings.view_reap_interval_s
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self.close_idle()
            except Exception as exc:
                logger.error("view_reaper_error", error=str(exc), exc_info=True)

    def _forget(self, view_id: str) -> Optional[PollingSession]:
        self._last_read.pop(view_id, None)
        return self._sessions.pop(view_id, None)


def _log_state(state: GameState) -> None:
    logger.info(
        "game_state",
        game_id=state.game_id,
        status=state.status.value,
        period=state.period,
        clock=state.clock,
        home=state.home_team.display_abbreviation if state.home_team else "TBD",
        away=state.away_team.display_abbreviation if state.away_team else "TBD",
        home_score=state.home_score,
        away_score=state.away_score,
        possession_team_id=state.possession_team_id,
        ball_position=state.ball_position,
    )


async def main() -> None:
    """Watcher entrypoint."""
    settings = get_settings()
    setup_logging("watcher")
    start_metrics_server()

    provider = build_provider(settings)
    await provider.start()
    # Watched games have no reader to keep them alive.
    manager = LiveSessionManager(provider, settings, idle_ttl_s=0)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    if not settings.watch_game_ids:
        logger.warning("watcher_no_games", hint="set GD_WATCH_GAME_IDS")

    logger.info("watcher_started", instance_id=settings.instance_id, games=settings.watch_game_ids)
    try:
        for game_id in settings.watch_game_ids:
            _, session = await manager.open(game_id, PollCadence.DETAIL)
            session.subscribe(_log_state)
            if session.state is not None:
                _log_state(session.state)
        await shutdown.wait()
    finally:
        await manager.close_all()
        await provider.close()
        logger.info("watcher_stopped")


if __name__ == "__main__":
    asyncio.run(main())
