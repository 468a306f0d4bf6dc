"""
Tests for the polling session lifecycle: seeding, ticking, skip-if-busy,
cancellation and the play-by-play retry path.

Run: pytest backend/tests/test_session.py -v
"""
from __future__ import annotations

import asyncio

import pytest

from shared.config import Settings
from shared.errors import DecodeError, NetworkError
from shared.models.domain import GameState
from shared.models.enums import GameStatus, HomeAway, PollCadence
from scheduler.engine.polling import PollingPolicy
from scheduler.session import PollingSession, SessionNotStarted

from conftest import GAME_ID, HOME, FakeProvider, make_metadata, make_snapshot, wait_until


# ── Start / seed ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_start_seeds_state_from_static_info(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(home_points=3, away_points=0))
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    state = session.state
    await session.stop()

    assert state is not None
    assert state.home_team is not None and state.home_team.abbreviation == "UGA"
    assert state.venue == "Sanford Stadium"
    assert state.period == 1
    assert state.home_score == 3
    assert state.has_live_data is False


@pytest.mark.asyncio
async def test_static_info_failure_seeds_minimal_state(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=None)
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    assert session.is_running
    state = session.state
    await session.stop()

    assert state is not None
    assert state.game_id == GAME_ID
    assert state.home_team is None
    assert state.home_score == 0 and state.away_score == 0


@pytest.mark.asyncio
async def test_start_is_idempotent_for_same_game(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata())
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    await session.start(GAME_ID)
    await session.stop()

    assert provider.static_calls == 1


@pytest.mark.asyncio
async def test_start_with_other_game_restarts(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata())
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    await session.start(GAME_ID + 1)
    try:
        assert session.game_id == GAME_ID + 1
        assert session.state is not None and session.state.game_id == GAME_ID + 1
        assert provider.static_calls == 2
    finally:
        await session.stop()


# ── Polling ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_ticker_merges_live_snapshot(settings: Settings, fast_policy: PollingPolicy) -> None:
    provider = FakeProvider(
        metadata=make_metadata(),
        responses=[make_snapshot(home_points=14, away_points=10, period=3)],
    )
    session = PollingSession(provider, fast_policy, settings)

    await session.start(GAME_ID)
    try:
        await wait_until(lambda: session.state is not None and session.state.snapshot_count == 1)
    finally:
        await session.stop()

    state = session.state
    assert state is not None
    assert state.status == GameStatus.IN_PROGRESS
    assert state.period == 3
    assert state.home_score == 14 and state.away_score == 10
    assert state.home_team == make_metadata().home_team
    assert session.last_snapshot is not None


@pytest.mark.asyncio
async def test_failed_polls_leave_state_unchanged(settings: Settings, fast_policy: PollingPolicy) -> None:
    provider = FakeProvider(
        metadata=make_metadata(),
        responses=[
            make_snapshot(home_points=7),
            NetworkError("boom", provider="fake", status_code=500),
            DecodeError("bad body", provider="fake"),
            RuntimeError("unexpected"),
        ],
    )
    session = PollingSession(provider, fast_policy, settings)

    await session.start(GAME_ID)
    try:
        await wait_until(lambda: session.state is not None and session.state.snapshot_count == 1)
        after_first = session.state
        await wait_until(lambda: provider.live_calls >= 5)
        assert session.is_running
        assert session.state == after_first
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_poll_skipped_while_request_in_flight(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(), responses=[make_snapshot()])
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    try:
        await wait_until(lambda: provider.live_calls == 1)
        assert await session.poll() is False
        assert provider.live_calls == 1

        provider.gate.set()
        await wait_until(lambda: session.state is not None and session.state.snapshot_count == 1)
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_poll_timeout_is_a_failed_tick(settings: Settings) -> None:
    policy = PollingPolicy(cadence=PollCadence.CUSTOM, interval_s=0.2, request_timeout_s=0.05)
    provider = FakeProvider(metadata=make_metadata(), responses=[make_snapshot()])
    provider.gate = asyncio.Event()
    session = PollingSession(provider, policy, settings)

    await session.start(GAME_ID)
    try:
        await wait_until(lambda: provider.live_calls == 1)
        await asyncio.sleep(policy.request_timeout_s + 0.05)
        assert session.state is not None and session.state.snapshot_count == 0
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_snapshot_for_other_game_is_a_failed_poll(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(home_points=3))
    session = PollingSession(provider, slow_policy, settings)
    await session.start(GAME_ID)
    await session.stop()
    provider.responses = [make_snapshot(GAME_ID + 1, home_points=42)]

    assert await session.poll() is False

    assert session.state is not None
    assert session.state.snapshot_count == 0
    assert session.state.home_points == 3
    assert session.last_snapshot is None
    assert not session.is_fetching


@pytest.mark.asyncio
async def test_possession_resolves_without_static_info(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=None, responses=[make_snapshot(possession="XYZ")])
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    try:
        await wait_until(lambda: session.state is not None and session.state.snapshot_count == 1)
        assert session.state is not None
        assert session.state.home_team is None
        assert session.state.possession_team_id == HOME.id
    finally:
        await session.stop()


# ── Stop ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stop_cancels_in_flight_request(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(), responses=[make_snapshot()])
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    await wait_until(lambda: provider.live_calls == 1)
    await session.stop()
    provider.gate.set()
    await asyncio.sleep(0.02)

    assert not session.is_running
    assert session.state is not None and session.state.snapshot_count == 0


@pytest.mark.asyncio
async def test_late_result_after_stop_is_discarded(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(), responses=[make_snapshot()])
    session = PollingSession(provider, slow_policy, settings)
    await session.start(GAME_ID)
    await session.stop()

    provider.gate = asyncio.Event()
    pending = asyncio.create_task(session.poll())
    await wait_until(lambda: provider.live_calls == 1)
    await session.stop()
    provider.gate.set()

    assert await pending is False
    assert session.state is not None and session.state.snapshot_count == 0


@pytest.mark.asyncio
async def test_stop_is_repeatable(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata())
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.stop()
    await session.start(GAME_ID)
    await session.stop()
    await session.stop()

    assert not session.is_running


# ── Listeners ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_listeners_receive_copies(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata())
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)
    received: list[GameState] = []

    def broken(_: GameState) -> None:
        raise ValueError("listener bug")

    session.subscribe(broken)
    unsubscribe = session.subscribe(received.append)
    await session.start(GAME_ID)
    await session.stop()

    assert len(received) == 1
    received[0].home_points = 99
    assert session.state is not None and session.state.home_points == 0

    unsubscribe()
    unsubscribe()


# ── Play-by-play retry path ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_load_play_by_play_succeeds_on_third_attempt(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata())
    session = PollingSession(provider, slow_policy, settings)
    await session.start(GAME_ID)
    await session.stop()
    provider.live_calls = 0
    provider.responses = [
        NetworkError("down", provider="fake"),
        NetworkError("still down", provider="fake"),
        make_snapshot(home_points=21),
    ]

    snapshot = await session.load_play_by_play()

    assert provider.live_calls == 3
    assert len(snapshot.drives) == 1
    assert session.state is not None and session.state.home_score == 21


@pytest.mark.asyncio
async def test_load_play_by_play_raises_after_budget(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(), fallback=DecodeError("garbage", provider="fake"))
    session = PollingSession(provider, slow_policy, settings)
    await session.start(GAME_ID)
    await session.stop()
    provider.live_calls = 0

    with pytest.raises(DecodeError):
        await session.load_play_by_play()

    assert provider.live_calls == settings.play_by_play_retry_attempts == 3
    assert session.state is not None and session.state.snapshot_count == 0


@pytest.mark.asyncio
async def test_play_by_play_waits_for_in_flight_poll(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(
        metadata=make_metadata(),
        responses=[make_snapshot(home_points=0), make_snapshot(home_points=10)],
    )
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)

    await session.start(GAME_ID)
    try:
        await wait_until(lambda: provider.live_calls == 1)
        loading = asyncio.create_task(session.load_play_by_play())
        await asyncio.sleep(0.02)
        assert provider.live_calls == 1

        provider.gate.set()
        snapshot = await loading

        assert provider.live_calls == 2
        assert provider.max_in_flight == 1
        home = snapshot.team_for(HomeAway.HOME)
        assert home is not None and home.points == 10
        assert session.state is not None
        assert session.state.home_points == 10
        assert session.state.snapshot_count == 2
    finally:
        await session.stop()


@pytest.mark.asyncio
async def test_load_play_by_play_rejects_other_game(settings: Settings, slow_policy: PollingPolicy) -> None:
    provider = FakeProvider(metadata=make_metadata(), fallback=make_snapshot(GAME_ID + 1))
    session = PollingSession(provider, slow_policy, settings)
    await session.start(GAME_ID)
    await session.stop()
    provider.live_calls = 0

    with pytest.raises(DecodeError):
        await session.load_play_by_play()

    assert provider.live_calls == settings.play_by_play_retry_attempts
    assert session.state is not None and session.state.snapshot_count == 0


@pytest.mark.asyncio
async def test_load_play_by_play_times_out_each_attempt(slow_policy: PollingPolicy) -> None:
    settings = Settings(
        provider_request_timeout_s=0.05,
        play_by_play_retry_delay_s=0.0,
        static_cache_ttl_s=0.0,
        metrics_enabled=False,
    )
    provider = FakeProvider(metadata=make_metadata())
    provider.gate = asyncio.Event()
    session = PollingSession(provider, slow_policy, settings)
    await session.start(GAME_ID)
    await session.stop()
    provider.live_calls = 0

    with pytest.raises(NetworkError, match="timed out"):
        await asyncio.wait_for(session.load_play_by_play(), timeout=2.0)

    assert provider.live_calls == 3
    assert provider.in_flight == 0
    assert not session.is_fetching


@pytest.mark.asyncio
async def test_load_play_by_play_requires_start(settings: Settings, slow_policy: PollingPolicy) -> None:
    session = PollingSession(FakeProvider(), slow_policy, settings)
    with pytest.raises(SessionNotStarted):
        await session.load_play_by_play()
