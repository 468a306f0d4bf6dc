"""Shared fixtures: an in-memory provider and payload builders."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Union

import pytest

from shared.config import Settings
from shared.errors import NetworkError
from shared.models.domain import GameMetadata, GameSnapshot, TeamRef
from shared.models.enums import GameStatus, PollCadence
from scheduler.engine.polling import PollingPolicy

GAME_ID = 401520281
HOME = TeamRef(id=61, school="Georgia", abbreviation="UGA", mascot="Bulldogs", conference="SEC")
AWAY = TeamRef(id=333, school="Alabama", abbreviation="ALA", mascot="Crimson Tide", conference="SEC")


def live_payload(
    game_id: int = GAME_ID,
    *,
    period: Any = 2,
    clock: Any = "07:12",
    possession: Optional[str] = "UGA",
    down: Any = 3,
    distance: Any = 4,
    yards_to_goal: Any = 35,
    home_points: Any = 10,
    away_points: Any = 7,
    teams: bool = True,
) -> dict[str, Any]:
    """A /live/plays document in the provider's camelCase shape."""
    payload: dict[str, Any] = {
        "id": game_id,
        "status": "in progress",
        "period": period,
        "clock": clock,
        "possession": possession,
        "down": down,
        "distance": distance,
        "yardsToGoal": yards_to_goal,
        "teams": [],
        "drives": [
            {
                "id": "1",
                "offenseId": 61,
                "offense": "Georgia",
                "plays": [
                    {"id": "p1", "playText": "Rush for 4 yards", "yardsGained": 4},
                    {"id": "p2", "playText": "Pass complete for 12 yards", "yardsGained": "12"},
                ],
            }
        ],
    }
    if teams:
        payload["teams"] = [
            {
                "teamId": 61,
                "team": "Georgia",
                "homeAway": "home",
                "lineScores": [7, "3"],
                "points": home_points,
                "successRate": "0.45",
                "explosiveness": 1.2,
                "epaPerPlay": "",
            },
            {
                "teamId": 333,
                "team": "Alabama",
                "homeAway": "away",
                "lineScores": [0, 7],
                "points": away_points,
                "successRate": 0.38,
            },
        ]
    return payload


def make_snapshot(game_id: int = GAME_ID, **overrides: Any) -> GameSnapshot:
    return GameSnapshot.model_validate(live_payload(game_id, **overrides))


def make_metadata(game_id: int = GAME_ID, home_points: Optional[int] = None, away_points: Optional[int] = None) -> GameMetadata:
    return GameMetadata(
        game_id=game_id,
        season=2024,
        week=5,
        status=GameStatus.SCHEDULED,
        venue="Sanford Stadium",
        outlet="CBS",
        home_team=HOME,
        away_team=AWAY,
        home_points=home_points,
        away_points=away_points,
    )


Response = Union[GameSnapshot, Exception]


class FakeProvider:
    """
    In-memory DataProvider.

    Live responses are consumed in order; once exhausted, ``fallback`` is
    returned (or raised) for every further call. Setting ``gate`` blocks
    live fetches until the event is set; ``max_in_flight`` records the most
    live fetches ever outstanding at once.
    """

    def __init__(
        self,
        metadata: Optional[GameMetadata] = None,
        responses: Optional[list[Response]] = None,
        fallback: Optional[Response] = None,
    ) -> None:
        self.metadata = metadata
        self.responses: list[Response] = list(responses or [])
        self.fallback: Response = fallback or NetworkError("no live data", provider="fake")
        self.gate: Optional[asyncio.Event] = None
        self.live_calls = 0
        self.static_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.started = False

    async def fetch_static_game_info(self, game_id: int) -> GameMetadata:
        self.static_calls += 1
        if self.metadata is None:
            raise NetworkError("schedule unavailable", provider="fake", status_code=503)
        return self.metadata

    async def fetch_live_snapshot(self, game_id: int) -> GameSnapshot:
        self.live_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            item = self.responses.pop(0) if self.responses else self.fallback
        finally:
            self.in_flight -= 1
        if isinstance(item, Exception):
            raise item
        return item


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        play_by_play_retry_delay_s=0.0,
        static_cache_ttl_s=0.0,
        metrics_enabled=False,
        provider_api_token="test-token",
    )


@pytest.fixture
def fast_policy() -> PollingPolicy:
    return PollingPolicy(cadence=PollCadence.CUSTOM, interval_s=0.02, request_timeout_s=0.015)


@pytest.fixture
def slow_policy() -> PollingPolicy:
    """One immediate poll, then nothing for the rest of the test."""
    return PollingPolicy(cadence=PollCadence.CUSTOM, interval_s=60.0, request_timeout_s=30.0)
