"""
CollegeFootballData provider connector.
Fetches live play-by-play and schedule data and normalizes it to canonical
domain models.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from shared.errors import DecodeError, ProviderError
from shared.models.domain import GameMetadata, GameSnapshot, TeamRef
from shared.models.enums import GameStatus, ProviderName
from shared.utils.decoding import FlexibleInt, FlexibleStr
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider

logger = get_logger(__name__)


# ── Wire records (provider-specific, not shared) ────────────────────────
class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ScheduledGame(_Record):
    """A /games row. The upstream proxy sends snake_case, the public API camelCase."""
    id: int
    season: FlexibleInt = None
    week: FlexibleInt = None
    status: Optional[str] = None
    start_date: FlexibleStr = Field(default=None, validation_alias=AliasChoices("start_date", "startDate"))
    start_time_tbd: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("start_time_tbd", "startTimeTBD")
    )
    completed: Optional[bool] = None
    venue: Optional[str] = None
    home_id: int = Field(validation_alias=AliasChoices("home_id", "homeId"))
    home_team: str = Field(validation_alias=AliasChoices("home_team", "homeTeam"))
    home_points: FlexibleInt = Field(default=None, validation_alias=AliasChoices("home_points", "homePoints"))
    away_id: int = Field(validation_alias=AliasChoices("away_id", "awayId"))
    away_team: str = Field(validation_alias=AliasChoices("away_team", "awayTeam"))
    away_points: FlexibleInt = Field(default=None, validation_alias=AliasChoices("away_points", "awayPoints"))


class GameMediaRecord(_Record):
    id: int
    start_time: FlexibleStr = Field(default=None, validation_alias=AliasChoices("startTime", "start_time"))
    is_start_time_tbd: bool = Field(
        default=False, validation_alias=AliasChoices("isStartTimeTBD", "is_start_time_tbd")
    )
    media_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("mediaType", "media_type"))
    outlet: Optional[str] = None


class TeamRecord(_Record):
    id: int
    school: str
    mascot: Optional[str] = None
    conference: Optional[str] = None
    abbreviation: Optional[str] = None
    logos: Optional[list[str]] = None

    def to_ref(self) -> TeamRef:
        logo = self.logos[0] if self.logos else None
        return TeamRef(
            id=self.id,
            school=self.school,
            abbreviation=self.abbreviation,
            mascot=self.mascot,
            conference=self.conference,
            logo_url=_secure_url(logo),
        )


# ── Parsing helpers ─────────────────────────────────────────────────────
def _secure_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return url.replace("http://", "https://", 1)


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; unparseable values mean "TBD", not an error."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_live_snapshot(data: Any, provider: str = ProviderName.CFBD.value) -> GameSnapshot:
    """Decode a /live/plays document into a GameSnapshot."""
    if not isinstance(data, dict):
        raise DecodeError(
            f"expected a JSON object for live plays, got {type(data).__name__}", provider=provider
        )
    try:
        return GameSnapshot.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(
            f"live plays schema mismatch: {exc.error_count()} error(s)", provider=provider
        ) from exc


def _parse_game_status(game: ScheduledGame) -> GameStatus:
    if game.status:
        return GameStatus.parse(game.status)
    if game.completed:
        return GameStatus.COMPLETED
    return GameStatus.SCHEDULED


def build_game_metadata(
    game: ScheduledGame,
    teams: dict[int, TeamRecord],
    media: Optional[GameMediaRecord],
) -> GameMetadata:
    """Combine a schedule row with its team and media records."""
    home = teams.get(game.home_id)
    away = teams.get(game.away_id)
    start_raw = media.start_time if media and media.start_time else game.start_date
    return GameMetadata(
        game_id=game.id,
        season=game.season,
        week=game.week,
        status=_parse_game_status(game),
        venue=game.venue,
        start_time=_parse_iso(start_raw),
        start_time_tbd=bool((media and media.is_start_time_tbd) or game.start_time_tbd),
        outlet=media.outlet if media else None,
        home_team=home.to_ref() if home else TeamRef(id=game.home_id, school=game.home_team),
        away_team=away.to_ref() if away else TeamRef(id=game.away_id, school=game.away_team),
        home_points=game.home_points,
        away_points=game.away_points,
    )


class CollegeFootballDataProvider(BaseProvider):
    """CollegeFootballData REST API connector."""

    LIVE_PLAYS_PATH = "/live/plays"
    GAMES_PATH = "/games"
    MEDIA_PATH = "/games/media"
    TEAMS_PATH = "/teams/fbs"

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        season: int = 2024,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        http_client = ProviderHTTPClient(
            provider_name=ProviderName.CFBD.value,
            base_url=base_url,
            api_token=api_token,
            timeout_s=timeout_s,
            transport=transport,
        )
        super().__init__(name=ProviderName.CFBD, http_client=http_client)
        self._season = season
        self._teams: Optional[dict[int, TeamRecord]] = None
        self._teams_lock = asyncio.Lock()

    async def _fetch_live_snapshot(self, game_id: int) -> GameSnapshot:
        data = await self._http.get_json(
            self.LIVE_PLAYS_PATH, params={"gameId": game_id}, endpoint="live_plays"
        )
        snapshot = parse_live_snapshot(data)
        if snapshot.game_id != game_id:
            raise DecodeError(
                f"live plays for game {snapshot.game_id} returned when {game_id} was requested",
                provider=self._name.value,
            )
        return snapshot

    async def _fetch_static_game_info(self, game_id: int) -> GameMetadata:
        data = await self._http.get_json(
            self.GAMES_PATH, params={"id": game_id, "year": self._season}, endpoint="games"
        )
        rows = data if isinstance(data, list) else [data]
        record = next(
            (r for r in rows if isinstance(r, dict) and str(r.get("id")) == str(game_id)), None
        )
        if record is None:
            raise DecodeError(f"game {game_id} not found in schedule", provider=self._name.value)
        try:
            game = ScheduledGame.model_validate(record)
        except ValidationError as exc:
            raise DecodeError(
                f"schedule row for game {game_id} is malformed", provider=self._name.value
            ) from exc

        teams = await self._known_teams()
        media = await self._media_for(game)
        return build_game_metadata(game, teams, media)

    # ── Best-effort lookups ─────────────────────────────────────────────

    async def _known_teams(self) -> dict[int, TeamRecord]:
        """FBS team list, loaded once per provider. Failures yield an empty map and retry later."""
        if self._teams is not None:
            return self._teams
        async with self._teams_lock:
            if self._teams is not None:
                return self._teams
            try:
                data = await self._http.get_json(
                    self.TEAMS_PATH, params={"year": self._season}, endpoint="teams"
                )
            except ProviderError as exc:
                logger.warning("team_list_unavailable", provider=self._name.value, error=str(exc))
                return {}
            teams: dict[int, TeamRecord] = {}
            for row in data if isinstance(data, list) else []:
                try:
                    team = TeamRecord.model_validate(row)
                except ValidationError:
                    logger.debug("team_row_skipped", row_id=row.get("id") if isinstance(row, dict) else None)
                    continue
                teams[team.id] = team
            self._teams = teams
            logger.info("team_list_loaded", provider=self._name.value, count=len(teams))
            return teams

    async def _media_for(self, game: ScheduledGame) -> Optional[GameMediaRecord]:
        params: dict[str, Any] = {"year": game.season or self._season}
        if game.week is not None:
            params["week"] = game.week
        try:
            data = await self._http.get_json(self.MEDIA_PATH, params=params, endpoint="media")
        except ProviderError as exc:
            logger.warning("game_media_unavailable", game_id=game.id, error=str(exc))
            return None
        for row in data if isinstance(data, list) else []:
            if isinstance(row, dict) and str(row.get("id")) == str(game.id):
                try:
                    return GameMediaRecord.model_validate(row)
                except ValidationError:
                    logger.debug("game_media_malformed", game_id=game.id)
                    return None
        return None
