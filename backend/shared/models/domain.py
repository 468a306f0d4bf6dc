"""
Pydantic v2 domain models shared across all Gameday Live services.
Wire models (snapshots) mirror the provider's camelCase JSON; GameState is
the reconciled, internal representation handed to consumers.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from shared.models.enums import GameStatus, HomeAway
from shared.utils.decoding import FlexibleFloat, FlexibleInt, FlexibleStr, coerce_int


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class WireModel(BaseModel):
    """Immutable record decoded from a provider payload."""
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
        extra="ignore",
    )


# ── Field position ──────────────────────────────────────────────────────
def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def ball_position(yards_to_goal: Optional[int]) -> Optional[float]:
    """Normalized ball spot: 0.0 is the offense's own goal line, 1.0 the opponent's."""
    if yards_to_goal is None:
        return None
    return _clamp_unit(1.0 - yards_to_goal / 100.0)


def first_down_position(yards_to_goal: Optional[int], distance: Optional[int]) -> Optional[float]:
    """Normalized line-to-gain marker, clamped so goal-to-go never overshoots the goal line."""
    if yards_to_goal is None or distance is None:
        return None
    return _clamp_unit(1.0 - (yards_to_goal - distance) / 100.0)


# ── Reference entities ──────────────────────────────────────────────────
class TeamRef(DomainModel):
    id: int
    school: str
    abbreviation: Optional[str] = None
    mascot: Optional[str] = None
    conference: Optional[str] = None
    logo_url: Optional[str] = None

    @property
    def display_abbreviation(self) -> str:
        return self.abbreviation or self.school


class GameMetadata(DomainModel):
    """Static schedule data fetched once per session; never polled."""
    game_id: int
    season: Optional[int] = None
    week: Optional[int] = None
    status: GameStatus = GameStatus.SCHEDULED
    venue: Optional[str] = None
    start_time: Optional[datetime] = None
    start_time_tbd: bool = False
    outlet: Optional[str] = None
    home_team: TeamRef
    away_team: TeamRef
    home_points: Optional[int] = None
    away_points: Optional[int] = None

    @property
    def teams(self) -> tuple[TeamRef, TeamRef]:
        return (self.home_team, self.away_team)


# ── Live play-by-play snapshot ──────────────────────────────────────────
class TeamLiveScore(WireModel):
    team_id: int
    team: str = ""
    home_away: HomeAway
    line_scores: list[int] = Field(default_factory=list)
    points: int = 0
    drives: FlexibleInt = None
    scoring_opportunities: FlexibleInt = None
    points_per_opportunity: FlexibleFloat = None
    plays: FlexibleInt = None
    line_yards: FlexibleFloat = None
    line_yards_per_rush: FlexibleFloat = None
    second_level_yards: FlexibleFloat = None
    second_level_yards_per_rush: FlexibleFloat = None
    open_field_yards: FlexibleFloat = None
    open_field_yards_per_rush: FlexibleFloat = None
    epa_per_play: FlexibleFloat = None
    total_epa: FlexibleFloat = None
    passing_epa: FlexibleFloat = None
    epa_per_pass: FlexibleFloat = None
    rushing_epa: FlexibleFloat = None
    epa_per_rush: FlexibleFloat = None
    success_rate: FlexibleFloat = None
    standard_down_success_rate: FlexibleFloat = None
    passing_down_success_rate: FlexibleFloat = None
    explosiveness: FlexibleFloat = None

    @field_validator("line_scores", mode="before")
    @classmethod
    def _line_scores(cls, value: Any) -> list[int]:
        if not value:
            return []
        return [coerce_int(v) or 0 for v in value]

    @field_validator("points", mode="before")
    @classmethod
    def _points(cls, value: Any) -> int:
        return coerce_int(value) or 0


class Play(WireModel):
    id: FlexibleStr = None
    home_score: FlexibleInt = None
    away_score: FlexibleInt = None
    period: FlexibleInt = None
    clock: FlexibleStr = None
    wall_clock: FlexibleStr = None
    team_id: FlexibleInt = None
    team: Optional[str] = None
    down: FlexibleInt = None
    distance: FlexibleInt = None
    yards_to_goal: FlexibleInt = None
    yards_gained: FlexibleInt = None
    play_type_id: FlexibleInt = None
    play_type: Optional[str] = None
    epa: FlexibleFloat = None
    garbage_time: bool = False
    success: bool = False
    rush_pash: Optional[str] = None
    down_type: Optional[str] = None
    play_text: Optional[str] = None


class Drive(WireModel):
    id: FlexibleStr = None
    offense_id: FlexibleInt = None
    offense: Optional[str] = None
    defense_id: FlexibleInt = None
    defense: Optional[str] = None
    play_count: FlexibleInt = None
    yards: FlexibleInt = None
    start_period: FlexibleInt = None
    start_clock: FlexibleStr = None
    start_yards_to_goal: FlexibleInt = None
    end_period: FlexibleInt = None
    end_clock: FlexibleStr = None
    end_yards_to_goal: FlexibleInt = None
    duration: FlexibleStr = None
    scoring_opportunity: bool = False
    result: Optional[str] = None
    points_gained: FlexibleInt = None
    plays: list[Play] = Field(default_factory=list)


class GameSnapshot(WireModel):
    """One poll result: the game as the provider saw it at a point in time."""
    game_id: int = Field(alias="id")
    status: GameStatus = GameStatus.UNKNOWN
    period: FlexibleInt = None
    clock: FlexibleStr = None
    possession: Optional[str] = None
    down: FlexibleInt = None
    distance: FlexibleInt = None
    yards_to_goal: FlexibleInt = None
    teams: list[TeamLiveScore] = Field(default_factory=list)
    drives: list[Drive] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> GameStatus:
        return GameStatus.parse(value)

    @field_validator("teams", "drives", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def team_for(self, side: HomeAway) -> Optional[TeamLiveScore]:
        return next((t for t in self.teams if t.home_away == side), None)

    @property
    def latest_play(self) -> Optional[Play]:
        for drive in reversed(self.drives):
            if drive.plays:
                return drive.plays[-1]
        return None


# ── Reconciled game state ───────────────────────────────────────────────
class GameState(DomainModel):
    """
    Best-known view of one game.

    Static fields come from GameMetadata and are never touched by a merge;
    live fields are replaced wholesale by each successful snapshot.
    """
    game_id: int

    # static
    home_team: Optional[TeamRef] = None
    away_team: Optional[TeamRef] = None
    week: Optional[int] = None
    venue: Optional[str] = None
    start_time: Optional[datetime] = None
    start_time_tbd: bool = False
    outlet: Optional[str] = None
    scheduled_home_points: int = 0
    scheduled_away_points: int = 0

    # live
    status: GameStatus = GameStatus.SCHEDULED
    period: int = 1
    clock: Optional[str] = None
    possession: Optional[str] = None
    down: Optional[int] = None
    distance: Optional[int] = None
    yards_to_goal: Optional[int] = None
    home_points: int = 0
    away_points: int = 0
    home_line_scores: list[int] = Field(default_factory=list)
    away_line_scores: list[int] = Field(default_factory=list)
    possession_team_id: Optional[int] = None

    snapshot_count: int = 0
    updated_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_live_data(self) -> bool:
        return self.snapshot_count > 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def home_score(self) -> int:
        return self.home_points if self.has_live_data else self.scheduled_home_points

    @computed_field  # type: ignore[prop-decorator]
    @property
    def away_score(self) -> int:
        return self.away_points if self.has_live_data else self.scheduled_away_points

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ball_position(self) -> Optional[float]:
        return ball_position(self.yards_to_goal)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def first_down_position(self) -> Optional[float]:
        return first_down_position(self.yards_to_goal, self.distance)

    def score_for(self, team_id: int) -> Optional[int]:
        if self.home_team and self.home_team.id == team_id:
            return self.home_score
        if self.away_team and self.away_team.id == team_id:
            return self.away_score
        return None
