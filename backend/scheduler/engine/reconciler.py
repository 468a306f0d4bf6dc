"""
Live state reconciliation: seeding a GameState from static schedule data
and merging provider snapshots into it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from shared.models.domain import GameMetadata, GameSnapshot, GameState, TeamLiveScore, TeamRef
from shared.models.enums import HomeAway


def seed_state(game_id: int, metadata: Optional[GameMetadata] = None) -> GameState:
    """
    Build the pre-snapshot state: scheduled score (else 0), period 1.

    Without metadata every static field stays empty and consumers render "TBD".
    """
    if metadata is None:
        return GameState(game_id=game_id)

    home_points = metadata.home_points or 0
    away_points = metadata.away_points or 0
    return GameState(
        game_id=game_id,
        home_team=metadata.home_team,
        away_team=metadata.away_team,
        week=metadata.week,
        venue=metadata.venue,
        start_time=metadata.start_time,
        start_time_tbd=metadata.start_time_tbd,
        outlet=metadata.outlet,
        scheduled_home_points=home_points,
        scheduled_away_points=away_points,
        status=metadata.status,
        home_points=home_points,
        away_points=away_points,
    )


def _live_team_ref(score: Optional[TeamLiveScore]) -> Optional[TeamRef]:
    if score is None:
        return None
    return TeamRef(id=score.team_id, school=score.team or str(score.team_id))


def _matches(label: str, team: TeamRef) -> bool:
    candidates = (team.abbreviation, team.school)
    return any(c and c.strip().casefold() == label for c in candidates)


def resolve_possession_team_id(
    possession: Optional[str],
    home_team: Optional[TeamRef],
    away_team: Optional[TeamRef],
) -> Optional[int]:
    """
    Map the provider's possession label to a team id.

    Labels are matched against each team's abbreviation and school name.
    Anything unmatched, including a missing label, falls back to the home team.
    """
    if home_team is None:
        return None
    label = (possession or "").strip().casefold()
    if label:
        if _matches(label, home_team):
            return home_team.id
        if away_team is not None and _matches(label, away_team):
            return away_team.id
    return home_team.id


def merge_snapshot(
    state: GameState,
    snapshot: GameSnapshot,
    now: Optional[datetime] = None,
) -> GameState:
    """
    Apply a snapshot to ``state`` in place and return it.

    Every live field is replaced by the snapshot's value; static fields are
    left untouched. Possession resolves against the scheduled teams, or the
    snapshot's home and away entries when no schedule data was loaded.
    """
    if snapshot.game_id != state.game_id:
        raise ValueError(
            f"snapshot for game {snapshot.game_id} cannot be merged into game {state.game_id}"
        )

    home = snapshot.team_for(HomeAway.HOME)
    away = snapshot.team_for(HomeAway.AWAY)

    state.status = snapshot.status
    state.period = snapshot.period if snapshot.period is not None else 1
    state.clock = snapshot.clock
    state.possession = snapshot.possession
    state.down = snapshot.down
    state.distance = snapshot.distance
    state.yards_to_goal = snapshot.yards_to_goal
    state.home_points = home.points if home else 0
    state.away_points = away.points if away else 0
    state.home_line_scores = list(home.line_scores) if home else []
    state.away_line_scores = list(away.line_scores) if away else []
    # Without schedule data the snapshot's own team entries stand in.
    state.possession_team_id = resolve_possession_team_id(
        snapshot.possession,
        state.home_team or _live_team_ref(home),
        state.away_team or _live_team_ref(away),
    )
    state.snapshot_count += 1
    state.updated_at = now or datetime.now(timezone.utc)
    return state
