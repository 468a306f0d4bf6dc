"""
Game view REST endpoints.

POST   /v1/views                  Open a polling session for a game.
GET    /v1/views/{view_id}        Current reconciled state.
GET    /v1/views/{view_id}/plays  Play-by-play drives with retry; static fallback on failure.
DELETE /v1/views/{view_id}        Stop polling and forget the view.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, model_validator

from shared.errors import ProviderError
from shared.models.domain import Drive, GameState
from shared.models.enums import PollCadence
from shared.utils.logging import get_logger

from api.dependencies import get_session_manager
from scheduler.service import LiveSessionManager
from scheduler.session import PollingSession

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/views", tags=["views"])


class OpenViewRequest(BaseModel):
    game_id: int = Field(gt=0)
    cadence: PollCadence = PollCadence.DETAIL
    interval_s: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _custom_needs_interval(self) -> "OpenViewRequest":
        if self.cadence == PollCadence.CUSTOM and self.interval_s is None:
            raise ValueError("interval_s is required for the custom cadence")
        return self


class ViewResponse(BaseModel):
    view_id: str
    game_id: int
    cadence: PollCadence
    interval_s: float
    running: bool
    state: Optional[GameState]


class PlayByPlayResponse(BaseModel):
    view_id: str
    live_available: bool
    drives: list[Drive]
    state: Optional[GameState]


def _view(view_id: str, session: PollingSession) -> ViewResponse:
    return ViewResponse(
        view_id=view_id,
        game_id=session.game_id or 0,
        cadence=session.policy.cadence,
        interval_s=session.policy.interval_s,
        running=session.is_running,
        state=session.state,
    )


def _require(manager: LiveSessionManager, view_id: str) -> PollingSession:
    session = manager.get(view_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"View {view_id} not found")
    return session


@router.post("", status_code=201)
async def open_view(
    body: OpenViewRequest,
    manager: LiveSessionManager = Depends(get_session_manager),
) -> ViewResponse:
    view_id, session = await manager.open(body.game_id, body.cadence, interval_s=body.interval_s)
    return _view(view_id, session)


@router.get("/{view_id}")
async def get_view(
    view_id: str,
    manager: LiveSessionManager = Depends(get_session_manager),
) -> ViewResponse:
    return _view(view_id, _require(manager, view_id))


@router.get("/{view_id}/plays")
async def get_play_by_play(
    view_id: str,
    manager: LiveSessionManager = Depends(get_session_manager),
) -> PlayByPlayResponse:
    """
    Load play-by-play drives for the view's game.

    When every retry fails the response still succeeds, with
    ``live_available`` false and the static game state so clients can render
    the schedule view.
    """
    session = _require(manager, view_id)
    try:
        snapshot = await session.load_play_by_play()
    except ProviderError as exc:
        logger.warning(
            "play_by_play_fallback",
            view_id=view_id,
            game_id=session.game_id,
            error=str(exc),
        )
        return PlayByPlayResponse(view_id=view_id, live_available=False, drives=[], state=session.state)

    return PlayByPlayResponse(
        view_id=view_id,
        live_available=True,
        drives=snapshot.drives,
        state=session.state,
    )


@router.delete("/{view_id}", status_code=204)
async def close_view(
    view_id: str,
    manager: LiveSessionManager = Depends(get_session_manager),
) -> Response:
    if not await manager.close(view_id):
        raise HTTPException(status_code=404, detail=f"View {view_id} not found")
    return Response(status_code=204)

