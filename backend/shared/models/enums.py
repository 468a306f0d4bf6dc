"""Domain enumerations for the Gameday Live platform."""
from __future__ import annotations

from enum import Enum


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: object) -> "GameStatus":
        """Map provider status strings ("in progress", "IN_PROGRESS", "final") to a member."""
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower().replace(" ", "_").replace("-", "_")
        if text in ("final", "post", "completed", "complete"):
            return cls.COMPLETED
        if text in ("in", "live", "in_progress", "inprogress"):
            return cls.IN_PROGRESS
        if text in ("pre", "scheduled", "not_started"):
            return cls.SCHEDULED
        return cls.UNKNOWN


class HomeAway(str, Enum):
    HOME = "home"
    AWAY = "away"


class PollCadence(str, Enum):
    """Refresh policy chosen by the consumer of a polling session."""
    LIST = "list"
    DETAIL = "detail"
    CUSTOM = "custom"


class ProviderName(str, Enum):
    CFBD = "cfbd"
