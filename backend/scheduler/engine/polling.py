"""
Polling cadence policy for live game sessions.

Scoreboard lists and single-game views refresh at very different rates.
Both cadences are configuration; a view may also request its own interval.
The per-request timeout is always shorter than the interval so a hung
request cannot hold up the following tick.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.config import Settings, get_settings
from shared.models.enums import PollCadence
from shared.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PollingPolicy:
    cadence: PollCadence
    interval_s: float
    request_timeout_s: float

    def __post_init__(self) -> None:
        if self.interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if not 0 < self.request_timeout_s < self.interval_s:
            raise ValueError("request_timeout_s must be positive and shorter than interval_s")

    @classmethod
    def for_cadence(
        cls,
        cadence: PollCadence,
        settings: Settings | None = None,
        interval_s: Optional[float] = None,
    ) -> "PollingPolicy":
        """
        Resolve the interval and request timeout for a consumer.

        Args:
            cadence: LIST or DETAIL pick the configured interval; CUSTOM requires interval_s.
            settings: Settings to read intervals from.
            interval_s: Explicit interval; overrides the cadence's configured value.
        """
        settings = settings or get_settings()
        if interval_s is None:
            if cadence == PollCadence.LIST:
                interval_s = settings.list_poll_interval_s
            elif cadence == PollCadence.DETAIL:
                interval_s = settings.detail_poll_interval_s
            else:
                raise ValueError("custom cadence requires an explicit interval_s")
        interval_s = max(interval_s, settings.min_poll_interval_s)

        request_timeout_s = min(
            settings.provider_request_timeout_s,
            interval_s * settings.poll_timeout_ratio,
        )
        policy = cls(cadence=cadence, interval_s=interval_s, request_timeout_s=request_timeout_s)
        logger.debug(
            "polling_policy_resolved",
            cadence=cadence.value,
            interval_s=interval_s,
            request_timeout_s=round(request_timeout_s, 3),
        )
        return policy
