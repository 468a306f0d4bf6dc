"""Error taxonomy for data provider calls."""
from __future__ import annotations

from typing import Optional


class ProviderError(Exception):
    """Base class for every failure a data provider may raise."""

    def __init__(self, message: str, *, provider: str = "unknown") -> None:
        self.provider = provider
        super().__init__(message)


class NetworkError(ProviderError):
    """Transport failure, timeout, or non-2xx response."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        status_code: Optional[int] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, provider=provider)


class DecodeError(ProviderError):
    """Response body did not match the expected schema."""
