"""
Async HTTP client wrapper for provider requests.
Handles bearer auth, timeout management, error mapping and metrics collection.
Retries are a caller policy and deliberately not done here.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.errors import DecodeError, NetworkError
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for sports data provider APIs.
    Every failure surfaces as NetworkError or DecodeError.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        api_token: str = "",
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._transport = transport
        self._default_headers = {"Accept": "application/json", **(headers or {})}
        if api_token:
            self._default_headers["Authorization"] = f"Bearer {api_token}"
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        endpoint: str = "unknown",
    ) -> Any:
        """
        Perform a GET request and return the decoded JSON body.

        Args:
            path: API path relative to base_url.
            params: Query parameters.
            endpoint: Endpoint label for metrics.

        Raises:
            NetworkError: On transport failure, timeout or non-2xx status.
            DecodeError: If the body is not valid JSON.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "unknown"
        try:
            resp = await self._client.get(path, params=params)
            status = str(resp.status_code)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            status = "timeout"
            logger.warning("provider_timeout", provider=self._provider, path=path)
            raise NetworkError(
                f"{self._provider} timed out on {path}", provider=self._provider
            ) from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "provider_http_error",
                provider=self._provider,
                path=path,
                status=exc.response.status_code,
            )
            raise NetworkError(
                f"{self._provider} returned {exc.response.status_code} for {path}",
                provider=self._provider,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            status = "error"
            logger.warning(
                "provider_request_error",
                provider=self._provider,
                path=path,
                error=str(exc),
            )
            raise NetworkError(
                f"{self._provider} request to {path} failed: {exc}", provider=self._provider
            ) from exc
        finally:
            elapsed_s = time.perf_counter() - start_time
            PROVIDER_REQUESTS.labels(
                provider=self._provider, endpoint=endpoint, status=status
            ).inc()
            PROVIDER_LATENCY.labels(provider=self._provider).observe(elapsed_s)

        try:
            data = resp.json()
        except ValueError as exc:
            raise DecodeError(
                f"{self._provider} sent a non-JSON body for {path}", provider=self._provider
            ) from exc

        logger.debug(
            "provider_request_success",
            provider=self._provider,
            path=path,
            status=resp.status_code,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return data
