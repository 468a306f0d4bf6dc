"""
Metrics collection for Gameday Live.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "gd_provider_requests_total",
    "Total provider HTTP requests",
    ["provider", "endpoint", "status"],
)
PROVIDER_FETCHES = Counter(
    "gd_provider_fetches_total",
    "Provider fetch operations by outcome",
    ["provider", "operation", "outcome"],
)
SESSION_POLLS = Counter(
    "gd_session_polls_total",
    "Live poll ticks by outcome (applied, failed, skipped, discarded)",
    ["cadence", "outcome"],
)
RETRY_ATTEMPTS = Counter(
    "gd_retry_attempts_total",
    "Attempts made by bounded-retry operations",
    ["operation", "outcome"],
)
STATE_PUBLISHES = Counter(
    "gd_state_publishes_total",
    "Game state copies published to listeners",
    ["cadence"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "gd_provider_latency_seconds",
    "Provider request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
ACTIVE_SESSIONS = Gauge(
    "gd_active_sessions",
    "Polling sessions currently running",
    ["cadence"],
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
