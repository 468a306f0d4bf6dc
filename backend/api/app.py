"""
FastAPI application factory for the Gameday Live API service.

Creates the app with:
- Game view routes (open, read, play-by-play, close)
- Middleware stack
- Health and status endpoints
- Lifespan management (provider and session manager startup/shutdown)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import Depends, FastAPI

from shared.config import Settings, get_settings
from shared.models.enums import PollCadence
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_app_settings, get_session_manager, init_dependencies
from api.middleware import setup_middleware
from api.routes.views import router as views_router
from ingest.providers.registry import build_provider
from scheduler.service import LiveSessionManager

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without a live provider."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Starts the data provider and session manager (with its idle-view
    reaper), and stops every open session before the provider's HTTP client is closed.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    provider = build_provider(settings)
    await provider.start()
    manager = LiveSessionManager(provider, settings)
    manager.start_reaper()
    init_dependencies(manager)

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        view_idle_ttl_s=settings.view_idle_ttl_s,
    )

    try:
        yield
    finally:
        await manager.close_all()
        init_dependencies(None)
        await provider.close()
        logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without a provider."""
    settings = settings or get_settings()
    app = FastAPI(
        debug=settings.debug,
        title="Gameday Live API",
        description="Live college football game state",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(views_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/v1/status", tags=["system"])
    async def system_status(
        manager: LiveSessionManager = Depends(get_session_manager),
        settings: Settings = Depends(get_app_settings),
    ) -> dict[str, Any]:
        """Active session count and the configured polling cadences."""
        return {
            "status": "ok",
            "active_sessions": manager.active_count,
            "cadences": {
                PollCadence.LIST.value: settings.list_poll_interval_s,
                PollCadence.DETAIL.value: settings.detail_poll_interval_s,
            },
            "min_poll_interval_s": settings.min_poll_interval_s,
            "view_idle_ttl_s": settings.view_idle_ttl_s,
            "season": settings.season_year,
        }

    return app


app = create_app()
