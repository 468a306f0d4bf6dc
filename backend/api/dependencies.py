"""
Dependency injection for the API service.
Provides the session manager and settings to route handlers.
"""
from __future__ import annotations

from shared.config import Settings, get_settings

from scheduler.service import LiveSessionManager

# Module-level singleton, initialized at startup
_manager: LiveSessionManager | None = None


def init_dependencies(manager: LiveSessionManager | None) -> None:
    """Initialize module-level singletons. Called once at startup and cleared at shutdown."""
    global _manager
    _manager = manager


def get_session_manager() -> LiveSessionManager:
    """FastAPI dependency: returns the shared LiveSessionManager."""
    if _manager is None:
        raise RuntimeError("LiveSessionManager not initialized; call init_dependencies first")
    return _manager


def get_app_settings() -> Settings:
    """FastAPI dependency: returns the cached Settings."""
    return get_settings()
