"""Application lifespan management."""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

import httpx
from fastapi import FastAPI

from now_playing import __version__
from now_playing.config import Settings, get_settings
from now_playing.exceptions import ConfigurationException
from now_playing.logging_config import get_logger, log_with_context
from now_playing.middleware.logging_middleware import redact_sensitive_data
from now_playing.services import playback_service
from now_playing.services.poller import PlaybackPoller
from now_playing.state_managers import (
    AdminSessionManager,
    PlaybackStateManager,
    RefreshTokenStore,
    SpotifyAuthManager,
)
from now_playing.utils.banner import render_startup_banner

logger = get_logger(__name__)


async def log_request(request: httpx.Request) -> None:
    """Event hook to log outbound requests with redacted sensitive data."""
    log_with_context(
        logger,
        "debug",
        "HTTP Request",
        method=request.method,
        url=redact_sensitive_data(str(request.url)),
        event_type="http_request",
    )


async def log_response(response: httpx.Response) -> None:
    """Event hook to log outbound responses with redacted sensitive data."""
    log_with_context(
        logger,
        "debug",
        "HTTP Response",
        status_code=response.status_code,
        url=redact_sensitive_data(str(response.request.url)),
        event_type="http_response",
    )


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Pooled client shared by the poller and the admin routes."""
    event_hooks: dict[str, list[Callable[..., Any]]] = {
        "request": [log_request],
        "response": [log_response],
    }
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.http_timeout_seconds,
            connect=5.0,
            pool=5.0,
        ),
        limits=httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0,
        ),
        event_hooks=event_hooks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan - startup and shutdown events.

    Exceptions after yield are re-raised so cleanup still runs and the
    failure stays visible.
    """
    settings = get_settings()
    app.state.startup_time = time.time()

    log_with_context(
        logger,
        "info",
        "Starting Now Playing backend",
        version=__version__,
        event_type="app_startup",
    )

    try:
        registry = settings.device_registry
    except ValueError as e:
        raise ConfigurationException(str(e)) from e

    client = create_http_client(settings)
    app.state.http_client = client

    # Initialize state managers
    auth_manager = SpotifyAuthManager()
    token_store = RefreshTokenStore(settings.refresh_token_path)
    playback_state = PlaybackStateManager()
    admin_session = AdminSessionManager()
    managers = [auth_manager, token_store, playback_state, admin_session]
    for manager in managers:
        await manager.initialize()

    app.state.spotify_auth_manager = auth_manager
    app.state.token_store = token_store
    app.state.playback_state = playback_state
    app.state.admin_session = admin_session
    log_with_context(
        logger,
        "info",
        "State managers initialized",
        allowed_devices=len(registry),
        event_type="state_managers_ready",
    )

    poller = PlaybackPoller(
        refresh=partial(playback_service.refresh_playback, client, auth_manager, token_store, playback_state, settings),
        is_ready=token_store.has_token,
        base_seconds=settings.poll_base_seconds,
        jitter_seconds=settings.poll_jitter_seconds,
    )
    app.state.poller = poller
    poller.start()

    logger.info(
        "\n"
        + render_startup_banner(
            __version__,
            f"/admin/{settings.admin_path}/{settings.admin_update_path}",
        )
    )

    try:
        yield
    except Exception as e:
        log_with_context(
            logger,
            "error",
            "Application error during lifespan",
            error=str(e),
            error_type=type(e).__name__,
            event_type="app_error",
        )
        raise
    finally:
        log_with_context(
            logger,
            "info",
            "Shutting down Now Playing backend",
            event_type="app_shutdown",
        )

        await poller.stop()
        for manager in managers:
            await manager.cleanup()
        await client.aclose()
        log_with_context(
            logger,
            "info",
            "Poller, state managers and HTTP client cleaned up",
            event_type="app_cleanup",
        )
