"""FastAPI dependencies for dependency injection."""

import httpx
from fastapi import Request

from now_playing.services.poller import PlaybackPoller
from now_playing.state_managers import (
    AdminSessionManager,
    PlaybackStateManager,
    RefreshTokenStore,
    SpotifyAuthManager,
)


def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized. Is the application lifespan running?")
    return value


async def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Get the shared HTTP client from app state.

    Raises:
        RuntimeError: If HTTP client is not initialized.
    """
    return _from_state(request, "http_client")


async def get_spotify_auth_manager(request: Request) -> SpotifyAuthManager:
    """Get the access token cache from app state."""
    return _from_state(request, "spotify_auth_manager")


async def get_token_store(request: Request) -> RefreshTokenStore:
    """Get the refresh token store from app state."""
    return _from_state(request, "token_store")


async def get_playback_state(request: Request) -> PlaybackStateManager:
    """Get the shared playback state from app state."""
    return _from_state(request, "playback_state")


async def get_admin_session(request: Request) -> AdminSessionManager:
    """Get the admin session from app state."""
    return _from_state(request, "admin_session")


async def get_poller(request: Request) -> PlaybackPoller | None:
    """Get the background poller, or None if it was never created."""
    return getattr(request.app.state, "poller", None)
