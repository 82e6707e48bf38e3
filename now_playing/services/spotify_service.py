"""Spotify Web API service: access tokens and the player-state fetch."""

import httpx
from pydantic import ValidationError

from now_playing.config import Settings, get_settings
from now_playing.exceptions import (
    PersistenceException,
    SpotifyAuthException,
    SpotifyFetchException,
    SpotifyNotAuthenticatedException,
)
from now_playing.logging_config import get_logger, log_with_context
from now_playing.models.spotify import PlaybackSnapshot, PlayerStatePayload
from now_playing.services import spotify_auth
from now_playing.state_managers import RefreshTokenStore, SpotifyAuthManager

logger = get_logger(__name__)

PLAYER_URL = "https://api.spotify.com/v1/me/player"


async def get_access_token(
    client: httpx.AsyncClient,
    auth_manager: SpotifyAuthManager,
    token_store: RefreshTokenStore,
    settings: Settings | None = None,
) -> str:
    """
    Get Spotify access token using refresh token flow.

    Serves the cached token while it is valid and refreshes it otherwise.

    Args:
        client: Shared HTTP client from dependency injection.
        auth_manager: Access token cache
        token_store: Holder of the live refresh token
        settings: Settings instance (defaults to singleton)

    Returns:
        Access token string.

    Raises:
        SpotifyNotAuthenticatedException: If no refresh token is stored
        SpotifyAuthException: If the refresh exchange fails
    """
    if settings is None:
        settings = get_settings()

    refresh_token = await token_store.get()
    if not refresh_token:
        raise SpotifyNotAuthenticatedException("No refresh token available. Run the admin flow first.")

    cached_token = await auth_manager.get_token(refresh_token)
    if cached_token:
        return cached_token

    grant = await spotify_auth.exchange_refresh_token(client, refresh_token, settings)
    await auth_manager.set_token(grant.access_token, grant.expires_in, refresh_token)

    # Spotify may rotate the refresh token on use
    if grant.refresh_token and grant.refresh_token != refresh_token:
        try:
            if await token_store.replace(refresh_token, grant.refresh_token):
                await auth_manager.set_token(grant.access_token, grant.expires_in, grant.refresh_token)
                log_with_context(logger, "info", "Stored rotated refresh token", event_type="token_rotated")
            else:
                log_with_context(
                    logger,
                    "info",
                    "Refresh token changed during exchange, dropping rotated token",
                    event_type="token_rotation_superseded",
                )
        except PersistenceException as e:
            log_with_context(
                logger,
                "warning",
                "Could not store rotated refresh token, keeping the current one",
                error=e.message,
                event_type="token_rotation_failed",
            )

    return grant.access_token


def decode_player_state(body: bytes) -> PlaybackSnapshot:
    """Decode a non-empty player-state body into a snapshot.

    Raises:
        SpotifyFetchException: If the body is not a valid player payload
    """
    try:
        payload = PlayerStatePayload.model_validate_json(body)
    except ValidationError as e:
        raise SpotifyFetchException(
            "Invalid Spotify playback payload", details={"cause": "decode", "errors": e.error_count()}
        ) from e
    return PlaybackSnapshot.from_payload(payload)


async def fetch_now_playing(
    client: httpx.AsyncClient,
    auth_manager: SpotifyAuthManager,
    token_store: RefreshTokenStore,
    settings: Settings | None = None,
) -> PlaybackSnapshot | None:
    """
    Get current playback state on Spotify.

    Args:
        client: Shared HTTP client from dependency injection.
        auth_manager: Access token cache
        token_store: Holder of the live refresh token
        settings: Settings instance (defaults to singleton)

    Returns:
        The decoded snapshot, or None when Spotify answers with an empty body
        because the user is not using Spotify right now.

    Raises:
        SpotifyFetchException: If either the token exchange or the player
            request fails; `details["cause"]` tells them apart.
    """
    if settings is None:
        settings = get_settings()

    try:
        token = await get_access_token(client, auth_manager, token_store, settings)
    except SpotifyAuthException as e:
        log_with_context(
            logger,
            "warning",
            "Could not obtain Spotify access token",
            error=e.message,
            cause="auth",
            event_type="spotify_fetch_failed",
        )
        raise SpotifyFetchException(f"Spotify auth error: {e.message}", details={"cause": "auth", **e.details}) from e

    try:
        response = await client.get(
            PLAYER_URL,
            headers={"Authorization": f"Bearer {token}"},
            timeout=settings.http_timeout_seconds,
        )
        if response.status_code == 401:
            await auth_manager.invalidate()
        response.raise_for_status()
    except httpx.HTTPError as e:
        log_with_context(
            logger,
            "warning",
            "Spotify playback state request failed",
            error=str(e),
            cause="fetch",
            event_type="spotify_fetch_failed",
        )
        raise SpotifyFetchException(f"Spotify playback state error: {e}", details={"cause": "fetch"}) from e

    body = response.content
    if response.status_code == 204 or not body.strip():
        return None

    return decode_player_state(body)
