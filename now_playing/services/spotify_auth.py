"""Spotify OAuth client: consent URL and token endpoint exchanges."""

import time
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from now_playing.config import Settings, get_settings
from now_playing.exceptions import SpotifyAuthException
from now_playing.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# Reading the player state is all this service ever does
SPOTIFY_SCOPES = ["user-read-playback-state"]


@dataclass(frozen=True)
class TokenGrant:
    """Result of a refresh-token exchange."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None


def build_authorization_url(callback_uri: str, settings: Settings | None = None) -> str:
    """Build the user-consent URL.

    The `state` parameter is the current Unix time, which makes each URL
    unique without keeping server-side state.

    Args:
        callback_uri: Redirect URI registered with the Spotify app
        settings: Settings instance (defaults to singleton)

    Returns:
        Fully encoded authorize URL
    """
    if settings is None:
        settings = get_settings()

    params = {
        "client_id": settings.spotify_client_id,
        "response_type": "code",
        "redirect_uri": callback_uri,
        "scope": " ".join(SPOTIFY_SCOPES),
        "state": str(int(time.time())),
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def _upstream_message(response: httpx.Response) -> str:
    """Best-effort extraction of the provider's error text."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("error_description") or data.get("error") or data)
    return str(data)


async def _request_token(client: httpx.AsyncClient, form: dict[str, str], settings: Settings) -> dict:
    """POST a grant to the token endpoint with HTTP Basic client auth.

    Raises:
        SpotifyAuthException: On network failure, non-2xx or non-JSON body
    """
    grant_type = form["grant_type"]
    try:
        response = await client.post(
            TOKEN_URL,
            auth=(settings.spotify_client_id, settings.spotify_client_secret),
            data=form,
            timeout=settings.http_timeout_seconds,
        )
    except httpx.HTTPError as e:
        log_with_context(
            logger,
            "error",
            "Spotify token request failed",
            grant_type=grant_type,
            error=str(e),
            event_type="spotify_token_network_error",
        )
        raise SpotifyAuthException(f"Spotify token request failed: {e}", details={"grant_type": grant_type}) from e

    if response.is_error:
        upstream = _upstream_message(response)
        log_with_context(
            logger,
            "error",
            f'Spotify token endpoint rejected grant: "{upstream}"',
            grant_type=grant_type,
            status_code=response.status_code,
            event_type="spotify_token_rejected",
        )
        raise SpotifyAuthException(
            f'Spotify token endpoint returned {response.status_code}: "{upstream}"',
            details={"grant_type": grant_type, "status_code": response.status_code, "upstream": upstream},
        )

    try:
        data = response.json()
    except ValueError as e:
        raise SpotifyAuthException(
            "Invalid Spotify token response: body is not JSON", details={"grant_type": grant_type}
        ) from e
    if not isinstance(data, dict):
        raise SpotifyAuthException("Invalid Spotify token response: expected an object")
    return data


async def exchange_authorization_code(
    client: httpx.AsyncClient,
    code: str,
    callback_uri: str,
    settings: Settings | None = None,
) -> str:
    """Exchange an authorization code for a refresh token.

    Args:
        client: Shared HTTP client from dependency injection.
        code: `code` query parameter from the consent redirect
        callback_uri: The same redirect URI used to build the consent URL
        settings: Settings instance (defaults to singleton)

    Returns:
        The newly issued refresh token

    Raises:
        SpotifyAuthException: If the exchange fails
    """
    if settings is None:
        settings = get_settings()

    data = await _request_token(
        client,
        {"grant_type": "authorization_code", "code": code, "redirect_uri": callback_uri},
        settings,
    )
    refresh_token = data.get("refresh_token")
    if not isinstance(refresh_token, str) or not refresh_token:
        raise SpotifyAuthException("Invalid Spotify token response: missing refresh_token")
    return refresh_token


async def exchange_refresh_token(
    client: httpx.AsyncClient,
    refresh_token: str,
    settings: Settings | None = None,
) -> TokenGrant:
    """Mint an access token from a refresh token.

    Args:
        client: Shared HTTP client from dependency injection.
        refresh_token: Long-lived refresh token
        settings: Settings instance (defaults to singleton)

    Returns:
        TokenGrant with the access token, its lifetime and, if Spotify
        rotated it, a replacement refresh token

    Raises:
        SpotifyAuthException: If the exchange fails
    """
    if settings is None:
        settings = get_settings()

    data = await _request_token(
        client,
        {"grant_type": "refresh_token", "refresh_token": refresh_token},
        settings,
    )
    access_token = data.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise SpotifyAuthException("Invalid Spotify token response: missing access_token")

    try:
        expires_in = int(data.get("expires_in", 3600))
    except (TypeError, ValueError) as e:
        raise SpotifyAuthException("Invalid Spotify token response: bad expires_in") from e

    rotated = data.get("refresh_token")
    return TokenGrant(
        access_token=access_token,
        expires_in=expires_in,
        refresh_token=rotated if isinstance(rotated, str) and rotated else None,
    )
