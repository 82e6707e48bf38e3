"""Admin flow for (re)acquiring the Spotify refresh token.

The admin entry point lives under two random path segments printed at
startup. Visiting it sets a one-time cookie bound to the caller's IP and
redirects to Spotify's consent page; Spotify then redirects back to the
callback, which only accepts that cookie from that IP.
"""

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse

from now_playing.config import Settings, get_settings
from now_playing.core.middleware import limiter
from now_playing.dependencies import (
    get_admin_session,
    get_http_client,
    get_playback_state,
    get_spotify_auth_manager,
    get_token_store,
)
from now_playing.logging_config import get_logger, log_with_context
from now_playing.security import get_client_ip, hash_ip, verify_admin_session
from now_playing.services import playback_service, spotify_auth
from now_playing.state_managers import (
    AdminSessionManager,
    PlaybackStateManager,
    RefreshTokenStore,
    SpotifyAuthManager,
)

router = APIRouter()
logger = get_logger(__name__)

CALLBACK_ROUTE_NAME = "spotify_callback"


def get_callback_uri(request: Request, settings: Settings) -> str:
    """Redirect URI registered with Spotify.

    Uses SPOTIFY_REDIRECT_URI when configured, since behind a TLS-terminating
    proxy the request URL does not show the public scheme.
    """
    if settings.spotify_redirect_uri:
        return settings.spotify_redirect_uri
    return str(request.url_for(CALLBACK_ROUTE_NAME))


@router.get(
    "/admin/spotify/callback/1",
    name=CALLBACK_ROUTE_NAME,
    response_class=PlainTextResponse,
    dependencies=[Depends(verify_admin_session)],
    responses={
        200: {"description": "Refresh token stored and verified"},
        400: {"description": "Bad admin session, missing code, or token exchange failed"},
        424: {"description": "Token stored but fetching playback with it failed"},
        500: {"description": "Token could not be saved"},
    },
)
@limiter.limit("10/minute")
async def spotify_callback(
    request: Request,
    code: str = Query(default=""),
    client: httpx.AsyncClient = Depends(get_http_client),
    auth_manager: SpotifyAuthManager = Depends(get_spotify_auth_manager),
    token_store: RefreshTokenStore = Depends(get_token_store),
    playback_state: PlaybackStateManager = Depends(get_playback_state),
    settings: Settings = Depends(get_settings),
):
    """Exchange the consent code, store the refresh token and fetch once.

    Raises:
        HTTPException: 400 if `code` is missing
        SpotifyAuthException: If the code exchange fails
        PersistenceException: If the refresh token cannot be saved
        SpotifyFetchException: If the first fetch with the new token fails
    """
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing code")

    refresh_token = await spotify_auth.exchange_authorization_code(
        client, code, get_callback_uri(request, settings), settings
    )
    await token_store.set(refresh_token)
    await auth_manager.invalidate()
    await playback_service.refresh_playback(client, auth_manager, token_store, playback_state, settings)

    log_with_context(
        logger,
        "info",
        "Successfully updated refresh token",
        ip=get_client_ip(request, settings),
        event_type="token_updated",
    )
    return PlainTextResponse("Successfully Set Refresh Token")


@router.get("/admin/{admin_path}/{update_path}", include_in_schema=False)
@limiter.limit("10/minute")
async def start_spotify_login(
    request: Request,
    admin_path: str,
    update_path: str,
    admin_session: AdminSessionManager = Depends(get_admin_session),
    settings: Settings = Depends(get_settings),
):
    """Open an admin session and redirect to Spotify's consent page."""
    if admin_path != settings.admin_path or update_path != settings.admin_update_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    client_ip = get_client_ip(request, settings)
    cookie_value = await admin_session.issue(hash_ip(client_ip))
    auth_url = spotify_auth.build_authorization_url(get_callback_uri(request, settings), settings)

    log_with_context(logger, "info", "Admin session opened", ip=client_ip, event_type="admin_login")

    response = RedirectResponse(auth_url, status_code=status.HTTP_301_MOVED_PERMANENTLY)
    # Drop cookies from earlier sessions; each process uses a new cookie name
    for name in request.cookies:
        if name != admin_session.cookie_name:
            response.delete_cookie(name)
    response.set_cookie(
        key=admin_session.cookie_name,
        value=cookie_value,
        max_age=settings.admin_cookie_max_age,
        httponly=True,
        samesite="lax",
    )
    return response
