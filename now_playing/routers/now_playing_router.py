"""Public now-playing endpoint."""

import httpx
from fastapi import APIRouter, Depends

from now_playing.config import Settings, get_settings
from now_playing.dependencies import get_http_client, get_playback_state, get_spotify_auth_manager, get_token_store
from now_playing.models.spotify import NowPlayingResponse
from now_playing.services import playback_service
from now_playing.state_managers import PlaybackStateManager, RefreshTokenStore, SpotifyAuthManager

router = APIRouter()


@router.get(
    "/NowPlaying",
    response_model=NowPlayingResponse,
    response_model_exclude_none=True,
    summary="Get the current Spotify track",
    description="""
    Returns the most recent playback snapshot collected by the background poller.

    `songEndTime` is the predicted end of the current track (RFC 3339, UTC).
    When nothing is playing the response is `{"success": false, "message": "Nothing is playing!"}`.
    """,
    responses={
        200: {
            "description": "Current snapshot or nothing playing",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "playingData": {
                            "Artist": {"Link": "https://open.spotify.com/artist/...", "Name": "Queen"},
                            "Song": {"Link": "https://open.spotify.com/track/...", "Name": "Bohemian Rhapsody"},
                            "Device": "a Computer",
                            "Playing": True,
                        },
                        "songEndTime": "2024-05-01T12:03:54.000Z",
                    }
                }
            },
        },
        424: {"description": "On-demand refresh failed (only with REFRESH_ON_READ)"},
    },
)
async def get_now_playing(
    client: httpx.AsyncClient = Depends(get_http_client),
    auth_manager: SpotifyAuthManager = Depends(get_spotify_auth_manager),
    token_store: RefreshTokenStore = Depends(get_token_store),
    playback_state: PlaybackStateManager = Depends(get_playback_state),
    settings: Settings = Depends(get_settings),
) -> NowPlayingResponse:
    """Get what is playing right now."""
    view = await playback_service.current_view(client, auth_manager, token_store, playback_state, settings)
    return playback_service.build_now_playing_response(view, settings.device_registry)
