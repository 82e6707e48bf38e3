"""Fetch-and-update of the shared playback state and the public response."""

import httpx

from now_playing.config import Settings, get_settings
from now_playing.logging_config import get_logger, log_with_context
from now_playing.models.spotify import AllowedDevice, LinkInfo, NowPlayingResponse, PlaybackSnapshot, SongData
from now_playing.services import spotify_service
from now_playing.services.staleness import format_epoch_ms, now_ms
from now_playing.state_managers import PlaybackStateManager, PlaybackView, RefreshTokenStore, SpotifyAuthManager

logger = get_logger(__name__)

NOTHING_PLAYING_MESSAGE = "Nothing is playing!"


async def refresh_playback(
    client: httpx.AsyncClient,
    auth_manager: SpotifyAuthManager,
    token_store: RefreshTokenStore,
    playback_state: PlaybackStateManager,
    settings: Settings | None = None,
) -> PlaybackSnapshot | None:
    """Fetch the player state and write it to the shared state.

    An empty player response clears the state. Errors propagate and leave
    the state untouched.

    Returns:
        The snapshot that was fetched (None when nothing is playing)

    Raises:
        SpotifyFetchException: If the fetch fails
    """
    if settings is None:
        settings = get_settings()

    fetch_seq = await playback_state.begin_fetch()
    snapshot = await spotify_service.fetch_now_playing(client, auth_manager, token_store, settings)
    applied = await playback_state.apply(snapshot, fetch_seq=fetch_seq, updated_ms=now_ms())

    if applied:
        log_with_context(
            logger,
            "debug",
            "Playback state updated",
            is_playing=snapshot.is_playing if snapshot else False,
            track=snapshot.track_name if snapshot else None,
            event_type="playback_updated",
        )
    return snapshot


async def current_view(
    client: httpx.AsyncClient,
    auth_manager: SpotifyAuthManager,
    token_store: RefreshTokenStore,
    playback_state: PlaybackStateManager,
    settings: Settings | None = None,
) -> PlaybackView:
    """Read the playback state, refreshing first if it is stale.

    Only refreshes when `refresh_on_read` is enabled and a refresh token is
    stored. Concurrent stale readers share one refresh.

    Raises:
        SpotifyFetchException: If the on-demand refresh fails
    """
    if settings is None:
        settings = get_settings()

    threshold_ms = int(settings.staleness_threshold_seconds * 1000)
    view = await playback_state.view()
    if not settings.refresh_on_read or not view.needs_refresh(now_ms(), threshold_ms):
        return view
    if not await token_store.has_token():
        return view

    async with playback_state.refresh_lock:
        # Another reader may have refreshed while we waited
        view = await playback_state.view()
        if view.needs_refresh(now_ms(), threshold_ms):
            log_with_context(logger, "debug", "Refreshing stale playback state", event_type="playback_on_demand")
            await refresh_playback(client, auth_manager, token_store, playback_state, settings)
            view = await playback_state.view()
    return view


def device_label(snapshot: PlaybackSnapshot, registry: dict[str, AllowedDevice]) -> str:
    """Display label for the playing device.

    Registered devices read as "<prefix> <device name>", everything else as
    "a <device type>".
    """
    device = registry.get(snapshot.device_id) if snapshot.device_id else None
    if device is not None:
        return f"{device.prefix} {snapshot.device_name or ''}".strip()
    return f"a {snapshot.device_type or 'device'}"


def build_now_playing_response(view: PlaybackView, registry: dict[str, AllowedDevice]) -> NowPlayingResponse:
    """Format the playback view for `/NowPlaying`."""
    snapshot = view.snapshot
    if snapshot is None:
        return NowPlayingResponse(success=False, message=NOTHING_PLAYING_MESSAGE)

    return NowPlayingResponse(
        success=True,
        playing_data=SongData(
            artist=LinkInfo(link=snapshot.artist_link or "", name=snapshot.artist_name or ""),
            song=LinkInfo(link=snapshot.track_link or "", name=snapshot.track_name or ""),
            device=device_label(snapshot, registry),
            playing=snapshot.is_playing,
        ),
        song_end_time=format_epoch_ms(view.predicted_end_ms) if view.predicted_end_ms is not None else None,
    )
