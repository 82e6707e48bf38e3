"""Unit tests for state managers."""

import asyncio
import os
import stat

import pytest

from now_playing.exceptions import PersistenceException
from now_playing.models.spotify import PlaybackSnapshot
from now_playing.state_managers import (
    AdminSessionManager,
    PlaybackStateManager,
    RefreshTokenStore,
    SpotifyAuthManager,
)

# SpotifyAuthManager Tests


@pytest.mark.asyncio
async def test_spotify_auth_manager_initially_empty():
    manager = SpotifyAuthManager()
    await manager.initialize()

    assert await manager.get_token("refresh") is None


@pytest.mark.asyncio
async def test_spotify_auth_manager_set_and_get_token():
    manager = SpotifyAuthManager()

    await manager.set_token("access-1", expires_in=3600, refresh_token="refresh")

    assert await manager.get_token("refresh") == "access-1"


@pytest.mark.asyncio
async def test_spotify_auth_manager_token_bound_to_refresh_token():
    """A new refresh token never reuses an access token minted from the old one."""
    manager = SpotifyAuthManager()

    await manager.set_token("access-1", expires_in=3600, refresh_token="old-refresh")

    assert await manager.get_token("new-refresh") is None


@pytest.mark.asyncio
async def test_spotify_auth_manager_token_expiration():
    """Tokens expiring within the safety margin are not served."""
    manager = SpotifyAuthManager()

    await manager.set_token("expiring", expires_in=10, refresh_token="refresh")

    assert await manager.get_token("refresh") is None


@pytest.mark.asyncio
async def test_spotify_auth_manager_invalidate():
    manager = SpotifyAuthManager()
    await manager.set_token("access-1", expires_in=3600, refresh_token="refresh")

    await manager.invalidate()

    assert await manager.get_token("refresh") is None


# RefreshTokenStore Tests


@pytest.mark.asyncio
async def test_token_store_initialize_without_file(tmp_path):
    """Absence of a saved token is a valid initial state."""
    store = RefreshTokenStore(tmp_path / ".refreshToken")
    await store.initialize()

    assert await store.get() is None
    assert await store.has_token() is False


@pytest.mark.asyncio
async def test_token_store_loads_saved_token(tmp_path):
    path = tmp_path / ".refreshToken"
    path.write_text("saved-token\n")

    store = RefreshTokenStore(path)
    await store.initialize()

    assert await store.get() == "saved-token"


@pytest.mark.asyncio
async def test_token_store_set_persists_and_overwrites(tmp_path):
    path = tmp_path / ".refreshToken"
    store = RefreshTokenStore(path)

    await store.set("first-token")
    await store.set("second-token")

    assert await store.get() == "second-token"
    assert path.read_text() == "second-token"
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


@pytest.mark.asyncio
async def test_token_store_failed_write_keeps_previous_token(tmp_path, monkeypatch):
    store = RefreshTokenStore(tmp_path / ".refreshToken")
    await store.set("good-token")

    def fail_write(path, token):
        raise OSError("disk full")

    monkeypatch.setattr("now_playing.state_managers.write_token_file", fail_write)

    with pytest.raises(PersistenceException) as exc_info:
        await store.set("new-token")

    assert exc_info.value.status_code == 500
    assert await store.get() == "good-token"


@pytest.mark.asyncio
async def test_token_store_unreadable_file(tmp_path):
    """A directory where the token file should be is a persistence error."""
    (tmp_path / ".refreshToken").mkdir()
    store = RefreshTokenStore(tmp_path / ".refreshToken")

    with pytest.raises(PersistenceException):
        await store.initialize()


@pytest.mark.asyncio
async def test_token_store_replace_when_unchanged(tmp_path):
    path = tmp_path / ".refreshToken"
    store = RefreshTokenStore(path)
    await store.set("old-token")

    assert await store.replace("old-token", "rotated-token") is True
    assert await store.get() == "rotated-token"
    assert path.read_text() == "rotated-token"


@pytest.mark.asyncio
async def test_token_store_replace_skips_changed_token(tmp_path, monkeypatch):
    """A stale expected value leaves the newer token in memory and on disk."""
    path = tmp_path / ".refreshToken"
    store = RefreshTokenStore(path)
    await store.set("old-token")
    await store.set("admin-token")
    writes = []
    monkeypatch.setattr("now_playing.state_managers.write_token_file", lambda p, t: writes.append(t))

    assert await store.replace("old-token", "rotated-token") is False
    assert await store.get() == "admin-token"
    assert path.read_text() == "admin-token"
    assert writes == []


# PlaybackStateManager Tests


@pytest.mark.asyncio
async def test_playback_state_initially_never_fetched():
    state = PlaybackStateManager()

    view = await state.view()

    assert view.snapshot is None
    assert view.last_updated_ms is None
    assert view.predicted_end_ms is None


@pytest.mark.asyncio
async def test_playback_state_set_and_get(playing_snapshot):
    state = PlaybackStateManager()

    await state.set(playing_snapshot)
    assert await state.get() == playing_snapshot

    await state.set(None)
    assert await state.get() is None


@pytest.mark.asyncio
async def test_apply_playing_snapshot_predicts_end(playing_snapshot):
    state = PlaybackStateManager()

    applied = await state.apply(playing_snapshot, fetch_seq=10, updated_ms=20)

    view = await state.view()
    assert applied is True
    assert view.snapshot == playing_snapshot
    assert view.predicted_end_ms == 1170000
    assert view.last_updated_ms == 20


@pytest.mark.asyncio
async def test_apply_nothing_playing_clears_state(playing_snapshot):
    """The not-playing signal empties the state whatever was there before."""
    state = PlaybackStateManager()
    await state.apply(playing_snapshot, fetch_seq=10, updated_ms=20)

    await state.apply(None, fetch_seq=30, updated_ms=40)

    view = await state.view()
    assert await state.get() is None
    assert view.last_updated_ms == 40
    # Prediction is left stale, not cleared
    assert view.predicted_end_ms == 1170000


@pytest.mark.asyncio
async def test_apply_paused_snapshot_keeps_prediction(playing_snapshot):
    state = PlaybackStateManager()
    await state.apply(playing_snapshot, fetch_seq=10, updated_ms=20)
    paused = playing_snapshot.model_copy(update={"is_playing": False, "timestamp_ms": 2000000})

    await state.apply(paused, fetch_seq=30, updated_ms=40)

    view = await state.view()
    assert view.snapshot == paused
    assert view.predicted_end_ms == 1170000


@pytest.mark.asyncio
async def test_apply_discards_out_of_order_result(playing_snapshot):
    """A slow fetch finishing after a newer one does not regress the state."""
    state = PlaybackStateManager()
    await state.apply(None, fetch_seq=200, updated_ms=210)

    applied = await state.apply(playing_snapshot, fetch_seq=100, updated_ms=220)

    assert applied is False
    assert await state.get() is None
    assert (await state.view()).last_updated_ms == 210


@pytest.mark.asyncio
async def test_begin_fetch_tickets_increase():
    state = PlaybackStateManager()

    tickets = [await state.begin_fetch() for _ in range(3)]

    assert tickets == sorted(tickets)
    assert len(set(tickets)) == 3


@pytest.mark.asyncio
async def test_apply_orders_by_ticket_not_wall_clock(playing_snapshot):
    """A later fetch is applied even if the wall clock stepped backwards."""
    state = PlaybackStateManager()
    first = await state.begin_fetch()
    second = await state.begin_fetch()
    await state.apply(None, fetch_seq=first, updated_ms=5_000)

    applied = await state.apply(playing_snapshot, fetch_seq=second, updated_ms=1_000)

    view = await state.view()
    assert applied is True
    assert view.snapshot == playing_snapshot
    assert view.last_updated_ms == 1_000


@pytest.mark.asyncio
async def test_view_needs_refresh_ignores_prediction_when_paused(playing_snapshot):
    state = PlaybackStateManager()
    await state.apply(playing_snapshot, fetch_seq=0, updated_ms=1_165_000)

    # Song predicted to end at 1170000
    assert (await state.view()).needs_refresh(now=1_170_000, threshold_ms=15_000) is True

    paused = playing_snapshot.model_copy(update={"is_playing": False})
    await state.apply(paused, fetch_seq=1, updated_ms=1_169_000)
    assert (await state.view()).needs_refresh(now=1_170_000, threshold_ms=15_000) is False


@pytest.mark.asyncio
async def test_playback_state_concurrent_access_never_torn():
    """Readers never see fields mixed from two different writes."""
    state = PlaybackStateManager()

    def snapshot_for(i: int) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            track_name=f"track-{i}",
            artist_name=f"artist-{i}",
            device_id=f"device-{i}",
            is_playing=True,
            progress_ms=i,
            duration_ms=i * 10,
            timestamp_ms=i * 100,
        )

    observed = []

    async def writer(offset: int):
        for i in range(offset, offset + 50):
            await state.apply(snapshot_for(i), fetch_seq=i, updated_ms=i)
            await asyncio.sleep(0)

    async def reader():
        for _ in range(100):
            view = await state.view()
            observed.append(view)
            await asyncio.sleep(0)

    await asyncio.gather(*(writer(n * 50) for n in range(4)), *(reader() for _ in range(4)))

    for view in observed:
        snapshot = view.snapshot
        if snapshot is None:
            continue
        i = snapshot.progress_ms
        assert snapshot == snapshot_for(i)
        assert view.predicted_end_ms == i * 100 + i * 10 - i


# AdminSessionManager Tests


@pytest.mark.asyncio
async def test_admin_session_rejects_before_visit():
    session = AdminSessionManager()

    assert await session.verify("anything", "ip-hash") is False


@pytest.mark.asyncio
async def test_admin_session_accepts_issued_cookie_from_same_ip():
    session = AdminSessionManager()

    cookie = await session.issue("ip-hash")

    assert await session.verify(cookie, "ip-hash") is True


@pytest.mark.asyncio
async def test_admin_session_rejects_wrong_cookie_or_ip():
    session = AdminSessionManager()
    cookie = await session.issue("ip-hash")

    assert await session.verify(cookie + "x", "ip-hash") is False
    assert await session.verify(None, "ip-hash") is False
    assert await session.verify(cookie, "other-ip-hash") is False


@pytest.mark.asyncio
async def test_admin_session_new_visit_replaces_old_session():
    session = AdminSessionManager()
    old_cookie = await session.issue("ip-1")

    new_cookie = await session.issue("ip-2")

    assert await session.verify(old_cookie, "ip-1") is False
    assert await session.verify(new_cookie, "ip-2") is True


def test_admin_session_random_cookie_name():
    assert AdminSessionManager().cookie_name != AdminSessionManager().cookie_name
