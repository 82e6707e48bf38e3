"""Pytest configuration and shared fixtures."""

import os
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

# The app module reads settings at import time; point every file it touches
# at a scratch directory before anything imports it.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="now-playing-tests-"))
os.environ.setdefault("SPOTIFY_CLIENT_ID", "test-client-id")
os.environ.setdefault("SPOTIFY_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("REFRESH_TOKEN_FILE", str(_TEST_DIR / ".refreshToken"))
os.environ.setdefault("DEVICES_CONFIG_FILE", str(_TEST_DIR / "config.json"))
os.environ.setdefault("ADMIN_PATH", "testadminpath00")
os.environ.setdefault("ADMIN_UPDATE_PATH", "updte")

from now_playing.config import Settings  # noqa: E402
from now_playing.models.spotify import AllowedDevice, PlaybackSnapshot  # noqa: E402
from now_playing.services.spotify_auth import TOKEN_URL  # noqa: E402
from now_playing.services.spotify_service import PLAYER_URL  # noqa: E402
from now_playing.state_managers import (  # noqa: E402
    AdminSessionManager,
    PlaybackStateManager,
    RefreshTokenStore,
    SpotifyAuthManager,
)


@pytest.fixture
def token_response():
    """Factory for token endpoint responses."""

    def _make(status_code: int = 200, **kwargs) -> httpx.Response:
        return httpx.Response(status_code, request=httpx.Request("POST", TOKEN_URL), **kwargs)

    return _make


@pytest.fixture
def player_response():
    """Factory for player endpoint responses."""

    def _make(status_code: int = 200, **kwargs) -> httpx.Response:
        return httpx.Response(status_code, request=httpx.Request("GET", PLAYER_URL), **kwargs)

    return _make


@pytest.fixture
def mock_settings(tmp_path):
    """Settings instance with test values and files under tmp_path."""
    return Settings(
        _env_file=None,
        spotify_client_id="test-client-id",
        spotify_client_secret="test-client-secret",
        refresh_token_file=str(tmp_path / ".refreshToken"),
        devices_config_file=str(tmp_path / "config.json"),
        admin_path="adminpath123456",
        admin_update_path="abcde",
        allowed_devices=[AllowedDevice(id="desk-id", prefix="my")],
    )


@pytest.fixture
def mock_http_client():
    """Mock httpx.AsyncClient for external API calls."""
    mock_client = AsyncMock(spec=httpx.AsyncClient)
    mock_client.get = AsyncMock()
    mock_client.post = AsyncMock()
    mock_client.aclose = AsyncMock()
    return mock_client


@pytest.fixture
def auth_manager():
    return SpotifyAuthManager()


@pytest.fixture
def token_store(mock_settings):
    return RefreshTokenStore(mock_settings.refresh_token_path)


@pytest_asyncio.fixture
async def stored_token_store(token_store):
    """Token store already holding a refresh token."""
    await token_store.set("stored-refresh-token")
    return token_store


@pytest.fixture
def playback_state():
    return PlaybackStateManager()


@pytest.fixture
def admin_session():
    return AdminSessionManager(cookie_name="admincookie")


@pytest.fixture
def example_player_payload():
    """Player payload with a known predicted end of 1170000 ms."""
    return {
        "is_playing": True,
        "timestamp": 1000000,
        "progress_ms": 30000,
        "item": {
            "duration_ms": 200000,
            "name": "X",
            "artists": [{"name": "Y", "external_urls": {"spotify": "L1"}}],
            "external_urls": {"spotify": "L2"},
        },
    }


@pytest.fixture
def mock_spotify_playback_response():
    """Full Spotify playback state response with device data."""
    return {
        "device": {"id": "desk-id", "is_active": True, "name": "Desk Speaker", "type": "Speaker", "volume_percent": 50},
        "timestamp": 1714564800000,
        "is_playing": True,
        "item": {
            "name": "Bohemian Rhapsody",
            "artists": [{"name": "Queen", "external_urls": {"spotify": "https://open.spotify.com/artist/queen"}}],
            "external_urls": {"spotify": "https://open.spotify.com/track/bohemian"},
            "album": {"name": "A Night at the Opera"},
            "duration_ms": 354000,
            "uri": "spotify:track:test123",
        },
        "progress_ms": 125000,
        "shuffle_state": False,
        "repeat_state": "off",
    }


@pytest.fixture
def playing_snapshot():
    return PlaybackSnapshot(
        track_name="X",
        track_link="L2",
        artist_name="Y",
        artist_link="L1",
        device_id="other-id",
        device_name="Phone",
        device_type="Smartphone",
        is_playing=True,
        progress_ms=30000,
        duration_ms=200000,
        timestamp_ms=1000000,
    )
