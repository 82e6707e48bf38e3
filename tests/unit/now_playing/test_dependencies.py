"""Tests for dependency injection functions."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from now_playing.dependencies import (
    get_admin_session,
    get_http_client,
    get_playback_state,
    get_poller,
    get_spotify_auth_manager,
    get_token_store,
)
from now_playing.state_managers import PlaybackStateManager, RefreshTokenStore, SpotifyAuthManager


def make_request(**state):
    request = MagicMock()
    request.app.state = SimpleNamespace(**state)
    return request


class TestDependencies:
    """Tests for dependency injection functions."""

    @pytest.mark.asyncio
    async def test_get_http_client(self):
        """Test getting HTTP client from app state."""
        mock_client = AsyncMock(spec=AsyncClient)

        client = await get_http_client(make_request(http_client=mock_client))

        assert client == mock_client

    @pytest.mark.asyncio
    async def test_get_state_managers(self, admin_session):
        auth_manager = MagicMock(spec=SpotifyAuthManager)
        token_store = MagicMock(spec=RefreshTokenStore)
        playback_state = MagicMock(spec=PlaybackStateManager)
        request = make_request(
            spotify_auth_manager=auth_manager,
            token_store=token_store,
            playback_state=playback_state,
            admin_session=admin_session,
        )

        assert await get_spotify_auth_manager(request) is auth_manager
        assert await get_token_store(request) is token_store
        assert await get_playback_state(request) is playback_state
        assert await get_admin_session(request) is admin_session

    @pytest.mark.asyncio
    async def test_missing_state_raises(self):
        """Dependencies fail loudly when the lifespan has not run."""
        with pytest.raises(RuntimeError, match="not initialized"):
            await get_http_client(make_request())

    @pytest.mark.asyncio
    async def test_get_poller_optional(self):
        assert await get_poller(make_request()) is None
