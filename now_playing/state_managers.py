"""State managers for handling application-wide mutable state.

Every piece of mutable shared state (refresh token, cached access token,
playback snapshot, admin session) lives in a manager stored on `app.state`
and injected into routes and the poller. Each manager guards its fields with
its own asyncio.Lock.
"""

import asyncio
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from now_playing.exceptions import PersistenceException
from now_playing.logging_config import get_logger, log_with_context
from now_playing.models.spotify import PlaybackSnapshot
from now_playing.services.staleness import needs_refresh, predict_end_time_ms
from now_playing.utils.ids import random_string
from now_playing.utils.token_file import read_token_file, write_token_file

logger = get_logger(__name__)

# Refresh a cached access token this long before the provider expires it
ACCESS_TOKEN_EXPIRY_MARGIN_SECONDS = 30


class StateManager(ABC):
    """Base class for all state managers.

    State managers provide lock-guarded access to mutable application state.
    All subclasses must implement lifecycle methods.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the state manager (called during app startup)."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Cleanup resources (called during app shutdown)."""
        pass


class SpotifyAuthManager(StateManager):
    """Caches the short-lived access token with expiration tracking.

    The cached token is bound to the refresh token that minted it, so after
    a new refresh token is written the old access token is never served.
    """

    def __init__(self):
        self._access_token: str | None = None
        self._token_expires_at: float = 0
        self._minted_from: str | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        await self.invalidate()

    async def get_token(self, refresh_token: str) -> str | None:
        """Get the cached access token if it is still valid.

        Args:
            refresh_token: Refresh token currently in use

        Returns:
            Access token string or None if expired, unset or minted from
            a different refresh token
        """
        async with self._lock:
            if (
                self._access_token
                and self._minted_from == refresh_token
                and self._token_expires_at > time.time()
            ):
                return self._access_token
            return None

    async def set_token(self, token: str, expires_in: int, refresh_token: str) -> None:
        """Cache a new access token.

        Args:
            token: The access token string
            expires_in: Provider expiry in seconds
            refresh_token: Refresh token the access token was minted from
        """
        async with self._lock:
            self._access_token = token
            self._token_expires_at = time.time() + max(expires_in - ACCESS_TOKEN_EXPIRY_MARGIN_SECONDS, 0)
            self._minted_from = refresh_token

    async def invalidate(self) -> None:
        """Drop the cached access token."""
        async with self._lock:
            self._access_token = None
            self._token_expires_at = 0
            self._minted_from = None


class RefreshTokenStore(StateManager):
    """Holds the single live refresh token and its on-disk copy.

    The token is read from disk once during startup. Writes go to disk first
    and only replace the in-memory value once the file is saved, under the
    same lock that readers take.
    """

    def __init__(self, path: Path):
        self._path = path
        self._token: str | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Load the persisted refresh token, if any.

        Raises:
            PersistenceException: If the file exists but cannot be read
        """
        try:
            token = read_token_file(self._path)
        except OSError as e:
            raise PersistenceException(
                "Failed to read refresh token file", details={"path": str(self._path), "error": str(e)}
            ) from e

        async with self._lock:
            self._token = token

        if token:
            log_with_context(logger, "info", "Loaded refresh token from saved file", event_type="token_loaded")
        else:
            log_with_context(logger, "warning", "No saved refresh token found", event_type="token_missing")

    async def cleanup(self) -> None:
        pass

    async def get(self) -> str | None:
        async with self._lock:
            return self._token

    async def has_token(self) -> bool:
        return await self.get() is not None

    async def set(self, token: str) -> None:
        """Persist and activate a new refresh token.

        Raises:
            PersistenceException: If the token cannot be written; the
                previous token stays active
        """
        async with self._lock:
            await self._write(token)

    async def replace(self, expected: str, token: str) -> bool:
        """Swap in a rotated token only if `expected` is still the live one.

        A rotation minted from an older token must not overwrite a token
        written in the meantime, e.g. by the admin callback.

        Returns:
            False if the live token changed and nothing was written

        Raises:
            PersistenceException: If the token cannot be written
        """
        async with self._lock:
            if self._token != expected:
                return False
            await self._write(token)
            return True

    async def _write(self, token: str) -> None:
        """Save to disk, then activate. Caller holds the lock."""
        try:
            await asyncio.to_thread(write_token_file, self._path, token)
        except (OSError, ValueError) as e:
            log_with_context(
                logger,
                "error",
                "Failed to save refresh token",
                error=str(e),
                event_type="token_save_failed",
            )
            raise PersistenceException(details={"error": str(e)}) from e
        self._token = token


@dataclass(frozen=True)
class PlaybackView:
    """Consistent read of the playback state at one instant."""

    snapshot: PlaybackSnapshot | None
    predicted_end_ms: int | None
    last_updated_ms: int | None

    def needs_refresh(self, now: int, threshold_ms: int) -> bool:
        """Staleness check for this view.

        The predicted end is only meaningful while a track is playing; a
        paused snapshot keeps the prediction from before the pause.
        """
        predicted_end = self.predicted_end_ms if self.snapshot and self.snapshot.is_playing else None
        return needs_refresh(predicted_end, self.last_updated_ms, now, threshold_ms)


class PlaybackStateManager(StateManager):
    """Shared "now playing" state written by the poller and read by routes.

    Snapshots are immutable and replaced whole under the lock, so readers
    never see fields mixed from two updates.
    """

    def __init__(self):
        self._snapshot: PlaybackSnapshot | None = None
        self._predicted_end_ms: int | None = None
        self._last_updated_ms: int | None = None
        self._last_applied_seq: int | None = None
        self._fetch_seq = 0
        self._lock = asyncio.Lock()
        # Serializes on-demand refreshes triggered by readers
        self.refresh_lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        async with self._lock:
            self._snapshot = None

    async def get(self) -> PlaybackSnapshot | None:
        async with self._lock:
            return self._snapshot

    async def set(self, snapshot: PlaybackSnapshot | None) -> None:
        """Overwrite the snapshot unconditionally (last write wins)."""
        async with self._lock:
            self._snapshot = snapshot

    async def view(self) -> PlaybackView:
        async with self._lock:
            return PlaybackView(self._snapshot, self._predicted_end_ms, self._last_updated_ms)

    async def begin_fetch(self) -> int:
        """Hand out the ordering ticket for a fetch that is about to start.

        Tickets increase monotonically and do not depend on the wall clock.
        """
        async with self._lock:
            self._fetch_seq += 1
            return self._fetch_seq

    async def apply(self, snapshot: PlaybackSnapshot | None, fetch_seq: int, updated_ms: int) -> bool:
        """Record the result of a fetch.

        A playing snapshot also updates the predicted end time; a paused
        snapshot or None leaves the previous prediction in place.

        Args:
            snapshot: Decoded snapshot, or None when nothing is playing
            fetch_seq: Ticket from `begin_fetch` taken when the fetch began
            updated_ms: Wall-clock time to record as the last update

        Returns:
            False if the result was discarded because a fetch that started
            later has already been applied
        """
        async with self._lock:
            if self._last_applied_seq is not None and fetch_seq < self._last_applied_seq:
                log_with_context(
                    logger,
                    "debug",
                    "Discarding out-of-order playback result",
                    fetch_seq=fetch_seq,
                    applied_fetch_seq=self._last_applied_seq,
                    event_type="playback_result_discarded",
                )
                return False

            self._last_applied_seq = fetch_seq
            self._last_updated_ms = updated_ms
            self._snapshot = snapshot
            if snapshot is not None and snapshot.is_playing:
                self._predicted_end_ms = predict_end_time_ms(snapshot)
            return True


class AdminSessionManager(StateManager):
    """Single-slot admin session: one random cookie bound to one IP hash.

    Each admin visit rotates the cookie value and rebinds the IP hash,
    invalidating any earlier session.
    """

    def __init__(self, cookie_name: str | None = None):
        self.cookie_name = cookie_name or random_string(10)
        self._cookie_value = random_string(20)
        self._authorized_ip_hash: str | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        async with self._lock:
            self._authorized_ip_hash = None

    async def issue(self, ip_hash: str) -> str:
        """Start a new admin session for the given client.

        Returns:
            Cookie value the callback must present
        """
        async with self._lock:
            self._cookie_value = random_string(20)
            self._authorized_ip_hash = ip_hash
            return self._cookie_value

    async def verify(self, cookie_value: str | None, ip_hash: str) -> bool:
        """Check a callback against the active session (exact match)."""
        async with self._lock:
            if not cookie_value or self._authorized_ip_hash is None:
                return False
            cookie_ok = secrets.compare_digest(cookie_value.encode(), self._cookie_value.encode())
            ip_ok = secrets.compare_digest(ip_hash.encode(), self._authorized_ip_hash.encode())
            return cookie_ok and ip_ok
