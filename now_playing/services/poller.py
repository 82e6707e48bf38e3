"""Background poller that keeps the shared playback state fresh."""

import asyncio
import random
from collections.abc import Awaitable, Callable

from now_playing.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

# Spotify allows roughly 180 requests per minute; 4-9s between polls stays
# far below that even with the token exchange counted.
DEFAULT_BASE_SECONDS = 4
DEFAULT_JITTER_SECONDS = 6


def next_poll_delay(
    base_seconds: float = DEFAULT_BASE_SECONDS,
    jitter_seconds: int = DEFAULT_JITTER_SECONDS,
    rng: random.Random | None = None,
) -> float:
    """Seconds to wait before the next cycle: base plus a random whole second offset."""
    rng = rng or random
    return base_seconds + rng.randrange(jitter_seconds)


class PlaybackPoller:
    """Perpetual loop spawning a refresh on a jittered cadence.

    Each refresh runs as its own task so a slow fetch never delays the
    schedule. A tick is skipped while the previous refresh is still in
    flight, and also while no refresh token is stored. Errors are logged
    here and never escalated.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[object]],
        is_ready: Callable[[], Awaitable[bool]],
        base_seconds: float = DEFAULT_BASE_SECONDS,
        jitter_seconds: int = DEFAULT_JITTER_SECONDS,
        rng: random.Random | None = None,
    ):
        """
        Args:
            refresh: Coroutine function performing one fetch-and-update
            is_ready: Coroutine function telling whether polling can run
            base_seconds: Minimum delay between cycle starts
            jitter_seconds: Range of the random extra delay
            rng: Random source (tests pass a seeded one)
        """
        self._refresh = refresh
        self._is_ready = is_ready
        self._base_seconds = base_seconds
        self._jitter_seconds = jitter_seconds
        self._rng = rng or random.Random()
        self._loop_task: asyncio.Task | None = None
        self._fetch_task: asyncio.Task | None = None
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def fetch_in_flight(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run(), name="playback-poller")
        log_with_context(
            logger,
            "info",
            "Playback poller started",
            base_seconds=self._base_seconds,
            jitter_seconds=self._jitter_seconds,
            event_type="poller_started",
        )

    async def stop(self) -> None:
        """Cancel the loop and any in-flight refresh."""
        for task in (self._loop_task, self._fetch_task):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._loop_task, self._fetch_task):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._fetch_task = None
        log_with_context(logger, "info", "Playback poller stopped", event_type="poller_stopped")

    async def tick(self) -> bool:
        """Run one scheduling decision.

        Returns:
            True if a refresh task was spawned
        """
        if self.fetch_in_flight:
            self.skipped_ticks += 1
            log_with_context(logger, "debug", "Previous refresh still running, skipping tick", event_type="poll_skipped")
            return False

        try:
            ready = await self._is_ready()
        except Exception as e:
            log_with_context(logger, "error", "Poller readiness check failed", error=str(e), event_type="poll_error")
            return False
        if not ready:
            log_with_context(logger, "debug", "No refresh token stored, skipping tick", event_type="poll_idle")
            return False

        self._fetch_task = asyncio.create_task(self._run_refresh(), name="playback-refresh")
        return True

    async def _run_refresh(self) -> None:
        try:
            await self._refresh()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The state keeps its last value so the public endpoint does not flicker
            log_with_context(
                logger,
                "warning",
                f"Failed to update Spotify listening: {e}",
                error_type=type(e).__name__,
                event_type="poll_failed",
            )

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(next_poll_delay(self._base_seconds, self._jitter_seconds, self._rng))
