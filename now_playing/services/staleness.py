"""End-of-song prediction and snapshot staleness checks.

All times are Unix epoch milliseconds so the prediction keeps the provider's
millisecond precision end to end.
"""

import time
from datetime import UTC, datetime, timedelta

from now_playing.models.spotify import PlaybackSnapshot

DEFAULT_STALENESS_THRESHOLD_MS = 15_000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def predict_end_time_ms(snapshot: PlaybackSnapshot) -> int:
    """Predict when the current track ends.

    `timestamp_ms` is when the provider captured `progress_ms`, so the track
    ends after the remaining `duration_ms - progress_ms`.
    """
    return snapshot.timestamp_ms + (snapshot.duration_ms - snapshot.progress_ms)


def needs_refresh(
    predicted_end_ms: int | None,
    last_updated_ms: int | None,
    now: int,
    threshold_ms: int = DEFAULT_STALENESS_THRESHOLD_MS,
) -> bool:
    """Decide whether a cached snapshot must be refetched before use.

    Args:
        predicted_end_ms: Predicted end of the current track, None if unknown
        last_updated_ms: When the cached snapshot was last written, None if never
        now: Current time in epoch milliseconds
        threshold_ms: Maximum acceptable snapshot age

    Returns:
        True if the song should have ended or the snapshot is too old
    """
    if last_updated_ms is None:
        return True
    if predicted_end_ms is not None and now >= predicted_end_ms:
        return True
    return now - last_updated_ms >= threshold_ms


def format_epoch_ms(epoch_ms: int) -> str:
    """Render epoch milliseconds as an RFC 3339 UTC timestamp."""
    seconds, millis = divmod(epoch_ms, 1000)
    moment = datetime.fromtimestamp(seconds, tz=UTC) + timedelta(milliseconds=millis)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
