"""Health endpoints."""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from now_playing import __version__
from now_playing.dependencies import get_playback_state, get_poller, get_token_store
from now_playing.models import HealthResponse, ReadinessResponse
from now_playing.services.poller import PlaybackPoller
from now_playing.services.staleness import format_epoch_ms
from now_playing.state_managers import PlaybackStateManager, RefreshTokenStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness probe for process supervisors."""
    return HealthResponse(version=__version__)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    request: Request,
    token_store: RefreshTokenStore = Depends(get_token_store),
    playback_state: PlaybackStateManager = Depends(get_playback_state),
    poller: PlaybackPoller | None = Depends(get_poller),
):
    """Readiness probe - can the service report what is playing?

    **Returns:**
    - 200: A refresh token is loaded and the poller is running
    - 503: The admin flow has not run yet, or the poller is down
    """
    has_token = await token_store.has_token()
    poller_running = poller is not None and poller.running
    view = await playback_state.view()

    checks = {
        "spotify_auth": "ok" if has_token else "not_authenticated",
        "poller": "ok" if poller_running else "stopped",
        "last_update": format_epoch_ms(view.last_updated_ms) if view.last_updated_ms is not None else "never",
    }

    started = getattr(request.app.state, "startup_time", None)
    ready = has_token and poller_running
    return JSONResponse(
        status_code=200 if ready else 503,
        content=ReadinessResponse(
            status="healthy" if ready else "unhealthy",
            version=__version__,
            timestamp=datetime.now(UTC),
            uptime_seconds=round(time.time() - started, 1) if started is not None else None,
            checks=checks,
        ).model_dump(mode="json"),
    )
