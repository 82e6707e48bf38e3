"""Application factory for creating and configuring the FastAPI app."""

from fastapi import FastAPI

from now_playing import __version__
from now_playing.config import get_settings
from now_playing.core.lifespan import lifespan
from now_playing.core.middleware import setup_middleware
from now_playing.middleware.error_handlers import register_error_handlers
from now_playing.routers import admin_router, health_router, now_playing_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Settings are loaded here so missing Spotify credentials stop the
    process before it starts listening.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Now Playing API",
        description="""
        Shows what the owner is listening to on Spotify.

        ## Endpoints
        - `/NowPlaying` - latest playback snapshot, refreshed every 4-9 seconds
        - `/health` - basic health check
        - `/health/ready` - refresh token loaded and poller running

        ## Spotify Setup
        1. Open the admin login path printed in the startup banner
        2. Approve access on Spotify
        3. The refresh token is saved and polling starts
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    setup_middleware(app, settings)
    register_error_handlers(app)

    app.include_router(now_playing_router.router, tags=["now-playing"])
    app.include_router(health_router.router, tags=["health"])
    app.include_router(admin_router.router, tags=["admin"])

    return app
