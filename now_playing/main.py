"""Main FastAPI application entry point."""

from pathlib import Path

from dotenv import load_dotenv

from now_playing.config import get_settings
from now_playing.core.app_factory import create_app
from now_playing.core.middleware import limiter
from now_playing.logging_config import setup_logging

# Load environment variables from .env file
load_dotenv(Path(__file__).parent.parent / ".env")

# Missing Spotify credentials fail here, before anything listens
settings = get_settings()
setup_logging(settings.effective_log_level)

# Create application
app = create_app()

__all__ = ["app", "limiter"]


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Now Playing API", "nowPlaying": "/NowPlaying"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "now_playing.main:app",
        host=settings.api_host,
        port=settings.api_port,
        proxy_headers=True,
    )
