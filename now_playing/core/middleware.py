"""Middleware configuration."""

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address

from now_playing.config import Settings
from now_playing.logging_config import get_logger, log_with_context
from now_playing.middleware.logging_middleware import redact_path, redact_sensitive_data
from now_playing.security import get_cors_origins

logger = get_logger(__name__)

# Shared by route decorators and app.state
limiter = Limiter(key_func=get_remote_address)


def setup_middleware(app: FastAPI, settings: Settings) -> Limiter:
    """Configure all middleware for the application.

    Args:
        app: FastAPI application instance
        settings: Application settings

    Returns:
        Limiter instance for rate limiting
    """
    origins = get_cors_origins(settings)
    log_with_context(
        logger,
        "info",
        "Configuring CORS middleware",
        event_type="security_config",
        origins=origins,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_middleware(GZipMiddleware, minimum_size=500, compresslevel=9)

    app.state.limiter = limiter

    admin_segments = [settings.admin_path, settings.admin_update_path]

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with secrets masked out of the URL."""
        started = time.perf_counter()
        response = await call_next(request)
        path = redact_path(request.url.path, admin_segments)
        log_with_context(
            logger,
            "debug",
            "HTTP request served",
            method=request.method,
            path=redact_sensitive_data(f"{path}?{request.url.query}" if request.url.query else path),
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            event_type="http_served",
        )
        return response

    return limiter
