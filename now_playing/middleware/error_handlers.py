"""Exception handlers for the application."""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from now_playing.exceptions import ErrorCode, NowPlayingException
from now_playing.logging_config import get_logger, log_with_context
from now_playing.models import ErrorResponse

logger = get_logger(__name__)


async def now_playing_exception_handler(request: Request, exc: NowPlayingException) -> JSONResponse:
    """Render custom exceptions as `{"success": false, ...}` JSON.

    The status code comes from the exception; the error code and details
    are included for clients that want to branch on them.
    """
    log_with_context(
        logger,
        "warning",
        "Request failed",
        error_code=exc.code.value,
        error_message=exc.message,
        status_code=exc.status_code,
        method=request.method,
        path=request.url.path,
        event_type="request_error",
    )

    error_content: dict[str, Any] = {"code": exc.code.value, "message": exc.message, "details": exc.details}

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message, error=error_content).model_dump(),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions with logging."""
    log_with_context(
        logger,
        "error",
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        method=request.method,
        path=request.url.path,
        event_type="unhandled_error",
    )
    logger.error("Exception traceback:", exc_info=exc)

    # Don't expose internal error details to clients
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            message="Internal server error",
            error={"code": ErrorCode.INTERNAL_ERROR.value, "message": "Internal server error"},
        ).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the application."""
    app.add_exception_handler(NowPlayingException, now_playing_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
