"""Response bodies for the health probes and error handlers."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class ReadinessResponse(BaseModel):
    """`/health/ready` body: overall verdict plus one entry per check."""

    status: str = Field(..., description="healthy once a refresh token is loaded and polling runs")
    version: str
    timestamp: datetime
    uptime_seconds: float | None = Field(default=None, description="Seconds since application startup")
    checks: dict[str, str] = Field(..., description="spotify_auth, poller and last_update results")


class ErrorResponse(BaseModel):
    """Body rendered for every NowPlayingException."""

    success: bool = False
    message: str
    error: dict[str, Any]
