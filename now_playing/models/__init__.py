"""Now Playing models"""

from now_playing.models.base_models import ErrorResponse, HealthResponse, ReadinessResponse
from now_playing.models.spotify import (
    AllowedDevice,
    DevicesConfig,
    LinkInfo,
    NowPlayingResponse,
    PlaybackSnapshot,
    PlayerStatePayload,
    SongData,
)

__all__ = [
    "AllowedDevice",
    "DevicesConfig",
    "ErrorResponse",
    "HealthResponse",
    "LinkInfo",
    "NowPlayingResponse",
    "PlaybackSnapshot",
    "PlayerStatePayload",
    "ReadinessResponse",
    "SongData",
]
