"""Pydantic models for the Spotify player payload and the playback snapshot."""

from pydantic import BaseModel, ConfigDict, Field


class ExternalUrls(BaseModel):
    spotify: str | None = None


class SpotifyArtist(BaseModel):
    name: str | None = None
    external_urls: ExternalUrls = Field(default_factory=ExternalUrls)


class SpotifyItem(BaseModel):
    name: str | None = None
    duration_ms: int = 0
    artists: list[SpotifyArtist] = Field(default_factory=list)
    external_urls: ExternalUrls = Field(default_factory=ExternalUrls)


class SpotifyDevice(BaseModel):
    id: str | None = None
    name: str | None = None
    type: str | None = None


class PlayerStatePayload(BaseModel):
    """Subset of the `GET /v1/me/player` response body.

    Unknown fields are ignored. Podcast episodes and ads may arrive with
    `item` set to null, so every nested object is optional.
    """

    model_config = ConfigDict(extra="ignore")

    is_playing: bool = False
    timestamp: int = 0
    progress_ms: int | None = None
    item: SpotifyItem | None = None
    device: SpotifyDevice | None = None


class PlaybackSnapshot(BaseModel):
    """A single point-in-time capture of what is currently playing."""

    model_config = ConfigDict(frozen=True)

    track_name: str | None = None
    track_link: str | None = None
    artist_name: str | None = None
    artist_link: str | None = None
    device_id: str | None = None
    device_name: str | None = None
    device_type: str | None = None
    is_playing: bool = False
    progress_ms: int = 0
    duration_ms: int = 0
    timestamp_ms: int = 0

    @classmethod
    def from_payload(cls, payload: PlayerStatePayload) -> "PlaybackSnapshot":
        """Flatten a decoded player payload into a snapshot.

        Only the first artist is kept.
        """
        item = payload.item or SpotifyItem()
        device = payload.device or SpotifyDevice()
        artist = item.artists[0] if item.artists else SpotifyArtist()

        return cls(
            track_name=item.name,
            track_link=item.external_urls.spotify,
            artist_name=artist.name,
            artist_link=artist.external_urls.spotify,
            device_id=device.id,
            device_name=device.name,
            device_type=device.type,
            is_playing=payload.is_playing,
            progress_ms=payload.progress_ms or 0,
            duration_ms=item.duration_ms,
            timestamp_ms=payload.timestamp,
        )


class AllowedDevice(BaseModel):
    """Registered device whose label is rewritten as `<prefix> <device name>`."""

    id: str = Field(min_length=1)
    prefix: str


class DevicesConfig(BaseModel):
    """Shape of the `config.json` device registry file."""

    allowed_devices: list[AllowedDevice] = Field(default_factory=list, alias="allowedDevices")


class LinkInfo(BaseModel):
    """Both keys are always present; missing values render as empty strings."""

    link: str = Field(default="", serialization_alias="Link")
    name: str = Field(default="", serialization_alias="Name")


class SongData(BaseModel):
    artist: LinkInfo = Field(serialization_alias="Artist")
    song: LinkInfo = Field(serialization_alias="Song")
    device: str = Field(serialization_alias="Device")
    playing: bool = Field(serialization_alias="Playing")


class NowPlayingResponse(BaseModel):
    """Public `/NowPlaying` payload."""

    success: bool
    playing_data: SongData | None = Field(default=None, serialization_alias="playingData")
    song_end_time: str | None = Field(default=None, serialization_alias="songEndTime")
    message: str | None = None
