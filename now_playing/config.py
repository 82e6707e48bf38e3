import json
from functools import cached_property
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from now_playing.logging_config import get_logger, log_with_context
from now_playing.models.spotify import AllowedDevice, DevicesConfig
from now_playing.utils.ids import random_string

logger = get_logger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent  # now-playing-backend/


class Settings(BaseSettings):
    """Application settings with validation.

    Spotify credentials are required and raise validation errors if missing,
    so a misconfigured process fails at startup instead of polling forever.
    All secrets must be provided via environment variables or .env file.
    """

    # API server settings
    api_host: str = Field(default="0.0.0.0", min_length=1, description="API server host")
    api_port: int = Field(ge=1, le=65535, default=5005, description="API server port")
    environment: str = Field(default="production", description="'development' enables verbose logging")
    log_level: str = Field(default="INFO", description="Log level when not in development")

    # Spotify API - required
    spotify_client_id: str = Field(min_length=1, description="Spotify OAuth client ID")
    spotify_client_secret: str = Field(min_length=1, description="Spotify OAuth client secret")
    spotify_redirect_uri: str = Field(
        default="",
        description="Public callback URL; derived from the incoming request when empty",
    )

    # Persistence
    refresh_token_file: str = Field(default=".refreshToken", description="File holding the refresh token")
    devices_config_file: str = Field(default="config.json", description="Allowed device registry file")
    allowed_devices: list[AllowedDevice] = Field(
        default_factory=list, description="JSON list of {id, prefix}; overrides file entries"
    )

    # Admin flow
    admin_path: str = Field(default_factory=lambda: random_string(15), min_length=1)
    admin_update_path: str = Field(default_factory=lambda: random_string(5), min_length=1)
    admin_cookie_max_age: int = Field(default=24 * 60 * 60, ge=60, description="Admin cookie lifetime (s)")
    proxy_header: str = Field(default="CF-Connecting-IP", description="Header carrying the real client IP")
    cors_origins: str = Field(default="*", description="Comma-separated allowed CORS origins")

    # Polling
    poll_base_seconds: float = Field(default=4, gt=0, description="Minimum delay between polls")
    poll_jitter_seconds: int = Field(default=6, ge=1, description="Random extra delay range (s)")
    staleness_threshold_seconds: float = Field(default=15, gt=0)
    refresh_on_read: bool = Field(default=False, description="Refetch synchronously on stale reads")
    http_timeout_seconds: float = Field(default=10.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=Path(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() in ("development", "dev")

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.is_development else self.log_level.upper()

    @property
    def refresh_token_path(self) -> Path:
        path = Path(self.refresh_token_file)
        return path if path.is_absolute() else BASE_DIR / path

    @property
    def devices_config_path(self) -> Path:
        path = Path(self.devices_config_file)
        return path if path.is_absolute() else BASE_DIR / path

    @cached_property
    def device_registry(self) -> dict[str, AllowedDevice]:
        """Load the allowed device registry.

        Reads `config.json` once per Settings instance and layers the
        `ALLOWED_DEVICES` entries on top. A missing file is not an error.

        Returns:
            Mapping of Spotify device id to its registry entry

        Raises:
            ValueError: If the file is not valid JSON or has the wrong shape
        """
        registry: dict[str, AllowedDevice] = {}
        file_path = self.devices_config_path

        if file_path.exists():
            try:
                data = json.loads(file_path.read_text(encoding="utf-8"))
                config = DevicesConfig.model_validate(data)
            except (json.JSONDecodeError, ValidationError) as e:
                log_with_context(
                    logger,
                    "error",
                    "Invalid device registry file",
                    file_path=str(file_path),
                    error=str(e),
                    event_type="config_devices_invalid",
                )
                raise ValueError(f"{file_path.name} is not a valid device registry: {e}") from e
            registry.update({device.id: device for device in config.allowed_devices})
        else:
            log_with_context(
                logger,
                "info",
                "No device registry file found, using environment entries only",
                file_path=str(file_path),
                event_type="config_devices_missing",
            )

        registry.update({device.id: device for device in self.allowed_devices})
        return registry

    @field_validator("spotify_client_id", "spotify_client_secret", mode="after")
    @classmethod
    def validate_credentials(cls, v: str) -> str:
        """Ensure credentials are not whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Spotify credentials must not be empty")
        return v

    @field_validator("admin_path", "admin_update_path", mode="after")
    @classmethod
    def validate_path_segment(cls, v: str) -> str:
        """Admin path segments are single URL path segments."""
        v = v.strip().strip("/")
        if not v or "/" in v:
            raise ValueError("admin path segments must be non-empty and contain no '/'")
        return v

    @field_validator("spotify_redirect_uri", mode="after")
    @classmethod
    def validate_spotify_redirect_uri(cls, v: str) -> str:
        """Ensure an explicit redirect URI is an http(s) URL."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("spotify_redirect_uri must be a valid http:// or https:// URL")
        return v


# Singleton settings instance (cached for performance)
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get singleton Settings instance for dependency injection.

    Reading the environment once also keeps the randomly generated admin
    path stable for the lifetime of the process.

    Returns:
        Cached Settings instance
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
