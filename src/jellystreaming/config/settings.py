"""Application settings loaded from environment variables and .env.

Hey future me - every external service gets its OWN settings group with its own env prefix
(JELLYFIN_*, RADARR_*, ...). The top-level Settings just stitches the groups together, so code
reads `settings.radarr.url`, never a flat `settings.radarr_url`. A service with an empty `url`
counts as "not configured" - the client raises ConfigurationError instead of firing requests at
an empty base URL.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"


class JellyfinSettings(BaseSettings):
    """Jellyfin (playback library) connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="JELLYFIN_", env_file=_ENV_FILE, extra="ignore"
    )

    url: str = ""
    api_key: str = ""
    user_id: str = ""
    movies_parent_id: str = ""
    series_parent_id: str = ""
    search_limit: int = Field(default=20, ge=1, le=200)
    device_name: str = "jellystreaming-web"

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


class TMDBSettings(BaseSettings):
    """TMDB (metadata provider) settings."""

    model_config = SettingsConfigDict(
        env_prefix="TMDB_", env_file=_ENV_FILE, extra="ignore"
    )

    token: str = ""
    api_url: str = "https://api.themoviedb.org/3"
    language: str = "en-US"

    @property
    def is_configured(self) -> bool:
        return bool(self.token)


class RadarrSettings(BaseSettings):
    """Radarr (movie acquisition) settings."""

    model_config = SettingsConfigDict(
        env_prefix="RADARR_", env_file=_ENV_FILE, extra="ignore"
    )

    url: str = ""
    api_key: str = ""
    quality_profile_id: int = 1
    # Empty = ask Radarr for its root folders and use the first one
    root_folder_path: str = ""
    fallback_root_folder_path: str = "/movies"
    queue_page_size: int = Field(default=50, ge=1, le=500)

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


class SonarrSettings(BaseSettings):
    """Sonarr (series acquisition) settings."""

    model_config = SettingsConfigDict(
        env_prefix="SONARR_", env_file=_ENV_FILE, extra="ignore"
    )

    url: str = ""
    api_key: str = ""
    quality_profile_id: int = 1
    root_folder_path: str = ""
    fallback_root_folder_path: str = "/tv"
    queue_page_size: int = Field(default=50, ge=1, le=500)

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)


class ReconciliationSettings(BaseSettings):
    """Timing knobs for the detail-view polling loop.

    Hey future me - these used to be magic numbers (5s poll, 30s grace) buried in UI code.
    Keep poll_interval well below grace_window or the grace window never gets a chance to
    show SEARCHING more than once.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECONCILE_", env_file=_ENV_FILE, extra="ignore"
    )

    poll_interval_seconds: float = Field(default=5.0, gt=0)
    grace_window_seconds: float = Field(default=30.0, ge=0)
    max_open_views: int = Field(default=200, ge=1)
    view_idle_timeout_seconds: float = Field(default=600.0, gt=0)


class ObservabilitySettings(BaseSettings):
    """Logging output settings."""

    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_", env_file=_ENV_FILE, extra="ignore"
    )

    log_json_format: bool = False


class Settings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(env_file=_ENV_FILE, extra="ignore")

    app_name: str = "jellystreaming"
    log_level: str = "INFO"
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    api_prefix: str = "/api"

    jellyfin: JellyfinSettings = Field(default_factory=JellyfinSettings)
    tmdb: TMDBSettings = Field(default_factory=TMDBSettings)
    radarr: RadarrSettings = Field(default_factory=RadarrSettings)
    sonarr: SonarrSettings = Field(default_factory=SonarrSettings)
    reconciliation: ReconciliationSettings = Field(
        default_factory=ReconciliationSettings
    )
    observability: ObservabilitySettings = Field(
        default_factory=ObservabilitySettings
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


# Cached so FastAPI's Depends(get_settings) doesn't re-read .env on every request.
# Tests that need different values should build Settings(...) directly.
@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
