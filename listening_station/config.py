from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent  # listening-station/


class Settings(BaseSettings):
    """Application settings with validation.

    Spotify client credentials are required; everything else has a default
    tuned for a single Spotify Connect speaker on the local network.
    All secrets must be provided via environment variables or .env file.
    """

    # API server settings
    api_host: str = Field(default="127.0.0.1", min_length=1, description="API server host")
    api_port: int = Field(ge=1, le=65535, default=8000, description="API server port")
    station_api_key: str = Field(default="", description="Bearer key required on /api/* routes")
    cors_origins: str = Field(default="http://localhost:8000", description="Comma separated CORS origins")
    trusted_hosts: str = Field(default="localhost,127.0.0.1,testserver", description="Comma separated hosts")
    log_level: str = Field(default="INFO", description="Root log level")

    # Spotify API - credentials are required
    spotify_client_id: str = Field(min_length=1, description="Spotify OAuth client ID")
    spotify_client_secret: str = Field(min_length=1, description="Spotify OAuth client secret")
    spotify_refresh_token: str = Field(default="", description="Spotify refresh token (populated after OAuth)")
    spotify_api_url: str = Field(default="https://api.spotify.com/v1", pattern=r"^https?://")
    spotify_accounts_url: str = Field(default="https://accounts.spotify.com/api/token", pattern=r"^https?://")
    token_refresh_margin_s: int = Field(
        default=300, ge=0, le=1800, description="Treat access tokens as expired this many seconds early"
    )

    # Device
    device_name: str = Field(default="Listening Station", min_length=1, description="Connect device to play on")
    poll_interval_ms: int = Field(default=1000, ge=200, le=10000, description="Player state poll cadence")
    max_poll_failures: int = Field(default=5, ge=1, description="Consecutive poll failures before disconnect")

    # Playback orchestration
    suppression_window_ms: int = Field(
        default=1500, ge=100, le=10000, description="Stale-event suppression window after an intent"
    )
    near_zero_position_ms: int = Field(
        default=1000, ge=0, le=5000, description="Positions at or below this are accepted inside a window"
    )
    settle_delay_ms: int = Field(default=500, ge=0, le=5000, description="Pause between transfer and play")
    queue_batch_size: int = Field(default=100, ge=1, le=500, description="Maximum URIs sent per play request")
    tick_interval_ms: int = Field(default=1000, ge=50, le=5000, description="Displayed position tick cadence")

    model_config = SettingsConfigDict(
        env_file=Path(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    @property
    def suppression_window_s(self) -> float:
        return self.suppression_window_ms / 1000

    @property
    def settle_delay_s(self) -> float:
        return self.settle_delay_ms / 1000

    @property
    def tick_interval_s(self) -> float:
        return self.tick_interval_ms / 1000

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000

    @field_validator("api_host", "device_name", mode="after")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure the value is not empty or whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("value cannot be empty")
        return v

    @field_validator("log_level", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log_level names a standard logging level."""
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a standard logging level, got {v!r}")
        return v

    @field_validator("spotify_api_url", "spotify_accounts_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


# Singleton settings instance (cached for performance)
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get singleton Settings instance for dependency injection.

    Avoids re-reading the .env file on every request. Use with
    FastAPI's Depends().

    Returns:
        Cached Settings instance
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
