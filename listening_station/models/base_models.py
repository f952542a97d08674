"""Pydantic models for request/response validation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from listening_station.models.catalog import SourceKind
from listening_station.models.playback import NowPlaying


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response with dependency status."""

    status: str = Field(..., description="Overall health status: healthy or unhealthy")
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(..., description="Current server timestamp")
    checks: dict[str, str] = Field(..., description="Individual health check results")


class DebugInfo(BaseModel):
    """Debug information about application state."""

    system: dict[str, Any] = Field(..., description="System information")
    state: dict[str, Any] = Field(..., description="Application state")
    config: dict[str, Any] = Field(..., description="Configuration (sanitized)")
    requests: dict[str, int] = Field(..., description="Request statistics")


class SourceRequest(BaseModel):
    """A source selected by the client; tracks are resolved server-side."""

    id: str = Field(min_length=1, description="Spotify album or playlist id")
    kind: SourceKind
    name: str = ""


class PlaySourceRequest(BaseModel):
    source: SourceRequest
    start_uri: str | None = Field(default=None, description="Track URI to begin playback at")


class ShuffleRequest(BaseModel):
    sources: list[SourceRequest] = Field(default_factory=list)


class SeekRequest(BaseModel):
    position_ms: int = Field(ge=0)


class CommandResponse(BaseModel):
    """Result of a single playback command."""

    status: str
    now_playing: NowPlaying
