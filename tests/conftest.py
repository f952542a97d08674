"""Pytest configuration and shared fixtures."""

import os
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

# Required settings must exist before the app module is imported
os.environ.setdefault("SPOTIFY_CLIENT_ID", "test-spotify-client-id")
os.environ.setdefault("SPOTIFY_CLIENT_SECRET", "test-spotify-client-secret")
os.environ.setdefault("STATION_API_KEY", "test-api-key")

from listening_station.config import Settings  # noqa: E402
from listening_station.models import Source, SourceKind, Track  # noqa: E402
from listening_station.services.reconciler import StateReconciler  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_source(source_id: str, kind: SourceKind, track_ids: list[str], name: str | None = None) -> Source:
    return Source(
        id=source_id,
        kind=kind,
        name=name or source_id,
        tracks=tuple(Track(uri=f"spotify:track:{t}", name=t, duration_ms=200000) for t in track_ids),
    )


def _make_response(status_code: int = 200, json_data=None, method: str = "GET", url: str = "https://api.test/x"):
    """Build a real httpx.Response so raise_for_status behaves."""
    request = httpx.Request(method, url)
    if json_data is None:
        return httpx.Response(status_code, request=request)
    return httpx.Response(status_code, json=json_data, request=request)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reconciler(clock):
    return StateReconciler(window_s=1.5, near_zero_ms=1000, clock=clock)


@pytest.fixture
def mock_settings(tmp_path):
    """Settings instance with test values."""
    return Settings(
        _env_file=None,
        api_host="127.0.0.1",
        api_port=8000,
        station_api_key="test-api-key",
        spotify_client_id="test-spotify-client-id",
        spotify_client_secret="test-spotify-client-secret",
        spotify_refresh_token="test-refresh-token",
        spotify_api_url="https://api.test/v1",
        spotify_accounts_url="https://accounts.test/api/token",
        device_name="Listening Station",
    )


@pytest.fixture
def mock_http_client():
    """Mock httpx.AsyncClient for external API calls."""
    mock_client = AsyncMock(spec=httpx.AsyncClient)
    mock_client.get = AsyncMock()
    mock_client.post = AsyncMock()
    mock_client.put = AsyncMock()
    mock_client.aclose = AsyncMock()
    return mock_client


@pytest.fixture
def mock_credentials():
    """Mock credential provider."""
    credentials = AsyncMock()
    credentials.get_token = AsyncMock(return_value="access-token")
    credentials.refresh = AsyncMock(return_value="fresh-token")
    credentials.is_authenticated = MagicMock(return_value=True)
    return credentials


@pytest.fixture
def mock_device():
    """Mock device control surface."""
    device = AsyncMock()
    device.register = AsyncMock(return_value="device-1")
    device.activate = AsyncMock()
    device.transfer_playback = AsyncMock()
    device.start_playback = AsyncMock()
    device.pause_playback = AsyncMock()
    device.resume_playback = AsyncMock()
    device.seek = AsyncMock()
    device.skip_next = AsyncMock()
    device.skip_previous = AsyncMock()
    device.close = AsyncMock()
    return device


@pytest.fixture
def mock_event_source():
    """Mock device event producer."""
    source = MagicMock()
    source.start = MagicMock()
    source.stop = AsyncMock()
    return source


@pytest.fixture
def album_x():
    return _make_source("album-x", SourceKind.ALBUM, ["t1", "t2"], name="Album X")


@pytest.fixture
def playlist_y():
    return _make_source("playlist-y", SourceKind.PLAYLIST, ["t2", "t3"], name="Playlist Y")


@pytest.fixture
def make_source():
    """Factory for sources with ``spotify:track:<id>`` tracks."""
    return _make_source


@pytest.fixture
def make_response():
    """Factory for real httpx responses."""
    return _make_response
