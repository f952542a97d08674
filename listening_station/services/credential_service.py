"""Spotify access-token provider (refresh-token grant)."""

from pathlib import Path

import httpx

from listening_station.config import Settings, get_settings
from listening_station.exceptions import AuthenticationExpired, ConfigurationException
from listening_station.logging_config import get_logger, log_with_context
from listening_station.state_managers import SpotifyAuthManager

logger = get_logger(__name__)

# Path to store a rotated refresh token persistently
TOKEN_FILE = Path.home() / ".spotify_refresh_token"


def _load_refresh_token(token_file: Path) -> str | None:
    """Load refresh token from file."""
    if token_file.exists():
        try:
            return token_file.read_text().strip() or None
        except OSError:
            return None
    return None


def _save_refresh_token(token_file: Path, refresh_token: str) -> None:
    """Save refresh token to file."""
    try:
        token_file.write_text(refresh_token)
        token_file.chmod(0o600)  # Secure file permissions
    except OSError as e:
        raise ConfigurationException(
            f"Failed to save refresh token: {e}",
            details={"token_file": str(token_file)},
        ) from e


class SpotifyCredentialService:
    """Issues short-lived access tokens from a long-lived refresh token.

    Tokens are cached in the SpotifyAuthManager. A rejected refresh token
    surfaces as AuthenticationExpired; the user has to re-authorize.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth_manager: SpotifyAuthManager,
        settings: Settings | None = None,
        token_file: Path = TOKEN_FILE,
    ):
        self._client = client
        self._auth_manager = auth_manager
        self._settings = settings or get_settings()
        self._token_file = token_file

    def is_authenticated(self) -> bool:
        """Check if a refresh token is available."""
        return self._refresh_token() is not None

    def _refresh_token(self) -> str | None:
        return _load_refresh_token(self._token_file) or self._settings.spotify_refresh_token or None

    async def get_token(self) -> str:
        """Return the cached access token, refreshing it when expired."""
        cached_token = await self._auth_manager.get_token()
        if cached_token:
            return cached_token
        return await self._request_token()

    async def refresh(self) -> str:
        """Discard the cached token and fetch a new one."""
        await self._auth_manager.invalidate()
        log_with_context(logger, "info", "Forcing Spotify token refresh", event_type="token_refresh_forced")
        return await self._request_token()

    async def _request_token(self) -> str:
        refresh_token = self._refresh_token()
        if not refresh_token:
            raise AuthenticationExpired("No refresh token available. Please authenticate first.")

        try:
            response = await self._client.post(
                self._settings.spotify_accounts_url,
                auth=(self._settings.spotify_client_id, self._settings.spotify_client_secret),
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                timeout=10.0,
            )
            response.raise_for_status()
            data = response.json()
            access_token = data["access_token"]
            expires_in = int(data.get("expires_in", 3600))
        except httpx.HTTPStatusError as e:
            log_with_context(
                logger,
                "warning",
                "Spotify token refresh rejected",
                status_code=e.response.status_code,
                event_type="token_refresh_rejected",
            )
            raise AuthenticationExpired(
                "Spotify token refresh failed - please reconnect Spotify",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise AuthenticationExpired(f"Spotify token refresh failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise AuthenticationExpired(f"Invalid Spotify auth response: {e}") from e

        await self._auth_manager.set_token(access_token, expires_in)

        # Spotify may or may not rotate the refresh token
        if data.get("refresh_token"):
            _save_refresh_token(self._token_file, data["refresh_token"])

        log_with_context(
            logger,
            "debug",
            "Spotify access token refreshed",
            expires_in=expires_in,
            event_type="token_refreshed",
        )
        return access_token
