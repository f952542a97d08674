"""State managers for handling application-wide mutable state.

State managers guard their state with asyncio.Lock and share a small
lifecycle interface through the StateManager ABC.
"""

import asyncio
import time
from abc import ABC, abstractmethod


class StateManager(ABC):
    """Base class for all state managers.

    All subclasses must implement lifecycle methods.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the state manager (called during app startup)."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Cleanup resources (called during app shutdown)."""
        pass


class SpotifyAuthManager(StateManager):
    """Caches the short-lived Spotify access token.

    A token is reported as missing once it is within ``refresh_margin_s``
    seconds of expiry, so callers refresh before the device rejects it.
    """

    def __init__(self, refresh_margin_s: float = 300):
        self._access_token: str | None = None
        self._token_expires_at: float = 0
        self._refresh_margin_s = refresh_margin_s
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        """Forget the token on shutdown."""
        await self.invalidate()

    async def get_token(self) -> str | None:
        """Get the current access token if available and not about to expire.

        Returns:
            Access token string or None if expired/not set
        """
        async with self._lock:
            if self._access_token and self._token_expires_at - self._refresh_margin_s > time.time():
                return self._access_token
            return None

    async def set_token(self, token: str, expires_in: int) -> None:
        """Set a new access token with expiration.

        Args:
            token: The access token string
            expires_in: Expiration time in seconds
        """
        async with self._lock:
            self._access_token = token
            self._token_expires_at = time.time() + expires_in

    async def invalidate(self) -> None:
        """Drop the cached token so the next request refreshes it."""
        async with self._lock:
            self._access_token = None
            self._token_expires_at = 0


class PlayerPollStateManager(StateManager):
    """Tracks consecutive player-state poll failures.

    The device session uses the count to decide when the event stream
    is lost.
    """

    def __init__(self):
        self._failure_count: int = 0
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def cleanup(self) -> None:
        await self.reset_failures()

    async def get_failure_count(self) -> int:
        async with self._lock:
            return self._failure_count

    async def increment_failure(self) -> int:
        """Increment the failure count.

        Returns:
            Updated failure count
        """
        async with self._lock:
            self._failure_count += 1
            return self._failure_count

    async def reset_failures(self) -> None:
        async with self._lock:
            self._failure_count = 0
