"""Protocol definitions for the external collaborators of the playback engine.

These protocols describe the interfaces the engine consumes, allowing the
Spotify adapters to be swapped for fakes in tests.
"""

from collections.abc import Callable, Sequence
from typing import Protocol

from listening_station.models import Source


class CredentialProvider(Protocol):
    """Issues short-lived access tokens."""

    async def get_token(self) -> str:
        """Return a valid access token, refreshing it when needed.

        Raises:
            AuthenticationExpired: If no token can be obtained
        """
        ...

    async def refresh(self) -> str:
        """Force a refresh, discarding any cached token."""
        ...


class CatalogProvider(Protocol):
    """Resolves a source to its ordered track list."""

    async def resolve(self, source: Source) -> Source:
        """Return a copy of ``source`` with its tracks filled in.

        Raises:
            CatalogException: If the source cannot be resolved
        """
        ...


class DeviceControl(Protocol):
    """Control surface of the remote playback device.

    State changes are not delivered through this interface; the adapter
    publishes them as DeviceStateEvent messages on the event channel.
    """

    async def register(self, device_name: str, credential_provider: CredentialProvider) -> str:
        """Register with the device and wait until it is ready.

        Returns:
            The device id reported by the ready event
        """
        ...

    async def activate(self) -> None:
        """Satisfy the platform's local-playback activation precondition."""
        ...

    async def transfer_playback(self, device_id: str, autoplay: bool) -> None: ...

    async def start_playback(self, device_id: str, uris: Sequence[str], position_ms: int = 0) -> None: ...

    async def pause_playback(self) -> None: ...

    async def resume_playback(self) -> None: ...

    async def seek(self, position_ms: int) -> None: ...

    async def skip_next(self) -> None: ...

    async def skip_previous(self) -> None: ...

    async def close(self) -> None:
        """Release the registration."""
        ...


class DeviceEventSource(Protocol):
    """Producer of DeviceStateEvent messages for the event channel."""

    def start(self, on_lost: Callable[[], None] | None = None) -> None:
        """Begin publishing; ``on_lost`` is called once if the stream dies."""
        ...

    async def stop(self) -> None: ...
