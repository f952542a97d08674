"""Spotify Connect device adapter over the Spotify Web API.

Commands go out as Web API calls. Device state changes come in by polling
``GET /me/player`` and are published as DeviceStateEvent messages on the
reconciler's event channel.
"""

import asyncio
import contextlib
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from listening_station.config import Settings, get_settings
from listening_station.exceptions import (
    AuthenticationExpired,
    DeviceNotReady,
    DeviceRequestError,
    StationException,
)
from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import DeviceStateEvent, Track
from listening_station.protocols import CredentialProvider
from listening_station.state_managers import PlayerPollStateManager

logger = get_logger(__name__)


def parse_track(item: dict[str, Any] | None) -> Track | None:
    """Map a Web API track object to a Track, or None for non-track items."""
    if not item or not item.get("uri"):
        return None
    album = item.get("album") or {}
    images = album.get("images") or []
    return Track(
        uri=item["uri"],
        name=item.get("name") or "",
        artists=tuple(a.get("name", "") for a in item.get("artists") or []),
        album_name=album.get("name"),
        duration_ms=int(item.get("duration_ms") or 0),
        artwork_url=images[0]["url"] if images else None,
    )


def parse_player_state(data: dict[str, Any]) -> DeviceStateEvent:
    """Map a ``GET /me/player`` payload to a DeviceStateEvent."""
    item = data.get("item") or {}
    return DeviceStateEvent(
        paused=not bool(data.get("is_playing", False)),
        position_ms=int(data.get("progress_ms") or 0),
        duration_ms=int(item.get("duration_ms") or 0),
        track=parse_track(item),
    )


class SpotifyConnectDevice:
    """Control surface for one Spotify Connect device, found by name."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialProvider,
        settings: Settings | None = None,
    ):
        self._client = client
        self._credentials = credentials
        self._settings = settings or get_settings()
        self._device_id: str | None = None

    @property
    def device_id(self) -> str | None:
        return self._device_id

    async def _send(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Issue one Web API call.

        Raises:
            AuthenticationExpired: On HTTP 401
            DeviceRequestError: On any other HTTP or transport failure
        """
        if token is None:
            token = await self._credentials.get_token()
        kwargs: dict[str, Any] = {"headers": {"Authorization": f"Bearer {token}"}, "timeout": 10.0}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json

        url = f"{self._settings.spotify_api_url}{path}"
        try:
            response = await getattr(self._client, method)(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthenticationExpired(
                    "Spotify access token rejected",
                    details={"path": path},
                ) from e
            raise DeviceRequestError(
                f"Spotify {method.upper()} {path} failed with HTTP {status}",
                details={"path": path, "status_code": status},
            ) from e
        except httpx.HTTPError as e:
            raise DeviceRequestError(
                f"Spotify {method.upper()} {path} failed: {e}",
                details={"path": path, "error_type": type(e).__name__},
            ) from e
        return response

    def _device_params(self) -> dict[str, Any] | None:
        return {"device_id": self._device_id} if self._device_id else None

    async def register(self, device_name: str, credential_provider: CredentialProvider) -> str:
        """Find the Connect device called ``device_name`` and adopt its id.

        Raises:
            DeviceNotReady: If no device with that name is online
        """
        token = await credential_provider.get_token()
        response = await self._send("get", "/me/player/devices", token=token)
        devices = (response.json() or {}).get("devices") or []

        wanted = device_name.casefold()
        for device in devices:
            if (device.get("name") or "").casefold() == wanted and device.get("id"):
                self._device_id = device["id"]
                log_with_context(
                    logger,
                    "info",
                    "Spotify device registered",
                    device_name=device_name,
                    device_id=self._device_id,
                    event_type="device_registered",
                )
                return self._device_id

        raise DeviceNotReady(
            f"Spotify device {device_name!r} is not online",
            details={"available": [d.get("name") for d in devices]},
        )

    async def activate(self) -> None:
        # The Web API has no local activation gesture to satisfy
        log_with_context(logger, "debug", "Device activation requested", event_type="device_activate")

    async def transfer_playback(self, device_id: str, autoplay: bool) -> None:
        await self._send("put", "/me/player", json={"device_ids": [device_id], "play": autoplay})

    async def start_playback(self, device_id: str, uris: Sequence[str], position_ms: int = 0) -> None:
        await self._send(
            "put",
            "/me/player/play",
            params={"device_id": device_id},
            json={"uris": list(uris), "position_ms": position_ms},
        )

    async def pause_playback(self) -> None:
        await self._send("put", "/me/player/pause", params=self._device_params())

    async def resume_playback(self) -> None:
        await self._send("put", "/me/player/play", params=self._device_params())

    async def seek(self, position_ms: int) -> None:
        params = {"position_ms": position_ms, **(self._device_params() or {})}
        await self._send("put", "/me/player/seek", params=params)

    async def skip_next(self) -> None:
        await self._send("post", "/me/player/next", params=self._device_params())

    async def skip_previous(self) -> None:
        await self._send("post", "/me/player/previous", params=self._device_params())

    async def get_player_state(self) -> DeviceStateEvent | None:
        """Fetch the current player state.

        Returns:
            The state of this device, or None when nothing is playing or
            another device holds playback.
        """
        response = await self._send("get", "/me/player")
        if response.status_code == 204:
            return None
        data = response.json() or {}
        active_id = (data.get("device") or {}).get("id")
        if self._device_id and active_id and active_id != self._device_id:
            return None
        return parse_player_state(data)

    async def close(self) -> None:
        self._device_id = None


class PlayerStatePoller:
    """Publishes the device's player state on the event channel at a fixed cadence.

    After ``max_failures`` consecutive failed polls the stream is declared
    lost: ``on_lost`` is called once and polling stops.
    """

    def __init__(
        self,
        device: SpotifyConnectDevice,
        channel: "asyncio.Queue[DeviceStateEvent]",
        poll_state: PlayerPollStateManager,
        interval_s: float = 1.0,
        max_failures: int = 5,
    ):
        self._device = device
        self._channel = channel
        self._poll_state = poll_state
        self._interval_s = interval_s
        self._max_failures = max_failures
        self._on_lost: Callable[[], None] | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, on_lost: Callable[[], None] | None = None) -> None:
        if self.running:
            return
        self._on_lost = on_lost
        self._task = asyncio.create_task(self._run(), name="player-state-poller")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def poll_once(self) -> bool:
        """Poll once and publish the result.

        Returns:
            False once the stream has been declared lost
        """
        try:
            event = await self._device.get_player_state()
        except StationException as e:
            count = await self._poll_state.increment_failure()
            log_with_context(
                logger,
                "warning",
                "Player state poll failed",
                attempt=count,
                max_failures=self._max_failures,
                error=e.message,
                event_type="player_poll_failure",
            )
            if count >= self._max_failures:
                log_with_context(
                    logger,
                    "error",
                    "Player state stream lost",
                    failure_count=count,
                    event_type="player_stream_lost",
                )
                if self._on_lost is not None:
                    self._on_lost()
                return False
            return True

        await self._poll_state.reset_failures()
        if event is not None:
            self._channel.put_nowait(event)
        return True

    async def _run(self) -> None:
        await self._poll_state.reset_failures()
        while True:
            await asyncio.sleep(self._interval_s)
            if not await self.poll_once():
                return
