"""Device session manager: connection lifecycle of the playback device."""

import asyncio

from listening_station.exceptions import DeviceNotReady, StationException
from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import SessionInfo, SessionStatus
from listening_station.protocols import CredentialProvider, DeviceControl, DeviceEventSource
from listening_station.services.reconciler import StateReconciler
from listening_station.services.retry import retry_after_refresh

logger = get_logger(__name__)


class DeviceSession:
    """Owns the Disconnected -> Connecting -> Ready -> Disconnected lifecycle.

    Disconnection is terminal for a session: there is no automatic
    reconnect or backoff, the user reconnects explicitly.
    """

    def __init__(
        self,
        device: DeviceControl,
        credentials: CredentialProvider,
        reconciler: StateReconciler,
        device_name: str,
        event_source: DeviceEventSource | None = None,
    ):
        self._device = device
        self._credentials = credentials
        self._reconciler = reconciler
        self._device_name = device_name
        self._event_source = event_source
        self._status = SessionStatus.DISCONNECTED
        self._device_id: str | None = None
        self._lock = asyncio.Lock()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def device_id(self) -> str | None:
        return self._device_id

    def info(self) -> SessionInfo:
        return SessionInfo(status=self._status, device_name=self._device_name, device_id=self._device_id)

    def require_ready(self) -> str:
        """Return the device id, or raise before any device call is made.

        Raises:
            DeviceNotReady: If the session is not ready
        """
        if self._status != SessionStatus.READY or self._device_id is None:
            raise DeviceNotReady(details={"status": self._status.value})
        return self._device_id

    async def connect(self) -> SessionInfo:
        """Acquire credentials, register with the device and wait for ready.

        Raises:
            AuthenticationExpired: If no access token can be obtained
            DeviceNotReady: If the device does not come online
            DeviceRequestError: If registration fails
        """
        async with self._lock:
            if self._status == SessionStatus.READY:
                return self.info()

            self._status = SessionStatus.CONNECTING
            log_with_context(
                logger,
                "info",
                "Connecting to playback device",
                device_name=self._device_name,
                event_type="session_connecting",
            )
            try:
                await self._credentials.get_token()
                device_id = await retry_after_refresh(
                    lambda: self._device.register(self._device_name, self._credentials),
                    "Device registration",
                    self._credentials,
                )
            except StationException as e:
                self._status = SessionStatus.DISCONNECTED
                log_with_context(
                    logger,
                    "warning",
                    "Device connection failed",
                    device_name=self._device_name,
                    error=e.message,
                    error_code=e.code.value,
                    event_type="session_connect_failed",
                )
                raise

            self._device_id = device_id
            self._status = SessionStatus.READY
            self._reconciler.set_device(device_id)
            if self._event_source is not None:
                self._event_source.start(on_lost=self.stream_lost)

            log_with_context(
                logger,
                "info",
                "Playback device ready",
                device_name=self._device_name,
                device_id=device_id,
                event_type="session_ready",
            )
            return self.info()

    async def disconnect(self) -> SessionInfo:
        """End the session and clear all playback state."""
        async with self._lock:
            if self._event_source is not None:
                await self._event_source.stop()
            try:
                await self._device.close()
            finally:
                self._device_id = None
                self._status = SessionStatus.DISCONNECTED
                self._reconciler.reset()
            log_with_context(logger, "info", "Playback device disconnected", event_type="session_disconnected")
            return self.info()

    def stream_lost(self) -> None:
        """Mark the session disconnected after the device event stream died.

        The reconciler keeps its last value; the displayed position keeps
        ticking until Stop or a new session.
        """
        if self._status == SessionStatus.DISCONNECTED:
            return
        self._status = SessionStatus.DISCONNECTED
        self._device_id = None
        log_with_context(
            logger,
            "error",
            "Device event stream lost, session disconnected",
            device_name=self._device_name,
            event_type="session_stream_lost",
        )
