"""Command dispatcher: turns user intents into device call sequences.

Starting new playback is a multi-step causal chain (pause, activate,
transfer, settle, play). Every such sequence captures a fresh epoch and
checks it before each step; a newer intent (another Play*, or Stop)
supersedes an older sequence, which then returns quietly without
touching the reconciled state.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from listening_station.exceptions import (
    CatalogException,
    DeviceRequestError,
    NoSourceSelected,
    PlaybackRequestFailed,
    StationException,
    TransferFailed,
)
from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import (
    DispatchResult,
    Intent,
    Next,
    Pause,
    PartialCatalogLoad,
    PlayAlbum,
    PlaybackQueue,
    PlayPlaylist,
    Previous,
    Resume,
    Seek,
    SessionStatus,
    ShufflePlay,
    Source,
    Stop,
    SuppressionKind,
    TogglePlay,
)
from listening_station.protocols import CredentialProvider, DeviceControl
from listening_station.services.compositor import ShuffleCompositor
from listening_station.services.device_session import DeviceSession
from listening_station.services.reconciler import StateReconciler
from listening_station.services.retry import retry_after_refresh

logger = get_logger(__name__)

T = TypeVar("T")


class _Superseded(Exception):
    """Raised inside a start sequence once a newer intent has taken over."""


class CommandDispatcher:
    def __init__(
        self,
        device: DeviceControl,
        session: DeviceSession,
        reconciler: StateReconciler,
        compositor: ShuffleCompositor,
        credentials: CredentialProvider,
        settle_delay_s: float = 0.5,
    ):
        self._device = device
        self._session = session
        self._reconciler = reconciler
        self._compositor = compositor
        self._credentials = credentials
        self._settle_delay_s = settle_delay_s
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    def _next_epoch(self) -> int:
        self._epoch += 1
        return self._epoch

    def _check(self, epoch: int) -> None:
        if epoch != self._epoch:
            raise _Superseded()

    async def _call(self, step: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await retry_after_refresh(operation, step, self._credentials)

    # Start-new-playback intents

    async def play_album(self, source: Source, start_uri: str | None = None) -> DispatchResult:
        return await self._play_source(source, start_uri)

    async def play_playlist(self, source: Source, start_uri: str | None = None) -> DispatchResult:
        return await self._play_source(source, start_uri)

    async def shuffle_play(self, sources: Sequence[Source]) -> DispatchResult:
        """Shuffle the union of the selected sources and play it.

        Raises:
            NoSourceSelected: If no source is selected
            DeviceNotReady: If the session is not ready
        """
        if not sources:
            raise NoSourceSelected()
        self._session.require_ready()
        return await self._start(lambda: self._call("Catalog lookup", lambda: self._compositor.shuffled(sources)))

    async def _play_source(self, source: Source | None, start_uri: str | None) -> DispatchResult:
        if source is None:
            raise NoSourceSelected()
        self._session.require_ready()

        async def build() -> tuple[PlaybackQueue, PartialCatalogLoad | None]:
            try:
                queue = await self._call("Catalog lookup", lambda: self._compositor.ordered(source, start_uri))
            except CatalogException as e:
                raise PlaybackRequestFailed(
                    f"Could not load {source.kind.value}",
                    details={"source_id": source.id, "reason": e.message},
                ) from e
            return queue, None

        return await self._start(build)

    async def _start(
        self,
        build: Callable[[], Awaitable[tuple[PlaybackQueue, PartialCatalogLoad | None]]],
    ) -> DispatchResult:
        """Take a new epoch, build the queue and run the start sequence.

        Device events are held off from the intent until the queue is
        adopted. A failed start releases the hold and leaves NowPlaying as
        it was.
        """
        epoch = self._next_epoch()
        self._reconciler.request_playback()
        try:
            queue, warning = await build()
            self._check(epoch)
            log_with_context(
                logger,
                "info",
                "Starting playback sequence",
                epoch=epoch,
                queue_kind=queue.kind.value,
                queue_length=len(queue.uris),
                event_type="playback_sequence_start",
            )
            await self._run_sequence(epoch, queue)
            self._reconciler.begin_playback(queue)
        except _Superseded:
            return self._superseded(epoch)
        except StationException as e:
            if epoch != self._epoch:
                return self._superseded(epoch)
            log_with_context(
                logger,
                "error",
                "Playback sequence failed",
                epoch=epoch,
                error=e.message,
                error_code=e.code.value,
                event_type="playback_sequence_failed",
            )
            raise
        finally:
            if epoch == self._epoch:
                self._reconciler.release_playback()

        return DispatchResult(status="started", epoch=epoch, queue=queue, warning=warning)

    async def _run_sequence(self, epoch: int, queue: PlaybackQueue) -> None:
        self._check(epoch)
        await self._best_effort_pause()

        self._check(epoch)
        device_id = self._session.require_ready()
        try:
            await self._call("Device activation", self._device.activate)
            self._check(epoch)
            await self._call(
                "Playback transfer",
                lambda: self._device.transfer_playback(device_id, autoplay=False),
            )
        except DeviceRequestError as e:
            raise TransferFailed(details={"device_id": device_id, "reason": e.message}) from e

        self._check(epoch)
        await asyncio.sleep(self._settle_delay_s)

        self._check(epoch)
        try:
            await self._call(
                "Start playback",
                lambda: self._device.start_playback(device_id, queue.uris, position_ms=0),
            )
        except DeviceRequestError as e:
            raise PlaybackRequestFailed(details={"device_id": device_id, "reason": e.message}) from e

        self._check(epoch)

    def _superseded(self, epoch: int) -> DispatchResult:
        log_with_context(
            logger,
            "info",
            "Playback sequence superseded",
            epoch=epoch,
            current_epoch=self._epoch,
            event_type="playback_sequence_superseded",
        )
        return DispatchResult(status="superseded", epoch=epoch)

    async def _best_effort_pause(self) -> None:
        try:
            await self._call("Pause", self._device.pause_playback)
        except StationException as e:
            log_with_context(
                logger,
                "debug",
                "Best-effort pause failed",
                error=e.message,
                event_type="best_effort_pause_failed",
            )

    # Stop

    async def stop(self) -> None:
        """Stop playback and clear all derived state.

        Supersedes any in-flight start sequence. Never raises, also when
        no device is connected.
        """
        self._next_epoch()
        self._reconciler.note_intent(SuppressionKind.STOP)
        try:
            if self._session.status == SessionStatus.READY:
                await self._best_effort_pause()
        finally:
            self._reconciler.clear()
        log_with_context(logger, "info", "Playback stopped", epoch=self._epoch, event_type="playback_stopped")

    # Single-call intents

    async def _single(self, step: str, operation: Callable[[], Awaitable[None]]) -> None:
        self._session.require_ready()
        try:
            await self._call(step, operation)
        except DeviceRequestError as e:
            log_with_context(
                logger,
                "error",
                f"{step} failed",
                error=e.message,
                event_type="playback_command_failed",
            )
            raise PlaybackRequestFailed(f"{step} failed", details={"reason": e.message}) from e

    async def pause(self) -> None:
        await self._single("Pause", self._device.pause_playback)

    async def resume(self) -> None:
        await self._single("Resume", self._device.resume_playback)

    async def toggle(self) -> None:
        if self._reconciler.now_playing.is_playing:
            await self.pause()
        else:
            await self.resume()

    async def next(self) -> None:
        self._session.require_ready()
        self._reconciler.note_intent(SuppressionKind.NEXT)
        await self._single("Skip to next", self._device.skip_next)

    async def previous(self) -> None:
        self._session.require_ready()
        self._reconciler.note_intent(SuppressionKind.PREVIOUS)
        await self._single("Skip to previous", self._device.skip_previous)

    async def seek(self, position_ms: int) -> None:
        self._session.require_ready()
        self._reconciler.note_intent(SuppressionKind.SEEK)
        await self._single("Seek", lambda: self._device.seek(position_ms))
        self._reconciler.seeked(position_ms)

    async def dispatch(self, intent: Intent) -> DispatchResult | None:
        """Route an intent to its handler.

        Returns:
            DispatchResult for start-new-playback intents, otherwise None
        """
        if isinstance(intent, PlayAlbum):
            return await self.play_album(intent.source, intent.start_uri)
        if isinstance(intent, PlayPlaylist):
            return await self.play_playlist(intent.source, intent.start_uri)
        if isinstance(intent, ShufflePlay):
            return await self.shuffle_play(intent.sources)
        if isinstance(intent, Stop):
            await self.stop()
        elif isinstance(intent, Pause):
            await self.pause()
        elif isinstance(intent, Resume):
            await self.resume()
        elif isinstance(intent, TogglePlay):
            await self.toggle()
        elif isinstance(intent, Seek):
            await self.seek(intent.position_ms)
        elif isinstance(intent, Next):
            await self.next()
        elif isinstance(intent, Previous):
            await self.previous()
        else:
            raise ValueError(f"Unsupported intent: {intent!r}")
        return None
