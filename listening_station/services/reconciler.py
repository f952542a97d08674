"""State reconciler: merges device state events with locally issued intents.

Device events arrive asynchronously and may still describe the previous
track or position after a local command has moved on. Every
state-invalidating intent opens a short suppression window during which
conflicting events are filtered, so the now-playing value never flashes
stale data.

The transitions are pure functions over an immutable ReconcilerState;
StateReconciler owns the single current state, replaces it wholesale and
is the only writer of DeviceState and NowPlaying.
"""

import asyncio
import time
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import (
    DeviceState,
    DeviceStateEvent,
    NowPlaying,
    PlaybackQueue,
    SourceAttribution,
    Suppression,
    SuppressionKind,
    Track,
)

logger = get_logger(__name__)

NowPlayingListener = Callable[[NowPlaying], None]


class ReconcilerState(BaseModel):
    model_config = ConfigDict(frozen=True)

    device: DeviceState = Field(default_factory=DeviceState)
    now_playing: NowPlaying = Field(default_factory=NowPlaying)
    suppression: Suppression | None = None
    queue: PlaybackQueue | None = None
    # Set by Stop until a playing event or a new queue arrives
    stopped: bool = False
    # Set from a Play intent until its queue is adopted or the start fails
    play_pending: bool = False


def _is_stale_for_new_session(state: ReconcilerState, event: DeviceStateEvent, near_zero: bool) -> bool:
    """Inside a play window, is this event a leftover of the previous session?"""
    if state.queue is not None and event.track_uri not in state.queue.uris:
        return True
    return event.paused and not near_zero


def reconcile(
    state: ReconcilerState,
    event: DeviceStateEvent,
    now: float,
    window_s: float,
    near_zero_ms: int,
) -> ReconcilerState:
    """Apply one device event and return the next state.

    Returns ``state`` itself when the event is dropped.
    """
    if state.play_pending:
        return state
    if state.stopped and event.paused:
        return state

    suppression = state.suppression
    in_window = suppression is not None and suppression.active(now)
    near_zero = event.position_ms <= near_zero_ms

    if in_window:
        if suppression.kind == SuppressionKind.STOP and event.paused:
            return state
        if suppression.kind == SuppressionKind.PLAY and _is_stale_for_new_session(state, event, near_zero):
            return state

    previous = state.now_playing
    if event.track_uri != previous.track_uri:
        # Covers local skips and the device advancing on its own
        position = 0
        suppression = Suppression(kind=SuppressionKind.TRACK_CHANGE, deadline=now + window_s)
    elif in_window and not near_zero:
        position = previous.position_ms
    else:
        position = event.position_ms

    duration = event.duration_ms or (event.track.duration_ms if event.track else 0)
    if duration:
        position = min(position, duration)

    attribution = state.queue.attribution_for(event.track_uri) if state.queue else SourceAttribution()

    return state.model_copy(
        update={
            "device": DeviceState(
                device_id=state.device.device_id,
                is_paused=event.paused,
                position_ms=event.position_ms,
                duration_ms=event.duration_ms,
                current_track_uri=event.track_uri,
            ),
            "now_playing": NowPlaying(
                track=event.track,
                position_ms=position,
                duration_ms=duration,
                is_playing=not event.paused,
                attribution=attribution,
            ),
            "suppression": suppression,
            "stopped": False,
        }
    )


def open_window(state: ReconcilerState, kind: SuppressionKind, now: float, window_s: float) -> ReconcilerState:
    return state.model_copy(update={"suppression": Suppression(kind=kind, deadline=now + window_s)})


def requested(state: ReconcilerState, now: float, window_s: float) -> ReconcilerState:
    """A Play intent was issued: hold NowPlaying until the new queue is adopted."""
    return state.model_copy(
        update={
            "suppression": Suppression(kind=SuppressionKind.PLAY, deadline=now + window_s),
            "play_pending": True,
        }
    )


def released(state: ReconcilerState) -> ReconcilerState:
    if not state.play_pending:
        return state
    return state.model_copy(update={"play_pending": False})


def adopt_queue(state: ReconcilerState, queue: PlaybackQueue, now: float, window_s: float) -> ReconcilerState:
    """Start a new session: the queue's first track at position zero."""
    first = queue.uris[0] if queue.uris else None
    now_playing = NowPlaying(
        track=Track(uri=first) if first else None,
        position_ms=0,
        duration_ms=0,
        is_playing=first is not None,
        attribution=queue.attribution_for(first),
    )
    return state.model_copy(
        update={
            "queue": queue,
            "now_playing": now_playing,
            "suppression": Suppression(kind=SuppressionKind.PLAY, deadline=now + window_s),
            "stopped": False,
            "play_pending": False,
        }
    )


def seeked(state: ReconcilerState, position_ms: int, now: float, window_s: float) -> ReconcilerState:
    now_playing = state.now_playing
    if now_playing.duration_ms:
        position_ms = min(position_ms, now_playing.duration_ms)
    return state.model_copy(
        update={
            "now_playing": now_playing.model_copy(update={"position_ms": position_ms}),
            "suppression": Suppression(kind=SuppressionKind.SEEK, deadline=now + window_s),
        }
    )


def cleared(state: ReconcilerState) -> ReconcilerState:
    """Drop all derived playback state; the suppression window survives.

    Paused events stay ignored afterwards, so a device that keeps reporting
    the stopped track cannot bring it back.
    """
    return ReconcilerState(
        device=DeviceState(device_id=state.device.device_id),
        suppression=state.suppression,
        stopped=True,
    )


def advanced(state: ReconcilerState, delta_ms: int) -> ReconcilerState:
    """Move the displayed position forward, clamped to the duration."""
    now_playing = state.now_playing
    if not now_playing.is_playing or now_playing.track is None:
        return state
    position = now_playing.position_ms + delta_ms
    if now_playing.duration_ms:
        position = min(position, now_playing.duration_ms)
    if position == now_playing.position_ms:
        return state
    return state.model_copy(update={"now_playing": now_playing.model_copy(update={"position_ms": position})})


class StateReconciler:
    """Single owner of the reconciled now-playing value.

    One instance is created per application and passed by reference to
    the dispatcher, the session, the ticker and the API.
    """

    def __init__(
        self,
        window_s: float = 1.5,
        near_zero_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._window_s = window_s
        self._near_zero_ms = near_zero_ms
        self._clock = clock
        self._state = ReconcilerState()
        self._listeners: list[NowPlayingListener] = []

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def now_playing(self) -> NowPlaying:
        return self._state.now_playing

    @property
    def device_state(self) -> DeviceState:
        return self._state.device

    @property
    def queue(self) -> PlaybackQueue | None:
        return self._state.queue

    def subscribe(self, listener: NowPlayingListener) -> None:
        self._listeners.append(listener)

    def _replace(self, new_state: ReconcilerState) -> None:
        previous = self._state.now_playing
        self._state = new_state
        if new_state.now_playing != previous:
            for listener in self._listeners:
                listener(new_state.now_playing)

    def apply(self, event: DeviceStateEvent) -> NowPlaying:
        new_state = reconcile(self._state, event, self._clock(), self._window_s, self._near_zero_ms)
        if new_state is self._state:
            log_with_context(
                logger,
                "debug",
                "Dropped stale device event",
                suppression=self._state.suppression.kind.value if self._state.suppression else None,
                play_pending=self._state.play_pending,
                stopped=self._state.stopped,
                track_uri=event.track_uri,
                paused=event.paused,
                position_ms=event.position_ms,
                event_type="device_event_suppressed",
            )
            return self._state.now_playing
        self._replace(new_state)
        return self._state.now_playing

    def note_intent(self, kind: SuppressionKind) -> None:
        """Record a state-invalidating intent by opening a suppression window."""
        self._replace(open_window(self._state, kind, self._clock(), self._window_s))

    def request_playback(self) -> None:
        """Open the PLAY window and ignore device events until the queue is adopted."""
        self._replace(requested(self._state, self._clock(), self._window_s))

    def release_playback(self) -> None:
        """Resume applying device events after a start sequence failed."""
        self._replace(released(self._state))

    def begin_playback(self, queue: PlaybackQueue) -> None:
        self._replace(adopt_queue(self._state, queue, self._clock(), self._window_s))
        log_with_context(
            logger,
            "info",
            "Playback session adopted",
            queue_kind=queue.kind.value,
            queue_length=len(queue.uris),
            event_type="queue_adopted",
        )

    def seeked(self, position_ms: int) -> None:
        self._replace(seeked(self._state, position_ms, self._clock(), self._window_s))

    def advance(self, delta_ms: int) -> None:
        self._replace(advanced(self._state, delta_ms))

    def set_device(self, device_id: str | None) -> None:
        device = self._state.device.model_copy(update={"device_id": device_id})
        self._replace(self._state.model_copy(update={"device": device}))

    def clear(self) -> None:
        self._replace(cleared(self._state))

    def reset(self) -> None:
        """Forget everything, including the device and any open window."""
        self._replace(ReconcilerState())

    async def run(self, channel: "asyncio.Queue[DeviceStateEvent]") -> None:
        """Consume device events until cancelled."""
        while True:
            event = await channel.get()
            try:
                self.apply(event)
            finally:
                channel.task_done()
