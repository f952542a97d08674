"""Position ticker: smooths the displayed position between device events."""

import asyncio
import contextlib

from listening_station.logging_config import get_logger
from listening_station.models import NowPlaying
from listening_station.services.reconciler import StateReconciler

logger = get_logger(__name__)


class PositionTicker:
    """Advances the reconciler's position by one interval per interval while playing.

    Writes go to the reconciler's own position field; there is no separate
    predicted position. The tick task is restarted whenever playing state
    or track identity changes, so each track starts a fresh cadence.
    """

    def __init__(self, reconciler: StateReconciler, interval_s: float = 1.0):
        self._reconciler = reconciler
        self._interval_s = interval_s
        self._task: asyncio.Task | None = None
        self._key: tuple[bool, str | None] = (False, None)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def attach(self) -> None:
        """Follow the reconciler and tick whenever it reports playback."""
        self._reconciler.subscribe(self.on_change)
        self.on_change(self._reconciler.now_playing)

    def on_change(self, now_playing: NowPlaying) -> None:
        key = (now_playing.is_playing, now_playing.track_uri)
        if key == self._key and (self.running or not now_playing.is_playing):
            return
        self._key = key
        self._cancel()
        if now_playing.is_playing and now_playing.track is not None:
            self._task = asyncio.create_task(self._run(), name="position-ticker")
            logger.debug("Position ticker restarted for %s", now_playing.track_uri)

    def _cancel(self) -> None:
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._key = (False, None)
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        delta_ms = round(self._interval_s * 1000)
        while True:
            await asyncio.sleep(self._interval_s)
            self._reconciler.advance(delta_ms)
