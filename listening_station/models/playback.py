"""Playback models: queues, intents, device state and the reconciled view."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from listening_station.exceptions import ErrorCode
from listening_station.models.catalog import Source, Track


class SourceAttribution(BaseModel):
    """Which selected source(s) contributed a track.

    The album name is primary: a later playlist match never overwrites it.
    """

    model_config = ConfigDict(frozen=True)

    album_name: str | None = None
    playlist_name: str | None = None


class QueueKind(str, Enum):
    ALBUM = "album"
    PLAYLIST = "playlist"
    SHUFFLE = "shuffle"


class PlaybackQueue(BaseModel):
    """Concrete, deduplicated URI list sent to the device for one session.

    Built fresh for every dispatch and replaced wholesale by the next one.
    """

    model_config = ConfigDict(frozen=True)

    kind: QueueKind
    uris: tuple[str, ...]
    attribution: dict[str, SourceAttribution] = Field(default_factory=dict)
    start_uri: str | None = None

    def attribution_for(self, uri: str | None) -> SourceAttribution:
        if uri is None:
            return SourceAttribution()
        return self.attribution.get(uri, SourceAttribution())


class PartialCatalogLoad(BaseModel):
    """Soft warning: some selected sources could not be resolved."""

    code: str = ErrorCode.PARTIAL_CATALOG_LOAD.value
    skipped_sources: list[str]
    total_sources: int
    skipped_fraction: float = Field(ge=0.0, le=1.0)


# Intents


class IntentKind(str, Enum):
    PLAY_ALBUM = "play_album"
    PLAY_PLAYLIST = "play_playlist"
    SHUFFLE_PLAY = "shuffle_play"
    PAUSE = "pause"
    RESUME = "resume"
    TOGGLE = "toggle"
    STOP = "stop"
    SEEK = "seek"
    NEXT = "next"
    PREVIOUS = "previous"


class PlayAlbum(BaseModel):
    kind: Literal[IntentKind.PLAY_ALBUM] = IntentKind.PLAY_ALBUM
    source: Source
    start_uri: str | None = None


class PlayPlaylist(BaseModel):
    kind: Literal[IntentKind.PLAY_PLAYLIST] = IntentKind.PLAY_PLAYLIST
    source: Source
    start_uri: str | None = None


class ShufflePlay(BaseModel):
    kind: Literal[IntentKind.SHUFFLE_PLAY] = IntentKind.SHUFFLE_PLAY
    sources: list[Source] = Field(default_factory=list)


class Pause(BaseModel):
    kind: Literal[IntentKind.PAUSE] = IntentKind.PAUSE


class Resume(BaseModel):
    kind: Literal[IntentKind.RESUME] = IntentKind.RESUME


class TogglePlay(BaseModel):
    kind: Literal[IntentKind.TOGGLE] = IntentKind.TOGGLE


class Stop(BaseModel):
    kind: Literal[IntentKind.STOP] = IntentKind.STOP


class Seek(BaseModel):
    kind: Literal[IntentKind.SEEK] = IntentKind.SEEK
    position_ms: int = Field(ge=0)


class Next(BaseModel):
    kind: Literal[IntentKind.NEXT] = IntentKind.NEXT


class Previous(BaseModel):
    kind: Literal[IntentKind.PREVIOUS] = IntentKind.PREVIOUS


Intent = PlayAlbum | PlayPlaylist | ShufflePlay | Pause | Resume | TogglePlay | Stop | Seek | Next | Previous


class DispatchResult(BaseModel):
    """Outcome of a start-new-playback sequence."""

    status: Literal["started", "superseded"]
    epoch: int
    queue: PlaybackQueue | None = None
    warning: PartialCatalogLoad | None = None


# Device side


class DeviceStateEvent(BaseModel):
    """A state-changed message from the device, as delivered on the event channel."""

    model_config = ConfigDict(frozen=True)

    paused: bool
    position_ms: int = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)
    track: Track | None = None

    @property
    def track_uri(self) -> str | None:
        return self.track.uri if self.track else None


class DeviceState(BaseModel):
    """Canonical external truth, written only from incoming device events."""

    model_config = ConfigDict(frozen=True)

    device_id: str | None = None
    is_paused: bool = True
    position_ms: int = 0
    duration_ms: int = 0
    current_track_uri: str | None = None


class NowPlaying(BaseModel):
    """The reconciled, UI-facing now-playing value."""

    model_config = ConfigDict(frozen=True)

    track: Track | None = None
    position_ms: int = 0
    duration_ms: int = 0
    is_playing: bool = False
    attribution: SourceAttribution = Field(default_factory=SourceAttribution)

    @property
    def track_uri(self) -> str | None:
        return self.track.uri if self.track else None


class SuppressionKind(str, Enum):
    """Why the current stale-suppression window was opened."""

    STOP = "stop"
    PLAY = "play"
    NEXT = "next"
    PREVIOUS = "previous"
    SEEK = "seek"
    TRACK_CHANGE = "track_change"


class Suppression(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: SuppressionKind
    deadline: float

    def active(self, now: float) -> bool:
        return now < self.deadline
