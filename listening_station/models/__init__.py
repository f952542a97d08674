"""Listening Station models"""

from listening_station.models.base_models import (
    CommandResponse,
    DebugInfo,
    DetailedHealthResponse,
    HealthResponse,
    PlaySourceRequest,
    SeekRequest,
    ShuffleRequest,
    SourceRequest,
)
from listening_station.models.catalog import Source, SourceKind, Track
from listening_station.models.playback import (
    DeviceState,
    DeviceStateEvent,
    DispatchResult,
    Intent,
    IntentKind,
    Next,
    NowPlaying,
    PartialCatalogLoad,
    Pause,
    PlayAlbum,
    PlaybackQueue,
    PlayPlaylist,
    Previous,
    QueueKind,
    Resume,
    Seek,
    ShufflePlay,
    SourceAttribution,
    Stop,
    Suppression,
    SuppressionKind,
    TogglePlay,
)
from listening_station.models.session import SessionInfo, SessionStatus

__all__ = [
    "CommandResponse",
    "DebugInfo",
    "DetailedHealthResponse",
    "DeviceState",
    "DeviceStateEvent",
    "DispatchResult",
    "HealthResponse",
    "Intent",
    "IntentKind",
    "Next",
    "NowPlaying",
    "PartialCatalogLoad",
    "Pause",
    "PlayAlbum",
    "PlaySourceRequest",
    "PlaybackQueue",
    "PlayPlaylist",
    "Previous",
    "QueueKind",
    "Resume",
    "Seek",
    "SeekRequest",
    "SessionInfo",
    "SessionStatus",
    "ShufflePlay",
    "ShuffleRequest",
    "Source",
    "SourceAttribution",
    "SourceKind",
    "SourceRequest",
    "Stop",
    "Suppression",
    "SuppressionKind",
    "TogglePlay",
    "Track",
]
