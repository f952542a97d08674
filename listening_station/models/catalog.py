"""Catalog models: sources and the tracks they resolve to."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(str, Enum):
    """Kind of curated collection."""

    ALBUM = "album"
    PLAYLIST = "playlist"


class Track(BaseModel):
    """A playable track. Identity is the URI; a track may appear in several sources."""

    model_config = ConfigDict(frozen=True)

    uri: str = Field(min_length=1)
    name: str = ""
    artists: tuple[str, ...] = ()
    album_name: str | None = None
    duration_ms: int = Field(default=0, ge=0)
    artwork_url: str | None = None


class Source(BaseModel):
    """An album or playlist selectable for playback.

    Owned by the external catalog. ``tracks`` is empty until the catalog
    provider resolves the source.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: SourceKind
    name: str = ""
    image_url: str | None = None
    tracks: tuple[Track, ...] = ()

    @property
    def track_uris(self) -> list[str]:
        return [track.uri for track in self.tracks]
