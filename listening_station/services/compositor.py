"""Shuffle compositor: turns selected sources into one playback queue."""

import asyncio
import random
from collections.abc import Iterable, Sequence

from listening_station.exceptions import (
    AuthenticationExpired,
    NoSourceSelected,
    PlaybackRequestFailed,
    StationException,
)
from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import (
    PartialCatalogLoad,
    PlaybackQueue,
    QueueKind,
    Source,
    SourceAttribution,
    SourceKind,
)
from listening_station.protocols import CatalogProvider

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


def _unique(uris: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for uri in uris:
        if uri not in seen:
            seen.add(uri)
            ordered.append(uri)
    return ordered


def build_attribution(sources: Sequence[Source]) -> dict[str, SourceAttribution]:
    """Map each contributed URI to the album and/or playlist it came from.

    The first album and the first playlist to contribute a URI win; a
    later match never overwrites them.
    """
    attribution: dict[str, SourceAttribution] = {}
    for source in sources:
        field = "album_name" if source.kind == SourceKind.ALBUM else "playlist_name"
        for uri in source.track_uris:
            current = attribution.get(uri, SourceAttribution())
            if getattr(current, field) is None:
                attribution[uri] = current.model_copy(update={field: source.name})
    return attribution


def compose_shuffled(
    sources: Sequence[Source],
    batch_size: int = DEFAULT_BATCH_SIZE,
    rng: random.Random | None = None,
) -> PlaybackQueue:
    """Merge resolved sources into a deduplicated, uniformly shuffled queue.

    Tracks beyond ``batch_size`` are excluded, not paginated.

    Raises:
        NoSourceSelected: If ``sources`` is empty
    """
    if not sources:
        raise NoSourceSelected()

    uris = _unique(uri for source in sources for uri in source.track_uris)
    # random.shuffle is an in-place Fisher-Yates permutation
    (rng or random).shuffle(uris)
    uris = uris[:batch_size]

    attribution = build_attribution(sources)
    return PlaybackQueue(
        kind=QueueKind.SHUFFLE,
        uris=tuple(uris),
        attribution={uri: attribution[uri] for uri in uris},
    )


def compose_ordered(
    source: Source,
    start_uri: str | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PlaybackQueue:
    """Queue one source in its own order, beginning at ``start_uri``.

    Tracks before the start track are dropped from this session. An
    unknown start track plays the source from the top.
    """
    uris = _unique(source.track_uris)
    if start_uri is not None:
        if start_uri in uris:
            uris = uris[uris.index(start_uri) :]
        else:
            log_with_context(
                logger,
                "warning",
                "Start track not in source, playing from the first track",
                source_id=source.id,
                start_uri=start_uri,
                event_type="start_track_missing",
            )
            start_uri = None
    uris = uris[:batch_size]

    attribution = build_attribution([source])
    kind = QueueKind.ALBUM if source.kind == SourceKind.ALBUM else QueueKind.PLAYLIST
    return PlaybackQueue(
        kind=kind,
        uris=tuple(uris),
        attribution={uri: attribution[uri] for uri in uris},
        start_uri=start_uri,
    )


class ShuffleCompositor:
    """Resolves selected sources through the catalog and composes queues.

    Every call recomputes from scratch; nothing is kept between dispatches.
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        batch_size: int = DEFAULT_BATCH_SIZE,
        rng: random.Random | None = None,
    ):
        self._catalog = catalog
        self._batch_size = batch_size
        self._rng = rng

    async def _resolve_one(self, source: Source) -> Source:
        if source.tracks:
            return source
        return await self._catalog.resolve(source)

    async def resolve(self, sources: Sequence[Source]) -> tuple[list[Source], PartialCatalogLoad | None]:
        """Resolve every source concurrently, skipping the ones that fail.

        Returns:
            The resolved sources with at least one track, and a
            PartialCatalogLoad warning if any were skipped.

        Raises:
            AuthenticationExpired: If any lookup was rejected for credentials
        """
        results = await asyncio.gather(*(self._resolve_one(s) for s in sources), return_exceptions=True)

        resolved: list[Source] = []
        skipped: list[str] = []
        for source, result in zip(sources, results, strict=True):
            if isinstance(result, AuthenticationExpired):
                raise result
            if isinstance(result, StationException):
                log_with_context(
                    logger,
                    "warning",
                    "Skipping source that failed to resolve",
                    source_id=source.id,
                    error=result.message,
                    event_type="catalog_source_skipped",
                )
                skipped.append(source.id)
            elif isinstance(result, BaseException):
                raise result
            elif not result.tracks:
                skipped.append(source.id)
            else:
                resolved.append(result)

        warning = None
        if skipped:
            warning = PartialCatalogLoad(
                skipped_sources=skipped,
                total_sources=len(sources),
                skipped_fraction=len(skipped) / len(sources),
            )
            log_with_context(
                logger,
                "warning",
                "Partial catalog load",
                skipped=len(skipped),
                total=len(sources),
                event_type="partial_catalog_load",
            )
        return resolved, warning

    async def shuffled(self, sources: Sequence[Source]) -> tuple[PlaybackQueue, PartialCatalogLoad | None]:
        """Build a shuffle queue from the selected sources.

        Raises:
            NoSourceSelected: If nothing is selected
            PlaybackRequestFailed: If no selected source yields a track
        """
        if not sources:
            raise NoSourceSelected()
        resolved, warning = await self.resolve(sources)
        if not resolved:
            raise PlaybackRequestFailed(
                "No tracks found in the selected sources",
                details={"skipped_sources": warning.skipped_sources if warning else []},
            )
        return compose_shuffled(resolved, self._batch_size, self._rng), warning

    async def ordered(self, source: Source, start_uri: str | None = None) -> PlaybackQueue:
        """Build an in-order queue for a single album or playlist.

        Raises:
            CatalogException: If the source cannot be resolved
            PlaybackRequestFailed: If the source has no playable tracks
        """
        resolved = await self._resolve_one(source)
        if not resolved.tracks:
            raise PlaybackRequestFailed(
                f"{source.kind.value.title()} has no playable tracks",
                details={"source_id": source.id},
            )
        return compose_ordered(resolved, start_uri, self._batch_size)
