"""Spotify catalog lookups: resolve an album or playlist to its tracks."""

import httpx

from listening_station.config import Settings, get_settings
from listening_station.exceptions import AuthenticationExpired, CatalogException
from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import Source, SourceKind, Track
from listening_station.protocols import CredentialProvider
from listening_station.services.spotify_device import parse_track

logger = get_logger(__name__)

ALBUM_PAGE_LIMIT = 50
PLAYLIST_PAGE_LIMIT = 100


class SpotifyCatalog:
    """Fetch-and-reuse catalog lookup; no caching beyond a single expansion."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialProvider,
        settings: Settings | None = None,
    ):
        self._client = client
        self._credentials = credentials
        self._settings = settings or get_settings()

    async def resolve(self, source: Source) -> Source:
        """Return ``source`` with its tracks filled in.

        Album track objects carry no album block, so the source's own name
        and image are used for their album metadata.

        Raises:
            AuthenticationExpired: If the access token is rejected
            CatalogException: If the lookup fails
        """
        if source.kind == SourceKind.ALBUM:
            path = f"/albums/{source.id}/tracks"
            limit = ALBUM_PAGE_LIMIT
        else:
            path = f"/playlists/{source.id}/tracks"
            limit = PLAYLIST_PAGE_LIMIT

        token = await self._credentials.get_token()
        try:
            response = await self._client.get(
                f"{self._settings.spotify_api_url}{path}",
                headers={"Authorization": f"Bearer {token}"},
                params={"limit": limit},
                timeout=10.0,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                raise AuthenticationExpired("Spotify access token rejected", details={"path": path}) from e
            raise CatalogException(
                f"Failed to load {source.kind.value} {source.id}",
                details={"source_id": source.id, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise CatalogException(
                f"Failed to load {source.kind.value} {source.id}: {e}",
                details={"source_id": source.id},
            ) from e
        except ValueError as e:
            raise CatalogException(f"Invalid catalog response for {source.id}") from e

        tracks: list[Track] = []
        for entry in data.get("items") or []:
            if entry.get("is_local"):
                continue
            # Playlist items wrap the track; removed tracks come back without one
            item = entry.get("track") if source.kind == SourceKind.PLAYLIST else entry
            if source.kind == SourceKind.ALBUM and item:
                item = {**item, "album": {"name": source.name, "images": _images(source)}}
            track = parse_track(item)
            if track is not None:
                tracks.append(track)

        log_with_context(
            logger,
            "debug",
            "Source resolved",
            source_id=source.id,
            kind=source.kind.value,
            track_count=len(tracks),
            event_type="catalog_resolved",
        )
        return source.model_copy(update={"tracks": tuple(tracks)})


def _images(source: Source) -> list[dict[str, str]]:
    return [{"url": source.image_url}] if source.image_url else []
