"""Playback intent routes.

Every command is forwarded to the command dispatcher; the reconciled
now-playing value is returned so the client can render immediately.
"""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from listening_station.dependencies import get_dispatcher, get_reconciler
from listening_station.models import (
    CommandResponse,
    DispatchResult,
    NowPlaying,
    PlaySourceRequest,
    SeekRequest,
    ShuffleRequest,
    Source,
    SourceKind,
    SourceRequest,
)
from listening_station.security import verify_api_key
from listening_station.services.dispatcher import CommandDispatcher
from listening_station.services.reconciler import StateReconciler

router = APIRouter(dependencies=[Depends(verify_api_key)])
limiter = Limiter(key_func=get_remote_address)

PLAYBACK_RATE_LIMIT = "30/minute"

_ERROR_RESPONSES = {
    400: {"description": "No source selected"},
    401: {"description": "Spotify authentication expired"},
    409: {"description": "Device not ready - connect first"},
    502: {"description": "Transfer or playback request failed"},
}


def _to_source(selection: SourceRequest, kind: SourceKind | None = None) -> Source:
    return Source(id=selection.id, kind=kind or selection.kind, name=selection.name)


def _command_response(status: str, reconciler: StateReconciler) -> CommandResponse:
    return CommandResponse(status=status, now_playing=reconciler.now_playing)


@router.get("/now-playing", response_model=NowPlaying)
async def now_playing(reconciler: StateReconciler = Depends(get_reconciler)):
    """The reconciled now-playing value."""
    return reconciler.now_playing


@router.post("/playback/album", response_model=DispatchResult, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def play_album(
    request: Request,
    body: PlaySourceRequest,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    """Play an album in order, optionally from a chosen track."""
    return await dispatcher.play_album(_to_source(body.source, SourceKind.ALBUM), body.start_uri)


@router.post("/playback/playlist", response_model=DispatchResult, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def play_playlist(
    request: Request,
    body: PlaySourceRequest,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    """Play a playlist in order, optionally from a chosen track."""
    return await dispatcher.play_playlist(_to_source(body.source, SourceKind.PLAYLIST), body.start_uri)


@router.post("/playback/shuffle", response_model=DispatchResult, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def shuffle(
    request: Request,
    body: ShuffleRequest,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    """Shuffle the union of the selected albums and playlists.

    Sources that fail to load are skipped and reported in ``warning``.
    """
    return await dispatcher.shuffle_play([_to_source(s) for s in body.sources])


@router.post("/playback/pause", response_model=CommandResponse, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def pause(
    request: Request,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    await dispatcher.pause()
    return _command_response("paused", reconciler)


@router.post("/playback/resume", response_model=CommandResponse, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def resume(
    request: Request,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    await dispatcher.resume()
    return _command_response("playing", reconciler)


@router.post("/playback/toggle", response_model=CommandResponse, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def toggle(
    request: Request,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    was_playing = reconciler.now_playing.is_playing
    await dispatcher.toggle()
    return _command_response("paused" if was_playing else "playing", reconciler)


@router.post("/playback/stop", response_model=CommandResponse)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def stop(
    request: Request,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    """Stop playback and clear the now-playing state. Always succeeds."""
    await dispatcher.stop()
    return _command_response("stopped", reconciler)


@router.post("/playback/seek", response_model=CommandResponse, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def seek(
    request: Request,
    body: SeekRequest,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    await dispatcher.seek(body.position_ms)
    return _command_response("seeked", reconciler)


@router.post("/playback/next", response_model=CommandResponse, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def next_track(
    request: Request,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    await dispatcher.next()
    return _command_response("skipped", reconciler)


@router.post("/playback/previous", response_model=CommandResponse, responses=_ERROR_RESPONSES)
@limiter.limit(PLAYBACK_RATE_LIMIT)
async def previous_track(
    request: Request,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    await dispatcher.previous()
    return _command_response("skipped", reconciler)
