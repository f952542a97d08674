"""Unit tests for the command dispatcher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from listening_station.exceptions import (
    AuthenticationExpired,
    CatalogException,
    DeviceNotReady,
    DeviceRequestError,
    NoSourceSelected,
    PlaybackRequestFailed,
    TransferFailed,
)
from listening_station.models import DeviceStateEvent, PlayAlbum, SourceKind, Stop, SuppressionKind, Track
from listening_station.services.compositor import ShuffleCompositor
from listening_station.services.device_session import DeviceSession
from listening_station.services.dispatcher import CommandDispatcher


@pytest.fixture
def catalog():
    catalog = AsyncMock()
    catalog.resolve = AsyncMock(side_effect=lambda source: source)
    return catalog


@pytest.fixture
def session(mock_device, mock_credentials, reconciler):
    return DeviceSession(mock_device, mock_credentials, reconciler, "Listening Station")


@pytest.fixture
def dispatcher(mock_device, session, reconciler, catalog, mock_credentials):
    return CommandDispatcher(
        mock_device,
        session,
        reconciler,
        ShuffleCompositor(catalog),
        mock_credentials,
        settle_delay_s=0,
    )


async def _wait_for(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _settle_on_old_track(reconciler, clock, position_ms: int) -> None:
    old = Track(uri="spotify:track:old")
    reconciler.apply(DeviceStateEvent(paused=False, position_ms=0, track=old))
    clock.advance(2.0)
    reconciler.apply(DeviceStateEvent(paused=False, position_ms=position_ms, track=old))


# Start-new-playback sequence


@pytest.mark.asyncio
async def test_play_album_runs_full_sequence(dispatcher, session, mock_device, reconciler, album_x):
    calls = []
    mock_device.pause_playback.side_effect = lambda: calls.append("pause")
    mock_device.activate.side_effect = lambda: calls.append("activate")
    mock_device.transfer_playback.side_effect = lambda *a, **kw: calls.append("transfer")
    mock_device.start_playback.side_effect = lambda *a, **kw: calls.append("play")
    await session.connect()

    result = await dispatcher.play_album(album_x)

    assert calls == ["pause", "activate", "transfer", "play"]
    mock_device.transfer_playback.assert_awaited_once_with("device-1", autoplay=False)
    mock_device.start_playback.assert_awaited_once_with(
        "device-1", ("spotify:track:t1", "spotify:track:t2"), position_ms=0
    )
    assert result.status == "started"
    assert result.epoch == 1
    assert reconciler.now_playing.track_uri == "spotify:track:t1"
    assert reconciler.now_playing.position_ms == 0
    assert reconciler.now_playing.attribution.album_name == "Album X"
    assert reconciler.state.suppression.kind == SuppressionKind.PLAY


@pytest.mark.asyncio
async def test_play_album_from_start_track(dispatcher, session, mock_device, make_source):
    """Scenario C: the dispatched queue starts at the chosen track."""
    album = make_source("alb", SourceKind.ALBUM, [f"t{i}" for i in range(10)])
    await session.connect()

    result = await dispatcher.play_album(album, start_uri="spotify:track:t3")

    uris = mock_device.start_playback.await_args.args[1]
    assert len(uris) == 7
    assert uris[0] == "spotify:track:t3"
    assert result.queue.start_uri == "spotify:track:t3"


@pytest.mark.asyncio
async def test_play_playlist_builds_playlist_queue(dispatcher, session, reconciler, playlist_y):
    await session.connect()

    result = await dispatcher.play_playlist(playlist_y)

    assert result.queue.kind.value == "playlist"
    assert reconciler.now_playing.attribution.playlist_name == "Playlist Y"


@pytest.mark.asyncio
async def test_shuffle_play_dispatches_union(dispatcher, session, mock_device, album_x, playlist_y):
    await session.connect()

    result = await dispatcher.shuffle_play([album_x, playlist_y])

    uris = mock_device.start_playback.await_args.args[1]
    assert sorted(uris) == ["spotify:track:t1", "spotify:track:t2", "spotify:track:t3"]
    assert result.status == "started"
    assert result.warning is None


@pytest.mark.asyncio
async def test_shuffle_play_reports_partial_catalog_load(
    dispatcher, session, catalog, album_x, make_source
):
    broken = make_source("broken", SourceKind.PLAYLIST, [])
    catalog.resolve.side_effect = CatalogException("not found")
    await session.connect()

    result = await dispatcher.shuffle_play([album_x, broken])

    assert result.status == "started"
    assert result.warning.skipped_sources == ["broken"]


@pytest.mark.asyncio
async def test_shuffle_without_sources_raises_before_device_calls(dispatcher, session, mock_device):
    await session.connect()

    with pytest.raises(NoSourceSelected):
        await dispatcher.shuffle_play([])

    mock_device.pause_playback.assert_not_awaited()
    assert dispatcher.epoch == 0


@pytest.mark.asyncio
async def test_play_requires_ready_device(dispatcher, mock_device, album_x):
    with pytest.raises(DeviceNotReady):
        await dispatcher.play_album(album_x)

    mock_device.pause_playback.assert_not_awaited()
    mock_device.start_playback.assert_not_awaited()


@pytest.mark.asyncio
async def test_unloadable_album_fails_playback(dispatcher, session, catalog, mock_device, make_source):
    catalog.resolve.side_effect = CatalogException("404")
    await session.connect()

    with pytest.raises(PlaybackRequestFailed):
        await dispatcher.play_album(make_source("gone", SourceKind.ALBUM, []))

    mock_device.transfer_playback.assert_not_awaited()


@pytest.mark.asyncio
async def test_best_effort_pause_failure_is_ignored(dispatcher, session, mock_device, album_x):
    mock_device.pause_playback.side_effect = DeviceRequestError("nothing playing", status_code=404)
    await session.connect()

    result = await dispatcher.play_album(album_x)

    assert result.status == "started"
    mock_device.start_playback.assert_awaited_once()


@pytest.mark.asyncio
async def test_transfer_failure_raises_and_keeps_state(dispatcher, session, mock_device, reconciler, album_x):
    mock_device.transfer_playback.side_effect = DeviceRequestError("boom")
    await session.connect()
    before = reconciler.now_playing

    with pytest.raises(TransferFailed):
        await dispatcher.play_album(album_x)

    mock_device.start_playback.assert_not_awaited()
    assert reconciler.now_playing == before


@pytest.mark.asyncio
async def test_start_failure_raises_playback_request_failed(dispatcher, session, mock_device, reconciler, album_x):
    mock_device.start_playback.side_effect = DeviceRequestError("boom")
    await session.connect()

    with pytest.raises(PlaybackRequestFailed):
        await dispatcher.play_album(album_x)

    assert reconciler.queue is None


@pytest.mark.asyncio
async def test_stale_event_during_start_sequence_is_held(
    dispatcher, session, mock_device, reconciler, clock, album_x
):
    gate = asyncio.Event()

    async def transfer(*args, **kwargs):
        await gate.wait()

    mock_device.transfer_playback.side_effect = transfer
    await session.connect()
    _settle_on_old_track(reconciler, clock, 40000)
    before = reconciler.now_playing

    pending = asyncio.create_task(dispatcher.play_album(album_x))
    await _wait_for(lambda: mock_device.transfer_playback.await_count == 1)
    clock.advance(0.3)
    mid_sequence = reconciler.apply(
        DeviceStateEvent(paused=True, position_ms=45000, track=Track(uri="spotify:track:old"))
    )
    gate.set()
    result = await pending

    assert mid_sequence == before
    assert result.status == "started"
    assert reconciler.now_playing.track_uri == "spotify:track:t1"
    assert reconciler.now_playing.position_ms == 0


@pytest.mark.asyncio
async def test_failed_start_resumes_device_events(dispatcher, session, mock_device, reconciler, clock, album_x):
    mock_device.transfer_playback.side_effect = DeviceRequestError("boom")
    await session.connect()

    with pytest.raises(TransferFailed):
        await dispatcher.play_album(album_x)

    assert reconciler.state.play_pending is False
    clock.advance(2.0)
    now_playing = reconciler.apply(DeviceStateEvent(paused=False, track=Track(uri="spotify:track:other")))
    assert now_playing.track_uri == "spotify:track:other"


# Credential expiry


@pytest.mark.asyncio
async def test_expired_credentials_refresh_once_and_retry(
    dispatcher, session, mock_device, mock_credentials, album_x
):
    mock_device.start_playback.side_effect = [AuthenticationExpired(), None]
    await session.connect()

    result = await dispatcher.play_album(album_x)

    assert result.status == "started"
    mock_credentials.refresh.assert_awaited_once()
    assert mock_device.start_playback.await_count == 2


@pytest.mark.asyncio
async def test_second_expiry_surfaces(dispatcher, session, mock_device, mock_credentials, album_x):
    mock_device.start_playback.side_effect = AuthenticationExpired()
    await session.connect()

    with pytest.raises(AuthenticationExpired):
        await dispatcher.play_album(album_x)

    mock_credentials.refresh.assert_awaited_once()
    assert mock_device.start_playback.await_count == 2


# Supersession


@pytest.mark.asyncio
async def test_newer_play_supersedes_in_flight_sequence(
    dispatcher, session, mock_device, reconciler, album_x, playlist_y
):
    gate = asyncio.Event()
    first_transfer = True

    async def transfer(*args, **kwargs):
        nonlocal first_transfer
        if first_transfer:
            first_transfer = False
            await gate.wait()

    mock_device.transfer_playback.side_effect = transfer
    await session.connect()

    first = asyncio.create_task(dispatcher.play_album(album_x))
    await _wait_for(lambda: mock_device.transfer_playback.await_count == 1)

    second = await dispatcher.play_playlist(playlist_y)
    gate.set()
    first_result = await first

    assert second.status == "started"
    assert first_result.status == "superseded"
    mock_device.start_playback.assert_awaited_once()
    assert mock_device.start_playback.await_args.args[1] == ("spotify:track:t2", "spotify:track:t3")
    assert reconciler.now_playing.attribution.playlist_name == "Playlist Y"


@pytest.mark.asyncio
async def test_stop_during_failing_play_clears_without_error(dispatcher, session, mock_device, reconciler, album_x):
    """Scenario D: the pending failure is swallowed as superseded."""
    gate = asyncio.Event()

    async def failing_start(*args, **kwargs):
        await gate.wait()
        raise DeviceRequestError("rejected")

    mock_device.start_playback.side_effect = failing_start
    await session.connect()
    reconciler.apply(DeviceStateEvent(paused=False, position_ms=1000, track=Track(uri="spotify:track:old")))

    pending = asyncio.create_task(dispatcher.play_album(album_x))
    await _wait_for(lambda: mock_device.start_playback.await_count == 1)

    await dispatcher.stop()
    gate.set()
    result = await pending

    assert result.status == "superseded"
    assert reconciler.now_playing.track is None
    assert reconciler.queue is None


# Stop


@pytest.mark.asyncio
async def test_stop_is_idempotent(dispatcher, session, mock_device, reconciler, album_x):
    await session.connect()
    await dispatcher.play_album(album_x)

    await dispatcher.stop()
    first = reconciler.state.model_copy()
    await dispatcher.stop()

    assert reconciler.now_playing == first.now_playing
    assert reconciler.now_playing.track is None
    assert reconciler.state.suppression.kind == SuppressionKind.STOP


@pytest.mark.asyncio
async def test_stop_without_device_never_raises(dispatcher, mock_device, reconciler):
    await dispatcher.stop()

    mock_device.pause_playback.assert_not_awaited()
    assert reconciler.now_playing.track is None


@pytest.mark.asyncio
async def test_stop_swallows_pause_failure(dispatcher, session, mock_device, reconciler):
    mock_device.pause_playback.side_effect = DeviceRequestError("offline")
    await session.connect()

    await dispatcher.stop()

    assert reconciler.now_playing.track is None


@pytest.mark.asyncio
async def test_stop_survives_continued_device_polling(dispatcher, session, reconciler, clock):
    await session.connect()
    _settle_on_old_track(reconciler, clock, 45000)

    await dispatcher.stop()

    for _ in range(3):
        clock.advance(1.0)
        reconciler.apply(DeviceStateEvent(paused=True, position_ms=45000, track=Track(uri="spotify:track:old")))
        assert reconciler.now_playing.track is None
    assert reconciler.device_state.current_track_uri is None


# Single-call intents


@pytest.mark.asyncio
async def test_next_opens_window_and_skips(dispatcher, session, mock_device, reconciler):
    await session.connect()

    await dispatcher.next()

    mock_device.skip_next.assert_awaited_once()
    assert reconciler.state.suppression.kind == SuppressionKind.NEXT


@pytest.mark.asyncio
async def test_previous_failure_raises_playback_request_failed(dispatcher, session, mock_device):
    mock_device.skip_previous.side_effect = DeviceRequestError("boom")
    await session.connect()

    with pytest.raises(PlaybackRequestFailed):
        await dispatcher.previous()


@pytest.mark.asyncio
async def test_seek_moves_displayed_position(dispatcher, session, mock_device, reconciler, album_x):
    await session.connect()
    await dispatcher.play_album(album_x)

    await dispatcher.seek(42000)

    mock_device.seek.assert_awaited_once_with(42000)
    assert reconciler.now_playing.position_ms == 42000
    assert reconciler.state.suppression.kind == SuppressionKind.SEEK


@pytest.mark.asyncio
async def test_toggle_pauses_when_playing(dispatcher, session, mock_device, album_x):
    await session.connect()
    await dispatcher.play_album(album_x)

    await dispatcher.toggle()

    mock_device.resume_playback.assert_not_awaited()
    # One best-effort pause from the play sequence, one from the toggle
    assert mock_device.pause_playback.await_count == 2


@pytest.mark.asyncio
async def test_toggle_resumes_when_idle(dispatcher, session, mock_device):
    await session.connect()

    await dispatcher.toggle()

    mock_device.resume_playback.assert_awaited_once()


@pytest.mark.asyncio
async def test_single_calls_require_ready_device(dispatcher, mock_device):
    with pytest.raises(DeviceNotReady):
        await dispatcher.pause()

    mock_device.pause_playback.assert_not_awaited()


@pytest.mark.asyncio
async def test_dispatch_routes_intents(dispatcher, session, reconciler, album_x):
    await session.connect()

    result = await dispatcher.dispatch(PlayAlbum(source=album_x))
    assert result.status == "started"

    assert await dispatcher.dispatch(Stop()) is None
    assert reconciler.now_playing.track is None
