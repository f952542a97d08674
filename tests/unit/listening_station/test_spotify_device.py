"""Unit tests for the Spotify Connect device adapter and state poller."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from listening_station.exceptions import AuthenticationExpired, DeviceNotReady, DeviceRequestError
from listening_station.services.spotify_device import (
    PlayerStatePoller,
    SpotifyConnectDevice,
    parse_player_state,
)
from listening_station.state_managers import PlayerPollStateManager

DEVICES = {
    "devices": [
        {"id": "kitchen-id", "name": "Kitchen", "is_active": False},
        {"id": "station-id", "name": "Listening Station", "is_active": True},
    ]
}

PLAYER = {
    "device": {"id": "station-id", "name": "Listening Station"},
    "is_playing": True,
    "progress_ms": 60000,
    "item": {
        "uri": "spotify:track:abc",
        "name": "Test Song",
        "artists": [{"name": "Artist One"}, {"name": "Artist Two"}],
        "album": {"name": "Test Album", "images": [{"url": "https://img.test/cover.jpg"}]},
        "duration_ms": 240000,
    },
}


@pytest.fixture
def device(mock_http_client, mock_credentials, mock_settings):
    return SpotifyConnectDevice(mock_http_client, mock_credentials, mock_settings)


def test_parse_player_state():
    event = parse_player_state(PLAYER)

    assert event.paused is False
    assert event.position_ms == 60000
    assert event.duration_ms == 240000
    assert event.track.uri == "spotify:track:abc"
    assert event.track.artists == ("Artist One", "Artist Two")
    assert event.track.album_name == "Test Album"
    assert event.track.artwork_url == "https://img.test/cover.jpg"


def test_parse_player_state_without_item():
    event = parse_player_state({"is_playing": False, "progress_ms": None, "item": None})

    assert event.paused is True
    assert event.track is None
    assert event.position_ms == 0


@pytest.mark.asyncio
async def test_register_finds_device_by_name(device, mock_http_client, mock_credentials, make_response):
    mock_http_client.get.return_value = make_response(json_data=DEVICES)

    device_id = await device.register("listening station", mock_credentials)

    assert device_id == "station-id"
    assert device.device_id == "station-id"
    url = mock_http_client.get.await_args.args[0]
    assert url == "https://api.test/v1/me/player/devices"
    headers = mock_http_client.get.await_args.kwargs["headers"]
    assert headers == {"Authorization": "Bearer access-token"}


@pytest.mark.asyncio
async def test_register_missing_device_raises(device, mock_http_client, mock_credentials, make_response):
    mock_http_client.get.return_value = make_response(json_data={"devices": [{"id": "x", "name": "Kitchen"}]})

    with pytest.raises(DeviceNotReady) as exc_info:
        await device.register("Listening Station", mock_credentials)

    assert exc_info.value.details["available"] == ["Kitchen"]


@pytest.mark.asyncio
async def test_unauthorized_maps_to_authentication_expired(device, mock_http_client, mock_credentials, make_response):
    mock_http_client.get.return_value = make_response(401, json_data={"error": "expired"})

    with pytest.raises(AuthenticationExpired):
        await device.register("Listening Station", mock_credentials)


@pytest.mark.asyncio
async def test_http_error_maps_to_device_request_error(device, mock_http_client, make_response):
    mock_http_client.put.return_value = make_response(404, json_data={"error": "no active device"}, method="PUT")

    with pytest.raises(DeviceRequestError) as exc_info:
        await device.pause_playback()

    assert exc_info.value.details["status_code"] == 404


@pytest.mark.asyncio
async def test_transport_error_maps_to_device_request_error(device, mock_http_client):
    mock_http_client.post.side_effect = httpx.ConnectError("unreachable")

    with pytest.raises(DeviceRequestError):
        await device.skip_next()


@pytest.mark.asyncio
async def test_transfer_playback_without_autoplay(device, mock_http_client, make_response):
    mock_http_client.put.return_value = make_response(204, method="PUT")

    await device.transfer_playback("station-id", autoplay=False)

    args, kwargs = mock_http_client.put.await_args
    assert args[0] == "https://api.test/v1/me/player"
    assert kwargs["json"] == {"device_ids": ["station-id"], "play": False}


@pytest.mark.asyncio
async def test_start_playback_sends_uris(device, mock_http_client, make_response):
    mock_http_client.put.return_value = make_response(204, method="PUT")

    await device.start_playback("station-id", ("spotify:track:a", "spotify:track:b"), position_ms=0)

    args, kwargs = mock_http_client.put.await_args
    assert args[0] == "https://api.test/v1/me/player/play"
    assert kwargs["params"] == {"device_id": "station-id"}
    assert kwargs["json"] == {"uris": ["spotify:track:a", "spotify:track:b"], "position_ms": 0}


@pytest.mark.asyncio
async def test_seek_targets_registered_device(device, mock_http_client, mock_credentials, make_response):
    mock_http_client.get.return_value = make_response(json_data=DEVICES)
    mock_http_client.put.return_value = make_response(204, method="PUT")
    await device.register("Listening Station", mock_credentials)

    await device.seek(30000)

    kwargs = mock_http_client.put.await_args.kwargs
    assert kwargs["params"] == {"position_ms": 30000, "device_id": "station-id"}


@pytest.mark.asyncio
async def test_player_state_nothing_playing(device, mock_http_client, make_response):
    mock_http_client.get.return_value = make_response(204)

    assert await device.get_player_state() is None


@pytest.mark.asyncio
async def test_player_state_ignores_other_device(device, mock_http_client, mock_credentials, make_response):
    mock_http_client.get.return_value = make_response(json_data=DEVICES)
    await device.register("Listening Station", mock_credentials)
    other = {**PLAYER, "device": {"id": "kitchen-id"}}
    mock_http_client.get.return_value = make_response(json_data=other)

    assert await device.get_player_state() is None


@pytest.mark.asyncio
async def test_close_forgets_device(device, mock_http_client, mock_credentials, make_response):
    mock_http_client.get.return_value = make_response(json_data=DEVICES)
    await device.register("Listening Station", mock_credentials)

    await device.close()

    assert device.device_id is None


# PlayerStatePoller


@pytest.mark.asyncio
async def test_poll_publishes_event_on_channel():
    source = MagicMock()
    source.get_player_state = AsyncMock(return_value=parse_player_state(PLAYER))
    channel = asyncio.Queue()
    poller = PlayerStatePoller(source, channel, PlayerPollStateManager())

    assert await poller.poll_once() is True

    event = channel.get_nowait()
    assert event.track.uri == "spotify:track:abc"


@pytest.mark.asyncio
async def test_poll_nothing_playing_publishes_nothing():
    source = MagicMock()
    source.get_player_state = AsyncMock(return_value=None)
    channel = asyncio.Queue()
    poller = PlayerStatePoller(source, channel, PlayerPollStateManager())

    assert await poller.poll_once() is True
    assert channel.empty()


@pytest.mark.asyncio
async def test_poll_declares_stream_lost_after_max_failures():
    source = MagicMock()
    source.get_player_state = AsyncMock(side_effect=DeviceRequestError("offline"))
    poll_state = PlayerPollStateManager()
    on_lost = MagicMock()
    poller = PlayerStatePoller(source, asyncio.Queue(), poll_state, max_failures=3)
    poller._on_lost = on_lost

    results = [await poller.poll_once() for _ in range(3)]

    assert results == [True, True, False]
    on_lost.assert_called_once()
    assert await poll_state.get_failure_count() == 3


@pytest.mark.asyncio
async def test_poll_success_resets_failures():
    source = MagicMock()
    source.get_player_state = AsyncMock(side_effect=[DeviceRequestError("blip"), None])
    poll_state = PlayerPollStateManager()
    poller = PlayerStatePoller(source, asyncio.Queue(), poll_state, max_failures=3)

    await poller.poll_once()
    await poller.poll_once()

    assert await poll_state.get_failure_count() == 0


@pytest.mark.asyncio
async def test_poller_task_stops_after_stream_lost():
    source = MagicMock()
    source.get_player_state = AsyncMock(side_effect=DeviceRequestError("offline"))
    on_lost = MagicMock()
    poller = PlayerStatePoller(source, asyncio.Queue(), PlayerPollStateManager(), interval_s=0.001, max_failures=2)

    poller.start(on_lost=on_lost)
    await asyncio.wait_for(poller._task, timeout=1.0)

    on_lost.assert_called_once()
    assert not poller.running
    await poller.stop()
