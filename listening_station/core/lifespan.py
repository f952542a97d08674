"""Application lifespan management."""

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI

from listening_station import __version__
from listening_station.config import get_settings
from listening_station.logging_config import get_logger, log_with_context
from listening_station.models import DeviceStateEvent
from listening_station.services.catalog_service import SpotifyCatalog
from listening_station.services.compositor import ShuffleCompositor
from listening_station.services.credential_service import SpotifyCredentialService
from listening_station.services.device_session import DeviceSession
from listening_station.services.dispatcher import CommandDispatcher
from listening_station.services.reconciler import StateReconciler
from listening_station.services.spotify_device import PlayerStatePoller, SpotifyConnectDevice
from listening_station.services.ticker import PositionTicker
from listening_station.state_managers import PlayerPollStateManager, SpotifyAuthManager

logger = get_logger(__name__)


async def log_request(request: httpx.Request) -> None:
    """Event hook to log requests with redacted sensitive data."""
    from listening_station.middleware.logging_middleware import redact_sensitive_data

    log_with_context(
        logger,
        "debug",
        "HTTP Request",
        method=request.method,
        url=redact_sensitive_data(str(request.url)),
        event_type="http_request",
    )


async def log_response(response: httpx.Response) -> None:
    """Event hook to log responses with redacted sensitive data."""
    from listening_station.middleware.logging_middleware import redact_sensitive_data

    await response.aread()
    log_with_context(
        logger,
        "debug",
        "HTTP Response",
        status_code=response.status_code,
        url=redact_sensitive_data(str(response.request.url)),
        event_type="http_response",
    )


def create_http_client() -> httpx.AsyncClient:
    event_hooks: dict[str, list[Callable[..., Any]]] = {
        "request": [log_request],
        "response": [log_response],
    }
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=5.0,  # Connection establishment timeout
            read=10.0,  # Read response timeout
            write=5.0,  # Write operation timeout
            pool=5.0,  # Pool checkout timeout
        ),
        limits=httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0,
        ),
        follow_redirects=True,
        event_hooks=event_hooks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the playback engine on startup and tear it down on shutdown.

    Exceptions after yield are re-raised so cleanup always runs.
    """
    settings = get_settings()
    app.state.startup_time = time.time()
    app.state.request_count = 0
    app.state.command_count = 0

    log_with_context(
        logger,
        "info",
        "Starting Listening Station",
        version=__version__,
        device_name=settings.device_name,
        event_type="app_startup",
    )

    client = create_http_client()
    app.state.http_client = client

    # State managers
    app.state.spotify_auth_manager = SpotifyAuthManager(refresh_margin_s=settings.token_refresh_margin_s)
    app.state.poll_state_manager = PlayerPollStateManager()
    await app.state.spotify_auth_manager.initialize()
    await app.state.poll_state_manager.initialize()

    # Playback engine
    credentials = SpotifyCredentialService(client, app.state.spotify_auth_manager, settings)
    device = SpotifyConnectDevice(client, credentials, settings)
    catalog = SpotifyCatalog(client, credentials, settings)
    reconciler = StateReconciler(
        window_s=settings.suppression_window_s,
        near_zero_ms=settings.near_zero_position_ms,
    )
    channel: asyncio.Queue[DeviceStateEvent] = asyncio.Queue()
    poller = PlayerStatePoller(
        device,
        channel,
        app.state.poll_state_manager,
        interval_s=settings.poll_interval_s,
        max_failures=settings.max_poll_failures,
    )
    session = DeviceSession(device, credentials, reconciler, settings.device_name, event_source=poller)
    dispatcher = CommandDispatcher(
        device,
        session,
        reconciler,
        ShuffleCompositor(catalog, batch_size=settings.queue_batch_size),
        credentials,
        settle_delay_s=settings.settle_delay_s,
    )
    ticker = PositionTicker(reconciler, interval_s=settings.tick_interval_s)

    app.state.credentials = credentials
    app.state.reconciler = reconciler
    app.state.session = session
    app.state.dispatcher = dispatcher
    app.state.ticker = ticker

    consumer = asyncio.create_task(reconciler.run(channel), name="reconciler-consumer")
    ticker.attach()
    log_with_context(logger, "info", "Playback engine ready", event_type="engine_ready")

    try:
        yield
    except Exception as e:
        log_with_context(
            logger,
            "error",
            "Application error during lifespan",
            error=str(e),
            error_type=type(e).__name__,
            event_type="app_error",
        )
        raise
    finally:
        log_with_context(logger, "info", "Shutting down Listening Station", event_type="app_shutdown")

        await ticker.stop()
        await poller.stop()
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer

        await app.state.spotify_auth_manager.cleanup()
        await app.state.poll_state_manager.cleanup()
        log_with_context(logger, "info", "State managers cleaned up", event_type="state_managers_cleanup")

        await client.aclose()
        log_with_context(logger, "info", "HTTP client closed", event_type="http_client_cleanup")
