"""Health and debug endpoints."""

import platform
import sys
import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from listening_station import __version__
from listening_station.config import get_settings
from listening_station.dependencies import get_reconciler, get_session
from listening_station.models import DebugInfo, DetailedHealthResponse, HealthResponse, SessionStatus
from listening_station.security import get_cors_origins, get_trusted_hosts, verify_api_key
from listening_station.services.device_session import DeviceSession
from listening_station.services.reconciler import StateReconciler

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health check endpoint.

    For the state of the device session use `/health/ready`.
    """
    return HealthResponse(status="ok", version=__version__)


@router.get("/health/ready", response_model=DetailedHealthResponse)
async def readiness_check(request: Request, session: DeviceSession = Depends(get_session)):
    """Readiness probe - is a device connected and are credentials available?

    **Returns:**
    - 200: A device session is ready
    - 503: No ready device session, or no Spotify refresh token
    """
    checks = {}
    credentials = getattr(request.app.state, "credentials", None)
    checks["spotify_auth"] = "ok" if credentials is not None and credentials.is_authenticated() else "not_authenticated"
    checks["device_session"] = session.status.value

    all_healthy = checks["spotify_auth"] == "ok" and session.status == SessionStatus.READY
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content=DetailedHealthResponse(
            status="healthy" if all_healthy else "unhealthy",
            version=__version__,
            timestamp=datetime.now(UTC),
            checks=checks,
        ).model_dump(mode="json"),
    )


@router.get(
    "/debug",
    response_model=DebugInfo,
    dependencies=[Depends(verify_api_key)],
    responses={
        200: {"description": "System diagnostics and state information"},
        401: {"description": "Unauthorized - missing or invalid API key"},
    },
)
async def debug_info(
    request: Request,
    session: DeviceSession = Depends(get_session),
    reconciler: StateReconciler = Depends(get_reconciler),
):
    """System state and diagnostics.

    **🔒 Authentication Required**
    """
    settings = get_settings()
    state = reconciler.state

    system_info = {
        "version": __version__,
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "platform": platform.system(),
        "uptime_seconds": int(time.time() - request.app.state.startup_time),
        "log_level": settings.log_level,
    }

    state_info = {
        "session": session.status.value,
        "device_id": session.device_id,
        "epoch": request.app.state.dispatcher.epoch,
        "queue_length": len(state.queue.uris) if state.queue else 0,
        "suppression": state.suppression.kind.value if state.suppression else None,
        "poll_failures": await request.app.state.poll_state_manager.get_failure_count(),
    }

    # Sanitized, no secrets
    config_info = {
        "api_host": settings.api_host,
        "api_port": settings.api_port,
        "device_name": settings.device_name,
        "suppression_window_ms": settings.suppression_window_ms,
        "settle_delay_ms": settings.settle_delay_ms,
        "queue_batch_size": settings.queue_batch_size,
        "cors_origins": get_cors_origins(settings),
        "trusted_hosts": get_trusted_hosts(settings),
        "rate_limit_default": "60/minute",
    }

    return DebugInfo(
        system=system_info,
        state=state_info,
        config=config_info,
        requests={
            "total_requests": request.app.state.request_count,
            "playback_commands": request.app.state.command_count,
        },
    )
