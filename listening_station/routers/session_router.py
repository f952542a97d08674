"""Device session routes."""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from listening_station.dependencies import get_session
from listening_station.models import SessionInfo
from listening_station.security import verify_api_key
from listening_station.services.device_session import DeviceSession

router = APIRouter(dependencies=[Depends(verify_api_key)])
limiter = Limiter(key_func=get_remote_address)


@router.get("", response_model=SessionInfo)
async def get_session_info(session: DeviceSession = Depends(get_session)):
    """Current lifecycle state of the playback device."""
    return session.info()


@router.post(
    "/connect",
    response_model=SessionInfo,
    summary="Connect to the playback device",
    responses={
        401: {"description": "Spotify authentication expired"},
        409: {"description": "Device not found or not online"},
        502: {"description": "Spotify API error"},
    },
)
@limiter.limit("10/minute")
async def connect(request: Request, session: DeviceSession = Depends(get_session)):
    """Acquire credentials, find the configured Connect device and start following its state."""
    return await session.connect()


@router.post("/disconnect", response_model=SessionInfo)
async def disconnect(session: DeviceSession = Depends(get_session)):
    """End the session. Reconnecting is explicit."""
    return await session.disconnect()
