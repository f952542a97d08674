"""Device session models."""

from enum import Enum

from pydantic import BaseModel


class SessionStatus(str, Enum):
    """Connection lifecycle of the device session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


class SessionInfo(BaseModel):
    status: SessionStatus
    device_name: str
    device_id: str | None = None
