"""FastAPI dependencies for dependency injection."""

from fastapi import Request

from listening_station.services.device_session import DeviceSession
from listening_station.services.dispatcher import CommandDispatcher
from listening_station.services.reconciler import StateReconciler


def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized.")
    return value


async def get_session(request: Request) -> DeviceSession:
    """
    Get the device session from app state.

    Raises:
        RuntimeError: If the session is not initialized.
    """
    session: DeviceSession = _from_state(request, "session")
    return session


async def get_dispatcher(request: Request) -> CommandDispatcher:
    """
    Get the command dispatcher from app state.

    Raises:
        RuntimeError: If the dispatcher is not initialized.
    """
    dispatcher: CommandDispatcher = _from_state(request, "dispatcher")
    return dispatcher


async def get_reconciler(request: Request) -> StateReconciler:
    reconciler: StateReconciler = _from_state(request, "reconciler")
    return reconciler
