"""Retry of device steps after a credential refresh."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from listening_station.exceptions import AuthenticationExpired
from listening_station.logging_config import get_logger, log_with_context
from listening_station.protocols import CredentialProvider

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_after_refresh(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    credentials: CredentialProvider,
) -> T:
    """Run an async operation, refreshing credentials once if they expired.

    An AuthenticationExpired from the first attempt triggers exactly one
    credential refresh and one retry of the same operation. Any failure of
    the refresh or of the retry propagates.

    Args:
        operation: Async function to run
        operation_name: Name for logging
        credentials: Provider to refresh

    Returns:
        Result of operation
    """
    try:
        return await operation()
    except AuthenticationExpired as e:
        log_with_context(
            logger,
            "warning",
            f"{operation_name} rejected, refreshing credentials",
            error=e.message,
            event_type="auth_refresh_retry",
        )

    await credentials.refresh()
    try:
        return await operation()
    except AuthenticationExpired as e:
        log_with_context(
            logger,
            "error",
            f"{operation_name} rejected after credential refresh",
            error=e.message,
            event_type="auth_retry_exhausted",
        )
        raise
