"""API key authentication for the Listening Station."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from listening_station.config import Settings, get_settings
from listening_station.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Verify the API key from the Authorization header.

    STATION_API_KEY is required; without it every /api/* route refuses
    requests.

    Raises:
        HTTPException: If the API key is missing, wrong or not configured

    Example:
        Authorization: Bearer your-api-key-here
    """
    api_key = settings.station_api_key

    if not api_key:
        log_with_context(
            logger,
            "error",
            "STATION_API_KEY not configured",
            event_type="security_error",
            path=str(request.url),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication not configured - STATION_API_KEY environment variable is missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not credentials:
        log_with_context(
            logger,
            "warning",
            "Missing API key",
            event_type="auth_failure",
            path=str(request.url),
            ip=_client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if credentials.credentials != api_key:
        log_with_context(
            logger,
            "warning",
            "Invalid API key",
            event_type="auth_failure",
            path=str(request.url),
            ip=_client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_cors_origins(settings: Settings) -> list[str]:
    """Get allowed CORS origins from settings."""
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def get_trusted_hosts(settings: Settings) -> list[str]:
    """Get trusted host patterns from settings."""
    return [host.strip() for host in settings.trusted_hosts.split(",") if host.strip()]
