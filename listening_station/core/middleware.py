"""Middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address

from listening_station.config import Settings
from listening_station.logging_config import get_logger, log_with_context
from listening_station.security import get_cors_origins, get_trusted_hosts

logger = get_logger(__name__)

PLAYBACK_COMMAND_PREFIX = "/api/playback/"


def setup_middleware(app: FastAPI, settings: Settings) -> Limiter:
    """Configure all middleware for the application.

    Args:
        app: FastAPI application instance
        settings: Application settings

    Returns:
        Limiter instance for rate limiting
    """
    cors_origins = get_cors_origins(settings)
    log_with_context(
        logger,
        "info",
        "Configuring CORS middleware",
        event_type="security_config",
        origins=cors_origins,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Trusted hosts - prevent host header injection
    trusted_hosts = get_trusted_hosts(settings)
    log_with_context(
        logger,
        "info",
        "Configuring TrustedHost middleware",
        event_type="security_config",
        hosts=trusted_hosts,
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=trusted_hosts,
    )

    # 60 requests per minute per IP unless a route says otherwise
    limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])
    app.state.limiter = limiter

    @app.middleware("http")
    async def count_requests(request, call_next):
        """Count requests, and playback commands on their own, for the debug endpoint."""
        state = request.app.state
        state.request_count = getattr(state, "request_count", 0) + 1
        if request.method == "POST" and request.url.path.startswith(PLAYBACK_COMMAND_PREFIX):
            state.command_count = getattr(state, "command_count", 0) + 1
        return await call_next(request)

    return limiter
