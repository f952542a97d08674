"""Application factory for creating and configuring the FastAPI app."""

from fastapi import FastAPI

from listening_station import __version__
from listening_station.config import get_settings
from listening_station.core.lifespan import lifespan
from listening_station.core.middleware import setup_middleware
from listening_station.middleware.error_handlers import register_error_handlers
from listening_station.routers import health_router, playback_router, session_router


def custom_openapi(app: FastAPI):
    """Generate custom OpenAPI schema with security scheme."""
    if app.openapi_schema:
        return app.openapi_schema

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "API Key",
            "description": "Enter your API key",
        }
    }

    for path, path_item in openapi_schema.get("paths", {}).items():
        for method, operation in path_item.items():
            if method in ["get", "post"] and (path.startswith("/api/") or path == "/debug"):
                operation["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Listening Station API",
        description="""
        🎵 **Listening Station** - Play albums, playlists and shuffles on a Spotify Connect speaker

        ## 🔐 Authentication
        All `/api/*` endpoints require `Authorization: Bearer <STATION_API_KEY>`.

        ## ▶️ Playing
        1. `POST /api/session/connect` to find the configured device
        2. `POST /api/playback/album`, `/playlist` or `/shuffle`
        3. Poll `GET /api/now-playing` for the reconciled state

        ## ⚡ Rate Limits
        - Most endpoints: 60 requests/minute per IP
        - Playback commands: 30 requests/minute per IP
        """,
        version=__version__,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    register_error_handlers(app)

    app.include_router(health_router.router, tags=["health"])
    app.include_router(session_router.router, prefix="/api/session", tags=["session"])
    app.include_router(playback_router.router, prefix="/api", tags=["playback"])

    app.openapi = lambda: custom_openapi(app)

    return app
