"""Main FastAPI application entry point."""

from pathlib import Path

from dotenv import load_dotenv

from listening_station.config import get_settings
from listening_station.core.app_factory import create_app
from listening_station.logging_config import setup_logging

# Load environment variables from .env file
load_dotenv(Path(__file__).parent.parent / ".env")

# Configure structured logging (JSON to file + console)
settings = get_settings()
setup_logging(settings.log_level)

app = create_app()


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Listening Station API", "docs": "/docs"}


def run() -> None:
    import uvicorn

    uvicorn.run(
        "listening_station.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()
