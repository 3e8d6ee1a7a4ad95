"""
FastAPI application entrypoint for the Outlook bridge.
"""

from __future__ import annotations

from fastapi import FastAPI

from outlook_bridge.api.routes import router as api_router
from outlook_bridge.core.config import get_settings
from outlook_bridge.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Outlook Bridge",
        version="0.1.0",
        description="Microsoft Graph mail access with multi-account OAuth token management.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
