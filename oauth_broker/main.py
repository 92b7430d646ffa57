"""
FastAPI application entrypoint for the OAuth broker.
"""

from __future__ import annotations

from fastapi import FastAPI

from oauth_broker.api.routes import router as api_router
from oauth_broker.core.config import get_settings
from oauth_broker.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OAuth Broker",
        version="0.1.0",
        description="Multi-tenant OAuth2 token broker for social platform integrations.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
