"""
FastAPI application entrypoint for the voice-assistant gateway.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from voicelink.api.routes import router as api_router
from voicelink.core.config import get_settings
from voicelink.core.logging import configure_logging
from voicelink.dependencies import get_expiry_sweeper


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper = get_expiry_sweeper()
    sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Voicelink Gateway",
        version="0.1.0",
        description=(
            "OAuth2 account linking and smart-home fulfillment for voice "
            "assistants controlling IoT platform devices."
        ),
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
