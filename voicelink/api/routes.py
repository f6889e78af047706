"""
FastAPI routes for the voice-assistant gateway.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends

from voicelink.api import devices, fulfillment, oauth, skill
from voicelink.core.config import AppSettings
from voicelink.dependencies import get_app_settings

router = APIRouter()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


router.include_router(fulfillment.router)
router.include_router(skill.router)
router.include_router(oauth.router)
router.include_router(devices.router)

__all__ = ["router"]
