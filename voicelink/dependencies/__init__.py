"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_alexa_authority,
    get_authority,
    get_capability_service,
    get_command_translator,
    get_device_registry,
    get_expiry_sweeper,
    get_fulfillment_router,
    get_google_authority,
    get_platform_client,
    get_skill_service,
    get_state_query_engine,
    get_token_store,
)
from .config import get_app_settings

__all__ = [
    "get_alexa_authority",
    "get_app_settings",
    "get_authority",
    "get_capability_service",
    "get_command_translator",
    "get_device_registry",
    "get_expiry_sweeper",
    "get_fulfillment_router",
    "get_google_authority",
    "get_platform_client",
    "get_skill_service",
    "get_state_query_engine",
    "get_token_store",
]
