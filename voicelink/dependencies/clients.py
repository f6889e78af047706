"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from voicelink.clients import DeviceRegistry, PlatformClient, TokenStore
from voicelink.core.config import get_settings
from voicelink.models.device import Assistant
from voicelink.services import (
    CapabilityService,
    CommandTranslator,
    ExpirySweeper,
    FulfillmentRouter,
    OAuthAuthority,
    SkillService,
    StateQueryEngine,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_store(assistant: Assistant) -> TokenStore:
    """Provide the code/token store for one assistant namespace."""
    return TokenStore(_settings().db_path, namespace=assistant.value)


@lru_cache()
def get_google_authority() -> OAuthAuthority:
    """Account-linking authority for Google Home."""
    settings = _settings()
    return OAuthAuthority(
        get_token_store(Assistant.GOOGLE), settings.google, settings.oauth
    )


@lru_cache()
def get_alexa_authority() -> OAuthAuthority:
    """Account-linking authority for the Alexa skill."""
    settings = _settings()
    return OAuthAuthority(
        get_token_store(Assistant.ALEXA), settings.alexa, settings.oauth
    )


def get_authority(assistant: Assistant) -> OAuthAuthority:
    if assistant is Assistant.GOOGLE:
        return get_google_authority()
    return get_alexa_authority()


@lru_cache()
def get_device_registry() -> DeviceRegistry:
    """Provide the shared SQLite device registry."""
    return DeviceRegistry(_settings().db_path)


@lru_cache()
def get_platform_client() -> PlatformClient:
    """Provide the IoT platform REST client."""
    return PlatformClient(_settings().platform)


@lru_cache()
def get_capability_service() -> CapabilityService:
    return CapabilityService(get_device_registry())


@lru_cache()
def get_command_translator() -> CommandTranslator:
    return CommandTranslator()


@lru_cache()
def get_state_query_engine() -> StateQueryEngine:
    return StateQueryEngine(get_platform_client())


def get_fulfillment_router() -> FulfillmentRouter:
    """Build the Google fulfillment dispatcher from shared collaborators."""
    return FulfillmentRouter(
        authority=get_google_authority(),
        capabilities=get_capability_service(),
        state_engine=get_state_query_engine(),
        translator=get_command_translator(),
        platform=get_platform_client(),
        manufacturer=_settings().device_manufacturer,
    )


def get_skill_service() -> SkillService:
    """Build the Alexa skill device service."""
    return SkillService(
        authority=get_alexa_authority(),
        capabilities=get_capability_service(),
        translator=get_command_translator(),
        platform=get_platform_client(),
    )


def get_expiry_sweeper() -> ExpirySweeper:
    settings = _settings()
    return ExpirySweeper(
        [get_google_authority(), get_alexa_authority()],
        interval_seconds=settings.oauth.cleanup_interval_seconds,
    )


__all__ = [
    "get_alexa_authority",
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
