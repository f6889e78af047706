"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the OAuth authorities and
the background expiry sweep share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class OAuthClientSettings(BaseSettings):
    """Client credentials an assistant platform presents to the token endpoint.

    Leaving ``client_id`` empty puts the matching authority in development
    mode, where any client credentials are accepted.
    """

    client_id: str = Field("", description="Expected OAuth client identifier.")
    client_secret: str = Field("", description="Expected OAuth client secret.")
    redirect_uris: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        description="Allowed redirect URIs. Empty allows any redirect target.",
    )

    @field_validator("redirect_uris", mode="before")
    @classmethod
    def _split_redirect_uris(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing redirect URIs as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(uri.strip() for uri in value.split(",") if uri.strip())

    @property
    def development_mode(self) -> bool:
        return not self.client_id


class GoogleOAuthSettings(OAuthClientSettings):
    """Account-linking credentials configured in the Google Home console."""

    model_config = SettingsConfigDict(env_prefix="GOOGLE_OAUTH_")


class AlexaOAuthSettings(OAuthClientSettings):
    """Account-linking credentials configured in the Alexa developer console."""

    model_config = SettingsConfigDict(env_prefix="ALEXA_OAUTH_")


class OAuthSettings(BaseSettings):
    """Lifetimes for authorization codes and tokens."""

    model_config = SettingsConfigDict(populate_by_name=True)

    code_ttl_seconds: int = Field(600, validation_alias="OAUTH_CODE_TTL_SECONDS")
    access_token_ttl_seconds: int = Field(
        3600, validation_alias="OAUTH_ACCESS_TOKEN_TTL_SECONDS"
    )
    cleanup_interval_seconds: int = Field(
        3600,
        validation_alias="OAUTH_CLEANUP_INTERVAL_SECONDS",
        description="Period of the expiry sweep. Zero disables the sweep.",
    )


class PlatformSettings(BaseSettings):
    """Connection details for the IoT platform REST API."""

    model_config = SettingsConfigDict(populate_by_name=True)

    base_url: AnyHttpUrl = Field(
        "http://localhost:8080", validation_alias="PLATFORM_BASE_URL"
    )
    api_token: Optional[str] = Field(
        None,
        validation_alias="PLATFORM_API_TOKEN",
        description="Service token used for telemetry reads and device RPC.",
    )
    rpc_timeout_seconds: float = Field(
        10.0, validation_alias="PLATFORM_RPC_TIMEOUT_SECONDS"
    )
    http_timeout_seconds: float = Field(
        5.0, validation_alias="PLATFORM_HTTP_TIMEOUT_SECONDS"
    )
    read_attempts: int = Field(2, validation_alias="PLATFORM_READ_ATTEMPTS")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    db_path: str = Field(
        "data/voicelink.db",
        validation_alias="VOICELINK_DB_PATH",
        description="SQLite file holding OAuth records and the device registry.",
    )
    device_manufacturer: str = Field(
        "ThingsBoard",
        validation_alias="DEVICE_MANUFACTURER",
        description="Manufacturer reported in the SYNC device info block.",
    )
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleOAuthSettings = Field(default_factory=GoogleOAuthSettings)
    alexa: AlexaOAuthSettings = Field(default_factory=AlexaOAuthSettings)
    platform: PlatformSettings = Field(default_factory=PlatformSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AlexaOAuthSettings",
    "AppSettings",
    "OAuthClientSettings",
    "GoogleOAuthSettings",
    "OAuthSettings",
    "PlatformSettings",
    "get_settings",
]
