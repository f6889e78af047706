"""
Request authentication helpers shared by the routers.

Role checks are plain functions called at the top of each handler with the
caller and the target resource.
"""

from __future__ import annotations

import base64
import binascii
import logging
from http import HTTPStatus
from typing import Annotated, Optional, Tuple

from fastapi import Depends, Header, HTTPException

from voicelink.clients import PlatformClient
from voicelink.core.errors import ForbiddenError, GatewayError, UnauthorizedError
from voicelink.dependencies import get_authority, get_platform_client
from voicelink.models.device import Assistant, Device
from voicelink.models.platform import Authority, PlatformUser
from voicelink.services import OAuthAuthority

logger = logging.getLogger(__name__)


def http_error(exc: GatewayError) -> HTTPException:
    """Translate a gateway error into the matching HTTP response."""
    headers = None
    if exc.status_code == HTTPStatus.UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(
        status_code=exc.status_code, detail=exc.message or None, headers=headers
    )


def extract_bearer(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def parse_basic_credentials(
    header_value: Optional[str],
) -> Optional[Tuple[str, str]]:
    """Decode ``Authorization: Basic`` into (client_id, client_secret)."""
    if not header_value:
        return None
    scheme, _, encoded = header_value.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    client_id, sep, client_secret = decoded.partition(":")
    if not sep:
        return None
    return client_id, client_secret


def resolve_authority(assistant: Assistant) -> OAuthAuthority:
    """Dependency returning the authority for the ``{assistant}`` path segment."""
    return get_authority(assistant)


async def get_platform_user(
    platform: Annotated[PlatformClient, Depends(get_platform_client)],
    x_authorization: Annotated[Optional[str], Header()] = None,
) -> PlatformUser:
    """Resolve the platform session carried in ``X-Authorization``."""
    session_token = extract_bearer(x_authorization)
    if not session_token:
        raise http_error(UnauthorizedError("Missing platform session"))
    try:
        return await platform.get_current_user(session_token)
    except GatewayError as exc:
        raise http_error(exc) from exc


def require_authority(user: PlatformUser, *allowed: Authority) -> None:
    if user.authority not in allowed:
        raise http_error(
            ForbiddenError(f"{user.authority.value} may not perform this operation")
        )


def ensure_device_access(user: PlatformUser, device: Device) -> None:
    """Customer users only reach devices assigned to their customer."""
    if device.tenant_id != user.tenant_id:
        raise http_error(ForbiddenError("Device belongs to another tenant"))
    if user.authority is Authority.CUSTOMER_USER and (
        not user.customer_id or device.customer_id != user.customer_id
    ):
        raise http_error(ForbiddenError("Device is not assigned to this customer"))


__all__ = [
    "ensure_device_access",
    "extract_bearer",
    "get_platform_user",
    "http_error",
    "parse_basic_credentials",
    "require_authority",
    "resolve_authority",
]
