"""
Device management endpoints for platform users.

Tenant administrators configure which devices an assistant may see and how
commands reach them; customer users may only read their own devices.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, List

from fastapi import APIRouter, Depends, Query

from voicelink.api.security import (
    ensure_device_access,
    get_platform_user,
    http_error,
    require_authority,
)
from voicelink.core.errors import GatewayError
from voicelink.dependencies import get_capability_service
from voicelink.models.device import Assistant, Device, DeviceCapabilities
from voicelink.models.platform import Authority, PlatformUser
from voicelink.schemas import DeviceCapabilitiesView, DeviceRegistration, EnableRequest
from voicelink.services import CapabilityService, default_capabilities

router = APIRouter()
logger = logging.getLogger(__name__)

UserDependency = Annotated[PlatformUser, Depends(get_platform_user)]
CapabilitiesDependency = Annotated[CapabilityService, Depends(get_capability_service)]


def _view(device: Device, assistant: Assistant) -> DeviceCapabilitiesView:
    capabilities = device.capabilities(assistant)
    return DeviceCapabilitiesView(
        id=device.id,
        name=device.name,
        label=device.label,
        type=device.type,
        enabled=bool(capabilities and capabilities.enabled),
        capabilities=capabilities,
    )


def _load_device(
    service: CapabilityService, user: PlatformUser, device_id: str
) -> Device:
    try:
        device = service.get_device(user.tenant_id, device_id)
    except GatewayError as exc:
        raise http_error(exc) from exc
    ensure_device_access(user, device)
    return device


@router.get("/{assistant}/devices", status_code=HTTPStatus.OK)
async def list_assistant_devices(
    assistant: Assistant,
    user: UserDependency,
    service: CapabilitiesDependency,
    enabled_only: bool = Query(False, alias="enabledOnly"),
) -> List[DeviceCapabilitiesView]:
    require_authority(user, Authority.TENANT_ADMIN, Authority.CUSTOMER_USER)
    customer_id = (
        user.customer_id if user.authority is Authority.CUSTOMER_USER else None
    )
    if user.authority is Authority.CUSTOMER_USER and not customer_id:
        return []
    if enabled_only:
        devices = service.list_enabled_devices(
            user.tenant_id, assistant, customer_id=customer_id
        )
    else:
        devices = service.list_devices(user.tenant_id, customer_id=customer_id)
    return [_view(device, assistant) for device in devices]


@router.get("/{assistant}/devices/{device_id}", status_code=HTTPStatus.OK)
async def get_assistant_device(
    assistant: Assistant,
    device_id: str,
    user: UserDependency,
    service: CapabilitiesDependency,
) -> DeviceCapabilitiesView:
    require_authority(user, Authority.TENANT_ADMIN, Authority.CUSTOMER_USER)
    return _view(_load_device(service, user, device_id), assistant)


@router.post("/{assistant}/devices/{device_id}/capabilities", status_code=HTTPStatus.OK)
async def configure_assistant_device(
    assistant: Assistant,
    device_id: str,
    capabilities: DeviceCapabilities,
    user: UserDependency,
    service: CapabilitiesDependency,
) -> DeviceCapabilitiesView:
    """Replace the assistant's capability document for a device."""
    require_authority(user, Authority.TENANT_ADMIN)
    _load_device(service, user, device_id)
    device = service.configure(user.tenant_id, device_id, assistant, capabilities)
    return _view(device, assistant)


@router.post("/{assistant}/devices/{device_id}/enabled", status_code=HTTPStatus.OK)
async def set_assistant_device_enabled(
    assistant: Assistant,
    device_id: str,
    payload: EnableRequest,
    user: UserDependency,
    service: CapabilitiesDependency,
) -> DeviceCapabilitiesView:
    require_authority(user, Authority.TENANT_ADMIN)
    _load_device(service, user, device_id)
    device = service.set_enabled(user.tenant_id, device_id, assistant, payload.enabled)
    return _view(device, assistant)


@router.get("/{assistant}/device-types/{device_type}/defaults", status_code=HTTPStatus.OK)
async def get_default_capabilities(
    assistant: Assistant, device_type: str, user: UserDependency
) -> DeviceCapabilities:
    require_authority(user, Authority.TENANT_ADMIN, Authority.CUSTOMER_USER)
    return default_capabilities(device_type, assistant)


@router.put("/devices/{device_id}", status_code=HTTPStatus.OK)
async def register_device(
    device_id: str,
    payload: DeviceRegistration,
    user: UserDependency,
    service: CapabilitiesDependency,
) -> Device:
    """Create or update the registry record of a tenant device."""
    require_authority(user, Authority.TENANT_ADMIN)
    try:
        device = service.register_device(
            user.tenant_id,
            device_id,
            name=payload.name,
            device_type=payload.type,
            label=payload.label,
            customer_id=payload.customer_id,
        )
    except GatewayError as exc:
        raise http_error(exc) from exc
    logger.info(
        "Registered device", extra={"tenant_id": user.tenant_id, "device_id": device_id}
    )
    return device


__all__ = ["router"]
