"""
Device discovery and capability configuration per assistant.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple

from voicelink.clients.device_registry import DeviceRegistry
from voicelink.core.errors import DeviceDisabledError, DeviceNotFoundError
from voicelink.models.device import Assistant, Device, DeviceCapabilities

logger = logging.getLogger(__name__)

GOOGLE_TYPE_PREFIX = "action.devices.types."

# Registry device type -> (assistant device category, traits).
_DEFAULT_PROFILES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "light": ("LIGHT", ("OnOff", "Brightness")),
    "lamp": ("LIGHT", ("OnOff", "Brightness")),
    "bulb": ("LIGHT", ("OnOff", "Brightness")),
    "switch": ("SWITCH", ("OnOff",)),
    "outlet": ("OUTLET", ("OnOff",)),
    "smartplug": ("OUTLET", ("OnOff",)),
    "thermostat": ("THERMOSTAT", ("TemperatureSetting",)),
    "hvac": ("THERMOSTAT", ("TemperatureSetting",)),
    "fan": ("FAN", ("OnOff", "FanSpeed")),
    "lock": ("LOCK", ("LockUnlock",)),
    "door_lock": ("LOCK", ("LockUnlock",)),
    "curtain": ("CURTAIN", ("OpenClose",)),
    "curtain_track": ("CURTAIN", ("OpenClose",)),
    "curtain_robot": ("CURTAIN", ("OpenClose",)),
}
_FALLBACK_PROFILE = ("SWITCH", ("OnOff",))


def default_capabilities(
    device_type: str, assistant: Assistant = Assistant.GOOGLE
) -> DeviceCapabilities:
    """Disabled capability document inferred from the registry device type."""
    category, traits = _DEFAULT_PROFILES.get(
        (device_type or "").lower(), _FALLBACK_PROFILE
    )
    if assistant is Assistant.GOOGLE:
        category = f"{GOOGLE_TYPE_PREFIX}{category}"
    return DeviceCapabilities(
        enabled=False,
        device_type=category,
        traits=list(traits),
        will_report_state=False,
    )


class CapabilityService:
    """Reads and writes per-assistant capability documents in the registry."""

    def __init__(self, registry: DeviceRegistry) -> None:
        self._registry = registry

    def get_device(self, tenant_id: str, device_id: str) -> Device:
        device = self._registry.find_device(device_id)
        if device is None or device.tenant_id != tenant_id:
            raise DeviceNotFoundError(device_id)
        return device

    def list_devices(
        self, tenant_id: str, *, customer_id: Optional[str] = None
    ) -> List[Device]:
        return list(self._registry.iter_tenant_devices(tenant_id, customer_id=customer_id))

    def list_enabled_devices(
        self,
        tenant_id: str,
        assistant: Assistant,
        *,
        customer_id: Optional[str] = None,
    ) -> List[Device]:
        devices = []
        for device in self._registry.iter_tenant_devices(
            tenant_id, customer_id=customer_id
        ):
            try:
                enabled = device.is_enabled_for(assistant)
            except ValueError:
                logger.exception(
                    "Skipping device with unreadable capability document",
                    extra={"device_id": device.id, "assistant": assistant.value},
                )
                continue
            if enabled:
                devices.append(device)
        logger.debug(
            "Found %d %s-enabled devices",
            len(devices),
            assistant.value,
            extra={"tenant_id": tenant_id},
        )
        return devices

    def get_enabled_device(
        self, tenant_id: str, device_id: str, assistant: Assistant
    ) -> Tuple[Device, DeviceCapabilities]:
        device = self.get_device(tenant_id, device_id)
        capabilities = device.capabilities(assistant)
        if capabilities is None or not capabilities.enabled:
            raise DeviceDisabledError(device_id)
        return device, capabilities

    def configure(
        self,
        tenant_id: str,
        device_id: str,
        assistant: Assistant,
        capabilities: DeviceCapabilities,
    ) -> Device:
        self.get_device(tenant_id, device_id)
        self._registry.save_capabilities(device_id, assistant, capabilities)
        logger.info(
            "Configured %s capabilities",
            assistant.value,
            extra={"tenant_id": tenant_id, "device_id": device_id},
        )
        return self.get_device(tenant_id, device_id)

    def set_enabled(
        self, tenant_id: str, device_id: str, assistant: Assistant, enabled: bool
    ) -> Device:
        device = self.get_device(tenant_id, device_id)
        capabilities = device.capabilities(assistant) or default_capabilities(
            device.type, assistant
        )
        capabilities = capabilities.model_copy(update={"enabled": enabled})
        self._registry.save_capabilities(device_id, assistant, capabilities)
        logger.info(
            "Set %s enabled=%s",
            assistant.value,
            enabled,
            extra={"tenant_id": tenant_id, "device_id": device_id},
        )
        return self.get_device(tenant_id, device_id)

    def register_device(
        self,
        tenant_id: str,
        device_id: str,
        *,
        name: str,
        device_type: str,
        label: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> Device:
        """Create or update a registry record, keeping stored capability documents."""
        existing = self._registry.find_device(device_id)
        if existing is not None and existing.tenant_id != tenant_id:
            raise DeviceNotFoundError(device_id)
        device = Device(
            id=device_id,
            tenant_id=tenant_id,
            customer_id=customer_id,
            name=name,
            label=label,
            type=device_type,
            created_time=(
                existing.created_time if existing else int(time.time() * 1000)
            ),
            additional_info=existing.additional_info if existing else {},
        )
        self._registry.save_device(device)
        return device


__all__ = ["CapabilityService", "GOOGLE_TYPE_PREFIX", "default_capabilities"]
