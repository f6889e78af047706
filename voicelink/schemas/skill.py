"""Flat JSON shapes served to the Alexa skill backend and device managers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from voicelink.models.device import DeviceCapabilities, JsonValue


class SkillDevice(BaseModel):
    """Device summary returned by the skill endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    label: Optional[str] = None
    type: str
    device_type: str = Field(..., alias="deviceType")
    traits: List[str] = Field(default_factory=list)
    room_hint: Optional[str] = Field(None, alias="roomHint")
    nicknames: List[str] = Field(default_factory=list)
    attributes: Dict[str, Any] = Field(default_factory=dict)


class SkillCommandRequest(BaseModel):
    """``{command, value, namespace?, correlationToken?}``."""

    model_config = ConfigDict(populate_by_name=True)

    command: str = Field(..., min_length=1)
    value: JsonValue = None
    namespace: Optional[str] = None
    correlation_token: Optional[str] = Field(None, alias="correlationToken")


class DeviceCapabilitiesView(BaseModel):
    """Management view of a device and its capability document."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    label: Optional[str] = None
    type: str
    enabled: bool
    capabilities: Optional[DeviceCapabilities] = None


class EnableRequest(BaseModel):
    enabled: bool


class DeviceRegistration(BaseModel):
    """Body of ``PUT /api/devices/{device_id}``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    label: Optional[str] = None
    type: str = "default"
    customer_id: Optional[str] = Field(None, alias="customerId")


__all__ = [
    "DeviceCapabilitiesView",
    "DeviceRegistration",
    "EnableRequest",
    "SkillCommandRequest",
    "SkillDevice",
]
