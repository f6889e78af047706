"""
Device registry and capability models shared by the gateway services.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]


class Assistant(str, Enum):
    """Voice-assistant platforms that can link accounts and drive devices."""

    GOOGLE = "google"
    ALEXA = "alexa"

    @property
    def capabilities_key(self) -> str:
        """Key under which the registry stores this assistant's document."""
        return f"{self.value}Capabilities"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """Serialize using the camelCase names stored in the registry."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RpcMethodMapping(_CamelModel):
    """Per-device override of a standard RPC method for non-standard firmware."""

    method: Optional[str] = Field(
        None, description="Custom RPC method name. Empty keeps the standard one."
    )
    param_format: str = Field("object", alias="paramFormat")
    param_mapping: Dict[str, str] = Field(default_factory=dict, alias="paramMapping")
    on_value: Optional[str] = Field(None, alias="onValue")
    off_value: Optional[str] = Field(None, alias="offValue")


class DeviceCapabilities(_CamelModel):
    """What an assistant is told about a device and how to reach it."""

    enabled: bool = False
    device_type: str = Field(..., alias="deviceType")
    traits: List[str] = Field(default_factory=list)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    will_report_state: bool = Field(False, alias="willReportState")
    room_hint: Optional[str] = Field(None, alias="roomHint")
    nicknames: Optional[List[str]] = None
    rpc_mapping: Optional[Dict[str, RpcMethodMapping]] = Field(
        None, alias="rpcMapping"
    )

    def mapping_for(self, rpc_method: str) -> Optional[RpcMethodMapping]:
        if not self.rpc_mapping:
            return None
        return self.rpc_mapping.get(rpc_method)


class Device(_CamelModel):
    """Device record owned by the platform registry."""

    id: str
    tenant_id: str = Field(..., alias="tenantId")
    customer_id: Optional[str] = Field(None, alias="customerId")
    name: str
    label: Optional[str] = None
    type: str = "default"
    created_time: Optional[int] = Field(None, alias="createdTime")
    additional_info: Dict[str, Any] = Field(
        default_factory=dict, alias="additionalInfo"
    )

    def capabilities(self, assistant: Assistant) -> Optional[DeviceCapabilities]:
        """Parse the capability document stored for an assistant, if any."""
        document = self.additional_info.get(assistant.capabilities_key)
        if not isinstance(document, dict):
            return None
        return DeviceCapabilities.model_validate(document)

    def is_enabled_for(self, assistant: Assistant) -> bool:
        capabilities = self.capabilities(assistant)
        return capabilities is not None and capabilities.enabled


class Command(BaseModel):
    """A single assistant command addressed to one device."""

    name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    value: JsonValue = None
    correlation_id: Optional[str] = None


class TraitState(BaseModel):
    """Flat state map resolved for a device plus its liveness flag."""

    online: bool = True
    state: Dict[str, Any] = Field(default_factory=dict)

    def flatten(self) -> Dict[str, Any]:
        return {"online": self.online, **self.state}


__all__ = [
    "Assistant",
    "Command",
    "Device",
    "DeviceCapabilities",
    "JsonValue",
    "RpcMethodMapping",
    "TraitState",
]
