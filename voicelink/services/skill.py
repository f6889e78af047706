"""Skill-style device operations behind bearer-token authentication."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from voicelink.clients.platform import PlatformClient
from voicelink.core.errors import UnauthorizedError
from voicelink.models.device import Assistant, Command, Device, DeviceCapabilities
from voicelink.models.oauth import TokenRecord
from voicelink.schemas.skill import SkillCommandRequest, SkillDevice
from voicelink.services.capabilities import CapabilityService
from voicelink.services.command_translator import CommandTranslator
from voicelink.services.oauth_authority import OAuthAuthority

logger = logging.getLogger(__name__)


def _summary(device: Device, capabilities: DeviceCapabilities) -> SkillDevice:
    return SkillDevice(
        id=device.id,
        name=device.name,
        label=device.label,
        type=device.type,
        device_type=capabilities.device_type,
        traits=list(capabilities.traits),
        room_hint=capabilities.room_hint,
        nicknames=capabilities.nicknames or [device.label or device.name],
        attributes=capabilities.attributes,
    )


class SkillService:
    """List, inspect and command devices on behalf of a linked skill account."""

    def __init__(
        self,
        authority: OAuthAuthority,
        capabilities: CapabilityService,
        translator: CommandTranslator,
        platform: PlatformClient,
        *,
        assistant: Assistant = Assistant.ALEXA,
    ) -> None:
        self._authority = authority
        self._capabilities = capabilities
        self._translator = translator
        self._platform = platform
        self._assistant = assistant

    def authenticate(self, bearer_token: Optional[str]) -> TokenRecord:
        if not bearer_token:
            raise UnauthorizedError("Missing bearer token")
        return self._authority.validate_token(bearer_token)

    def list_devices(self, token: TokenRecord) -> List[SkillDevice]:
        summaries = []
        for device in self._capabilities.list_enabled_devices(
            token.tenant_id, self._assistant
        ):
            capabilities = device.capabilities(self._assistant)
            if capabilities is not None:
                summaries.append(_summary(device, capabilities))
        return summaries

    def get_device(self, token: TokenRecord, device_id: str) -> SkillDevice:
        device, capabilities = self._capabilities.get_enabled_device(
            token.tenant_id, device_id, self._assistant
        )
        return _summary(device, capabilities)

    async def execute(
        self, token: TokenRecord, device_id: str, request: SkillCommandRequest
    ) -> Dict[str, Any]:
        _, capabilities = self._capabilities.get_enabled_device(
            token.tenant_id, device_id, self._assistant
        )
        if isinstance(request.value, dict):
            command = Command(
                name=request.command,
                params=request.value,
                correlation_id=request.correlation_token,
            )
        else:
            command = Command(
                name=request.command,
                value=request.value,
                correlation_id=request.correlation_token,
            )
        call = self._translator.translate(command, capabilities)
        await self._platform.send_oneway_rpc(device_id, call.method, call.params)
        logger.info(
            "Executed skill command %s",
            request.command,
            extra={
                "tenant_id": token.tenant_id,
                "device_id": device_id,
                "rpc_method": call.method,
                "correlation_token": request.correlation_token,
            },
        )
        return {"status": "ok"}

    async def latest_telemetry(
        self, token: TokenRecord, device_id: str, keys: Optional[Sequence[str]] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        self._capabilities.get_enabled_device(
            token.tenant_id, device_id, self._assistant
        )
        return await self._platform.get_latest_telemetry(device_id, keys)


__all__ = ["SkillService"]
