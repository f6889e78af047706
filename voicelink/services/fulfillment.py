"""
Smart-home fulfillment dispatcher.

Authenticates the bearer token once, then serves SYNC, QUERY, EXECUTE or
DISCONNECT. Per-device failures inside QUERY and EXECUTE batches are reported
as ``deviceOffline`` entries and never abort the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from voicelink.clients.platform import PlatformClient
from voicelink.core.errors import (
    MalformedRequestError,
    UnauthorizedError,
    UnknownIntentError,
)
from voicelink.core.logging import redact
from voicelink.models.device import Assistant, Command, Device, DeviceCapabilities
from voicelink.models.oauth import TokenRecord
from voicelink.schemas.fulfillment import FulfillmentRequest, FulfillmentResponse
from voicelink.services.capabilities import CapabilityService
from voicelink.services.command_translator import CommandTranslator
from voicelink.services.oauth_authority import OAuthAuthority
from voicelink.services.state_query import TRAIT_PREFIX, StateQueryEngine

logger = logging.getLogger(__name__)

INTENT_SYNC = "action.devices.SYNC"
INTENT_QUERY = "action.devices.QUERY"
INTENT_EXECUTE = "action.devices.EXECUTE"
INTENT_DISCONNECT = "action.devices.DISCONNECT"

STATUS_SUCCESS = "SUCCESS"
STATUS_ERROR = "ERROR"
ERROR_DEVICE_OFFLINE = "deviceOffline"

HARDWARE_VERSION = "1.0"
SOFTWARE_VERSION = "1.0"


def qualify_trait(trait: str) -> str:
    if trait.startswith(TRAIT_PREFIX):
        return trait
    return f"{TRAIT_PREFIX}{trait}"


class FulfillmentRouter:
    """Serves fulfillment envelopes for one assistant's linked accounts."""

    def __init__(
        self,
        authority: OAuthAuthority,
        capabilities: CapabilityService,
        state_engine: StateQueryEngine,
        translator: CommandTranslator,
        platform: PlatformClient,
        *,
        manufacturer: str = "ThingsBoard",
        assistant: Assistant = Assistant.GOOGLE,
    ) -> None:
        self._authority = authority
        self._capabilities = capabilities
        self._state_engine = state_engine
        self._translator = translator
        self._platform = platform
        self._manufacturer = manufacturer
        self._assistant = assistant

    async def handle(
        self, body: Dict[str, Any], bearer_token: Optional[str]
    ) -> Dict[str, Any]:
        if not bearer_token:
            raise UnauthorizedError("Missing bearer token")
        token = self._authority.validate_token(bearer_token)

        try:
            request = FulfillmentRequest.model_validate(body)
        except ValidationError as exc:
            raise MalformedRequestError("Malformed fulfillment request") from exc
        if not request.inputs:
            raise MalformedRequestError("Fulfillment request has no inputs")

        intent_input = request.inputs[0]
        intent = intent_input.intent
        logger.info(
            "Handling %s",
            intent,
            extra={"request_id": request.request_id, "tenant_id": token.tenant_id},
        )

        if intent == INTENT_SYNC:
            payload = self.sync(token)
        elif intent == INTENT_QUERY:
            payload = await self.query(token, intent_input.payload)
        elif intent == INTENT_EXECUTE:
            payload = await self.execute(token, intent_input.payload)
        elif intent == INTENT_DISCONNECT:
            self.disconnect(bearer_token)
            return {}
        else:
            raise UnknownIntentError(intent)

        return FulfillmentResponse(
            request_id=request.request_id, payload=payload
        ).to_payload()

    # SYNC ----------------------------------------------------------------

    def sync(self, token: TokenRecord) -> Dict[str, Any]:
        devices = self._capabilities.list_enabled_devices(
            token.tenant_id, self._assistant
        )
        entries = []
        for device in devices:
            capabilities = device.capabilities(self._assistant)
            if capabilities is None:
                continue
            entries.append(self._sync_entry(device, capabilities))
        return {"agentUserId": token.tenant_id, "devices": entries}

    def _sync_entry(
        self, device: Device, capabilities: DeviceCapabilities
    ) -> Dict[str, Any]:
        nicknames = capabilities.nicknames or [device.label or device.name]
        entry: Dict[str, Any] = {
            "id": device.id,
            "type": capabilities.device_type,
            "traits": [qualify_trait(trait) for trait in capabilities.traits],
            "name": {
                "defaultNames": [device.name],
                "name": device.name,
                "nicknames": nicknames,
            },
            "willReportState": capabilities.will_report_state,
            "deviceInfo": {
                "manufacturer": self._manufacturer,
                "model": device.type,
                "hwVersion": HARDWARE_VERSION,
                "swVersion": SOFTWARE_VERSION,
            },
        }
        if capabilities.room_hint:
            entry["roomHint"] = capabilities.room_hint
        if capabilities.attributes:
            entry["attributes"] = capabilities.attributes
        return entry

    # QUERY ---------------------------------------------------------------

    async def query(
        self, token: TokenRecord, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        device_ids = _device_ids(payload.get("devices"))
        results = await asyncio.gather(
            *(self._query_device(token, device_id) for device_id in device_ids)
        )
        return {"devices": dict(zip(device_ids, results))}

    async def _query_device(self, token: TokenRecord, device_id: str) -> Dict[str, Any]:
        try:
            _, capabilities = self._capabilities.get_enabled_device(
                token.tenant_id, device_id, self._assistant
            )
            state = await self._state_engine.query(device_id, capabilities.traits)
        except Exception:
            logger.exception(
                "State query failed",
                extra={"tenant_id": token.tenant_id, "device_id": device_id},
            )
            return {
                "online": False,
                "status": STATUS_ERROR,
                "errorCode": ERROR_DEVICE_OFFLINE,
            }
        return {**state.flatten(), "status": STATUS_SUCCESS}

    # EXECUTE -------------------------------------------------------------

    async def execute(
        self, token: TokenRecord, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        pending = []
        for group in payload.get("commands") or []:
            if not isinstance(group, dict):
                continue
            device_ids = _device_ids(group.get("devices"))
            for device_id in device_ids:
                for execution in group.get("execution") or []:
                    if not isinstance(execution, dict) or not execution.get("command"):
                        continue
                    pending.append(self._execute_one(token, device_id, execution))
        results = await asyncio.gather(*pending)
        return {"commands": list(results)}

    async def _execute_one(
        self, token: TokenRecord, device_id: str, execution: Dict[str, Any]
    ) -> Dict[str, Any]:
        try:
            command = Command(
                name=execution["command"],
                params=execution.get("params") or {},
            )
            _, capabilities = self._capabilities.get_enabled_device(
                token.tenant_id, device_id, self._assistant
            )
            call = self._translator.translate(command, capabilities)
            await self._platform.send_oneway_rpc(device_id, call.method, call.params)
        except Exception:
            logger.exception(
                "Command %s failed",
                execution.get("command"),
                extra={"tenant_id": token.tenant_id, "device_id": device_id},
            )
            return {
                "ids": [device_id],
                "status": STATUS_ERROR,
                "errorCode": ERROR_DEVICE_OFFLINE,
            }
        return {"ids": [device_id], "status": STATUS_SUCCESS, "states": command.params}

    # DISCONNECT ----------------------------------------------------------

    def disconnect(self, access_token: str) -> None:
        try:
            self._authority.revoke_token(access_token)
        except Exception:
            logger.exception(
                "Failed to revoke token %s on disconnect", redact(access_token)
            )


def _device_ids(devices: Any) -> List[str]:
    if not isinstance(devices, list):
        return []
    ids = []
    for device in devices:
        if isinstance(device, dict) and device.get("id"):
            ids.append(str(device["id"]))
    return ids


__all__ = [
    "ERROR_DEVICE_OFFLINE",
    "FulfillmentRouter",
    "INTENT_DISCONNECT",
    "INTENT_EXECUTE",
    "INTENT_QUERY",
    "INTENT_SYNC",
    "qualify_trait",
]
