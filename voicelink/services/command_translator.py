"""
Translate assistant commands into platform RPC calls.

A command name (with any assistant namespace prefix) and its parameter
payload become an RPC method plus a payload in the platform's native shape.
Devices with non-standard firmware can override both through the
``rpcMapping`` table of their capability document.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from voicelink.core.errors import MalformedRequestError
from voicelink.models.device import (
    Command,
    DeviceCapabilities,
    JsonValue,
    RpcMethodMapping,
)

logger = logging.getLogger(__name__)

GOOGLE_COMMAND_PREFIX = "action.devices.commands."

FORMAT_NUMERIC = "numeric"
FORMAT_STRING = "string"
FORMAT_TEMPLATE = "template"
FORMAT_OBJECT = "object"


def _as_bool(value: JsonValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _as_int(value: JsonValue) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return 0
    return 0


def _as_float(value: JsonValue) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _as_text(value: JsonValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    if value is None:
        return ""
    return str(value)


def _lookup(params: Dict[str, Any], path: str) -> Tuple[bool, JsonValue]:
    """Resolve a dotted path; the flag says whether it was present at all."""
    current: Any = params
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


@dataclass(frozen=True)
class _Field:
    target: str
    source: str
    coerce: Callable[[JsonValue], Any]


@dataclass(frozen=True)
class _StandardCommand:
    rpc_method: str
    fields: Tuple[_Field, ...]

    def extract(self, params: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for field in self.fields:
            present, value = _lookup(params, field.source)
            if present:
                payload[field.target] = field.coerce(value)
        return payload


# Field order is significant: "first field" rules in custom mappings follow it.
STANDARD_COMMANDS: Dict[str, _StandardCommand] = {
    "OnOff": _StandardCommand("setPower", (_Field("state", "on", _as_bool),)),
    "BrightnessAbsolute": _StandardCommand(
        "setBrightness", (_Field("brightness", "brightness", _as_int),)
    ),
    "ColorAbsolute": _StandardCommand(
        "setColor", (_Field("color", "color.spectrumRGB", _as_int),)
    ),
    "ThermostatTemperatureSetpoint": _StandardCommand(
        "setTemperature",
        (_Field("temperature", "thermostatTemperatureSetpoint", _as_float),),
    ),
    "ThermostatSetMode": _StandardCommand(
        "setMode", (_Field("mode", "thermostatMode", _as_text),)
    ),
    "SetFanSpeed": _StandardCommand(
        "setFanSpeed", (_Field("speed", "fanSpeed", _as_text),)
    ),
    "LockUnlock": _StandardCommand("setLocked", (_Field("locked", "lock", _as_bool),)),
    "OpenClose": _StandardCommand(
        "setOpenPercent", (_Field("openPercent", "openPercent", _as_int),)
    ),
}


def _power_state(value: JsonValue) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() in ("true", "on")


def _strict_int(value: JsonValue) -> int:
    if isinstance(value, (bool, int, float)):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise MalformedRequestError(f"Not an integer: {value!r}") from exc


def _strict_float(value: JsonValue) -> float:
    if isinstance(value, (bool, int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise MalformedRequestError(f"Not a number: {value!r}") from exc


# Skill shorthand: lower-cased command -> (rpc method, param name, coercion).
SKILL_SHORTHAND: Dict[str, Tuple[str, str, Callable[[JsonValue], Any]]] = {
    "setpower": ("setPower", "state", _power_state),
    "setbrightness": ("setBrightness", "brightness", _strict_int),
    "settemperature": ("setTemperature", "temperature", _strict_float),
    "setcolor": ("setColor", "color", lambda value: value),
}


def canonical_command_name(name: str) -> str:
    """Strip ``action.devices.commands.`` or ``Alexa.<Interface>.`` prefixes."""
    if name.startswith(GOOGLE_COMMAND_PREFIX):
        return name[len(GOOGLE_COMMAND_PREFIX):]
    if name.startswith("Alexa.") and "." in name:
        return name.rsplit(".", 1)[1]
    return name


@dataclass(frozen=True)
class RpcCall:
    """Final RPC method and payload handed to the device transport."""

    method: str
    params: JsonValue


class CommandTranslator:
    """Stateless translation of commands into platform RPC calls."""

    def standard_call(self, command: Command) -> RpcCall:
        """Map a command through the fixed table, without device overrides."""
        name = canonical_command_name(command.name)

        standard = STANDARD_COMMANDS.get(name)
        if standard is not None:
            return RpcCall(standard.rpc_method, standard.extract(command.params))

        key = name.lower()
        shorthand = SKILL_SHORTHAND.get(key)
        # setpower without a value means off
        if shorthand is not None and (command.value is not None or key == "setpower"):
            method, param, coerce = shorthand
            return RpcCall(method, {param: coerce(command.value)})

        if command.value is not None:
            return RpcCall(name, {"value": command.value})
        return RpcCall(name, dict(command.params))

    def translate(
        self, command: Command, capabilities: Optional[DeviceCapabilities] = None
    ) -> RpcCall:
        call = self.standard_call(command)
        mapping = capabilities.mapping_for(call.method) if capabilities else None
        if mapping is None:
            return call

        logger.debug(
            "Applying custom RPC mapping",
            extra={"rpc_method": call.method, "param_format": mapping.param_format},
        )
        params = call.params if isinstance(call.params, dict) else {"value": call.params}
        return RpcCall(
            mapping.method or call.method, apply_custom_mapping(params, mapping)
        )


def apply_custom_mapping(params: Dict[str, Any], mapping: RpcMethodMapping) -> JsonValue:
    """Reshape a standard object payload according to a device override."""
    fmt = mapping.param_format
    first = next(iter(params.values())) if params else None

    if fmt == FORMAT_NUMERIC:
        if "state" in params:
            return 1 if _as_bool(params["state"]) else 0
        if "brightness" in params:
            return _as_int(params["brightness"])
        if params:
            if isinstance(first, bool):
                return 1 if first else 0
            return _as_int(first)
        return params

    if fmt == FORMAT_STRING:
        if params:
            return _as_text(first)
        return params

    if fmt == FORMAT_TEMPLATE:
        if "state" in params:
            is_on = _as_bool(params["state"])
        elif "openPercent" in params:
            is_on = _as_int(params["openPercent"]) > 0
        elif params:
            is_on = first if isinstance(first, bool) else _as_int(first) != 0
        else:
            is_on = False
        literal = mapping.on_value if is_on else mapping.off_value
        return literal if literal is not None else params

    if fmt == FORMAT_OBJECT and mapping.param_mapping:
        return {mapping.param_mapping.get(key, key): value for key, value in params.items()}

    return params


__all__ = [
    "CommandTranslator",
    "RpcCall",
    "STANDARD_COMMANDS",
    "apply_custom_mapping",
    "canonical_command_name",
]
