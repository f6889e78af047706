"""
Resolve a device's current state for its declared traits.

Each trait-backing value is looked up in the latest telemetry of the last
24 hours, then in the device's client-scope attributes, then defaulted. A
failing lookup never fails the query; it is logged and treated as missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Tuple

from voicelink.clients.platform import PlatformClient
from voicelink.core.errors import GatewayError
from voicelink.models.device import JsonValue, TraitState

logger = logging.getLogger(__name__)

TRAIT_PREFIX = "action.devices.traits."
TELEMETRY_WINDOW = timedelta(hours=24)

_MISSING = object()


def _coerce_bool(value: JsonValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "on"):
            return True
        if lowered in ("false", "0", "off"):
            return False
    raise ValueError(f"Not a boolean: {value!r}")


def _coerce_int(value: JsonValue) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Not an integer: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        return int(float(value.strip()))
    raise ValueError(f"Not an integer: {value!r}")


def _coerce_float(value: JsonValue) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"Not a number: {value!r}")


def _coerce_str(value: JsonValue) -> str:
    if isinstance(value, (dict, list)) or value is None:
        raise ValueError(f"Not a string: {value!r}")
    return str(value)


@dataclass(frozen=True)
class StateField:
    """One output property backed by a telemetry or attribute key."""

    output: str
    source: str
    coerce: Callable[[JsonValue], Any]
    default: Any = _MISSING

    def render(self, value: Any) -> Any:
        return value


@dataclass(frozen=True)
class ColorField(StateField):
    def render(self, value: Any) -> Any:
        return {"spectrumRgb": value}


TRAIT_FIELDS: Dict[str, Tuple[StateField, ...]] = {
    "OnOff": (StateField("on", "on", _coerce_bool, False),),
    "Brightness": (StateField("brightness", "brightness", _coerce_int, 0),),
    "ColorSetting": (ColorField("color", "color", _coerce_int),),
    "TemperatureSetting": (
        StateField(
            "thermostatTemperatureSetpoint", "temperature", _coerce_float, 20.0
        ),
        StateField("thermostatMode", "mode", _coerce_str, "heat"),
    ),
    "FanSpeed": (StateField("fanSpeed", "fanSpeed", _coerce_str, "medium"),),
    "LockUnlock": (StateField("isLocked", "locked", _coerce_bool, False),),
    "OpenClose": (StateField("openPercent", "openPercent", _coerce_int, 0),),
}


def short_trait_name(trait: str) -> str:
    if trait.startswith(TRAIT_PREFIX):
        return trait[len(TRAIT_PREFIX):]
    return trait


class StateQueryEngine:
    """Builds a ``TraitState`` from platform telemetry and attributes."""

    def __init__(
        self,
        platform: PlatformClient,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._platform = platform
        self._clock = clock

    async def query(
        self, device_id: str, traits: Iterable[str], *, online: bool = True
    ) -> TraitState:
        state: Dict[str, Any] = {}
        for trait in traits:
            fields = TRAIT_FIELDS.get(short_trait_name(trait))
            if fields is None:
                logger.debug(
                    "Skipping trait without state mapping",
                    extra={"device_id": device_id, "trait": trait},
                )
                continue
            for field in fields:
                value = await self._resolve(device_id, field)
                if value is _MISSING:
                    continue
                state[field.output] = field.render(value)
        return TraitState(online=online, state=state)

    async def _resolve(self, device_id: str, field: StateField) -> Any:
        value = await self._from_timeseries(device_id, field)
        if value is _MISSING:
            value = await self._from_attribute(device_id, field)
        if value is _MISSING:
            return field.default
        return value

    async def _from_timeseries(self, device_id: str, field: StateField) -> Any:
        now = self._clock()
        end_ts = int(now.timestamp() * 1000)
        start_ts = int((now - TELEMETRY_WINDOW).timestamp() * 1000)
        try:
            raw = await self._platform.get_latest_timeseries(
                device_id, field.source, start_ts=start_ts, end_ts=end_ts
            )
            if raw is None:
                return _MISSING
            return field.coerce(raw)
        except (GatewayError, ValueError, TypeError) as exc:
            logger.warning(
                "Telemetry lookup failed for %s: %s",
                field.source,
                exc,
                extra={"device_id": device_id},
            )
            return _MISSING

    async def _from_attribute(self, device_id: str, field: StateField) -> Any:
        try:
            raw = await self._platform.get_client_attribute(device_id, field.source)
            if raw is None:
                return _MISSING
            return field.coerce(raw)
        except (GatewayError, ValueError, TypeError) as exc:
            logger.warning(
                "Attribute lookup failed for %s: %s",
                field.source,
                exc,
                extra={"device_id": device_id},
            )
            return _MISSING


__all__ = ["StateQueryEngine", "TRAIT_FIELDS", "TRAIT_PREFIX", "short_trait_name"]
