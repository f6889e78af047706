try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import logging
from datetime import datetime, timezone

import pytest

from voicelink.core.errors import PlatformError
from voicelink.services.state_query import StateQueryEngine

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakePlatform:
    def __init__(self, timeseries=None, attributes=None, failing=()) -> None:
        self.timeseries = timeseries or {}
        self.attributes = attributes or {}
        self.failing = set(failing)
        self.windows = []

    async def get_latest_timeseries(self, device_id, key, *, start_ts, end_ts):
        self.windows.append((start_ts, end_ts))
        if key in self.failing:
            raise PlatformError("telemetry unavailable")
        return self.timeseries.get(key)

    async def get_client_attribute(self, device_id, key):
        return self.attributes.get(key)


def _engine(platform: FakePlatform) -> StateQueryEngine:
    return StateQueryEngine(platform, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_on_off_without_data_defaults_to_off() -> None:
    state = await _engine(FakePlatform()).query("dev-1", ["OnOff"])

    assert state.online is True
    assert state.state == {"on": False}


@pytest.mark.asyncio
async def test_string_telemetry_values_are_coerced() -> None:
    platform = FakePlatform(timeseries={"on": "true", "brightness": "42.0"})

    state = await _engine(platform).query(
        "dev-1", ["action.devices.traits.OnOff", "Brightness"]
    )

    assert state.flatten() == {"online": True, "on": True, "brightness": 42}


@pytest.mark.asyncio
async def test_telemetry_window_covers_last_day() -> None:
    platform = FakePlatform(timeseries={"on": True})

    await _engine(platform).query("dev-1", ["OnOff"])

    start_ts, end_ts = platform.windows[0]
    assert end_ts == int(NOW.timestamp() * 1000)
    assert end_ts - start_ts == 24 * 60 * 60 * 1000


@pytest.mark.asyncio
async def test_attribute_is_used_when_telemetry_missing() -> None:
    platform = FakePlatform(attributes={"locked": "1"})

    state = await _engine(platform).query("dev-1", ["LockUnlock"])

    assert state.state == {"isLocked": True}


@pytest.mark.asyncio
async def test_failing_lookup_is_logged_and_defaulted(caplog) -> None:
    platform = FakePlatform(failing={"brightness"})

    with caplog.at_level(logging.WARNING):
        state = await _engine(platform).query("dev-1", ["Brightness"])

    assert state.state == {"brightness": 0}
    assert any("brightness" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_uncoercible_value_falls_back_to_attribute() -> None:
    platform = FakePlatform(
        timeseries={"temperature": "warm"}, attributes={"temperature": 23.5}
    )

    state = await _engine(platform).query("dev-1", ["TemperatureSetting"])

    assert state.state == {
        "thermostatTemperatureSetpoint": 23.5,
        "thermostatMode": "heat",
    }


@pytest.mark.asyncio
async def test_color_is_omitted_without_data() -> None:
    state = await _engine(FakePlatform()).query("dev-1", ["ColorSetting"])

    assert state.state == {}


@pytest.mark.asyncio
async def test_color_is_rendered_as_spectrum() -> None:
    platform = FakePlatform(timeseries={"color": 255})

    state = await _engine(platform).query("dev-1", ["ColorSetting"])

    assert state.state == {"color": {"spectrumRgb": 255}}


@pytest.mark.asyncio
async def test_unknown_trait_is_skipped() -> None:
    state = await _engine(FakePlatform()).query("dev-1", ["Dock", "OpenClose"])

    assert state.state == {"openPercent": 0}
