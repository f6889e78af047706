try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from voicelink.clients.device_registry import DeviceRegistry
from voicelink.core.errors import DeviceDisabledError, DeviceNotFoundError
from voicelink.models.device import Assistant, Device, DeviceCapabilities
from voicelink.services.capabilities import CapabilityService, default_capabilities


@pytest.fixture()
def registry(tmp_path) -> DeviceRegistry:
    registry = DeviceRegistry(str(tmp_path / "devices.db"), page_size=2)
    for index, device_type in enumerate(["thermostat", "curtain", "toaster"]):
        registry.save_device(
            Device(
                id=f"dev-{index}",
                tenant_id="tenant-1",
                name=f"Device {index}",
                type=device_type,
            )
        )
    return registry


@pytest.fixture()
def service(registry) -> CapabilityService:
    return CapabilityService(registry)


@pytest.mark.parametrize(
    "device_type, assistant, category, traits",
    [
        ("Thermostat", Assistant.GOOGLE, "action.devices.types.THERMOSTAT", ["TemperatureSetting"]),
        ("light", Assistant.ALEXA, "LIGHT", ["OnOff", "Brightness"]),
        ("curtain_robot", Assistant.GOOGLE, "action.devices.types.CURTAIN", ["OpenClose"]),
        ("toaster", Assistant.GOOGLE, "action.devices.types.SWITCH", ["OnOff"]),
    ],
)
def test_default_capabilities(device_type, assistant, category, traits) -> None:
    capabilities = default_capabilities(device_type, assistant)

    assert capabilities.enabled is False
    assert capabilities.device_type == category
    assert capabilities.traits == traits


def test_listing_pages_through_registry(service) -> None:
    devices = service.list_devices("tenant-1")

    assert [device.id for device in devices] == ["dev-0", "dev-1", "dev-2"]


def test_enabling_creates_default_document(service) -> None:
    device = service.set_enabled("tenant-1", "dev-0", Assistant.GOOGLE, True)

    capabilities = device.capabilities(Assistant.GOOGLE)
    assert capabilities.enabled is True
    assert capabilities.device_type == "action.devices.types.THERMOSTAT"
    assert device.capabilities(Assistant.ALEXA) is None
    assert [d.id for d in service.list_enabled_devices("tenant-1", Assistant.GOOGLE)] == [
        "dev-0"
    ]
    assert service.list_enabled_devices("tenant-1", Assistant.ALEXA) == []


def test_configure_keeps_other_assistant_document(service) -> None:
    service.set_enabled("tenant-1", "dev-1", Assistant.ALEXA, True)
    custom = DeviceCapabilities.model_validate(
        {
            "enabled": True,
            "deviceType": "action.devices.types.BLINDS",
            "traits": ["OpenClose"],
            "rpcMapping": {"setOpenPercent": {"method": "move", "paramFormat": "numeric"}},
        }
    )

    device = service.configure("tenant-1", "dev-1", Assistant.GOOGLE, custom)

    assert device.capabilities(Assistant.GOOGLE).mapping_for("setOpenPercent").method == "move"
    assert device.is_enabled_for(Assistant.ALEXA)


def test_disabled_device_is_rejected(service) -> None:
    service.set_enabled("tenant-1", "dev-2", Assistant.GOOGLE, False)

    with pytest.raises(DeviceDisabledError):
        service.get_enabled_device("tenant-1", "dev-2", Assistant.GOOGLE)
    with pytest.raises(DeviceDisabledError):
        service.get_enabled_device("tenant-1", "dev-1", Assistant.GOOGLE)


def test_other_tenant_cannot_see_device(service) -> None:
    with pytest.raises(DeviceNotFoundError):
        service.get_device("tenant-2", "dev-0")
    with pytest.raises(DeviceNotFoundError):
        service.register_device("tenant-2", "dev-0", name="Hijack", device_type="lock")


def test_register_preserves_capability_documents(service) -> None:
    service.set_enabled("tenant-1", "dev-0", Assistant.GOOGLE, True)

    device = service.register_device(
        "tenant-1", "dev-0", name="Hall thermostat", device_type="thermostat"
    )

    assert device.name == "Hall thermostat"
    assert service.get_device("tenant-1", "dev-0").is_enabled_for(Assistant.GOOGLE)
