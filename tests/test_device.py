"""Tests for the BlueZ Device1 wrapper."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from dbus_next import Variant
from dbus_next.errors import DBusError

from asha_autoconnect.bluez.constants import ASHA_UUID, DEVICE_INTERFACE
from asha_autoconnect.bluez.device import BluezDevice, address_to_path, path_to_address


def test_address_to_path_default_adapter():
    assert address_to_path("AA:BB:CC:DD:EE:FF") == "/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF"


def test_address_to_path_lowercase_normalized():
    assert address_to_path("aa:bb:cc:dd:ee:ff", "/org/bluez/hci1") == (
        "/org/bluez/hci1/dev_AA_BB_CC_DD_EE_FF"
    )


def test_path_to_address():
    assert path_to_address("/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF") == "AA:BB:CC:DD:EE:FF"
    assert path_to_address("/org/bluez/hci0") is None


def _device(props):
    """Build an initialized BluezDevice backed by a property dict."""
    device = BluezDevice(MagicMock(), "AA:BB:CC:DD:EE:FF")

    async def _get(interface, name):
        assert interface == DEVICE_INTERFACE
        value = props[name]
        if isinstance(value, Exception):
            raise value
        return Variant(*value)

    device._properties_iface = MagicMock()
    device._properties_iface.call_get = AsyncMock(side_effect=_get)
    device._properties_iface.call_set = AsyncMock()
    device._device_iface = MagicMock()
    device._device_iface.call_connect_profile = AsyncMock()
    device._device_iface.call_disconnect = AsyncMock()
    return device


def _missing():
    return DBusError("org.freedesktop.DBus.Error.InvalidArgs", "No such property")


@pytest.mark.asyncio
async def test_initialize_binds_interfaces():
    bus = MagicMock()
    bus.introspect = AsyncMock(return_value="xml")
    proxy = bus.get_proxy_object.return_value
    device = BluezDevice(bus, "AA:BB:CC:DD:EE:FF")

    await device.initialize()

    bus.introspect.assert_awaited_once_with("org.bluez", "/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF")
    proxy.get_interface.return_value.on_properties_changed.assert_called_once()
    device.cleanup()
    proxy.get_interface.return_value.off_properties_changed.assert_called_once()


@pytest.mark.asyncio
async def test_uuids_lowercased():
    device = _device({"UUIDs": ("as", ["0000FDF0-0000-1000-8000-00805F9B34FB"])})
    assert await device.uuids() == {ASHA_UUID}


@pytest.mark.asyncio
async def test_optional_properties_missing_are_none():
    device = _device({"UUIDs": _missing(), "Name": _missing(), "RSSI": _missing()})
    assert await device.uuids() is None
    assert await device.name() is None
    assert await device.rssi() is None


@pytest.mark.asyncio
async def test_optional_property_other_error_raises():
    device = _device({"Name": DBusError("org.bluez.Error.Failed", "boom")})
    with pytest.raises(DBusError):
        await device.name()


@pytest.mark.asyncio
async def test_flags():
    device = _device({"Connected": ("b", True), "Trusted": ("b", False), "RSSI": ("n", -58)})
    assert await device.is_connected() is True
    assert await device.is_trusted() is False
    assert await device.rssi() == -58


@pytest.mark.asyncio
async def test_connected_read_failure_raises():
    device = _device({"Connected": DBusError("org.bluez.Error.Failed", "boom")})
    with pytest.raises(DBusError):
        await device.is_connected()


@pytest.mark.asyncio
async def test_set_trusted():
    device = _device({})
    await device.set_trusted(True)
    interface, name, variant = device._properties_iface.call_set.await_args.args
    assert (interface, name) == (DEVICE_INTERFACE, "Trusted")
    assert variant.signature == "b" and variant.value is True


@pytest.mark.asyncio
async def test_connect_profile_and_disconnect():
    device = _device({})
    await device.connect_profile(ASHA_UUID)
    device._device_iface.call_connect_profile.assert_awaited_once_with(ASHA_UUID)
    await device.disconnect()
    device._device_iface.call_disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_disconnect_failure_propagates():
    device = _device({})
    device._device_iface.call_disconnect.side_effect = DBusError("org.bluez.Error.Failed", "x")
    with pytest.raises(DBusError):
        await device.disconnect()


def test_properties_changed_logs_link_transitions(caplog):
    device = BluezDevice(MagicMock(), "AA:BB:CC:DD:EE:FF")
    with caplog.at_level("INFO"):
        device._on_properties_changed(DEVICE_INTERFACE, {"Connected": Variant("b", True)}, [])
        device._on_properties_changed(DEVICE_INTERFACE, {"RSSI": Variant("n", -40)}, [])
    assert "Device AA:BB:CC:DD:EE:FF connected" in caplog.text
