"""Tests for bluez.constants UUID helpers."""

from asha_autoconnect.bluez.constants import ASHA_UUID, has_asha_service, uuid_to_u16


def test_uuid_to_u16_asha():
    assert uuid_to_u16(ASHA_UUID) == 0xFDF0


def test_uuid_to_u16_uppercase():
    assert uuid_to_u16("0000180F-0000-1000-8000-00805F9B34FB") == 0x180F


def test_uuid_to_u16_vendor_uuid():
    assert uuid_to_u16("6e400001-b5a3-f393-e0a9-e50e24dcca9e") is None


def test_uuid_to_u16_32bit_assigned_number():
    assert uuid_to_u16("0001fdf0-0000-1000-8000-00805f9b34fb") is None


def test_uuid_to_u16_malformed():
    assert uuid_to_u16("not-a-uuid") is None
    assert uuid_to_u16(None) is None


def test_has_asha_service_match():
    uuids = {"0000180f-0000-1000-8000-00805f9b34fb", ASHA_UUID}
    assert has_asha_service(uuids) is True


def test_has_asha_service_no_match():
    assert has_asha_service({"0000180f-0000-1000-8000-00805f9b34fb"}) is False


def test_has_asha_service_empty_or_none():
    assert has_asha_service(set()) is False
    assert has_asha_service(None) is False
