"""Bluetooth UUID constants and BlueZ D-Bus names for ASHA devices."""

import uuid

# Bluetooth Base UUID: 16-bit assigned numbers live in bits 96..111
BLUETOOTH_BASE_UUID = uuid.UUID("00000000-0000-1000-8000-00805f9b34fb")

# Audio Streaming for Hearing Aids (ASHA)
ASHA_SERVICE_U16 = 0xFDF0
ASHA_UUID = "0000fdf0-0000-1000-8000-00805f9b34fb"

# BlueZ D-Bus service and interface names
BLUEZ_SERVICE = "org.bluez"
BLUEZ_ROOT_PATH = "/org/bluez"
ADAPTER_INTERFACE = "org.bluez.Adapter1"
DEVICE_INTERFACE = "org.bluez.Device1"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"

# Default adapter path
DEFAULT_ADAPTER_PATH = "/org/bluez/hci0"

# Error raised by Properties.Get when BlueZ does not expose an optional
# property (e.g. Name before the first scan response, RSSI when out of range)
DBUS_INVALID_ARGS = "org.freedesktop.DBus.Error.InvalidArgs"

# Polling cadence (seconds)
DEVICE_POLL_INTERVAL = 0.1
PLAYBACK_POLL_INTERVAL = 0.1

# Upper bounds for MPRIS queries: one player's status read, and a whole tick
PLAYBACK_QUERY_TIMEOUT = 0.5
PLAYBACK_TICK_TIMEOUT = 1.0


def uuid_to_u16(value: str) -> int | None:
    """Return the 16-bit short form of a UUID in the Bluetooth base range.

    Returns None for malformed strings and for UUIDs outside the base range
    (vendor 128-bit UUIDs, 32-bit assigned numbers).
    """
    try:
        parsed = uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return None
    short = parsed.int >> 96
    if parsed.int & ((1 << 96) - 1) != BLUETOOTH_BASE_UUID.int:
        return None
    if short > 0xFFFF:
        return None
    return short


def has_asha_service(uuids) -> bool:
    """True if the advertised UUID set contains the ASHA service."""
    if not uuids:
        return False
    return any(uuid_to_u16(u) == ASHA_SERVICE_U16 for u in uuids)
