"""BlueZ Device1 D-Bus wrapper for a single ASHA-capable device."""

import logging

from dbus_next import Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

from .constants import (
    BLUEZ_SERVICE,
    DBUS_INVALID_ARGS,
    DEFAULT_ADAPTER_PATH,
    DEVICE_INTERFACE,
    PROPERTIES_INTERFACE,
)

logger = logging.getLogger(__name__)


def address_to_path(address: str, adapter_path: str = DEFAULT_ADAPTER_PATH) -> str:
    """Convert a MAC address to a BlueZ D-Bus object path."""
    return f"{adapter_path}/dev_{address.upper().replace(':', '_')}"


def path_to_address(path: str) -> str | None:
    """Extract the MAC address from a BlueZ device object path."""
    leaf = path.rsplit("/", 1)[-1]
    if not leaf.startswith("dev_"):
        return None
    return leaf[4:].replace("_", ":")


class BluezDevice:
    """Wraps org.bluez.Device1 for trusting, connecting, and polling a device.

    Property reads raise DBusError on failure so callers can tell an
    inconclusive read apart from a real False.  Optional properties that
    BlueZ simply does not expose come back as None.
    """

    def __init__(self, bus: MessageBus, address: str, adapter_path: str = DEFAULT_ADAPTER_PATH):
        self._bus = bus
        self._address = address
        self._path = address_to_path(address, adapter_path)
        self._device_iface = None
        self._properties_iface = None

    async def initialize(self) -> None:
        """Connect to the device's D-Bus interfaces and start monitoring."""
        introspection = await self._bus.introspect(BLUEZ_SERVICE, self._path)
        proxy = self._bus.get_proxy_object(BLUEZ_SERVICE, self._path, introspection)
        self._device_iface = proxy.get_interface(DEVICE_INTERFACE)
        self._properties_iface = proxy.get_interface(PROPERTIES_INTERFACE)

        self._properties_iface.on_properties_changed(self._on_properties_changed)
        logger.debug("Device %s initialized at %s", self._address, self._path)

    def cleanup(self) -> None:
        """Remove D-Bus signal subscriptions.

        Call this before discarding a BluezDevice to prevent leaked subscriptions.
        """
        if self._properties_iface:
            try:
                self._properties_iface.off_properties_changed(self._on_properties_changed)
            except Exception as e:
                logger.debug("Unsubscribe for %s failed: %s", self._address, e)
        logger.debug("Device %s cleaned up", self._address)

    def _on_properties_changed(
        self, interface_name: str, changed: dict, invalidated: list
    ) -> None:
        """Log link transitions; connection state itself is polled."""
        if interface_name != DEVICE_INTERFACE:
            return

        if "Connected" in changed:
            if changed["Connected"].value:
                logger.info("Device %s connected", self._address)
            else:
                logger.info("Device %s disconnected", self._address)

    async def _get(self, name: str):
        result = await self._properties_iface.call_get(DEVICE_INTERFACE, name)
        return result.value

    async def _get_optional(self, name: str):
        try:
            return await self._get(name)
        except DBusError as e:
            if e.type == DBUS_INVALID_ARGS:
                return None
            raise

    async def uuids(self) -> set[str] | None:
        """Get the set of service UUIDs advertised by the device."""
        value = await self._get_optional("UUIDs")
        if value is None:
            return None
        return {u.lower() for u in value}

    async def name(self) -> str | None:
        """Get the device's friendly name, if BlueZ has one."""
        return await self._get_optional("Name")

    async def rssi(self) -> int | None:
        """Get the last advertisement RSSI (absent while out of range)."""
        return await self._get_optional("RSSI")

    async def is_connected(self) -> bool:
        """Check if the device is connected."""
        return bool(await self._get("Connected"))

    async def is_trusted(self) -> bool:
        """Check if the device is trusted."""
        return bool(await self._get("Trusted"))

    async def set_trusted(self, trusted: bool = True) -> None:
        """Set the device as trusted (allows BlueZ auto-reconnect)."""
        await self._properties_iface.call_set(
            DEVICE_INTERFACE, "Trusted", Variant("b", trusted)
        )
        logger.info("Device %s trusted=%s", self._address, trusted)

    async def connect_profile(self, uuid: str) -> None:
        """Connect a specific Bluetooth profile by UUID."""
        logger.debug("ConnectProfile %s on %s...", uuid, self._address)
        await self._device_iface.call_connect_profile(uuid)
        logger.info("ConnectProfile %s on %s succeeded", uuid, self._address)

    async def disconnect(self) -> None:
        """Disconnect from the device."""
        logger.debug("Disconnecting from %s...", self._address)
        await self._device_iface.call_disconnect()
        logger.info("Disconnected from %s", self._address)

    @property
    def address(self) -> str:
        return self._address

    @property
    def path(self) -> str:
        return self._path
