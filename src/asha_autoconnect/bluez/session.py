"""System D-Bus session against BlueZ and default adapter resolution."""

import logging

from dbus_next import BusType
from dbus_next.aio import MessageBus

from .adapter import BluezAdapter
from .constants import (
    ADAPTER_INTERFACE,
    BLUEZ_ROOT_PATH,
    BLUEZ_SERVICE,
    OBJECT_MANAGER_INTERFACE,
)

logger = logging.getLogger(__name__)


class AdapterNotFoundError(Exception):
    """Raised when no usable Bluetooth adapter is registered with BlueZ."""


def resolve_adapter_path(setting: str, available: list[str]) -> str:
    """Resolve the bt_adapter setting against the adapters BlueZ reports.

    "auto" → first adapter by path (hci0 before hci1).
    "hci1" → "/org/bluez/hci1", full object paths are taken as-is.
    """
    if not available:
        raise AdapterNotFoundError("No Bluetooth adapters registered with BlueZ")
    if setting == "auto":
        return sorted(available)[0]
    path = setting if setting.startswith("/org/bluez/") else f"{BLUEZ_ROOT_PATH}/{setting}"
    if path not in available:
        raise AdapterNotFoundError(
            f"Adapter {path} not found (available: {', '.join(sorted(available))})"
        )
    return path


class BluezSession:
    """One connection to the system bus, used for a single session epoch."""

    def __init__(self, bus: MessageBus):
        self._bus = bus

    @classmethod
    async def open(cls) -> "BluezSession":
        bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
        logger.info("Connected to system D-Bus")
        return cls(bus)

    async def list_adapters(self) -> list[str]:
        introspection = await self._bus.introspect(BLUEZ_SERVICE, "/")
        proxy = self._bus.get_proxy_object(BLUEZ_SERVICE, "/", introspection)
        obj_manager = proxy.get_interface(OBJECT_MANAGER_INTERFACE)
        objects = await obj_manager.call_get_managed_objects()
        return [path for path, ifaces in objects.items() if ADAPTER_INTERFACE in ifaces]

    async def default_adapter(self, setting: str = "auto") -> BluezAdapter:
        path = resolve_adapter_path(setting, await self.list_adapters())
        adapter = BluezAdapter(self._bus, path)
        await adapter.initialize()
        logger.info("Using Bluetooth adapter: %s", path)
        return adapter

    def close(self) -> None:
        if self._bus.connected:
            self._bus.disconnect()
            logger.debug("System D-Bus session closed")

    @property
    def bus(self) -> MessageBus:
        return self._bus
