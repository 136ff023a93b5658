"""BlueZ Adapter1 D-Bus wrapper with LE discovery as an event stream."""

import asyncio
import logging

from dbus_next import Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

from .constants import (
    ADAPTER_INTERFACE,
    BLUEZ_SERVICE,
    DEFAULT_ADAPTER_PATH,
    DEVICE_INTERFACE,
    OBJECT_MANAGER_INTERFACE,
    PROPERTIES_INTERFACE,
)
from .device import BluezDevice, path_to_address
from .events import DiscoveryEvent

logger = logging.getLogger(__name__)

_END = object()


class DiscoveryStream:
    """Async iterator of DiscoveryEvents for one adapter.

    Replays the devices BlueZ already knows about, then follows
    ObjectManager InterfacesAdded/InterfacesRemoved while discovery runs.
    The stream ends when the bus drops, the adapter object disappears,
    or the adapter is powered off.
    """

    def __init__(self, adapter: "BluezAdapter"):
        self._adapter = adapter
        self._queue: asyncio.Queue = asyncio.Queue()
        self._ended = False
        self._closed = False
        self._discovering = False
        self._watch_task: asyncio.Task | None = None

    async def start(self) -> None:
        """Subscribe to BlueZ signals and start discovery."""
        adapter = self._adapter
        adapter.object_manager.on_interfaces_added(self._on_interfaces_added)
        adapter.object_manager.on_interfaces_removed(self._on_interfaces_removed)
        adapter.properties.on_properties_changed(self._on_adapter_properties_changed)

        try:
            objects = await adapter.object_manager.call_get_managed_objects()
            for path, interfaces in sorted(objects.items()):
                if DEVICE_INTERFACE in interfaces and self._owns(path):
                    self._emit_added(path, interfaces[DEVICE_INTERFACE])

            await adapter.adapter_iface.call_start_discovery()
        except Exception:
            self._unsubscribe()
            raise
        self._discovering = True
        self._watch_task = asyncio.create_task(self._watch_bus())
        logger.info("Device discovery started on %s (LE)", adapter.adapter_path)

    def __aiter__(self):
        return self

    async def __anext__(self) -> DiscoveryEvent:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item

    @property
    def ended(self) -> bool:
        return self._ended

    def _owns(self, path: str) -> bool:
        return path.startswith(self._adapter.adapter_path + "/")

    def _emit_added(self, path: str, props: dict) -> None:
        address_variant = props.get("Address")
        address = address_variant.value if address_variant else path_to_address(path)
        if address:
            self._queue.put_nowait(DiscoveryEvent.device_added(address, path))

    def _end(self, reason: str) -> None:
        if self._ended:
            return
        self._ended = True
        logger.info("Discovery stream on %s ended: %s", self._adapter.adapter_path, reason)
        self._queue.put_nowait(_END)

    def _on_interfaces_added(self, path: str, interfaces: dict) -> None:
        if DEVICE_INTERFACE in interfaces and self._owns(path):
            self._emit_added(path, interfaces[DEVICE_INTERFACE])
        else:
            self._queue.put_nowait(DiscoveryEvent.other(path))

    def _on_interfaces_removed(self, path: str, interfaces: list) -> None:
        if path == self._adapter.adapter_path and ADAPTER_INTERFACE in interfaces:
            self._end("adapter removed")
            return
        if DEVICE_INTERFACE in interfaces and self._owns(path):
            address = path_to_address(path)
            if address:
                self._queue.put_nowait(DiscoveryEvent.device_removed(address, path))
                return
        self._queue.put_nowait(DiscoveryEvent.other(path))

    def _on_adapter_properties_changed(
        self, interface_name: str, changed: dict, invalidated: list
    ) -> None:
        if interface_name != ADAPTER_INTERFACE:
            return
        powered = changed.get("Powered")
        if powered is not None and not powered.value:
            self._end("adapter powered off")
            return
        self._queue.put_nowait(DiscoveryEvent.other(self._adapter.adapter_path))

    async def _watch_bus(self) -> None:
        try:
            await self._adapter.bus.wait_for_disconnect()
        except Exception as e:
            logger.debug("System bus disconnected with error: %s", e)
        self._end("D-Bus connection lost")

    def _unsubscribe(self) -> None:
        adapter = self._adapter
        try:
            adapter.object_manager.off_interfaces_added(self._on_interfaces_added)
            adapter.object_manager.off_interfaces_removed(self._on_interfaces_removed)
            adapter.properties.off_properties_changed(self._on_adapter_properties_changed)
        except Exception as e:
            logger.debug("Signal unsubscribe failed: %s", e)

    async def close(self) -> None:
        """Stop our discovery session and drop signal subscriptions."""
        if self._closed:
            return
        self._closed = True
        if self._watch_task:
            self._watch_task.cancel()
            self._watch_task = None
        self._unsubscribe()
        if self._discovering and self._adapter.bus.connected:
            try:
                await self._adapter.adapter_iface.call_stop_discovery()
                logger.info("Device discovery stopped")
            except DBusError as e:
                if "No discovery started" not in str(e):
                    logger.debug("StopDiscovery failed: %s", e)
        self._discovering = False
        self._queue.put_nowait(_END)


class BluezAdapter:
    """Wraps org.bluez.Adapter1 for LE discovery of ASHA devices.

    COEXISTENCE: BlueZ reference-counts StartDiscovery/StopDiscovery per
    D-Bus client, so our discovery session does not stop anyone else's.
    """

    def __init__(self, bus: MessageBus, adapter_path: str = DEFAULT_ADAPTER_PATH):
        self._bus = bus
        self._adapter_path = adapter_path
        self._adapter_iface = None
        self._properties_iface = None
        self._object_manager = None

    async def initialize(self) -> None:
        """Connect to the adapter's and ObjectManager's D-Bus interfaces."""
        introspection = await self._bus.introspect(BLUEZ_SERVICE, self._adapter_path)
        proxy = self._bus.get_proxy_object(
            BLUEZ_SERVICE, self._adapter_path, introspection
        )
        self._adapter_iface = proxy.get_interface(ADAPTER_INTERFACE)
        self._properties_iface = proxy.get_interface(PROPERTIES_INTERFACE)

        root_introspection = await self._bus.introspect(BLUEZ_SERVICE, "/")
        root_proxy = self._bus.get_proxy_object(BLUEZ_SERVICE, "/", root_introspection)
        self._object_manager = root_proxy.get_interface(OBJECT_MANAGER_INTERFACE)
        logger.debug("Adapter initialized at %s", self._adapter_path)

    async def is_powered(self) -> bool:
        powered = await self._properties_iface.call_get(ADAPTER_INTERFACE, "Powered")
        return bool(powered.value)

    async def set_discovery_filter(self) -> None:
        """Restrict discovery to the LE transport; everything else default."""
        await self._adapter_iface.call_set_discovery_filter(
            {
                "Transport": Variant("s", "le"),
            }
        )
        logger.debug("Discovery filter set on %s (transport=le)", self._adapter_path)

    async def discover_devices(self) -> DiscoveryStream:
        """Start discovery and return the resulting event stream."""
        stream = DiscoveryStream(self)
        await stream.start()
        return stream

    async def device(self, address: str) -> BluezDevice:
        """Resolve a device handle; raises DBusError if BlueZ has no such object."""
        device = BluezDevice(self._bus, address, self._adapter_path)
        await device.initialize()
        return device

    @property
    def bus(self) -> MessageBus:
        return self._bus

    @property
    def adapter_path(self) -> str:
        return self._adapter_path

    @property
    def adapter_iface(self):
        return self._adapter_iface

    @property
    def properties(self):
        return self._properties_iface

    @property
    def object_manager(self):
        return self._object_manager
