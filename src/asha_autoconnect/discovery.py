"""Routes discovery events to per-device supervisors."""

import asyncio
import collections
import logging
from typing import TYPE_CHECKING

from dbus_next.errors import DBusError

from .bluez.constants import has_asha_service
from .bluez.events import DiscoveryEvent, DiscoveryEventKind
from .reconnect import DeviceSupervisor

if TYPE_CHECKING:
    from .bluez.adapter import BluezAdapter
    from .playback import PlaybackSignal

logger = logging.getLogger(__name__)

_LOOKUP_ERRORS = (DBusError, asyncio.TimeoutError, OSError, EOFError)


class DiscoveryRouter:
    """Consumes one epoch's discovery stream.

    Every event is handled in its own task so a slow device lookup never
    delays the next event.  Supervisors are keyed by address; at most one
    exists per address.
    """

    def __init__(
        self,
        adapter: "BluezAdapter",
        signal: "PlaybackSignal",
        call_timeout: float = 20.0,
    ):
        self._adapter = adapter
        self._signal = signal
        self._call_timeout = call_timeout
        self.supervisors: dict[str, DeviceSupervisor] = {}
        self._handlers: set[asyncio.Task] = set()
        # Bumped on every DeviceRemoved so an add that was still resolving
        # when its device vanished does not spawn a stale supervisor.
        self._generation: collections.Counter = collections.Counter()

    async def run(self, stream) -> None:
        """Dispatch events until the stream ends, then tear down the epoch."""
        try:
            async for event in stream:
                self.dispatch(event)
        finally:
            await self.shutdown()

    def dispatch(self, event: DiscoveryEvent) -> asyncio.Task | None:
        if event.kind is DiscoveryEventKind.DEVICE_ADDED:
            coro = self.handle_device_added(event.address)
        elif event.kind is DiscoveryEventKind.DEVICE_REMOVED:
            coro = self.handle_device_removed(event.address)
        else:
            return None
        task = asyncio.create_task(coro)
        self._handlers.add(task)
        task.add_done_callback(self._handlers.discard)
        return task

    async def _lookup(self, coro):
        return await asyncio.wait_for(coro, timeout=self._call_timeout)

    async def _device_name(self, device) -> str:
        try:
            name = await self._lookup(device.name())
        except _LOOKUP_ERRORS:
            return "Unknown"
        return name or "Unknown"

    async def handle_device_added(self, address: str) -> None:
        generation = self._generation[address]
        if address in self.supervisors:
            return

        try:
            device = await self._lookup(self._adapter.device(address))
        except _LOOKUP_ERRORS as e:
            logger.debug("Lookup of %s failed: %s", address, e)
            return

        try:
            uuids = await self._lookup(device.uuids())
        except _LOOKUP_ERRORS as e:
            logger.debug("UUID read for %s failed: %s", address, e)
            device.cleanup()
            return

        if not has_asha_service(uuids):
            device.cleanup()
            return

        name = await self._device_name(device)

        # No await between this check and the insert below.
        if address in self.supervisors or self._generation[address] != generation:
            device.cleanup()
            return

        logger.info("ASHA device found: %s", name)
        supervisor = DeviceSupervisor(
            device, name, self._signal, call_timeout=self._call_timeout
        )
        self.supervisors[address] = supervisor
        supervisor.start()

    async def handle_device_removed(self, address: str) -> None:
        self._generation[address] += 1
        supervisor = self.supervisors.pop(address, None)
        if supervisor is not None:
            supervisor.stop()
            name = supervisor.name
        else:
            name = await self._removed_name(address)
        logger.info("Device removed: %s", name)

    async def _removed_name(self, address: str) -> str:
        try:
            device = await self._lookup(self._adapter.device(address))
        except _LOOKUP_ERRORS:
            return "Unknown"
        try:
            return await self._device_name(device)
        finally:
            device.cleanup()

    async def shutdown(self) -> None:
        """Cancel in-flight handlers and every supervisor of this epoch."""
        for task in list(self._handlers):
            task.cancel()
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)
        self._handlers.clear()

        supervisors = list(self.supervisors.values())
        self.supervisors.clear()
        for supervisor in supervisors:
            supervisor.stop()
        for supervisor in supervisors:
            await supervisor.wait_stopped()
        if supervisors:
            logger.info("Stopped %d supervisor(s)", len(supervisors))
