"""Per-device connection supervision gated on media playback.

One DeviceSupervisor runs per ASHA device currently in range.  Each
100 ms tick it polls the device's Connected/Trusted flags and the shared
playback signal, then trusts + connects while something is playing and
disconnects once playback stops.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from dbus_next.errors import DBusError

from .bluez.constants import ASHA_UUID, DEVICE_POLL_INTERVAL

if TYPE_CHECKING:
    from .bluez.device import BluezDevice
    from .playback import PlaybackSignal

logger = logging.getLogger(__name__)

# Failures that make a single tick inconclusive or a single request fail.
# Never fatal: the next tick retries.
_CALL_ERRORS = (DBusError, asyncio.TimeoutError, OSError, EOFError)


class DeviceSupervisor:
    """Runs the connect/disconnect state machine for one device."""

    def __init__(
        self,
        device: "BluezDevice",
        name: str,
        signal: "PlaybackSignal",
        call_timeout: float = 20.0,
        poll_interval: float = DEVICE_POLL_INTERVAL,
    ):
        self._device = device
        self._name = name
        self._signal = signal
        self._call_timeout = call_timeout
        self._poll_interval = poll_interval
        self._task: asyncio.Task | None = None
        self._stopped = False

    def start(self) -> None:
        """Schedule the polling loop; no-op if it is already running."""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.create_task(
            self._run(), name=f"supervisor-{self._device.address}"
        )
        # Runs even when the task is cancelled before its first step.
        self._task.add_done_callback(lambda _: self._device.cleanup())

    def stop(self) -> None:
        """Stop issuing requests and cancel the polling task.

        Safe to call multiple times or before ``start()``.
        """
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_stopped(self) -> None:
        """Wait for the polling task to finish; never re-raises its failure.

        Cancelling the caller cancels only the wait, not the task.
        """
        if self._task is None:
            return
        await asyncio.wait({self._task})
        if not self._task.cancelled() and self._task.exception() is not None:
            logger.warning(
                "Supervisor for %s ended with error: %r",
                self._name, self._task.exception(),
            )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def address(self) -> str:
        return self._device.address

    @property
    def name(self) -> str:
        return self._name

    async def _call(self, coro):
        return await asyncio.wait_for(coro, timeout=self._call_timeout)

    async def _run(self) -> None:
        logger.info("Supervising %s (%s)", self._name, self._device.address)
        try:
            while not self._stopped:
                await self.tick()
                await asyncio.sleep(self._poll_interval)
        finally:
            logger.info("Stopped supervising %s (%s)", self._name, self._device.address)

    async def tick(self) -> None:
        """Evaluate one row of the transition table."""
        try:
            connected = await self._call(self._device.is_connected())
        except _CALL_ERRORS as e:
            logger.debug("Connected read for %s inconclusive: %s", self._name, e)
            return

        playing = self._signal.is_playing()

        if connected and not playing:
            await self._disconnect()
        elif not connected and playing:
            await self._connect()

    async def _connect(self) -> None:
        try:
            trusted = await self._call(self._device.is_trusted())
        except _CALL_ERRORS as e:
            logger.debug("Trusted read for %s inconclusive: %s", self._name, e)
            return

        if self._stopped:
            return
        if not trusted:
            try:
                await self._call(self._device.set_trusted(True))
            except _CALL_ERRORS as e:
                logger.warning("Could not trust %s: %s", self._name, e)
                return

        if self._stopped:
            return
        logger.info("Playback active, connecting %s...", self._name)
        try:
            await self._call(self._device.connect_profile(ASHA_UUID))
        except _CALL_ERRORS as e:
            logger.warning(
                "Connect to %s failed: %s (RSSI: %s)",
                self._name, e, await self._rssi_hint(),
            )
            return
        logger.info("Connected %s", self._name)

    async def _disconnect(self) -> None:
        if self._stopped:
            return
        logger.info("Playback stopped, disconnecting %s...", self._name)
        try:
            await self._call(self._device.disconnect())
        except _CALL_ERRORS as e:
            logger.warning("Disconnect from %s failed: %s", self._name, e)
            return
        logger.info("Disconnected %s", self._name)

    async def _rssi_hint(self) -> str:
        try:
            rssi = await self._call(self._device.rssi())
        except _CALL_ERRORS:
            return "unreadable"
        if rssi is None:
            return "none, is the device off?"
        return f"{rssi} dBm"
