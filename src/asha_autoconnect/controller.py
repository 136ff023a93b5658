"""Adapter session controller: one setup attempt per epoch.

Each setup step maps its failure to a SetupError subclass that carries
the backoff the restart loop should wait before trying again.  Session
and adapter acquisition failures mean bluetoothd itself is unavailable
(long backoff); power/filter/discovery failures are usually transient
(short backoff).
"""

import asyncio
import logging
from dataclasses import dataclass

from dbus_next.errors import DBusError

from .bluez.adapter import BluezAdapter, DiscoveryStream
from .bluez.session import AdapterNotFoundError, BluezSession
from .config import AppConfig

logger = logging.getLogger(__name__)

_SETUP_ERRORS = (DBusError, asyncio.TimeoutError, OSError, EOFError)


class SetupError(Exception):
    """A setup step failed; the epoch is abandoned."""

    long_backoff = False

    def backoff(self, config: AppConfig) -> float:
        if self.long_backoff:
            return config.long_backoff_seconds
        return config.short_backoff_seconds


class SessionUnavailableError(SetupError):
    """The system bus or the BlueZ service could not be reached."""

    long_backoff = True


class AdapterUnavailableError(SetupError):
    """No usable default adapter."""

    long_backoff = True


class AdapterNotPoweredError(SetupError):
    """The Bluetooth adapter is not powered on."""


class DiscoveryFilterError(SetupError):
    """The LE discovery filter could not be applied."""


class DiscoveryStartError(SetupError):
    """Discovery could not be started."""


@dataclass
class Epoch:
    """Resources owned by one successful setup attempt."""

    session: BluezSession
    adapter: BluezAdapter
    stream: DiscoveryStream

    async def close(self) -> None:
        try:
            await self.stream.close()
        finally:
            self.session.close()


class AdapterSessionController:
    """Runs the ordered setup sequence against BlueZ."""

    def __init__(self, config: AppConfig):
        self._config = config

    async def _step(self, coro):
        return await asyncio.wait_for(coro, timeout=self._config.call_timeout_seconds)

    async def open_epoch(self) -> Epoch:
        try:
            session = await self._step(BluezSession.open())
        except _SETUP_ERRORS as e:
            raise SessionUnavailableError(f"Unable to open D-Bus session: {e}") from e

        try:
            adapter = await self._setup_adapter(session)
            try:
                stream = await self._step(adapter.discover_devices())
            except _SETUP_ERRORS as e:
                raise DiscoveryStartError(f"Could not start discovery: {e}") from e
        except SetupError:
            session.close()
            raise

        return Epoch(session=session, adapter=adapter, stream=stream)

    async def _setup_adapter(self, session: BluezSession) -> BluezAdapter:
        try:
            adapter = await self._step(session.default_adapter(self._config.bt_adapter))
        except AdapterNotFoundError as e:
            raise AdapterUnavailableError(str(e)) from e
        except _SETUP_ERRORS as e:
            raise AdapterUnavailableError(f"Unable to get default adapter: {e}") from e

        try:
            powered = await self._step(adapter.is_powered())
        except _SETUP_ERRORS as e:
            raise AdapterNotPoweredError(f"Unable to get adapter state: {e}") from e
        if not powered:
            raise AdapterNotPoweredError(f"Adapter {adapter.adapter_path} is off")

        try:
            await self._step(adapter.set_discovery_filter())
        except _SETUP_ERRORS as e:
            raise DiscoveryFilterError(f"Could not set discovery filter: {e}") from e

        return adapter
