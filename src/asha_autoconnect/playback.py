"""Playback signal source: is any media player on this host playing?

A dedicated thread polls MPRIS on the session bus every 100 ms and
publishes one boolean.  The thread runs its own asyncio loop so the
D-Bus client never touches the main reactor; the only state shared
across the thread boundary is the PlaybackSignal.
"""

import asyncio
import logging
import threading

from dbus_next import BusType
from dbus_next.aio import MessageBus

from .bluez.constants import (
    PLAYBACK_POLL_INTERVAL,
    PLAYBACK_QUERY_TIMEOUT,
    PLAYBACK_TICK_TIMEOUT,
)
from .media.mpris import PlaybackStatus, find_active_player

logger = logging.getLogger(__name__)


class PlaybackSignal:
    """Single-writer, multi-reader boolean backed by a threading.Event."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self, playing: bool) -> None:
        if playing:
            self._event.set()
        else:
            self._event.clear()

    def is_playing(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()


class PlaybackMonitor:
    """Owns the polling thread that writes the PlaybackSignal."""

    def __init__(
        self,
        signal: PlaybackSignal | None = None,
        poll_interval: float = PLAYBACK_POLL_INTERVAL,
        query_timeout: float = PLAYBACK_QUERY_TIMEOUT,
        tick_timeout: float = PLAYBACK_TICK_TIMEOUT,
    ):
        self.signal = signal or PlaybackSignal()
        self._poll_interval = poll_interval
        self._query_timeout = query_timeout
        self._tick_timeout = tick_timeout
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._bus: MessageBus | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self.signal.set(False)
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="playback-monitor", daemon=True
        )
        self._thread.start()
        logger.info("Playback monitor started (poll every %.0f ms)", self._poll_interval * 1000)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is None:
            return
        self._thread.join(timeout)
        self._thread = None
        logger.info("Playback monitor stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        try:
            while not self._stop.is_set():
                playing = loop.run_until_complete(self._poll_once())
                if playing != self.signal.is_playing():
                    logger.info("Playback %s", "started" if playing else "stopped")
                self.signal.set(playing)
                self._stop.wait(self._poll_interval)
        finally:
            if self._bus is not None and self._bus.connected:
                self._bus.disconnect()
            self._bus = None
            loop.close()

    async def _get_bus(self) -> MessageBus:
        if self._bus is None or not self._bus.connected:
            self._bus = await MessageBus(bus_type=BusType.SESSION).connect()
            logger.debug("Playback monitor connected to session D-Bus")
        return self._bus

    async def _poll_once(self) -> bool:
        """One tick: any failure or a hung peer reads as "not playing"."""
        try:
            return await asyncio.wait_for(self._query(), timeout=self._tick_timeout)
        except asyncio.TimeoutError:
            logger.debug("Playback query timed out after %ss", self._tick_timeout)
        except Exception as e:
            logger.debug("No playback evidence: %s", e)
        return False

    async def _query(self) -> bool:
        bus = await self._get_bus()
        player = await find_active_player(bus, timeout=self._query_timeout)
        status = await asyncio.wait_for(player.playback_status(), timeout=self._query_timeout)
        return status is PlaybackStatus.PLAYING
