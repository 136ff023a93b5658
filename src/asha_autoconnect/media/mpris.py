"""Query MPRIS media players on the session bus.

Uses raw ``bus.call(Message(...))`` instead of proxy objects so the
100 ms playback poll skips the introspection round-trip.
"""

import asyncio
import enum
import logging

from dbus_next import Message, MessageType
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

logger = logging.getLogger(__name__)

MPRIS_PREFIX = "org.mpris.MediaPlayer2."
MPRIS_PATH = "/org/mpris/MediaPlayer2"
MPRIS_PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"


class PlaybackStatus(enum.Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"


class PlayerNotFoundError(Exception):
    """Raised when no MPRIS player is available on the session bus."""


def _raise_for_error(reply: Message) -> None:
    if reply.message_type == MessageType.ERROR:
        text = reply.body[0] if reply.body else ""
        raise DBusError(reply.error_name or "org.freedesktop.DBus.Error.Failed", text, reply)


class MprisPlayer:
    """A single MPRIS player identified by its bus name."""

    def __init__(self, bus: MessageBus, bus_name: str):
        self._bus = bus
        self._bus_name = bus_name

    async def playback_status(self) -> PlaybackStatus:
        """Read PlaybackStatus; raises DBusError or ValueError if unreadable."""
        reply = await self._bus.call(
            Message(
                destination=self._bus_name,
                path=MPRIS_PATH,
                interface="org.freedesktop.DBus.Properties",
                member="Get",
                signature="ss",
                body=[MPRIS_PLAYER_INTERFACE, "PlaybackStatus"],
            )
        )
        _raise_for_error(reply)
        return PlaybackStatus(reply.body[0].value)

    @property
    def bus_name(self) -> str:
        return self._bus_name

    @property
    def identity(self) -> str:
        return self._bus_name[len(MPRIS_PREFIX):]


async def list_players(bus: MessageBus) -> list[MprisPlayer]:
    """Return every MPRIS player currently owning a name on the bus."""
    reply = await bus.call(
        Message(
            destination="org.freedesktop.DBus",
            path="/org/freedesktop/DBus",
            interface="org.freedesktop.DBus",
            member="ListNames",
        )
    )
    _raise_for_error(reply)
    names = sorted(n for n in reply.body[0] if n.startswith(MPRIS_PREFIX))
    return [MprisPlayer(bus, name) for name in names]


async def find_active_player(bus: MessageBus, timeout: float = 0.5) -> MprisPlayer:
    """Find the player most likely to be the one the user is listening to.

    Preference: first Playing player, then first Paused, then the first
    player whose status could be read at all.  Each status read is bounded
    by *timeout* so a frozen player is skipped instead of hiding the rest.
    """
    fallback: MprisPlayer | None = None
    paused: MprisPlayer | None = None
    for player in await list_players(bus):
        try:
            status = await asyncio.wait_for(player.playback_status(), timeout=timeout)
        except (DBusError, ValueError, asyncio.TimeoutError) as e:
            logger.debug("Skipping MPRIS player %s: %s", player.bus_name, e)
            continue
        if status is PlaybackStatus.PLAYING:
            return player
        if status is PlaybackStatus.PAUSED and paused is None:
            paused = player
        if fallback is None:
            fallback = player

    active = paused or fallback
    if active is None:
        raise PlayerNotFoundError("No MPRIS player on the session bus")
    return active
