"""Typed device-lifecycle events produced by adapter discovery."""

import enum
from dataclasses import dataclass


class DiscoveryEventKind(enum.Enum):
    DEVICE_ADDED = "device_added"
    DEVICE_REMOVED = "device_removed"
    OTHER = "other"


@dataclass(frozen=True)
class DiscoveryEvent:
    """One event from the adapter's discovery stream.

    ``address`` is set for DEVICE_ADDED / DEVICE_REMOVED and None otherwise.
    """

    kind: DiscoveryEventKind
    address: str | None = None
    path: str | None = None

    @classmethod
    def device_added(cls, address: str, path: str | None = None) -> "DiscoveryEvent":
        return cls(DiscoveryEventKind.DEVICE_ADDED, address, path)

    @classmethod
    def device_removed(cls, address: str, path: str | None = None) -> "DiscoveryEvent":
        return cls(DiscoveryEventKind.DEVICE_REMOVED, address, path)

    @classmethod
    def other(cls, path: str | None = None) -> "DiscoveryEvent":
        return cls(DiscoveryEventKind.OTHER, None, path)
