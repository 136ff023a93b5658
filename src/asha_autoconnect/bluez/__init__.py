"""BlueZ D-Bus interface wrappers for ASHA device discovery and control."""

from .adapter import BluezAdapter, DiscoveryStream
from .constants import ASHA_UUID, has_asha_service
from .device import BluezDevice
from .events import DiscoveryEvent, DiscoveryEventKind
from .session import AdapterNotFoundError, BluezSession

__all__ = [
    "AdapterNotFoundError",
    "BluezAdapter",
    "BluezDevice",
    "BluezSession",
    "DiscoveryEvent",
    "DiscoveryEventKind",
    "DiscoveryStream",
    "ASHA_UUID",
    "has_asha_service",
]
