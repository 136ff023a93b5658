"""MPRIS media-player queries used to derive the playback signal."""

from .mpris import MprisPlayer, PlaybackStatus, PlayerNotFoundError, find_active_player

__all__ = [
    "MprisPlayer",
    "PlaybackStatus",
    "PlayerNotFoundError",
    "find_active_player",
]
