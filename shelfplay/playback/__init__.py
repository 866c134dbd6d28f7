"""Playback queue, controller and sleep timer."""

from .player import DEFAULT_PLAYBACK_RATES, PlaybackController, PlayerState
from .queue import (
    AdvanceResult,
    Direction,
    QueueModel,
    QueueState,
    RemovalOutcome,
    RepeatMode,
)
from .sleep_timer import SleepTimer

__all__ = [
    "DEFAULT_PLAYBACK_RATES",
    "AdvanceResult",
    "Direction",
    "PlaybackController",
    "PlayerState",
    "QueueModel",
    "QueueState",
    "RemovalOutcome",
    "RepeatMode",
    "SleepTimer",
]
