"""
Audio backend types and exceptions.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class EngineState(IntEnum):
    """Transport state of an audio backend."""

    STOPPED = 1  # Nothing loaded, or stopped
    PLAYING = 2  # Producing audio
    PAUSED = 3  # Source loaded, position held
    LOADING = 4  # Source is being opened/decoded


class BackendError(Exception):
    """Base class for audio backend failures."""

    pass


class PlaybackInterruptedError(BackendError):
    """
    A play request was superseded by a newer load.

    Expected when tracks change quickly; callers treat it as benign.
    """

    pass


@dataclass
class BackendInfo:
    """
    Information about an audio backend/device.

    Used for logging and the control API.
    """

    backend_type: str  # 'local', 'null', etc.
    name: str  # Display name
    device_id: str  # Unique identifier
    sample_rate: Optional[int] = None
    channels: Optional[int] = None

    def __str__(self) -> str:
        if self.sample_rate:
            return f"{self.name} ({self.backend_type}, {self.sample_rate} Hz)"
        return f"{self.name} ({self.backend_type})"
