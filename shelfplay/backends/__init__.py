"""
Audio backends module.

Provides abstract interface and factory for audio output backends.
"""

from .base import (
    AudioBackend,
    ElapsedCallback,
    MetadataReadyCallback,
    NaturalEndCallback,
    PlaybackErrorCallback,
)
from .factory import (
    BackendFactory,
    BackendNotFoundError,
)
from .local import LocalAudioBackend
from .null import NullAudioBackend
from .types import (
    BackendError,
    BackendInfo,
    EngineState,
    PlaybackInterruptedError,
)

__all__ = [
    # Types
    "BackendError",
    "BackendInfo",
    "EngineState",
    "PlaybackInterruptedError",
    # Base class
    "AudioBackend",
    # Callback types
    "ElapsedCallback",
    "MetadataReadyCallback",
    "NaturalEndCallback",
    "PlaybackErrorCallback",
    # Factory
    "BackendFactory",
    "BackendNotFoundError",
    # Implementations
    "LocalAudioBackend",
    "NullAudioBackend",
]
