"""
Abstract audio backend interface.

Defines the contract that all audio backends must implement.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from .types import BackendInfo, EngineState

logger = logging.getLogger(__name__)

# Event callback types
MetadataReadyCallback = Callable[[float], None]  # duration_seconds
ElapsedCallback = Callable[[float, float], None]  # elapsed_seconds, duration_seconds
NaturalEndCallback = Callable[[], None]
PlaybackErrorCallback = Callable[[str], None]  # error_message


class AudioBackend(ABC):
    """
    Abstract base class for audio output backends.

    A backend plays one source at a time. load() replaces the source and
    leaves it paused at 0; metadata-ready is signalled once the duration is
    known, after which seek() is honoured. Callbacks are invoked on the
    event loop thread.
    """

    def __init__(self, name: str = "AudioBackend"):
        """Initialize backend."""
        self.name = name
        self._volume: float = 1.0  # 0.0-1.0
        self._rate: float = 1.0
        self._loop: bool = False
        self._state: EngineState = EngineState.STOPPED
        self._is_connected: bool = False

        # Event callbacks
        self._on_metadata_ready: Optional[MetadataReadyCallback] = None
        self._on_elapsed: Optional[ElapsedCallback] = None
        self._on_natural_end: Optional[NaturalEndCallback] = None
        self._on_playback_error: Optional[PlaybackErrorCallback] = None

    # =========================================================================
    # Source Control - Required
    # =========================================================================

    @abstractmethod
    async def load(self, source: Path) -> None:
        """Replace the current source. Playback is paused at position 0."""
        pass

    @abstractmethod
    async def play(self) -> None:
        """
        Start or resume the loaded source.

        Raises:
            PlaybackInterruptedError: If a newer load superseded this request
        """
        pass

    @abstractmethod
    async def pause(self) -> None:
        """Pause playback, keeping position."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop playback and release the source."""
        pass

    @abstractmethod
    async def seek(self, seconds: float) -> None:
        """Seek to position in the current source."""
        pass

    @abstractmethod
    async def get_position(self) -> float:
        """Get current playback position in seconds."""
        pass

    # =========================================================================
    # Output Settings
    # =========================================================================

    async def set_rate(self, multiplier: float) -> None:
        """Set playback speed multiplier."""
        self._rate = multiplier

    async def set_volume(self, level: float) -> None:
        """Set output volume (0.0-1.0)."""
        self._volume = max(0.0, min(1.0, level))

    async def get_volume(self) -> float:
        """Get output volume (0.0-1.0)."""
        return self._volume

    async def set_loop(self, enabled: bool) -> None:
        """Loop the current source at its end instead of signalling natural end."""
        self._loop = enabled

    async def get_state(self) -> EngineState:
        """Get current transport state."""
        return self._state

    # =========================================================================
    # Lifecycle - Required
    # =========================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """Initialize the output device. Returns True if successful."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the output device."""
        pass

    def is_connected(self) -> bool:
        """Check if backend is connected."""
        return self._is_connected

    # =========================================================================
    # Event Callbacks
    # =========================================================================

    def on_metadata_ready(self, callback: Optional[MetadataReadyCallback]) -> None:
        """Register callback for when the loaded source's duration is known."""
        self._on_metadata_ready = callback

    def on_elapsed(self, callback: Optional[ElapsedCallback]) -> None:
        """Register callback for periodic elapsed-time updates."""
        self._on_elapsed = callback

    def on_natural_end(self, callback: Optional[NaturalEndCallback]) -> None:
        """Register callback for natural source end (not stop or load)."""
        self._on_natural_end = callback

    def on_playback_error(self, callback: Optional[PlaybackErrorCallback]) -> None:
        """Register callback for playback errors."""
        self._on_playback_error = callback

    # =========================================================================
    # Event Notification Helpers
    # =========================================================================

    def _set_state(self, state: EngineState) -> None:
        if self._state != state:
            logger.debug(f"{self.name}: {self._state.name} -> {state.name}")
        self._state = state

    def _notify_metadata_ready(self, duration: float) -> None:
        """Notify listeners that the source duration is known."""
        if self._on_metadata_ready:
            try:
                self._on_metadata_ready(duration)
            except Exception as e:
                logger.error(f"Metadata ready callback error: {e}")

    def _notify_elapsed(self, elapsed: float, duration: float) -> None:
        """Notify listeners of elapsed time."""
        if self._on_elapsed:
            try:
                self._on_elapsed(elapsed, duration)
            except Exception as e:
                logger.error(f"Elapsed callback error: {e}")

    def _notify_natural_end(self) -> None:
        """Notify listeners that the source ended naturally."""
        if self._on_natural_end:
            try:
                self._on_natural_end()
            except Exception as e:
                logger.error(f"Natural end callback error: {e}")

    def _notify_playback_error(self, message: str) -> None:
        """Notify listeners of playback error."""
        if self._on_playback_error:
            try:
                self._on_playback_error(message)
            except Exception as e:
                logger.error(f"Playback error callback error: {e}")

    # =========================================================================
    # Info
    # =========================================================================

    def get_info(self) -> BackendInfo:
        """Get information about this backend."""
        return BackendInfo(
            backend_type="unknown",
            name=self.name,
            device_id="",
        )
