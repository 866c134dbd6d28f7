"""
Null audio backend.

Produces no sound. A simulated clock advances the position while playing,
so the player behaves as it would with a real device. Used for headless
runs and tests.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from .base import AudioBackend
from .types import BackendError, BackendInfo, EngineState

logger = logging.getLogger(__name__)

DEFAULT_TRACK_DURATION = 180.0  # Seconds, used for every source
DEFAULT_TICK_INTERVAL = 0.25  # Seconds between elapsed updates


class NullAudioBackend(AudioBackend):
    """Device-less backend driven by a simulated clock."""

    def __init__(
        self,
        name: str = "Null Output",
        track_duration: float = DEFAULT_TRACK_DURATION,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ):
        super().__init__(name)
        self._track_duration = track_duration
        self._tick_interval = tick_interval
        self._source: Optional[Path] = None
        self._position: float = 0.0
        self._duration: float = 0.0
        self._clock_task: Optional[asyncio.Task] = None

    @property
    def source(self) -> Optional[Path]:
        return self._source

    async def load(self, source: Path) -> None:
        await self._cancel_clock()
        self._source = source
        self._position = 0.0
        self._duration = self._track_duration
        self._set_state(EngineState.PAUSED)
        logger.debug(f"Loaded {source.name}")
        asyncio.get_running_loop().call_soon(self._metadata_ready, source)

    def _metadata_ready(self, source: Path) -> None:
        # A later load makes this one stale
        if self._source is source:
            self._notify_metadata_ready(self._duration)

    async def play(self) -> None:
        if self._source is None:
            raise BackendError("No source loaded")
        self._set_state(EngineState.PLAYING)
        if self._clock_task is None or self._clock_task.done():
            self._clock_task = asyncio.create_task(self._clock_loop())

    async def pause(self) -> None:
        await self._cancel_clock()
        if self._source is not None:
            self._set_state(EngineState.PAUSED)

    async def stop(self) -> None:
        await self._cancel_clock()
        self._source = None
        self._position = 0.0
        self._duration = 0.0
        self._set_state(EngineState.STOPPED)

    async def seek(self, seconds: float) -> None:
        self._position = max(0.0, min(seconds, self._duration))

    async def get_position(self) -> float:
        return self._position

    def advance(self, seconds: float) -> None:
        """
        Move the simulated clock forward.

        Scaled by the playback rate. Reaching the end either loops or
        signals natural end.
        """
        if self._state != EngineState.PLAYING:
            return
        self._position += seconds * self._rate
        if self._position < self._duration:
            self._notify_elapsed(self._position, self._duration)
            return

        if self._loop:
            self._position = 0.0
            self._notify_elapsed(self._position, self._duration)
            return

        self._position = self._duration
        self._notify_elapsed(self._position, self._duration)
        self._set_state(EngineState.PAUSED)
        self._notify_natural_end()

    async def _clock_loop(self) -> None:
        try:
            while self._state == EngineState.PLAYING:
                await asyncio.sleep(self._tick_interval)
                self.advance(self._tick_interval)
        except asyncio.CancelledError:
            pass

    async def _cancel_clock(self) -> None:
        """Cancel the clock task if running."""
        task = self._clock_task
        self._clock_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def connect(self) -> bool:
        self._is_connected = True
        logger.info("Null audio output ready (no sound will be produced)")
        return True

    async def disconnect(self) -> None:
        await self.stop()
        self._is_connected = False

    def get_info(self) -> BackendInfo:
        return BackendInfo(
            backend_type="null",
            name=self.name,
            device_id="null",
        )
