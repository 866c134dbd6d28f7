"""
Local audio backend.

Decodes library files with soundfile into float32 numpy arrays and plays
them on a PortAudio device through sounddevice.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import numpy as np
import soundfile as sf

from shelfplay.backends.base import AudioBackend
from shelfplay.backends.types import (
    BackendInfo,
    EngineState,
    PlaybackInterruptedError,
)

from .device import OutputDevice, resolve_device
from .ring_buffer import RingBuffer
from .stream import AudioOutputStream

logger = logging.getLogger(__name__)

CHUNK_FRAMES = 8192  # Output frames per feed iteration
BUFFER_SECONDS = 2  # Ring buffer capacity
BUFFER_HIGH_WATER = 0.8  # Stop feeding above this fill ratio


def resample_chunk(
    audio: np.ndarray, cursor: float, frames: int, rate: float
) -> tuple[np.ndarray, float]:
    """
    Produce up to `frames` output frames starting at source frame `cursor`.

    A rate other than 1.0 reads the source faster or slower using linear
    interpolation between neighbouring frames.

    Returns:
        (chunk, new_cursor); chunk is empty once the source is exhausted
    """
    total = len(audio)
    if cursor >= total:
        return audio[:0], float(total)

    if rate == 1.0:
        start = int(cursor)
        end = min(start + frames, total)
        return audio[start:end], float(end)

    positions = cursor + np.arange(frames, dtype=np.float64) * rate
    positions = positions[positions <= total - 1]
    if len(positions) == 0:
        return audio[:0], float(total)

    lo = int(positions[0])
    hi = min(int(positions[-1]) + 2, total)
    xp = np.arange(lo, hi, dtype=np.float64)
    segment = audio[lo:hi]
    chunk = np.empty((len(positions), audio.shape[1]), dtype=np.float32)
    for channel in range(audio.shape[1]):
        chunk[:, channel] = np.interp(positions, xp, segment[:, channel])

    new_cursor = positions[-1] + rate
    if len(positions) < frames:
        new_cursor = float(total)
    return chunk, float(new_cursor)


class LocalAudioBackend(AudioBackend):
    """Local audio output backend using soundfile and sounddevice."""

    def __init__(
        self,
        device: str = "default",
        buffer_size: int = 2048,
        name: str = "Local Audio",
    ):
        super().__init__(name)
        self._device_config = device
        self._buffer_size = buffer_size

        # Initialized in connect()
        self._device: Optional[OutputDevice] = None
        self._stream: Optional[AudioOutputStream] = None

        # Loaded source
        self._source: Optional[Path] = None
        self._audio: Optional[np.ndarray] = None
        self._sample_rate: int = 0
        self._cursor: float = 0.0  # Next source frame to feed
        self._ring_buffer: Optional[RingBuffer] = None
        self._feeding_task: Optional[asyncio.Task] = None
        self._load_generation = 0
        self._loading = False

    # =========================================================================
    # Source Control
    # =========================================================================

    async def load(self, source: Path) -> None:
        """Decode the source in a worker thread and hold it paused at 0."""
        self._load_generation += 1
        generation = self._load_generation
        await self._cancel_feeding()
        if self._stream:
            self._stream.pause()

        self._loading = True
        self._set_state(EngineState.LOADING)
        try:
            audio, sample_rate = await asyncio.to_thread(self._decode, source)
        except (RuntimeError, OSError) as e:
            if generation == self._load_generation:
                self._loading = False
                self._audio = None
                self._source = None
                self._set_state(EngineState.STOPPED)
                logger.error(f"Cannot decode {source.name}: {e}")
                self._notify_playback_error(f"Cannot decode {source.name}: {e}")
            return

        if generation != self._load_generation:
            raise PlaybackInterruptedError(f"Load of {source.name} superseded")

        self._loading = False
        self._source = source
        self._audio = audio
        self._sample_rate = sample_rate
        self._cursor = 0.0
        self._ring_buffer = RingBuffer(int(sample_rate * BUFFER_SECONDS), audio.shape[1])
        if self._stream:
            self._stream.open(self._ring_buffer, sample_rate)
        self._set_state(EngineState.PAUSED)

        duration = len(audio) / sample_rate
        logger.info(
            f"Loaded {source.name} ({sample_rate}Hz, {audio.shape[1]}ch, {duration:.1f}s)"
        )
        self._notify_metadata_ready(duration)

    @staticmethod
    def _decode(source: Path) -> tuple[np.ndarray, int]:
        audio, sample_rate = sf.read(str(source), dtype="float32", always_2d=True)
        return audio, sample_rate

    async def play(self) -> None:
        if self._loading:
            raise PlaybackInterruptedError("Source is still loading")
        if self._audio is None or self._stream is None:
            logger.warning("Play requested with no source loaded")
            return
        self._stream.resume()
        self._set_state(EngineState.PLAYING)
        if self._feeding_task is None or self._feeding_task.done():
            self._feeding_task = asyncio.create_task(self._feeding_loop())

    async def pause(self) -> None:
        if self._stream:
            self._stream.pause()
        if self._audio is not None:
            self._set_state(EngineState.PAUSED)

    async def stop(self) -> None:
        self._load_generation += 1
        self._loading = False
        await self._cancel_feeding()
        if self._stream:
            self._stream.pause()
        if self._ring_buffer:
            self._ring_buffer.clear()
        self._audio = None
        self._source = None
        self._cursor = 0.0
        self._set_state(EngineState.STOPPED)

    async def seek(self, seconds: float) -> None:
        if self._audio is None or self._sample_rate == 0:
            return
        target = max(0.0, min(seconds * self._sample_rate, float(len(self._audio))))
        if self._ring_buffer:
            self._ring_buffer.clear()
        self._cursor = target
        logger.debug(f"Seek to {seconds:.2f}s")

    async def get_position(self) -> float:
        if self._audio is None or self._sample_rate == 0:
            return 0.0
        buffered = self._ring_buffer.buffered() if self._ring_buffer else 0
        played = max(0.0, self._cursor - buffered * self._rate)
        return played / self._sample_rate

    # =========================================================================
    # Output Settings
    # =========================================================================

    async def set_volume(self, level: float) -> None:
        await super().set_volume(level)
        if self._stream:
            self._stream.set_gain(self._volume)

    # =========================================================================
    # Feeding
    # =========================================================================

    async def _feeding_loop(self) -> None:
        """Resample the decoded source into the ring buffer."""
        try:
            while self._audio is not None and self._ring_buffer is not None:
                if self._ring_buffer.fill_ratio() > BUFFER_HIGH_WATER:
                    await asyncio.sleep(0.05)
                    continue

                chunk, cursor = resample_chunk(
                    self._audio, self._cursor, CHUNK_FRAMES, self._rate
                )
                if len(chunk) == 0:
                    if self._loop:
                        self._cursor = 0.0
                        continue
                    break

                self._ring_buffer.write(chunk)
                self._cursor = cursor
                if self._state == EngineState.PLAYING:
                    duration = len(self._audio) / self._sample_rate
                    self._notify_elapsed(await self.get_position(), duration)
                await asyncio.sleep(0)

            # Let the device drain what is buffered
            while self._ring_buffer is not None and self._ring_buffer.buffered() > 0:
                await asyncio.sleep(0.05)

            if self._audio is not None and self._state == EngineState.PLAYING:
                self._set_state(EngineState.PAUSED)
                self._notify_natural_end()

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Feeding loop error: {e}")
            self._set_state(EngineState.STOPPED)
            self._notify_playback_error(str(e))

    async def _cancel_feeding(self) -> None:
        """Cancel the current feeding task if running."""
        task = self._feeding_task
        self._feeding_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """Resolve the configured device and create the output stream."""
        try:
            self._device = resolve_device(self._device_config)
        except (ValueError, ImportError) as e:
            logger.error(f"Failed to initialize audio device: {e}")
            return False

        self.name = f"Local: {self._device.name}"
        self._stream = AudioOutputStream(self._device.index, blocksize=self._buffer_size)
        self._stream.set_gain(self._volume)
        self._is_connected = True
        logger.info(
            f"Audio output device: {self._device.name} "
            f"({int(self._device.default_samplerate)} Hz, {self._device.channels}ch)"
        )
        return True

    async def disconnect(self) -> None:
        await self.stop()
        if self._stream:
            self._stream.close()
            self._stream = None
        self._is_connected = False

    def get_info(self) -> BackendInfo:
        return BackendInfo(
            backend_type="local",
            name=self.name,
            device_id=f"local-{self._device_config}",
            sample_rate=self._sample_rate or None,
            channels=self._ring_buffer.channels if self._ring_buffer else None,
        )
