"""
Audio output stream.

Wraps a sounddevice OutputStream whose callback drains a RingBuffer.
"""

import logging
from typing import Optional

import numpy as np

from . import device
from .ring_buffer import RingBuffer

logger = logging.getLogger(__name__)


class AudioOutputStream:
    """
    PortAudio output fed from a ring buffer.

    The callback runs on the PortAudio thread. While paused it writes
    silence and leaves the buffer untouched.
    """

    def __init__(self, device_index: int, blocksize: int = 2048):
        self._device_index = device_index
        self._blocksize = blocksize
        self._stream = None  # sd.OutputStream
        self._ring_buffer: Optional[RingBuffer] = None
        self._sample_rate = 0
        self._channels = 0
        self._gain = 1.0
        self._paused = True
        self._underruns = 0

    def open(self, ring_buffer: RingBuffer, sample_rate: int) -> None:
        """Attach a ring buffer and (re)open the device at its format."""
        self._ring_buffer = ring_buffer
        channels = ring_buffer.channels
        if self._stream is not None:
            if (self._sample_rate, self._channels) == (sample_rate, channels):
                return
            self.close()

        sd = device._import_sounddevice()
        self._stream = sd.OutputStream(
            device=self._device_index,
            samplerate=sample_rate,
            channels=channels,
            dtype="float32",
            blocksize=self._blocksize,
            callback=self._callback,
        )
        self._sample_rate = sample_rate
        self._channels = channels
        self._underruns = 0
        self._stream.start()
        logger.debug(f"Output stream opened: {sample_rate}Hz, {channels}ch")

    def close(self) -> None:
        """Stop and release the device stream."""
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except Exception as e:
            logger.warning(f"Error closing audio stream: {e}")
        self._stream = None
        self._sample_rate = 0
        self._channels = 0

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def set_gain(self, gain: float) -> None:
        """Set linear output gain (0.0-1.0)."""
        self._gain = max(0.0, min(1.0, gain))

    @property
    def gain(self) -> float:
        return self._gain

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def paused(self) -> bool:
        return self._paused

    def _callback(self, outdata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.warning(f"Audio callback status: {status}")

        if self._paused or self._ring_buffer is None:
            outdata.fill(0)
            return

        copied = self._ring_buffer.read_into(outdata, self._gain)
        if copied < frames:
            self._underruns += 1
            if self._underruns % 10 == 1:
                logger.debug(f"Audio buffer underrun (count: {self._underruns})")
