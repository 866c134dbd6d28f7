"""
Thread-safe ring buffer for decoded audio frames.

The feeding task writes resampled float32 frames; the PortAudio callback
reads them straight into the device buffer.
"""

import threading

import numpy as np


class RingBuffer:
    """Circular (frames, channels) float32 buffer guarded by a lock."""

    def __init__(self, capacity_frames: int, channels: int = 2):
        """
        Initialize ring buffer.

        Args:
            capacity_frames: Maximum number of frames held
            channels: Number of audio channels
        """
        if capacity_frames <= 0:
            raise ValueError("capacity_frames must be positive")
        self._capacity = capacity_frames
        self._channels = channels
        self._data = np.zeros((capacity_frames, channels), dtype=np.float32)
        self._head = 0  # Next frame to read
        self._count = 0  # Frames buffered
        self._lock = threading.Lock()

    def write(self, frames: np.ndarray) -> int:
        """
        Append frames, as many as fit.

        Returns:
            Number of frames accepted
        """
        with self._lock:
            n = min(len(frames), self._capacity - self._count)
            if n <= 0:
                return 0
            tail = (self._head + self._count) % self._capacity
            first = min(n, self._capacity - tail)
            self._data[tail : tail + first] = frames[:first]
            if n > first:
                self._data[: n - first] = frames[first:n]
            self._count += n
            return n

    def read_into(self, out: np.ndarray, gain: float = 1.0) -> int:
        """
        Fill `out` with buffered frames scaled by gain, zero-padding on underrun.

        Returns:
            Number of real frames copied
        """
        with self._lock:
            wanted = len(out)
            n = min(wanted, self._count)
            first = min(n, self._capacity - self._head)
            out[:first] = self._data[self._head : self._head + first]
            if n > first:
                out[first:n] = self._data[: n - first]
            out[n:] = 0
            self._head = (self._head + n) % self._capacity
            self._count -= n
        if gain != 1.0 and n:
            out[:n] *= gain
        return n

    def read(self, frames: int) -> np.ndarray:
        """Return exactly `frames` frames, zero-padded on underrun."""
        out = np.empty((frames, self._channels), dtype=np.float32)
        self.read_into(out)
        return out

    def clear(self) -> None:
        """Drop all buffered frames."""
        with self._lock:
            self._head = 0
            self._count = 0

    def buffered(self) -> int:
        """Number of frames waiting to be played."""
        with self._lock:
            return self._count

    def fill_ratio(self) -> float:
        """Buffered frames as a fraction of capacity."""
        with self._lock:
            return self._count / self._capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def channels(self) -> int:
        return self._channels
