"""
Session snapshot.

A persisted projection of the queue plus playback rate and elapsed time.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from shelfplay.playback.queue import QueueModel, QueueState, RepeatMode

SNAPSHOT_VERSION = 1


class SnapshotCorruptError(Exception):
    """Persisted snapshot is unreadable or malformed."""

    pass


def _int_list(value: Any, name: str) -> tuple[int, ...]:
    if not isinstance(value, list) or not all(
        isinstance(i, int) and not isinstance(i, bool) for i in value
    ):
        raise SnapshotCorruptError(f"'{name}' must be a list of integers")
    return tuple(value)


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SnapshotCorruptError(f"'{name}' must be a number")
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise SnapshotCorruptError(f"'{name}' must be finite")
    return number


@dataclass(frozen=True)
class SessionSnapshot:
    """
    Saved playback session.

    Attributes:
        track_count: Library size when saved; the snapshot only applies to a
            library of the same size
        canonical_order: Unshuffled order of library indices
        active_order: Order actually played
        position: Offset into active_order, or None
        shuffled: Shuffle flag
        repeat_mode: Repeat mode
        playback_rate: Speed multiplier
        elapsed_seconds: Position within the current track
    """

    track_count: int
    canonical_order: tuple[int, ...]
    active_order: tuple[int, ...]
    position: Optional[int]
    shuffled: bool
    repeat_mode: RepeatMode
    playback_rate: float = 1.0
    elapsed_seconds: float = 0.0

    @classmethod
    def capture(
        cls,
        queue: QueueState,
        playback_rate: float,
        elapsed_seconds: float,
    ) -> "SessionSnapshot":
        """Build a snapshot from the current queue state and playback values."""
        return cls(
            track_count=queue.track_count,
            canonical_order=queue.canonical_order,
            active_order=queue.active_order,
            position=queue.position,
            shuffled=queue.shuffled,
            repeat_mode=queue.repeat_mode,
            playback_rate=playback_rate,
            elapsed_seconds=max(0.0, elapsed_seconds),
        )

    @property
    def queue_state(self) -> QueueState:
        return QueueState(
            canonical_order=self.canonical_order,
            active_order=self.active_order,
            position=self.position,
            shuffled=self.shuffled,
            repeat_mode=self.repeat_mode,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "version": SNAPSHOT_VERSION,
            "track_count": self.track_count,
            "canonical_order": list(self.canonical_order),
            "active_order": list(self.active_order),
            "position": self.position,
            "shuffled": self.shuffled,
            "repeat_mode": self.repeat_mode.value,
            "playback_rate": self.playback_rate,
            "elapsed_seconds": self.elapsed_seconds,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionSnapshot":
        """
        Parse and validate a snapshot dictionary.

        Raises:
            SnapshotCorruptError: If any field is missing or inconsistent
        """
        if not isinstance(data, dict):
            raise SnapshotCorruptError("snapshot must be a JSON object")

        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise SnapshotCorruptError(f"unsupported snapshot version: {version!r}")

        try:
            track_count = data["track_count"]
            canonical = _int_list(data["canonical_order"], "canonical_order")
            active = _int_list(data["active_order"], "active_order")
            position = data["position"]
            shuffled = data["shuffled"]
            repeat_raw = data["repeat_mode"]
        except KeyError as e:
            raise SnapshotCorruptError(f"missing field: {e.args[0]}") from e

        if isinstance(track_count, bool) or not isinstance(track_count, int) or track_count < 0:
            raise SnapshotCorruptError("'track_count' must be a non-negative integer")
        if position is not None and (isinstance(position, bool) or not isinstance(position, int)):
            raise SnapshotCorruptError("'position' must be an integer or null")
        if not isinstance(shuffled, bool):
            raise SnapshotCorruptError("'shuffled' must be a boolean")
        try:
            repeat_mode = RepeatMode(repeat_raw)
        except ValueError as e:
            raise SnapshotCorruptError(f"unknown repeat mode: {repeat_raw!r}") from e

        rate = _number(data.get("playback_rate", 1.0), "playback_rate")
        if rate <= 0:
            raise SnapshotCorruptError("'playback_rate' must be positive")
        elapsed = max(0.0, _number(data.get("elapsed_seconds", 0.0), "elapsed_seconds"))

        snapshot = cls(
            track_count=track_count,
            canonical_order=canonical,
            active_order=active,
            position=position,
            shuffled=shuffled,
            repeat_mode=repeat_mode,
            playback_rate=rate,
            elapsed_seconds=elapsed,
        )
        if len(canonical) != track_count:
            raise SnapshotCorruptError("'canonical_order' length does not match 'track_count'")
        try:
            QueueModel.from_state(snapshot.queue_state)
        except ValueError as e:
            raise SnapshotCorruptError(str(e)) from e
        return snapshot
