"""
Playback queue model.

Holds two permutations of library indices (canonical and active order) and a
position into the active order. Pure data: no I/O and no awaiting, so every
operation commits its new orders in a single assignment.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class RepeatMode(Enum):
    """Queue repeat modes."""

    NONE = "none"  # Stop after last track
    ALL = "all"  # Loop entire queue
    ONE = "one"  # Repeat current track

    def next(self) -> "RepeatMode":
        """Return the mode that follows this one in the NONE -> ALL -> ONE cycle."""
        members = list(RepeatMode)
        return members[(members.index(self) + 1) % len(members)]


class Direction(Enum):
    """Advance direction."""

    NEXT = "next"
    PREV = "prev"


class AdvanceResult(Enum):
    """Outcome of QueueModel.advance()."""

    MOVED = "moved"  # Position changed (possibly wrapped)
    END_OF_QUEUE = "end_of_queue"  # Next past the last track, repeat off
    NO_TRACK = "no_track"  # Empty queue or nothing selected


@dataclass(frozen=True)
class QueueState:
    """
    Immutable snapshot of the queue.

    Used for persistence and for reporting state to observers.
    """

    canonical_order: tuple[int, ...]
    active_order: tuple[int, ...]
    position: Optional[int]
    shuffled: bool
    repeat_mode: RepeatMode

    @property
    def track_count(self) -> int:
        return len(self.canonical_order)

    @property
    def current_index(self) -> Optional[int]:
        """Library index of the current track, or None."""
        if self.position is None:
            return None
        return self.active_order[self.position]


@dataclass(frozen=True)
class RemovalOutcome:
    """Result of QueueModel.remove_library_index()."""

    removed: bool  # False if the index was not in the queue
    current_removed: bool  # True if the removed index was the current track


class QueueModel:
    """
    Queue of library indices with shuffle and repeat.

    Handles:
    - Canonical order (scan order, never shuffled)
    - Active order (canonical, or a shuffle of it)
    - Position pointer into the active order
    - Index compaction when a library record is removed
    """

    def __init__(self, track_count: int = 0, rng: Optional[random.Random] = None):
        """
        Initialize queue.

        Args:
            track_count: Number of tracks in the library
            rng: Random source for shuffling (unseeded by default)
        """
        self._rng = rng or random.Random()
        self._canonical: tuple[int, ...] = ()
        self._active: tuple[int, ...] = ()
        self._position: Optional[int] = None
        self._shuffled: bool = False
        self._repeat_mode: RepeatMode = RepeatMode.NONE
        self.initialize(track_count)

    @classmethod
    def from_state(cls, state: QueueState, rng: Optional[random.Random] = None) -> "QueueModel":
        """
        Rebuild a queue from a QueueState.

        Raises:
            ValueError: If the orders are not permutations of 0..N-1 or the
                position is out of range
        """
        n = len(state.canonical_order)
        expected = list(range(n))
        if sorted(state.canonical_order) != expected:
            raise ValueError("canonical order is not a permutation of the library indices")
        if sorted(state.active_order) != expected:
            raise ValueError("active order is not a permutation of the library indices")
        if state.position is not None and not 0 <= state.position < n:
            raise ValueError(f"position {state.position} out of range for {n} tracks")
        if state.position is None and n > 0:
            raise ValueError("non-empty queue has no position")
        if not state.shuffled and tuple(state.active_order) != tuple(state.canonical_order):
            raise ValueError("unshuffled queue must play in canonical order")

        queue = cls(0, rng=rng)
        queue._canonical = tuple(state.canonical_order)
        queue._active = tuple(state.active_order)
        queue._position = state.position
        queue._shuffled = state.shuffled
        queue._repeat_mode = state.repeat_mode
        return queue

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self, track_count: int) -> None:
        """Reset to identity order, first track selected, shuffle and repeat off."""
        identity = tuple(range(max(0, track_count)))
        self._canonical = identity
        self._active = identity
        self._position = 0 if identity else None
        self._shuffled = False
        self._repeat_mode = RepeatMode.NONE
        logger.debug(f"Queue initialized with {len(identity)} tracks")

    # =========================================================================
    # Shuffle Mode
    # =========================================================================

    def toggle_shuffle(self) -> bool:
        """
        Toggle shuffle, keeping the current track current.

        Enabling moves the current track to the front of a fresh random
        permutation. Disabling points the position at the current track's
        offset in the canonical order.

        Returns:
            The new shuffle flag
        """
        current = self.current_index

        if not self._shuffled:
            order = list(self._canonical)
            self._rng.shuffle(order)
            if current is not None:
                pivot = order.index(current)
                order[0], order[pivot] = order[pivot], order[0]
            self._active = tuple(order)
            self._position = 0 if order else None
            self._shuffled = True
        else:
            self._active = self._canonical
            if current is not None:
                self._position = self._canonical.index(current)
            else:
                self._position = 0 if self._canonical else None
            self._shuffled = False

        logger.info(f"Shuffle mode: {self._shuffled}")
        return self._shuffled

    # =========================================================================
    # Repeat Mode
    # =========================================================================

    def cycle_repeat(self) -> RepeatMode:
        """Cycle NONE -> ALL -> ONE -> NONE and return the new mode."""
        self._repeat_mode = self._repeat_mode.next()
        logger.info(f"Repeat mode: {self._repeat_mode.value}")
        return self._repeat_mode

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        """Set repeat mode."""
        self._repeat_mode = mode
        logger.info(f"Repeat mode: {mode.value}")

    # =========================================================================
    # Navigation
    # =========================================================================

    def advance(self, direction: Direction) -> AdvanceResult:
        """
        Move the position one step.

        Next past the end wraps only with repeat ALL; otherwise the position
        stays on the last track and END_OF_QUEUE is returned. Previous always
        wraps.
        """
        if self._position is None or not self._active:
            return AdvanceResult.NO_TRACK

        length = len(self._active)
        if direction == Direction.NEXT:
            next_position = self._position + 1
            if next_position >= length:
                if self._repeat_mode != RepeatMode.ALL:
                    logger.info("End of queue reached")
                    return AdvanceResult.END_OF_QUEUE
                next_position = 0
                logger.info("Queue wrapped to beginning (repeat all)")
        else:
            next_position = (self._position - 1) % length

        logger.debug(f"Queue position: {self._position} -> {next_position}")
        self._position = next_position
        return AdvanceResult.MOVED

    def select_by_library_index(self, index: int) -> bool:
        """
        Point the position at a library index.

        Looks in the active order first, then falls back to the index's offset
        in the canonical order.

        Returns:
            True if the index was found, False (no change) otherwise
        """
        if index in self._active:
            self._position = self._active.index(index)
        elif index in self._canonical:
            self._position = self._canonical.index(index)
        else:
            logger.warning(f"Library index {index} not in queue")
            return False
        return True

    # =========================================================================
    # Library Mutation
    # =========================================================================

    def remove_library_index(self, index: int) -> RemovalOutcome:
        """
        Drop a library index from both orders and compact the rest.

        Indices above the removed one shift down by one. If the removed track
        was current, the track now at the same position (wrapping to the start)
        becomes current; otherwise the current track stays current.
        """
        if index not in self._canonical:
            logger.warning(f"Cannot remove library index {index}: not in queue")
            return RemovalOutcome(removed=False, current_removed=False)

        current = self.current_index
        old_position = self._position

        def compact(order: tuple[int, ...]) -> tuple[int, ...]:
            return tuple(i - 1 if i > index else i for i in order if i != index)

        canonical = compact(self._canonical)
        active = compact(self._active)
        current_removed = current == index

        if not active:
            position = None
        elif current_removed:
            assert old_position is not None
            position = old_position % len(active)
        elif current is None:
            position = None
        else:
            shifted = current - 1 if current > index else current
            position = active.index(shifted)

        self._canonical = canonical
        self._active = active
        self._position = position

        logger.debug(
            f"Removed library index {index}: {len(active)} tracks left, "
            f"position {old_position} -> {position}"
        )
        return RemovalOutcome(removed=True, current_removed=current_removed)

    # =========================================================================
    # State Access
    # =========================================================================

    @property
    def state(self) -> QueueState:
        """Current queue state snapshot."""
        return QueueState(
            canonical_order=self._canonical,
            active_order=self._active,
            position=self._position,
            shuffled=self._shuffled,
            repeat_mode=self._repeat_mode,
        )

    @property
    def canonical_order(self) -> tuple[int, ...]:
        return self._canonical

    @property
    def active_order(self) -> tuple[int, ...]:
        return self._active

    @property
    def position(self) -> Optional[int]:
        return self._position

    @property
    def shuffled(self) -> bool:
        return self._shuffled

    @property
    def repeat_mode(self) -> RepeatMode:
        return self._repeat_mode

    @property
    def track_count(self) -> int:
        return len(self._canonical)

    @property
    def is_empty(self) -> bool:
        """Check if queue is empty."""
        return not self._canonical

    @property
    def current_index(self) -> Optional[int]:
        """Library index of the current track, or None."""
        if self._position is None:
            return None
        return self._active[self._position]
