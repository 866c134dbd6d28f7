"""
Session persistence.

Saves the playback session to a SnapshotStore and reconciles a saved session
against a freshly scanned library.
"""

import json
import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from shelfplay.playback.queue import QueueModel, QueueState

from .snapshot import SessionSnapshot, SnapshotCorruptError
from .store import SnapshotStore

logger = logging.getLogger(__name__)

SESSION_KEY = "playback-session"
LIBRARY_ROOT_KEY = "library-root"

# Minimum spacing of elapsed-time writes during playback
ELAPSED_WRITE_INTERVAL_SECONDS = 5.0


@dataclass
class ReconciledSession:
    """
    Starting point for the player after startup.

    Attributes:
        queue: Queue to play from
        playback_rate: Speed multiplier to apply
        elapsed_seconds: Resume offset in the current track
        restored: True if a saved snapshot was applied
    """

    queue: QueueModel
    playback_rate: float = 1.0
    elapsed_seconds: float = 0.0
    restored: bool = False


def reconcile(
    snapshot: Optional[SessionSnapshot],
    fresh_track_count: int,
    rng: Optional[random.Random] = None,
) -> ReconciledSession:
    """
    Apply a saved snapshot to a freshly loaded library.

    The snapshot applies only if its track count equals the new library size.
    Otherwise it is ignored and a fresh queue is returned.
    """
    fresh = QueueModel(fresh_track_count, rng=rng)

    if snapshot is None:
        return ReconciledSession(queue=fresh)

    if snapshot.track_count != fresh_track_count:
        logger.info(
            f"Ignoring saved session: saved for {snapshot.track_count} tracks, "
            f"library has {fresh_track_count}"
        )
        return ReconciledSession(queue=fresh)

    try:
        queue = QueueModel.from_state(
            QueueState(
                canonical_order=fresh.canonical_order,
                active_order=snapshot.active_order,
                position=snapshot.position,
                shuffled=snapshot.shuffled,
                repeat_mode=snapshot.repeat_mode,
            ),
            rng=rng,
        )
    except ValueError as e:
        logger.warning(f"Ignoring inconsistent saved session: {e}")
        return ReconciledSession(queue=fresh)

    logger.info(
        f"Restored session: position {snapshot.position}, "
        f"shuffle={snapshot.shuffled}, repeat={snapshot.repeat_mode.value}, "
        f"{snapshot.elapsed_seconds:.1f}s elapsed"
    )
    return ReconciledSession(
        queue=queue,
        playback_rate=snapshot.playback_rate,
        elapsed_seconds=snapshot.elapsed_seconds,
        restored=True,
    )


class SessionPersistence:
    """
    Reads and writes the single session snapshot.

    Discrete changes (track change, shuffle, repeat, rate) are saved with
    save_snapshot(). Elapsed-time updates during playback go through
    save_elapsed(), which writes at most once per interval.
    """

    def __init__(
        self,
        store: SnapshotStore,
        elapsed_write_interval: float = ELAPSED_WRITE_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._interval = elapsed_write_interval
        self._clock = clock
        self._last_write: Optional[float] = None

    # =========================================================================
    # Snapshot
    # =========================================================================

    def save_snapshot(
        self,
        queue: QueueState,
        playback_rate: float,
        elapsed_seconds: float,
    ) -> Optional[SessionSnapshot]:
        """
        Write the snapshot unconditionally, overwriting the previous one.

        Returns:
            The snapshot written, or None if the store failed
        """
        snapshot = SessionSnapshot.capture(queue, playback_rate, elapsed_seconds)
        try:
            self._store.save(SESSION_KEY, json.dumps(snapshot.to_dict()))
        except OSError as e:
            logger.error(f"Failed to save session: {e}")
            return None
        self._last_write = self._clock()
        logger.debug(
            f"Session saved: position={snapshot.position}, "
            f"elapsed={snapshot.elapsed_seconds:.1f}s"
        )
        return snapshot

    def save_elapsed(
        self,
        queue: QueueState,
        playback_rate: float,
        elapsed_seconds: float,
    ) -> bool:
        """
        Write the snapshot if the throttle interval has passed.

        Returns:
            True if a write happened
        """
        now = self._clock()
        if self._last_write is not None and now - self._last_write < self._interval:
            return False
        return self.save_snapshot(queue, playback_rate, elapsed_seconds) is not None

    def load_snapshot(self) -> Optional[SessionSnapshot]:
        """
        Return the saved snapshot, or None.

        Unreadable or malformed snapshots are treated as absent.
        """
        try:
            blob = self._store.load(SESSION_KEY)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read saved session: {e}")
            return None

        if blob is None:
            return None

        try:
            return SessionSnapshot.from_dict(json.loads(blob))
        except (json.JSONDecodeError, SnapshotCorruptError) as e:
            logger.warning(f"Discarding corrupt saved session: {e}")
            return None

    def clear(self) -> None:
        """Remove the saved snapshot."""
        try:
            self._store.delete(SESSION_KEY)
        except OSError as e:
            logger.error(f"Failed to clear session: {e}")
        self._last_write = None

    # =========================================================================
    # Library Root
    # =========================================================================

    def remember_library_root(self, root: Path) -> None:
        """Persist the library folder so the next start can reuse it."""
        try:
            self._store.save(LIBRARY_ROOT_KEY, json.dumps({"path": str(root)}))
        except OSError as e:
            logger.error(f"Failed to remember library folder: {e}")

    def recall_library_root(self) -> Optional[Path]:
        """Return the remembered library folder, or None."""
        try:
            blob = self._store.load(LIBRARY_ROOT_KEY)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read remembered library folder: {e}")
            return None
        if blob is None:
            return None
        try:
            data = json.loads(blob)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt library folder record")
            return None
        path = data.get("path") if isinstance(data, dict) else None
        if not isinstance(path, str) or not path:
            return None
        return Path(path)
