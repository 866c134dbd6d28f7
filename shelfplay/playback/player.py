"""
shelfplay Player.

Playback controller that drives the audio backend from the queue model and
keeps the saved session current.
"""

import asyncio
import logging
import math
import random
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from shelfplay.backends import AudioBackend, PlaybackInterruptedError
from shelfplay.library import LibraryError, LibraryStore, Track, TrackNotFoundError, matches

from .queue import AdvanceResult, Direction, QueueModel, RepeatMode
from .sleep_timer import SleepTimer

if TYPE_CHECKING:
    from shelfplay.session import ReconciledSession, SessionPersistence

logger = logging.getLogger(__name__)

DEFAULT_PLAYBACK_RATES = (0.75, 1.0, 1.25, 1.5)


class PlayerState(Enum):
    """Controller playback state."""

    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackController:
    """
    Main playback controller.

    Coordinates:
    - QueueModel: track order, shuffle, repeat
    - LibraryStore: track records and deletion
    - AudioBackend: actual audio output
    - SessionPersistence: saved session

    State machine:
        STOPPED -> PLAYING (toggle, select, next/prev)
        PLAYING <-> PAUSED (toggle)
        PAUSED -> PLAYING (select, next/prev)
        PLAYING/PAUSED -> STOPPED (next past the end, library emptied)
        PLAYING -> PAUSED (sleep timer)

    Every command mutates the queue synchronously before awaiting the
    backend, so queue transitions never interleave.
    """

    def __init__(
        self,
        library: LibraryStore,
        backend: AudioBackend,
        session: "SessionPersistence",
        rates: Sequence[float] = DEFAULT_PLAYBACK_RATES,
        rng: Optional[random.Random] = None,
    ):
        """Initialize controller with an empty queue; call attach() next."""
        self.library = library
        self.backend = backend
        self.session = session
        self._rates = tuple(rates) or DEFAULT_PLAYBACK_RATES
        self._queue = QueueModel(0, rng=rng)

        self._state = PlayerState.STOPPED
        self._rate = 1.0
        self._elapsed = 0.0
        self._duration = 0.0
        self._volume = 1.0
        self._muted = False

        # Engine source tracking
        self._loaded_id: Optional[str] = None
        self._metadata_ready = False
        self._pending_seek: Optional[float] = None

        self._sleep_timer = SleepTimer(self._on_sleep_timer_expired)
        self._tasks: set[asyncio.Task] = set()

        # Observer callbacks
        self._state_change_callback: Optional[Callable[[], None]] = None
        self._progress_callback: Optional[Callable[[float, float], None]] = None
        self._error_callback: Optional[Callable[[str], None]] = None

        # Wire up backend callbacks
        self.backend.on_metadata_ready(self._on_metadata_ready)
        self.backend.on_elapsed(self.handle_elapsed_update)
        self.backend.on_natural_end(self._on_natural_end)
        self.backend.on_playback_error(self._on_playback_error)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def attach(self, reconciled: "ReconciledSession") -> None:
        """
        Install the startup queue and load its current track, paused.

        The restored elapsed time is applied once the backend reports the
        track's duration.
        """
        self._queue = reconciled.queue
        self._rate = reconciled.playback_rate
        await self.backend.set_rate(self._rate)
        await self.backend.set_loop(self._queue.repeat_mode == RepeatMode.ONE)
        await self.backend.set_volume(0.0 if self._muted else self._volume)

        if self._queue.is_empty:
            self._state = PlayerState.STOPPED
            self._elapsed = 0.0
            self.session.clear()
            logger.info("Library is empty, nothing to play")
            self._notify_state_change()
            return

        self._state = PlayerState.PAUSED
        self._elapsed = reconciled.elapsed_seconds
        await self._sync_engine(restart=True)
        self._save()
        self._notify_state_change()

        track = self.current_track
        if track:
            logger.info(f"Ready: {track.artist} - {track.name} at {self._elapsed:.1f}s")

    async def shutdown(self) -> None:
        """Cancel the sleep timer and write a final snapshot."""
        self._sleep_timer.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._state != PlayerState.STOPPED:
            try:
                self._elapsed = await self.backend.get_position()
            except Exception as e:
                logger.warning(f"Could not read final position: {e}")
        if not self._queue.is_empty:
            self._save()
        logger.info("Player shut down")

    def set_state_change_callback(self, callback: Optional[Callable[[], None]]) -> None:
        """Set callback invoked after every discrete state change."""
        self._state_change_callback = callback

    def set_progress_callback(self, callback: Optional[Callable[[float, float], None]]) -> None:
        """Set callback invoked with (elapsed, duration) on progress updates."""
        self._progress_callback = callback

    def set_error_callback(self, callback: Optional[Callable[[str], None]]) -> None:
        """Set callback invoked with a message when an error should be surfaced."""
        self._error_callback = callback

    # =========================================================================
    # Playback Commands
    # =========================================================================

    async def toggle_play_pause(self) -> PlayerState:
        """Play/pause; from STOPPED, (re)start the current track."""
        if self._queue.is_empty:
            logger.debug("Play/pause ignored: library is empty")
            return self._state

        if self._state == PlayerState.PLAYING:
            self._state = PlayerState.PAUSED
            await self._sync_engine()
        elif self._state == PlayerState.PAUSED:
            self._state = PlayerState.PLAYING
            await self._sync_engine()
        else:
            if self._queue.position is None:
                self._queue.select_by_library_index(0)
            self._state = PlayerState.PLAYING
            self._elapsed = 0.0
            await self._sync_engine(restart=True)

        self._save()
        self._notify_state_change()
        return self._state

    async def play_by_index(self, library_index: int) -> bool:
        """
        Select a library index and play it.

        Changing track starts at 0. Re-selecting the current track keeps the
        elapsed time.

        Returns:
            False if the index is not in the queue
        """
        previous_position = self._queue.position
        was_stopped = self._state == PlayerState.STOPPED
        if not self._queue.select_by_library_index(library_index):
            return False

        changed = self._queue.position != previous_position or was_stopped
        self._state = PlayerState.PLAYING
        if changed:
            self._elapsed = 0.0
        await self._sync_engine(restart=changed)
        self._save()
        self._notify_state_change()
        return True

    async def play_track(self, track_id: str) -> bool:
        """Play a track by id. Returns False if the id is unknown."""
        index = self.library.index_of(track_id)
        if index is None:
            logger.warning(f"Cannot play unknown track: {track_id}")
            return False
        return await self.play_by_index(index)

    async def next(self) -> AdvanceResult:
        """Skip to the next track."""
        return await self._advance(Direction.NEXT)

    async def prev(self) -> AdvanceResult:
        """Go back to the previous track."""
        return await self._advance(Direction.PREV)

    async def _advance(self, direction: Direction) -> AdvanceResult:
        result = self._queue.advance(direction)

        if result == AdvanceResult.NO_TRACK:
            return result

        if result == AdvanceResult.END_OF_QUEUE:
            self._state = PlayerState.STOPPED
            self._elapsed = 0.0
            await self._call_backend("pause", self.backend.pause)
            logger.info("Playback stopped at end of queue")
        else:
            self._state = PlayerState.PLAYING
            self._elapsed = 0.0
            await self._sync_engine(restart=True)

        self._save()
        self._notify_state_change()
        return result

    async def handle_natural_end(self) -> None:
        """
        Handle the backend finishing the current track on its own.

        With repeat ONE the backend loops by itself. Otherwise same as next().
        """
        if self._queue.repeat_mode == RepeatMode.ONE:
            logger.debug("Track ended with repeat one, backend loops")
            return
        logger.info("Track ended naturally")
        await self.next()

    def handle_elapsed_update(self, elapsed: float, duration: float) -> None:
        """Record progress from the backend. Never touches the queue."""
        if self._state == PlayerState.STOPPED:
            return
        self._elapsed = elapsed
        if duration > 0:
            self._duration = duration

        if self._progress_callback:
            try:
                self._progress_callback(elapsed, self._duration)
            except Exception as e:
                logger.error(f"Progress callback error: {e}")

        self.session.save_elapsed(self._queue.state, self._rate, elapsed)

    # =========================================================================
    # Seek Control
    # =========================================================================

    async def seek(self, seconds: float) -> bool:
        """
        Seek within the current track.

        Before the backend knows the duration the target is held and applied
        when it does; a later seek replaces an earlier held one.

        Returns:
            False if there is no current track
        """
        if self.current_track is None:
            logger.warning("Cannot seek: no track selected")
            return False

        target = max(0.0, seconds)
        if self._duration > 0:
            target = min(target, self._duration)

        self._elapsed = target
        if not self._metadata_ready:
            self._pending_seek = target
            logger.debug(f"Seek to {target:.1f}s deferred until track is ready")
            return True

        await self._call_backend("seek", self.backend.seek, target)
        self.session.save_elapsed(self._queue.state, self._rate, target)
        logger.info(f"Seeked to {target:.1f}s")
        return True

    # =========================================================================
    # Queue Modes
    # =========================================================================

    async def toggle_shuffle(self) -> bool:
        """Toggle shuffle. The current track stays current."""
        shuffled = self._queue.toggle_shuffle()
        self._save()
        self._notify_state_change()
        return shuffled

    async def cycle_repeat(self) -> RepeatMode:
        """Cycle repeat NONE -> ALL -> ONE."""
        mode = self._queue.cycle_repeat()
        await self._call_backend("set_loop", self.backend.set_loop, mode == RepeatMode.ONE)
        self._save()
        self._notify_state_change()
        return mode

    # =========================================================================
    # Speed, Volume, Sleep Timer
    # =========================================================================

    async def set_playback_rate(self, rate: float) -> float:
        """Set the speed multiplier."""
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"Playback rate must be positive: {rate}")
        self._rate = rate
        await self._call_backend("set_rate", self.backend.set_rate, rate)
        self._save()
        self._notify_state_change()
        logger.info(f"Playback rate: {rate:g}x")
        return rate

    async def cycle_playback_rate(self) -> float:
        """Move to the next configured rate, wrapping to the first."""
        try:
            i = self._rates.index(self._rate)
            rate = self._rates[(i + 1) % len(self._rates)]
        except ValueError:
            rate = self._rates[0]
        return await self.set_playback_rate(rate)

    async def set_volume(self, level: float) -> float:
        """Set volume (0.0-1.0). Muting is kept."""
        self._volume = max(0.0, min(1.0, level))
        if not self._muted:
            await self._call_backend("set_volume", self.backend.set_volume, self._volume)
        self._notify_state_change()
        return self._volume

    async def toggle_mute(self) -> bool:
        """Toggle mute, restoring the previous volume on unmute."""
        self._muted = not self._muted
        level = 0.0 if self._muted else self._volume
        await self._call_backend("set_volume", self.backend.set_volume, level)
        self._notify_state_change()
        return self._muted

    def set_sleep_timer(self, minutes: float) -> None:
        """Pause after `minutes`; minutes <= 0 clears the timer."""
        self._sleep_timer.set(minutes)
        self._notify_state_change()

    async def _on_sleep_timer_expired(self) -> None:
        if self._state != PlayerState.PLAYING:
            return
        self._state = PlayerState.PAUSED
        await self._call_backend("pause", self.backend.pause)
        self._save()
        self._notify_state_change()

    # =========================================================================
    # Library
    # =========================================================================

    async def delete_track(self, track_id: str) -> None:
        """
        Delete a track file and drop it from the queue.

        The queue is only touched after the file is gone.

        Raises:
            LibraryError: If the file could not be deleted
        """
        index = self.library.index_of(track_id)
        if index is None:
            raise TrackNotFoundError(f"Track not in library: {track_id}")

        try:
            self.library.remove_track(track_id)
        except LibraryError as e:
            logger.error(f"Delete failed: {e}")
            self._report_error(str(e))
            raise

        outcome = self._queue.remove_library_index(index)

        if self._queue.is_empty:
            self._state = PlayerState.STOPPED
            self._elapsed = 0.0
            self._duration = 0.0
            self._loaded_id = None
            self._pending_seek = None
            await self._call_backend("stop", self.backend.stop)
            self.session.clear()
            logger.info("Library is now empty")
            self._notify_state_change()
            return

        if outcome.current_removed:
            self._elapsed = 0.0
            await self._sync_engine(restart=True)

        self._save()
        self._notify_state_change()

    def search(self, text: str) -> list[tuple[int, Track]]:
        """Return (library index, track) pairs in play order matching text."""
        results = []
        for index in self._queue.active_order:
            track = self.library.get(index)
            if track is not None and matches(track, text):
                results.append((index, track))
        return results

    # =========================================================================
    # Engine Synchronisation
    # =========================================================================

    async def _sync_engine(self, restart: bool = False) -> None:
        """
        Bring the backend in line with the current track and state.

        Reloads the source when the track changed or a restart is requested;
        the current elapsed time becomes the pending seek.
        """
        track = self.current_track
        if track is None:
            self._loaded_id = None
            await self._call_backend("stop", self.backend.stop)
            return

        if restart or track.id != self._loaded_id:
            self._loaded_id = track.id
            self._metadata_ready = False
            self._pending_seek = self._elapsed if self._elapsed > 0 else None
            self._duration = track.duration
            try:
                await self.backend.load(track.source)
            except PlaybackInterruptedError as e:
                logger.debug(f"Load interrupted: {e}")
                return
            except Exception as e:
                logger.error(f"Failed to load {track.name}: {e}")
                self._report_error(f"Failed to load {track.name}: {e}")
                return
            if self._loaded_id != track.id:
                # A newer command replaced the source while it was loading
                return

        if self._state == PlayerState.PLAYING:
            try:
                await self.backend.play()
            except PlaybackInterruptedError as e:
                logger.debug(f"Play interrupted: {e}")
            except Exception as e:
                logger.error(f"Playback failed: {e}")
                self._report_error(f"Playback failed: {e}")
        else:
            await self._call_backend("pause", self.backend.pause)

    async def _call_backend(self, action: str, method: Callable, *args: Any) -> None:
        try:
            await method(*args)
        except PlaybackInterruptedError as e:
            logger.debug(f"Backend {action} interrupted: {e}")
        except Exception as e:
            logger.error(f"Backend {action} failed: {e}")
            self._report_error(f"Backend {action} failed: {e}")

    def _on_metadata_ready(self, duration: float) -> None:
        self._metadata_ready = True
        if duration > 0:
            self._duration = duration
        target = self._pending_seek
        self._pending_seek = None
        if target:
            self._spawn(self._apply_pending_seek(target))

    async def _apply_pending_seek(self, target: float) -> None:
        if self._duration > 0:
            target = min(target, self._duration)
        await self._call_backend("seek", self.backend.seek, target)
        logger.debug(f"Applied pending seek to {target:.1f}s")

    def _on_natural_end(self) -> None:
        self._spawn(self.handle_natural_end())

    def _on_playback_error(self, message: str) -> None:
        logger.error(f"Playback error: {message}")
        self._report_error(message)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # Persistence and Notification
    # =========================================================================

    def _save(self) -> None:
        self.session.save_snapshot(self._queue.state, self._rate, self._elapsed)

    def _notify_state_change(self) -> None:
        if self._state_change_callback:
            try:
                self._state_change_callback()
            except Exception as e:
                logger.error(f"State change callback error: {e}")

    def _report_error(self, message: str) -> None:
        if self._error_callback:
            try:
                self._error_callback(message)
            except Exception as e:
                logger.error(f"Error callback error: {e}")

    # =========================================================================
    # State Access
    # =========================================================================

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def queue(self) -> QueueModel:
        return self._queue

    @property
    def current_track(self) -> Optional[Track]:
        index = self._queue.current_index
        if index is None:
            return None
        return self.library.get(index)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def playback_rate(self) -> float:
        return self._rate

    @property
    def rates(self) -> tuple[float, ...]:
        return self._rates

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def sleep_timer(self) -> SleepTimer:
        return self._sleep_timer

    def status(self) -> dict[str, Any]:
        """Current player status as a JSON-serializable dictionary."""
        track = self.current_track
        return {
            "state": self._state.value,
            "track": track.to_dict() if track else None,
            "library_index": self._queue.current_index,
            "position": self._queue.position,
            "elapsed": round(self._elapsed, 3),
            "duration": round(self._duration, 3),
            "shuffled": self._queue.shuffled,
            "repeat_mode": self._queue.repeat_mode.value,
            "playback_rate": self._rate,
            "volume": self._volume,
            "muted": self._muted,
            "sleep_timer_remaining": self._sleep_timer.remaining,
            "track_count": self._queue.track_count,
        }
