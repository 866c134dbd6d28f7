"""Tests for session persistence and startup reconciliation."""

import json
import random
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import FakeClock
from shelfplay.playback.queue import Direction, QueueModel, RepeatMode
from shelfplay.session import (
    LIBRARY_ROOT_KEY,
    SESSION_KEY,
    JsonFileSnapshotStore,
    MemorySnapshotStore,
    SessionPersistence,
    SessionSnapshot,
    reconcile,
)


def _shuffled_queue(n: int = 6, seed: int = 3) -> QueueModel:
    queue = QueueModel(n, rng=random.Random(seed))
    queue.select_by_library_index(4)
    queue.toggle_shuffle()
    queue.advance(Direction.NEXT)
    queue.cycle_repeat()
    return queue


class TestSaveSnapshot:
    """Tests for unconditional snapshot writes."""

    def test_round_trip(self, session: SessionPersistence) -> None:
        queue = _shuffled_queue()

        written = session.save_snapshot(queue.state, 1.25, 61.0)

        loaded = session.load_snapshot()
        assert loaded == written
        assert loaded.queue_state == queue.state
        assert loaded.playback_rate == 1.25
        assert loaded.elapsed_seconds == 61.0

    def test_overwrites_previous(self, session: SessionPersistence) -> None:
        queue = QueueModel(3)
        session.save_snapshot(queue.state, 1.0, 5.0)
        queue.advance(Direction.NEXT)
        session.save_snapshot(queue.state, 1.0, 0.0)

        assert session.load_snapshot().position == 1

    def test_store_failure_is_logged(self, snapshot_store: MemorySnapshotStore, caplog) -> None:
        session = SessionPersistence(snapshot_store)
        with patch.object(snapshot_store, "save", side_effect=OSError("disk full")):
            assert session.save_snapshot(QueueModel(2).state, 1.0, 0.0) is None
        assert "disk full" in caplog.text


class TestSaveElapsed:
    """Tests for throttled elapsed writes."""

    def test_first_write_goes_through(self, session: SessionPersistence) -> None:
        assert session.save_elapsed(QueueModel(2).state, 1.0, 1.0) is True

    def test_throttled_within_interval(
        self, session: SessionPersistence, clock: FakeClock
    ) -> None:
        state = QueueModel(2).state
        session.save_elapsed(state, 1.0, 1.0)

        clock.advance(4.9)
        assert session.save_elapsed(state, 1.0, 5.9) is False
        assert session.load_snapshot().elapsed_seconds == 1.0

        clock.advance(0.2)
        assert session.save_elapsed(state, 1.0, 6.0) is True
        assert session.load_snapshot().elapsed_seconds == 6.0

    def test_discrete_save_restarts_interval(
        self, session: SessionPersistence, clock: FakeClock
    ) -> None:
        state = QueueModel(2).state
        session.save_elapsed(state, 1.0, 1.0)
        clock.advance(4.0)
        session.save_snapshot(state, 1.0, 2.0)
        clock.advance(4.0)

        assert session.save_elapsed(state, 1.0, 3.0) is False

    def test_clear_resets_throttle(self, session: SessionPersistence) -> None:
        state = QueueModel(2).state
        session.save_elapsed(state, 1.0, 1.0)
        session.clear()
        assert session.save_elapsed(state, 1.0, 2.0) is True


class TestLoadSnapshot:
    """Tests for reading snapshots back."""

    def test_absent(self, session: SessionPersistence) -> None:
        assert session.load_snapshot() is None

    def test_invalid_json_is_discarded(
        self, session: SessionPersistence, snapshot_store: MemorySnapshotStore, caplog
    ) -> None:
        snapshot_store.save(SESSION_KEY, "{not json")
        assert session.load_snapshot() is None
        assert "corrupt" in caplog.text

    def test_inconsistent_snapshot_is_discarded(
        self, session: SessionPersistence, snapshot_store: MemorySnapshotStore
    ) -> None:
        data = SessionSnapshot.capture(QueueModel(3).state, 1.0, 0.0).to_dict()
        data["active_order"] = [0, 1, 1]
        snapshot_store.save(SESSION_KEY, json.dumps(data))

        assert session.load_snapshot() is None

    def test_clear(self, session: SessionPersistence) -> None:
        session.save_snapshot(QueueModel(2).state, 1.0, 0.0)
        session.clear()
        assert session.load_snapshot() is None

    def test_survives_restart_on_disk(self, tmp_path: Path) -> None:
        queue = _shuffled_queue()
        SessionPersistence(JsonFileSnapshotStore(tmp_path)).save_snapshot(
            queue.state, 1.5, 90.0
        )

        loaded = SessionPersistence(JsonFileSnapshotStore(tmp_path)).load_snapshot()

        assert loaded is not None
        assert loaded.queue_state == queue.state

    def test_undecodable_file_is_discarded(self, tmp_path: Path, caplog) -> None:
        (tmp_path / f"{SESSION_KEY}.json").write_bytes(b"\xff\xfe{garbage")

        assert SessionPersistence(JsonFileSnapshotStore(tmp_path)).load_snapshot() is None
        assert "Could not read saved session" in caplog.text


class TestLibraryRoot:
    """Tests for remembering the library folder."""

    def test_round_trip(self, session: SessionPersistence, tmp_path: Path) -> None:
        session.remember_library_root(tmp_path / "Music")
        assert session.recall_library_root() == tmp_path / "Music"

    def test_absent(self, session: SessionPersistence) -> None:
        assert session.recall_library_root() is None

    @pytest.mark.parametrize("blob", ["nope", "[]", '{"path": 3}', '{"path": ""}'])
    def test_malformed_record(
        self, session: SessionPersistence, snapshot_store: MemorySnapshotStore, blob: str
    ) -> None:
        snapshot_store.save(LIBRARY_ROOT_KEY, blob)
        assert session.recall_library_root() is None

    def test_undecodable_file(self, tmp_path: Path) -> None:
        (tmp_path / f"{LIBRARY_ROOT_KEY}.json").write_bytes(b"\xff\xfe\x00")
        assert SessionPersistence(JsonFileSnapshotStore(tmp_path)).recall_library_root() is None

    def test_independent_of_session(self, session: SessionPersistence, tmp_path: Path) -> None:
        session.remember_library_root(tmp_path)
        session.save_snapshot(QueueModel(1).state, 1.0, 0.0)
        session.clear()
        assert session.recall_library_root() == tmp_path


class TestReconcile:
    """Tests for reconciling a saved session with a fresh library."""

    def test_no_snapshot_gives_fresh_queue(self) -> None:
        result = reconcile(None, 4)

        assert result.restored is False
        assert result.queue.active_order == (0, 1, 2, 3)
        assert result.queue.position == 0
        assert result.playback_rate == 1.0
        assert result.elapsed_seconds == 0.0

    def test_matching_count_restores_everything(self) -> None:
        queue = _shuffled_queue()
        snapshot = SessionSnapshot.capture(queue.state, 1.5, 90.0)

        result = reconcile(snapshot, 6)

        assert result.restored is True
        assert result.queue.state == queue.state
        assert result.queue.repeat_mode == RepeatMode.ALL
        assert result.playback_rate == 1.5
        assert result.elapsed_seconds == 90.0

    def test_count_mismatch_starts_fresh(self) -> None:
        snapshot = SessionSnapshot.capture(_shuffled_queue().state, 1.5, 90.0)

        result = reconcile(snapshot, 7)

        assert result.restored is False
        assert result.queue.shuffled is False
        assert result.queue.track_count == 7
        assert result.playback_rate == 1.0
        assert result.elapsed_seconds == 0.0

    def test_empty_library_ignores_snapshot(self) -> None:
        snapshot = SessionSnapshot.capture(QueueModel(2).state, 1.0, 3.0)
        result = reconcile(snapshot, 0)
        assert result.queue.is_empty
        assert result.queue.position is None

    def test_restored_queue_keeps_shuffling(self) -> None:
        snapshot = SessionSnapshot.capture(_shuffled_queue().state, 1.0, 0.0)
        result = reconcile(snapshot, 6, rng=random.Random(8))

        result.queue.toggle_shuffle()
        result.queue.toggle_shuffle()

        assert sorted(result.queue.active_order) == list(range(6))
