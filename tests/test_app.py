"""Tests for application startup, shutdown and session restore."""

from pathlib import Path

import pytest

from conftest import make_library_files, settle
from shelfplay.app import ShelfPlay
from shelfplay.backends import NullAudioBackend
from shelfplay.config import (
    BackendConfig,
    Config,
    LibraryConfig,
    ServerConfig,
    SessionConfig,
)
from shelfplay.library import LibraryError
from shelfplay.playback import PlayerState


def _config(state_dir: Path, root: str = "") -> Config:
    return Config(
        library=LibraryConfig(root=root),
        session=SessionConfig(state_dir=str(state_dir)),
        backend=BackendConfig(type="null"),
        server=ServerConfig(http_port=0),
    )


@pytest.fixture
def music(tmp_path: Path) -> Path:
    root = tmp_path / "Music"
    make_library_files(root, [f"Album/Track {i:02d}.mp3" for i in range(1, 7)])
    return root


class TestShelfPlay:
    """Tests for the ShelfPlay application."""

    async def test_start_and_stop(self, tmp_path: Path, music: Path) -> None:
        app = ShelfPlay(_config(tmp_path / "state", str(music)))

        await app.start()
        try:
            assert app.is_running
            assert isinstance(app.player.backend, NullAudioBackend)
            assert app.player.state == PlayerState.PAUSED
            assert app.player.queue.track_count == 6
        finally:
            await app.stop()

        assert not app.is_running
        assert (tmp_path / "state" / "playback-session.json").exists()

    async def test_session_restored_after_restart(self, tmp_path: Path, music: Path) -> None:
        state = tmp_path / "state"

        first = ShelfPlay(_config(state, str(music)))
        await first.start()
        try:
            await first.player.toggle_shuffle()
            await first.player.cycle_repeat()
            await first.player.set_playback_rate(1.25)
            await first.player.next()
            await first.player.next()
            await first.player.seek(42.0)
            await settle()
            await first.player.toggle_play_pause()  # Pause, position held at 42
            expected_order = first.player.queue.active_order
            expected_index = first.player.queue.current_index
        finally:
            await first.stop()

        second = ShelfPlay(_config(state, str(music)))
        await second.start()
        try:
            player = second.player
            assert player.queue.active_order == expected_order
            assert player.queue.position == 2
            assert player.queue.current_index == expected_index
            assert player.queue.shuffled is True
            assert player.playback_rate == 1.25
            assert player.state == PlayerState.PAUSED
            assert player.elapsed == pytest.approx(42.0, abs=1.0)

            await settle()
            assert await player.backend.get_position() == pytest.approx(42.0, abs=1.0)
        finally:
            await second.stop()

    async def test_library_change_discards_session(self, tmp_path: Path, music: Path) -> None:
        state = tmp_path / "state"
        first = ShelfPlay(_config(state, str(music)))
        await first.start()
        try:
            await first.player.play_by_index(3)
        finally:
            await first.stop()

        make_library_files(music, ["Album/Track 07.mp3"])

        second = ShelfPlay(_config(state, str(music)))
        await second.start()
        try:
            assert second.player.queue.track_count == 7
            assert second.player.queue.position == 0
            assert second.player.elapsed == 0.0
        finally:
            await second.stop()

    async def test_corrupt_session_file_starts_fresh(self, tmp_path: Path, music: Path) -> None:
        state = tmp_path / "state"
        state.mkdir()
        (state / "playback-session.json").write_bytes(b"\xff\xfe{garbage")

        app = ShelfPlay(_config(state, str(music)))
        await app.start()
        try:
            assert app.player.queue.position == 0
            assert app.player.elapsed == 0.0
        finally:
            await app.stop()

    async def test_remembered_library_used(self, tmp_path: Path, music: Path) -> None:
        state = tmp_path / "state"
        first = ShelfPlay(_config(state, str(music)))
        await first.start()
        await first.stop()

        second = ShelfPlay(_config(state))
        await second.start()
        try:
            assert second.player.library.root == music
        finally:
            await second.stop()

    async def test_no_library_configured(self, tmp_path: Path) -> None:
        app = ShelfPlay(_config(tmp_path / "state"))
        with pytest.raises(LibraryError, match="No library folder configured"):
            await app.start()

    async def test_missing_library_folder(self, tmp_path: Path) -> None:
        app = ShelfPlay(_config(tmp_path / "state", str(tmp_path / "gone")))
        with pytest.raises(FileNotFoundError):
            await app.start()

    async def test_stop_before_start_is_noop(self, tmp_path: Path) -> None:
        await ShelfPlay(_config(tmp_path / "state")).stop()
