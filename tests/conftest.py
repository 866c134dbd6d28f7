"""Shared fixtures for shelfplay tests."""

import asyncio
import random
from pathlib import Path
from typing import Optional

import pytest

from shelfplay.backends.base import AudioBackend
from shelfplay.backends.types import BackendInfo, EngineState
from shelfplay.library import LibraryStore, TrackTags
from shelfplay.playback import PlaybackController
from shelfplay.session import MemorySnapshotStore, SessionPersistence, reconcile


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend(AudioBackend):
    """
    Backend that records calls.

    Metadata-ready is not signalled automatically; tests call
    fire_metadata_ready() to model the engine finishing a load.
    """

    def __init__(self) -> None:
        super().__init__("Fake")
        self.calls: list[tuple] = []
        self.source: Optional[Path] = None
        self.position = 0.0
        self.play_error: Optional[Exception] = None
        self.load_error: Optional[Exception] = None

    async def load(self, source: Path) -> None:
        self.calls.append(("load", source))
        if self.load_error:
            raise self.load_error
        self.source = source
        self.position = 0.0
        self._set_state(EngineState.PAUSED)

    async def play(self) -> None:
        self.calls.append(("play",))
        if self.play_error:
            raise self.play_error
        self._set_state(EngineState.PLAYING)

    async def pause(self) -> None:
        self.calls.append(("pause",))
        self._set_state(EngineState.PAUSED)

    async def stop(self) -> None:
        self.calls.append(("stop",))
        self.source = None
        self._set_state(EngineState.STOPPED)

    async def seek(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))
        self.position = seconds

    async def get_position(self) -> float:
        return self.position

    async def set_rate(self, multiplier: float) -> None:
        self.calls.append(("set_rate", multiplier))
        await super().set_rate(multiplier)

    async def set_volume(self, level: float) -> None:
        self.calls.append(("set_volume", level))
        await super().set_volume(level)

    async def set_loop(self, enabled: bool) -> None:
        self.calls.append(("set_loop", enabled))
        await super().set_loop(enabled)

    async def connect(self) -> bool:
        self._is_connected = True
        return True

    async def disconnect(self) -> None:
        self._is_connected = False

    def get_info(self) -> BackendInfo:
        return BackendInfo(backend_type="fake", name=self.name, device_id="fake")

    # Test helpers

    def fire_metadata_ready(self, duration: float) -> None:
        self._notify_metadata_ready(duration)

    def fire_elapsed(self, elapsed: float, duration: float) -> None:
        self._notify_elapsed(elapsed, duration)

    def fire_natural_end(self) -> None:
        self._notify_natural_end()

    def fire_error(self, message: str) -> None:
        self._notify_playback_error(message)

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def reset_calls(self) -> None:
        self.calls.clear()


class StubExtractor:
    """Tag extractor that derives tags from the file name (no audio parsing)."""

    def __init__(self, duration: float = 200.0):
        self.duration = duration

    def extract(self, file_path: Path) -> TrackTags:
        stem = file_path.stem
        artist, _, title = stem.partition(" - ")
        return TrackTags(
            title=title or stem,
            artist=artist if title else None,
            album=file_path.parent.name,
            duration=self.duration,
        )


def make_library_files(root: Path, names: list[str]) -> list[Path]:
    """Create empty audio files under root and return their paths."""
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x00" * 16)
        paths.append(path)
    return paths


async def settle() -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def snapshot_store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def session(snapshot_store: MemorySnapshotStore, clock: FakeClock) -> SessionPersistence:
    return SessionPersistence(snapshot_store, elapsed_write_interval=5.0, clock=clock)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def library_dir(tmp_path: Path) -> Path:
    root = tmp_path / "Music"
    make_library_files(
        root,
        [
            "Album A/Artist One - Alpha.mp3",
            "Album A/Artist One - Bravo.mp3",
            "Album B/Artist Two - Charlie.flac",
            "Album B/Artist Two - Delta.flac",
            "Album C/Artist Three - Echo.ogg",
        ],
    )
    return root


@pytest.fixture
def library(library_dir: Path) -> LibraryStore:
    store = LibraryStore(library_dir, extractor=StubExtractor())
    store.scan()
    return store


@pytest.fixture
async def player(
    library: LibraryStore,
    backend: FakeBackend,
    session: SessionPersistence,
    rng: random.Random,
) -> PlaybackController:
    """Controller attached to a fresh session, paused on the first track."""
    controller = PlaybackController(library, backend, session, rng=rng)
    await controller.attach(reconcile(None, len(library), rng=rng))
    backend.reset_calls()
    return controller
