"""Tests for the local audio backend."""

import asyncio
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from shelfplay.backends import EngineState, LocalAudioBackend, PlaybackInterruptedError
from shelfplay.backends.local import OutputDevice, resample_chunk

_RESOLVE_PATCH = "shelfplay.backends.local.backend.resolve_device"
SAMPLE_RATE = 8000


def _tone(frames: int, channels: int = 2) -> np.ndarray:
    ramp = np.linspace(0.0, 1.0, frames, dtype=np.float32)
    return np.repeat(ramp[:, None], channels, axis=1)


def _backend(audio: np.ndarray, sample_rate: int = SAMPLE_RATE) -> LocalAudioBackend:
    """Backend with a mocked output stream and a canned decoder."""
    backend = LocalAudioBackend(device="default")
    backend._stream = MagicMock()
    backend._decode = MagicMock(return_value=(audio, sample_rate))  # type: ignore[method-assign]
    return backend


class TestResampleChunk:
    """Tests for resample_chunk()."""

    def test_unit_rate_slices(self) -> None:
        audio = _tone(100)
        chunk, cursor = resample_chunk(audio, 10.0, 20, 1.0)
        np.testing.assert_array_equal(chunk, audio[10:30])
        assert cursor == 30.0

    def test_unit_rate_stops_at_end(self) -> None:
        chunk, cursor = resample_chunk(_tone(100), 90.0, 20, 1.0)
        assert len(chunk) == 10
        assert cursor == 100.0

    def test_exhausted(self) -> None:
        chunk, cursor = resample_chunk(_tone(100), 100.0, 20, 1.5)
        assert len(chunk) == 0
        assert cursor == 100.0

    def test_double_speed_skips_frames(self) -> None:
        audio = np.arange(100, dtype=np.float32)[:, None]
        chunk, cursor = resample_chunk(audio, 0.0, 10, 2.0)
        np.testing.assert_allclose(chunk[:, 0], np.arange(0, 20, 2))
        assert cursor == 20.0

    def test_slow_speed_interpolates(self) -> None:
        audio = np.arange(100, dtype=np.float32)[:, None]
        chunk, cursor = resample_chunk(audio, 4.0, 4, 0.5)
        np.testing.assert_allclose(chunk[:, 0], [4.0, 4.5, 5.0, 5.5])
        assert cursor == 6.0

    def test_fast_speed_reaches_end(self) -> None:
        audio = np.arange(10, dtype=np.float32)[:, None]
        chunk, cursor = resample_chunk(audio, 0.0, 100, 1.5)
        assert len(chunk) == 7  # 0, 1.5, ... 9.0
        assert cursor == 10.0


class TestLoad:
    """Tests for loading sources."""

    async def test_load_reports_duration(self) -> None:
        backend = _backend(_tone(SAMPLE_RATE * 3))
        durations: list[float] = []
        backend.on_metadata_ready(durations.append)

        await backend.load(Path("/music/a.flac"))

        assert durations == [3.0]
        assert await backend.get_state() == EngineState.PAUSED
        backend._stream.open.assert_called_once()
        assert backend.get_info().sample_rate == SAMPLE_RATE
        assert backend.get_info().channels == 2

    async def test_decode_failure_reports_error(self) -> None:
        backend = _backend(_tone(10))
        backend._decode = MagicMock(side_effect=RuntimeError("Error opening file"))
        errors: list[str] = []
        ready: list[float] = []
        backend.on_playback_error(errors.append)
        backend.on_metadata_ready(ready.append)

        await backend.load(Path("/music/broken.mp3"))

        assert ready == []
        assert len(errors) == 1
        assert "broken.mp3" in errors[0]
        assert await backend.get_state() == EngineState.STOPPED

    async def test_superseded_load_raises_interrupted(self) -> None:
        backend = _backend(_tone(SAMPLE_RATE))
        release = threading.Event()
        audio = _tone(SAMPLE_RATE)

        def decode(source: Path):
            if source.name == "slow.flac":
                release.wait(5)
            return audio, SAMPLE_RATE

        backend._decode = decode  # type: ignore[method-assign]
        ready: list[float] = []
        backend.on_metadata_ready(ready.append)

        slow = asyncio.create_task(backend.load(Path("slow.flac")))
        await asyncio.sleep(0.05)
        await backend.load(Path("fast.flac"))
        release.set()

        with pytest.raises(PlaybackInterruptedError):
            await slow
        assert ready == [1.0]

    async def test_play_while_loading_is_interrupted(self) -> None:
        backend = _backend(_tone(10))
        backend._loading = True
        with pytest.raises(PlaybackInterruptedError):
            await backend.play()

    async def test_play_without_source_is_ignored(self) -> None:
        backend = _backend(_tone(10))
        await backend.play()
        assert await backend.get_state() == EngineState.STOPPED


class TestTransport:
    """Tests for seek, position, volume and playback to the end."""

    async def test_seek_sets_position(self) -> None:
        backend = _backend(_tone(SAMPLE_RATE * 2))
        await backend.load(Path("a.flac"))

        await backend.seek(0.5)
        assert await backend.get_position() == pytest.approx(0.5)

        await backend.seek(30.0)
        assert await backend.get_position() == pytest.approx(2.0)

    async def test_position_excludes_buffered_frames(self) -> None:
        backend = _backend(_tone(SAMPLE_RATE * 2))
        await backend.load(Path("a.flac"))
        await backend.seek(1.0)
        backend._ring_buffer.write(_tone(SAMPLE_RATE // 2))

        assert await backend.get_position() == pytest.approx(0.5)

    async def test_volume_sets_stream_gain(self) -> None:
        backend = _backend(_tone(10))
        await backend.set_volume(0.3)
        backend._stream.set_gain.assert_called_with(0.3)
        assert await backend.get_volume() == 0.3

    async def test_natural_end_after_buffer_drains(self) -> None:
        backend = _backend(_tone(SAMPLE_RATE // 2))
        ended = asyncio.Event()
        elapsed: list[float] = []
        backend.on_natural_end(ended.set)
        backend.on_elapsed(lambda e, d: elapsed.append(d))
        await backend.load(Path("short.flac"))

        await backend.play()
        backend._stream.resume.assert_called_once()
        for _ in range(100):
            if ended.is_set():
                break
            backend._ring_buffer.clear()  # Stand-in for the device draining it
            await asyncio.sleep(0.02)

        assert ended.is_set()
        assert elapsed and elapsed[0] == pytest.approx(0.5)
        assert await backend.get_state() == EngineState.PAUSED

    async def test_stop_drops_source(self) -> None:
        backend = _backend(_tone(SAMPLE_RATE))
        await backend.load(Path("a.flac"))
        await backend.stop()

        assert await backend.get_position() == 0.0
        assert await backend.get_state() == EngineState.STOPPED


class TestConnect:
    """Tests for device connection."""

    async def test_connect_resolves_device(self) -> None:
        device = OutputDevice(4, "USB DAC", 2, 96000.0, is_default=False)
        backend = LocalAudioBackend(device="USB")

        with patch(_RESOLVE_PATCH, return_value=device) as resolve:
            assert await backend.connect() is True

        resolve.assert_called_once_with("USB")
        assert backend.is_connected()
        assert backend.name == "Local: USB DAC"
        assert backend.get_info().device_id == "local-USB"

    async def test_connect_fails_for_unknown_device(self) -> None:
        backend = LocalAudioBackend(device="Studio")
        with patch(_RESOLVE_PATCH, side_effect=ValueError("No audio device matching")):
            assert await backend.connect() is False
        assert not backend.is_connected()

    async def test_connect_fails_without_portaudio(self) -> None:
        backend = LocalAudioBackend()
        with patch(_RESOLVE_PATCH, side_effect=ImportError("PortAudio library not found")):
            assert await backend.connect() is False

    async def test_disconnect_closes_stream(self) -> None:
        backend = _backend(_tone(10))
        stream = backend._stream
        backend._is_connected = True

        await backend.disconnect()

        stream.close.assert_called_once()
        assert not backend.is_connected()
