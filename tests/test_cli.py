"""Tests for the command-line entry point."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shelfplay import __version__
from shelfplay.backends import BackendNotFoundError
from shelfplay.backends.local import OutputDevice
from shelfplay.cli import (
    EXIT_BACKEND_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_LIBRARY_ERROR,
    EXIT_SUCCESS,
    args_to_dict,
    main,
    parse_args,
)
from shelfplay.config import ENV_MAPPINGS
from shelfplay.library import LibraryError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ENV_MAPPINGS:
        monkeypatch.delenv(name, raising=False)


def _app_raising(error: Exception) -> MagicMock:
    app_class = MagicMock()
    app_class.return_value.run = AsyncMock(side_effect=error)
    return app_class


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = parse_args([])
        assert args.config == Path("./config.yaml")
        assert args.library is None
        assert args.list_devices is False
        assert args_to_dict(args) == {}

    def test_overrides_map_to_config_paths(self) -> None:
        args = parse_args(
            [
                "--library", "~/Music",
                "--state-dir", "/tmp/state",
                "--backend", "null",
                "--device", "USB",
                "--http-port", "9000",
                "--bind", "0.0.0.0",
                "--log-level", "debug",
            ]
        )

        assert args_to_dict(args) == {
            "library": {"root": "~/Music"},
            "session": {"state_dir": "/tmp/state"},
            "backend": {"type": "null", "local": {"device": "USB"}},
            "server": {"http_port": 9000, "bind_address": "0.0.0.0"},
            "logging": {"level": "debug"},
        }

    def test_rejects_unknown_backend(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--backend", "airplay"])

    def test_version(self, capsys) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestListDevices:
    """Tests for --list-devices."""

    def test_prints_devices(self, capsys) -> None:
        devices = [OutputDevice(0, "Speakers", 2, 48000.0, is_default=True)]
        with patch("shelfplay.backends.local.list_output_devices", return_value=devices):
            assert main(["--list-devices"]) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "Found 1 output device(s)" in out
        assert "[0] Speakers (default)" in out

    def test_no_devices(self, capsys) -> None:
        with patch("shelfplay.backends.local.list_output_devices", return_value=[]):
            assert main(["--list-devices"]) == EXIT_SUCCESS
        assert "No audio output devices found" in capsys.readouterr().out

    def test_portaudio_missing(self, capsys) -> None:
        with patch(
            "shelfplay.backends.local.list_output_devices",
            side_effect=ImportError("PortAudio library not found"),
        ):
            assert main(["--list-devices"]) == EXIT_BACKEND_ERROR
        assert "Cannot list devices" in capsys.readouterr().out


class TestExitCodes:
    """Tests for run_serve() error mapping."""

    def _argv(self, tmp_path: Path, *extra: str) -> list[str]:
        return ["--config", str(tmp_path / "missing.yaml"), "--backend", "null", *extra]

    def test_config_error(self, tmp_path: Path) -> None:
        assert main(self._argv(tmp_path, "--http-port", "0")) == EXIT_CONFIG_ERROR

    def test_invalid_config_file(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("server: [broken")
        assert main(["--config", str(config)]) == EXIT_CONFIG_ERROR

    def test_library_error(self, tmp_path: Path) -> None:
        with patch("shelfplay.cli.ShelfPlay", _app_raising(LibraryError("no folder"))):
            assert main(self._argv(tmp_path)) == EXIT_LIBRARY_ERROR

    def test_missing_library_folder(self, tmp_path: Path) -> None:
        with patch("shelfplay.cli.ShelfPlay", _app_raising(FileNotFoundError("gone"))):
            assert main(self._argv(tmp_path)) == EXIT_LIBRARY_ERROR

    def test_backend_error(self, tmp_path: Path) -> None:
        with patch("shelfplay.cli.ShelfPlay", _app_raising(BackendNotFoundError("no device"))):
            assert main(self._argv(tmp_path)) == EXIT_BACKEND_ERROR

    def test_clean_shutdown(self, tmp_path: Path) -> None:
        app_class = MagicMock()
        app_class.return_value.run = AsyncMock(return_value=None)
        with patch("shelfplay.cli.ShelfPlay", app_class):
            assert main(self._argv(tmp_path, "--library", str(tmp_path))) == EXIT_SUCCESS

        config = app_class.call_args.args[0]
        assert config.library.root == str(tmp_path)
        assert config.backend.type == "null"
