"""
shelfplay CLI entry point.

Provides command-line interface for running shelfplay.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from shelfplay import __version__
from shelfplay.app import ShelfPlay
from shelfplay.backends import BackendNotFoundError
from shelfplay.config import VALID_BACKENDS, Config, ConfigError, load_config
from shelfplay.library import LibraryError

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_LIBRARY_ERROR = 2
EXIT_BACKEND_ERROR = 3


def setup_logging(level: str = "info") -> None:
    """Configure logging to stdout."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="shelfplay",
        description="Offline music library player with a local control API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shelfplay --library ~/Music
  shelfplay --config config.yaml
  shelfplay --list-devices
  shelfplay --library ~/Music --backend null --http-port 9000

Environment Variables:
  SHELFPLAY_LIBRARY, SHELFPLAY_STATE_DIR, SHELFPLAY_ELAPSED_WRITE_INTERVAL
  SHELFPLAY_BACKEND, SHELFPLAY_DEVICE, SHELFPLAY_BUFFER_SIZE
  SHELFPLAY_HTTP_PORT, SHELFPLAY_BIND, SHELFPLAY_LOG_LEVEL
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio output devices and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.yaml"),
        metavar="PATH",
        help="Path to config file (default: ./config.yaml)",
    )

    # Library
    library_group = parser.add_argument_group("Library")
    library_group.add_argument(
        "--library",
        metavar="PATH",
        help="Music folder (default: the last folder used)",
    )
    library_group.add_argument(
        "--state-dir",
        metavar="PATH",
        help="Where the playback session is saved",
    )

    # Audio
    audio_group = parser.add_argument_group("Audio")
    audio_group.add_argument(
        "--backend",
        choices=sorted(VALID_BACKENDS),
        metavar="TYPE",
        help=f"Audio backend: {', '.join(sorted(VALID_BACKENDS))} (default: local)",
    )
    audio_group.add_argument(
        "--device",
        metavar="TEXT",
        help="Output device: 'default', index, or name",
    )

    # Server
    server_group = parser.add_argument_group("Server")
    server_group.add_argument(
        "--http-port",
        type=int,
        metavar="INT",
        help="Control API port (default: 8690)",
    )
    server_group.add_argument(
        "--bind",
        metavar="TEXT",
        help="Bind address (default: 127.0.0.1)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    mappings = {
        "library": ("library", "root"),
        "state_dir": ("session", "state_dir"),
        "backend": ("backend", "type"),
        "device": ("backend", "local", "device"),
        "http_port": ("server", "http_port"),
        "bind": ("server", "bind_address"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        _set_nested(result, path, value)

    return result


def log_config(config: Config) -> None:
    """Log configuration summary."""
    logger.info(f"Library: {config.library.root or '(remembered folder)'}")
    logger.info(f"Session state: {config.session.state_path}")
    if config.backend.type == "local":
        logger.info(f"Audio backend: local (device: {config.backend.local.device})")
    else:
        logger.info(f"Audio backend: {config.backend.type}")
    logger.info(f"Control API: {config.server.bind_address}:{config.server.http_port}")


def run_list_devices() -> int:
    """Print audio output devices."""
    from shelfplay.backends.local import format_device_list, list_output_devices

    try:
        devices = list_output_devices()
    except ImportError as e:
        print(f"Cannot list devices: {e}")
        return EXIT_BACKEND_ERROR

    if not devices:
        print("No audio output devices found.")
        return EXIT_SUCCESS

    print(f"Found {len(devices)} output device(s):\n")
    print(format_device_list(devices))
    return EXIT_SUCCESS


def run_serve(args: argparse.Namespace) -> int:
    """
    Run the player.

    Returns:
        Exit code
    """
    setup_logging("info")
    logger.info(f"shelfplay v{__version__}")

    try:
        config = load_config(args.config, args_to_dict(args))
        setup_logging(config.logging.level)
        log_config(config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        app = ShelfPlay(config)
        asyncio.run(app.run())
        return EXIT_SUCCESS

    except (LibraryError, FileNotFoundError) as e:
        logger.error(f"Library error: {e}")
        return EXIT_LIBRARY_ERROR

    except BackendNotFoundError as e:
        logger.error(f"Backend error: {e}")
        return EXIT_BACKEND_ERROR

    except OSError as e:
        logger.error(f"Startup failed: {e}")
        return EXIT_BACKEND_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_BACKEND_ERROR


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 2=library error, 3=backend error
    """
    args = parse_args(argv)

    if args.list_devices:
        return run_list_devices()
    return run_serve(args)


if __name__ == "__main__":
    sys.exit(main())
