"""
shelfplay configuration system.

Priority order (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Configuration file (YAML)
4. Default values
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = "~/.local/state/shelfplay"
DEFAULT_EXTENSIONS = [".mp3", ".flac", ".ogg", ".opus", ".m4a", ".wav", ".aac"]
DEFAULT_PLAYBACK_RATES = [0.75, 1.0, 1.25, 1.5]

VALID_BACKENDS = {"local", "null"}
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Environment variable mappings
ENV_MAPPINGS = {
    "SHELFPLAY_LIBRARY": ("library", "root"),
    "SHELFPLAY_STATE_DIR": ("session", "state_dir"),
    "SHELFPLAY_ELAPSED_WRITE_INTERVAL": ("session", "elapsed_write_interval"),
    "SHELFPLAY_BACKEND": ("backend", "type"),
    "SHELFPLAY_DEVICE": ("backend", "local", "device"),
    "SHELFPLAY_BUFFER_SIZE": ("backend", "local", "buffer_size"),
    "SHELFPLAY_HTTP_PORT": ("server", "http_port"),
    "SHELFPLAY_BIND": ("server", "bind_address"),
    "SHELFPLAY_LOG_LEVEL": ("logging", "level"),
}

_INT_ENV_VARS = {"SHELFPLAY_HTTP_PORT", "SHELFPLAY_BUFFER_SIZE"}
_FLOAT_ENV_VARS = {"SHELFPLAY_ELAPSED_WRITE_INTERVAL"}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class LibraryConfig:
    """Music library configuration."""

    root: str = ""  # Empty means reuse the remembered folder
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


@dataclass
class SessionConfig:
    """Session persistence configuration."""

    state_dir: str = DEFAULT_STATE_DIR
    elapsed_write_interval: float = 5.0

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()


@dataclass
class LocalBackendConfig:
    """Local audio output configuration."""

    device: str = "default"  # "default", index, or name
    buffer_size: int = 2048  # PortAudio block size in frames


@dataclass
class BackendConfig:
    """Audio backend configuration."""

    type: str = "local"
    local: LocalBackendConfig = field(default_factory=LocalBackendConfig)


@dataclass
class PlaybackConfig:
    """Playback configuration."""

    rates: list[float] = field(default_factory=lambda: list(DEFAULT_PLAYBACK_RATES))


@dataclass
class ServerConfig:
    """Control server configuration."""

    http_port: int = 8690
    bind_address: str = "127.0.0.1"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class Config:
    """Complete shelfplay configuration."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_port(port: int) -> bool:
    """Validate port number."""
    return isinstance(port, int) and 1 <= port <= 65535


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    # Library
    if not config.library.extensions:
        errors.append("At least one audio file extension is required")
    for ext in config.library.extensions:
        if not isinstance(ext, str) or not ext.startswith(".") or len(ext) < 2:
            errors.append(f"Invalid file extension: {ext!r} (expected e.g. '.mp3')")

    # Session
    interval = config.session.elapsed_write_interval
    if not isinstance(interval, (int, float)) or interval < 0:
        errors.append(f"Invalid elapsed_write_interval: {interval}")

    # Backend
    if config.backend.type not in VALID_BACKENDS:
        errors.append(
            f"Invalid backend type: {config.backend.type}. "
            f"Valid values: {sorted(VALID_BACKENDS)}"
        )
    if not isinstance(config.backend.local.buffer_size, int) or config.backend.local.buffer_size <= 0:
        errors.append(f"Invalid buffer_size: {config.backend.local.buffer_size}")

    # Playback
    rates = config.playback.rates
    if not rates:
        errors.append("At least one playback rate is required")
    elif any(isinstance(r, bool) or not isinstance(r, (int, float)) or r <= 0 for r in rates):
        errors.append(f"Playback rates must be positive numbers: {rates}")

    # Server
    if not validate_port(config.server.http_port):
        errors.append(f"Invalid HTTP port: {config.server.http_port}")

    # Logging
    if config.logging.level.lower() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log level: {config.logging.level}. "
            f"Valid values: {sorted(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


def load_yaml_config(path: Path) -> dict:
    """
    Load configuration from YAML file.

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def load_env_config() -> dict:
    """Load configuration from SHELFPLAY_* environment variables."""
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None:
            continue
        if env_var in _INT_ENV_VARS:
            try:
                value = int(value)
            except ValueError:
                logger.warning(f"Invalid integer for {env_var}: {value}")
                continue
        elif env_var in _FLOAT_ENV_VARS:
            try:
                value = float(value)
            except ValueError:
                logger.warning(f"Invalid number for {env_var}: {value}")
                continue
        _set_nested(result, path, value)

    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def merge_configs(*configs: dict) -> dict:
    """
    Deep merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result: dict = {}
    for config in configs:
        _deep_merge(result, config)
    return result


def _normalize_extension(ext: Any) -> Any:
    if not isinstance(ext, str):
        return ext
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def dict_to_config(d: dict) -> Config:
    """Convert a dictionary to Config dataclass."""
    config = Config()

    # Library
    if "library" in d:
        lib = d["library"] or {}
        root = lib.get("root", config.library.root)
        config.library.root = str(root) if root else ""
        if "extensions" in lib:
            config.library.extensions = [_normalize_extension(e) for e in lib["extensions"] or []]

    # Session
    if "session" in d:
        s = d["session"] or {}
        config.session.state_dir = str(s.get("state_dir", config.session.state_dir))
        config.session.elapsed_write_interval = s.get(
            "elapsed_write_interval", config.session.elapsed_write_interval
        )

    # Backend
    if "backend" in d:
        b = d["backend"] or {}
        config.backend.type = b.get("type", config.backend.type)
        if "local" in b:
            local = b["local"] or {}
            config.backend.local.device = str(local.get("device", config.backend.local.device))
            config.backend.local.buffer_size = local.get(
                "buffer_size", config.backend.local.buffer_size
            )

    # Playback
    if "playback" in d:
        p = d["playback"] or {}
        if "rates" in p:
            config.playback.rates = list(p["rates"] or [])

    # Server
    if "server" in d:
        s = d["server"] or {}
        config.server.http_port = s.get("http_port", config.server.http_port)
        config.server.bind_address = s.get("bind_address", config.server.bind_address)

    # Logging
    if "logging" in d:
        config.logging.level = (d["logging"] or {}).get("level", config.logging.level)

    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load configuration from all sources.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    if config_path:
        file_config = load_yaml_config(config_path)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_path}")

    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}
    config = dict_to_config(merged)
    validate_config(config)
    return config
