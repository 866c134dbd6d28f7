"""
shelfplay - Offline music library player.

Plays a local music folder with shuffle, repeat, speed and sleep timer, and
resumes exactly where it left off.
"""

__version__ = "0.1.0"

from .app import ShelfPlay
from .config import Config, ConfigError, load_config

__all__ = [
    "__version__",
    "ShelfPlay",
    "Config",
    "load_config",
    "ConfigError",
]
