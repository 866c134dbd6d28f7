"""
Backend factory.

Builds and connects the audio backend named by `backend.type`.
"""

import logging
from typing import Callable

from shelfplay.config import Config

from .base import AudioBackend
from .local import LocalAudioBackend
from .null import NullAudioBackend

logger = logging.getLogger(__name__)


class BackendNotFoundError(Exception):
    """Raised when requested backend type is not available."""

    pass


def _build_local(config: Config) -> AudioBackend:
    return LocalAudioBackend(
        device=config.backend.local.device,
        buffer_size=config.backend.local.buffer_size,
    )


def _build_null(config: Config) -> AudioBackend:
    return NullAudioBackend()


_BUILDERS: dict[str, Callable[[Config], AudioBackend]] = {
    "local": _build_local,
    "null": _build_null,
}


class BackendFactory:
    """
    Factory for creating audio backend instances.

    Usage:
        backend = await BackendFactory.create_from_config(config)
    """

    @classmethod
    async def create_from_config(cls, config: Config) -> AudioBackend:
        """
        Create and connect the configured backend.

        Raises:
            BackendNotFoundError: If the type is unknown or the device
                cannot be opened
        """
        backend_type = config.backend.type
        builder = _BUILDERS.get(backend_type)
        if builder is None:
            raise BackendNotFoundError(
                f"Backend type '{backend_type}' not available. "
                f"Available types: {cls.available_types()}"
            )

        backend = builder(config)
        logger.debug(f"Connecting {backend_type} backend")
        if not await backend.connect():
            raise BackendNotFoundError(f"Failed to initialize '{backend_type}' backend")
        return backend

    @staticmethod
    def available_types() -> list[str]:
        return sorted(_BUILDERS)
