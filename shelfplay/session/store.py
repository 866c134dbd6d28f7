"""
Snapshot stores.

Key/value storage of opaque text blobs. One blob per key; saving overwrites.
"""

import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_VALID_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


class SnapshotStore(ABC):
    """Abstract single-slot-per-key blob store."""

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        """Write blob under key, replacing any previous value."""
        pass

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the blob stored under key, or None."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the blob stored under key, if any."""
        pass


class MemorySnapshotStore(SnapshotStore):
    """In-process store, used for tests and ephemeral runs."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def save(self, key: str, blob: str) -> None:
        self._blobs[key] = blob

    def load(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class JsonFileSnapshotStore(SnapshotStore):
    """
    Store each key as `<key>.json` in a state directory.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a reader never sees a half-written blob.
    """

    def __init__(self, directory: Path):
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid snapshot key: {key!r}")
        return self._directory / f"{key}.json"

    def save(self, key: str, blob: str) -> None:
        path = self._path(key)
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved snapshot '{key}' to {path}")

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
