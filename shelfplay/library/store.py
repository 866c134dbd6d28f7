"""
Library store.

Owns the ordered list of Track records for one library folder.
Indices 0..N-1 are the canonical order; they change only on scan and removal.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from .metadata import MetadataExtractor
from .types import (
    LibraryError,
    LibraryPermissionError,
    Track,
    TrackNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = frozenset({".mp3", ".flac", ".ogg", ".opus", ".m4a", ".wav", ".aac"})


def matches(track: Track, text: str) -> bool:
    """Case-insensitive substring match on name, artist or album."""
    needle = text.lower()
    return (
        needle in track.name.lower()
        or needle in track.artist.lower()
        or needle in track.album.lower()
    )


class LibraryStore:
    """
    Ordered collection of tracks found under a root folder.

    Usage:
        store = LibraryStore(Path("~/Music").expanduser())
        tracks = store.scan()
    """

    def __init__(
        self,
        root: Path,
        extractor: Optional[MetadataExtractor] = None,
        extensions: Optional[Iterable[str]] = None,
    ):
        self.root = root
        self._extractor = extractor or MetadataExtractor()
        self._extensions = (
            frozenset(e.lower() for e in extensions) if extensions else DEFAULT_EXTENSIONS
        )
        self._tracks: list[Track] = []

    # =========================================================================
    # Loading
    # =========================================================================

    def scan(self) -> list[Track]:
        """
        Scan the root folder recursively and rebuild the track list.

        Returns:
            Tracks ordered by relative path

        Raises:
            FileNotFoundError: If the root folder does not exist
            LibraryPermissionError: If the root folder cannot be read
        """
        if not self.root.is_dir():
            raise FileNotFoundError(f"Library folder not found: {self.root}")

        try:
            files = sorted(
                p
                for p in self.root.rglob("*")
                if p.is_file() and p.suffix.lower() in self._extensions
            )
        except PermissionError as e:
            raise LibraryPermissionError(f"Cannot read library folder {self.root}: {e}") from e

        tracks: list[Track] = []
        for file_path in files:
            try:
                tags = self._extractor.extract(file_path)
                tracks.append(Track.from_file(file_path, self.root, tags))
            except OSError as e:
                logger.warning(f"Skipping unreadable file {file_path}: {e}")

        self._tracks = tracks
        logger.info(f"Scanned {len(tracks)} tracks under {self.root}")
        return list(tracks)

    # =========================================================================
    # Access
    # =========================================================================

    def list_tracks(self) -> list[Track]:
        """Return the current track list (copy)."""
        return list(self._tracks)

    def get(self, index: int) -> Optional[Track]:
        """Return the track at a library index, or None if out of range."""
        if 0 <= index < len(self._tracks):
            return self._tracks[index]
        return None

    def index_of(self, track_id: str) -> Optional[int]:
        """Return the library index of a track id, or None."""
        for i, track in enumerate(self._tracks):
            if track.id == track_id:
                return i
        return None

    def __len__(self) -> int:
        return len(self._tracks)

    # =========================================================================
    # Mutation
    # =========================================================================

    def remove_track(self, track_id: str) -> int:
        """
        Delete a track's file from disk, then drop its record.

        The record list is only changed after the file is gone.

        Args:
            track_id: Track to delete

        Returns:
            The library index the track occupied before removal

        Raises:
            TrackNotFoundError: If no track has this id
            LibraryPermissionError: If the file system refused the deletion
            LibraryError: For any other I/O failure
        """
        index = self.index_of(track_id)
        if index is None:
            raise TrackNotFoundError(f"Track not in library: {track_id}")

        track = self._tracks[index]
        try:
            track.source.unlink()
        except FileNotFoundError:
            # Already gone outside the app; treat as deleted
            logger.warning(f"File already missing, dropping record: {track.source}")
        except PermissionError as e:
            raise LibraryPermissionError(f"Permission denied deleting '{track.name}': {e}") from e
        except OSError as e:
            raise LibraryError(f"Failed to delete '{track.name}': {e}") from e

        del self._tracks[index]
        logger.info(f"Deleted track {track_id} ({track.name}) at index {index}")
        return index
