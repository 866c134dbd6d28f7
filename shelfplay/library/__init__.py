"""Music library scanning and track records."""

from .metadata import MetadataExtractor
from .store import DEFAULT_EXTENSIONS, LibraryStore, matches
from .types import (
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    LibraryError,
    LibraryPermissionError,
    Track,
    TrackNotFoundError,
    TrackTags,
)

__all__ = [
    "DEFAULT_EXTENSIONS",
    "LibraryError",
    "LibraryPermissionError",
    "LibraryStore",
    "MetadataExtractor",
    "Track",
    "TrackNotFoundError",
    "TrackTags",
    "UNKNOWN_ALBUM",
    "UNKNOWN_ARTIST",
    "matches",
]
