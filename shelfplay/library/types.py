"""
Library data types.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"


class LibraryError(Exception):
    """Library operation failed."""

    pass


class TrackNotFoundError(LibraryError):
    """Requested track is not in the library."""

    pass


class LibraryPermissionError(LibraryError):
    """File system refused access to the library folder or a track file."""

    pass


@dataclass(frozen=True)
class TrackTags:
    """
    Tags read from an audio file.

    Every field is optional; missing values fall back when the Track is built.
    """

    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    duration: float = 0.0
    cover_art: Optional[bytes] = None
    cover_mime: Optional[str] = None


@dataclass(frozen=True)
class Track:
    """
    A playable file in the library.

    Attributes:
        id: Stable identity derived from relative path and modification time
        name: Display title
        artist: Display artist
        album: Display album
        duration: Length in seconds (0 if unknown)
        path: Path segments relative to the library root
        source: Absolute path handed to the audio backend
        cover_art: Embedded cover image bytes, if any
        cover_mime: MIME type of cover_art
    """

    id: str
    name: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    duration: float = 0.0
    path: tuple[str, ...] = ()
    source: Path = field(default_factory=Path)
    cover_art: Optional[bytes] = field(default=None, repr=False, compare=False)
    cover_mime: Optional[str] = None

    @staticmethod
    def make_id(path: tuple[str, ...], mtime: float) -> str:
        """Build a track id from the relative path segments and mtime (seconds)."""
        return f"{'/'.join(path)}-{int(mtime * 1000)}"

    @classmethod
    def from_file(cls, file_path: Path, root: Path, tags: TrackTags) -> "Track":
        """Create a Track from a file on disk and its extracted tags."""
        stat = file_path.stat()
        path = file_path.relative_to(root).parts
        return cls(
            id=cls.make_id(path, stat.st_mtime),
            name=tags.title or file_path.stem,
            artist=tags.artist or UNKNOWN_ARTIST,
            album=tags.album or UNKNOWN_ALBUM,
            duration=max(0.0, float(tags.duration or 0.0)),
            path=path,
            source=file_path,
            cover_art=tags.cover_art,
            cover_mime=tags.cover_mime,
        )

    @property
    def has_cover_art(self) -> bool:
        return self.cover_art is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary (cover bytes omitted)."""
        return {
            "id": self.id,
            "name": self.name,
            "artist": self.artist,
            "album": self.album,
            "duration": self.duration,
            "path": list(self.path),
            "has_cover_art": self.has_cover_art,
        }
