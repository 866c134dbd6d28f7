"""
Audio tag extraction.

Reads title, artist, album, duration and cover art using mutagen.
Extraction is best effort: any failure yields empty tags, never an exception.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError

from .types import TrackTags

logger = logging.getLogger(__name__)


def _first_text(tags: Any, keys: list[str]) -> Optional[str]:
    """Return the first non-empty text value for any of the given tag keys."""
    if not tags:
        return None
    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError):
            # Vorbis comments raise ValueError for some unknown keys
            continue
        if not value:
            continue
        if isinstance(value, list):
            value = value[0]
        text = str(value).strip()
        if text:
            return text
    return None


class MetadataExtractor:
    """Extracts tags from audio files with mutagen."""

    def extract(self, file_path: Path) -> TrackTags:
        """
        Read tags from an audio file.

        Args:
            file_path: Path to the audio file

        Returns:
            TrackTags; fields are None when the file has no usable value.
        """
        try:
            easy = MutagenFile(file_path, easy=True)
        except (MutagenError, OSError, ValueError) as e:
            logger.warning(f"Could not read tags from {file_path}: {e}")
            return TrackTags()

        if easy is None:
            logger.debug(f"Unrecognised audio format: {file_path}")
            return TrackTags()

        duration = 0.0
        info = getattr(easy, "info", None)
        if info is not None and getattr(info, "length", None):
            duration = float(info.length)

        cover, mime = self._extract_cover(file_path)

        return TrackTags(
            title=_first_text(easy.tags, ["title"]),
            artist=_first_text(easy.tags, ["artist", "albumartist"]),
            album=_first_text(easy.tags, ["album"]),
            duration=duration,
            cover_art=cover,
            cover_mime=mime,
        )

    def _extract_cover(self, file_path: Path) -> tuple[Optional[bytes], Optional[str]]:
        """Read the first embedded picture, if any."""
        try:
            audio = MutagenFile(file_path)
        except (MutagenError, OSError, ValueError) as e:
            logger.debug(f"Could not read cover art from {file_path}: {e}")
            return None, None

        if audio is None:
            return None, None

        # FLAC / Ogg FLAC
        pictures = getattr(audio, "pictures", None)
        if pictures:
            return pictures[0].data, pictures[0].mime

        tags = audio.tags
        if not tags:
            return None, None

        # ID3 (MP3, AIFF, WAV)
        getall = getattr(tags, "getall", None)
        if getall is not None:
            frames = getall("APIC")
            if frames:
                return frames[0].data, frames[0].mime

        # MP4 / M4A
        try:
            covers = tags.get("covr")
        except (KeyError, ValueError):
            covers = None
        if covers:
            cover = covers[0]
            # MP4Cover.FORMAT_PNG == 14
            mime = "image/png" if getattr(cover, "imageformat", None) == 14 else "image/jpeg"
            return bytes(cover), mime

        return None, None
