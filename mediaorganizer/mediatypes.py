"""Media kinds, recognised extensions and destination naming rules."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

DATE_FIRST = "date_first"


class MediaType(str, Enum):
    """Broad kind of a media file."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


_IMAGE_EXTENSIONS = frozenset(
    {
        ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff", ".tif",
        ".nef", ".arw", ".cr2", ".cr3", ".dng", ".heic", ".raf",
    }
)
_VIDEO_EXTENSIONS = frozenset(
    {
        ".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv", ".webm", ".m4v",
        ".mpeg", ".mpg", ".3gp", ".asf", ".m2v", ".vob", ".m2t", ".mts",
    }
)
_AUDIO_EXTENSIONS = frozenset(
    {".mp3", ".wav", ".aac", ".ogg", ".flac", ".m4a", ".wma", ".amr"}
)


def _suffix(path: str) -> str:
    """Return the text from the last dot of the final path element, or ''."""
    name = path.rsplit(os.sep, 1)[-1]
    if os.altsep:
        name = name.rsplit(os.altsep, 1)[-1]
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _join(*parts: str) -> str:
    kept = [part for part in parts if part]
    return os.path.normpath(os.path.join(*kept)) if kept else ""


def _timestamp(moment: datetime) -> str:
    return (
        f"{moment.year:04d}{moment.month:02d}{moment.day:02d}-"
        f"{moment.hour:02d}{moment.minute:02d}{moment.second:02d}"
    )


def determine_media_type(file_path: str) -> MediaType:
    """Classify a path by its (case-insensitive) extension."""
    ext = _suffix(os.fspath(file_path)).lower()
    if ext in _IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if ext in _VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    if ext in _AUDIO_EXTENSIONS:
        return MediaType.AUDIO
    return MediaType.UNKNOWN


@dataclass
class MediaFile:
    """A media file found in the source tree, with what is known about it."""

    source_path: str
    media_type: MediaType = MediaType.UNKNOWN
    creation_time: datetime = datetime(1, 1, 1)
    larger_dimension: int = 0
    file_size: int = 0
    hash: str = ""
    original_name: str = ""

    def extension(self) -> str:
        """Lower-case extension of the source path, without the dot."""
        return _suffix(self.source_path).lower().removeprefix(".")

    def destination_dir(
        self,
        base_dir: str,
        extension_dir: str,
        is_duplicate: bool,
        scheme: str,
        duplicates_dir: str,
    ) -> str:
        """Directory the file belongs in under the given scheme."""
        moment = self.creation_time
        year = f"{moment.year:04d}"
        month = f"{moment.month:02d}"
        day = f"{moment.day:02d}"
        date_dirs = (year, f"{year}-{month}", f"{year}-{month}-{day}")
        ext = self.extension()
        absolute_duplicates = is_duplicate and os.path.isabs(duplicates_dir)

        if extension_dir:
            if absolute_duplicates:
                return _join(duplicates_dir, *date_dirs)
            if is_duplicate:
                return _join(extension_dir, duplicates_dir, *date_dirs)
            return _join(extension_dir, *date_dirs)

        if scheme == DATE_FIRST:
            if absolute_duplicates:
                return _join(duplicates_dir, *date_dirs, ext)
            if is_duplicate:
                return _join(base_dir, duplicates_dir, *date_dirs, ext)
            return _join(base_dir, *date_dirs, ext)

        if absolute_duplicates:
            return _join(duplicates_dir, ext, *date_dirs)
        if is_duplicate:
            return _join(base_dir, ext, duplicates_dir, *date_dirs)
        return _join(base_dir, ext, *date_dirs)

    def new_filename(
        self, scheme: str, space_replacement: str, no_original_name: bool
    ) -> str:
        """File name built from the timestamp, dimension and original name."""
        ext = _suffix(self.source_path).lower()
        timestamp = _timestamp(self.creation_time)

        stem = ""
        if not no_original_name:
            stem = self.original_name
            while suffix := _suffix(stem):
                stem = stem[: -len(suffix)]
            if space_replacement and space_replacement != " ":
                stem = stem.replace(" ", space_replacement)

        keep_name = bool(stem) and not stem.startswith(timestamp)

        if scheme == DATE_FIRST:
            dimension = ""
            if self.larger_dimension > 0 and self.media_type is MediaType.IMAGE:
                dimension = f"_{self.larger_dimension}"
            name_part = f"_{stem}" if keep_name else ""
            return f"{timestamp}{dimension}{name_part}{ext}"

        dimension = f"_{self.larger_dimension}" if self.larger_dimension > 0 else ""
        name_part = f" ({stem})" if keep_name else ""
        return f"{timestamp}{dimension}{name_part}{ext}"