"""Reading creation time, size and dimensions from media files."""

from __future__ import annotations

import hashlib
import logging
import os
from datetime import datetime
from functools import partial

from PIL import Image

from .mediatypes import MediaFile, MediaType, determine_media_type

logger = logging.getLogger(__name__)

_EXIF_IFD = 0x8769
_TAG_DATETIME = 0x0132
_TAG_DATETIME_ORIGINAL = 0x9003
_EXIF_TIME_FORMAT = "%Y:%m:%d %H:%M:%S"
_DIMENSION_FORMATS = frozenset({"JPEG", "PNG", "GIF", "TIFF"})
_CHUNK_SIZE = 1 << 16


class UnsupportedFileTypeError(ValueError):
    """Raised for a file whose extension is not a known media type."""


def _parse_exif_time(value) -> datetime | None:
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip("\x00 "), _EXIF_TIME_FORMAT)
    except ValueError:
        return None


def _exif_time(exif: Image.Exif) -> datetime | None:
    candidates = (
        exif.get_ifd(_EXIF_IFD).get(_TAG_DATETIME_ORIGINAL),
        exif.get(_TAG_DATETIME_ORIGINAL),
        exif.get(_TAG_DATETIME),
    )
    for value in candidates:
        if value is not None and (parsed := _parse_exif_time(value)) is not None:
            return parsed
    return None


def _read_image_metadata(path: str, media_file: MediaFile) -> datetime | None:
    """Fill in the larger dimension and return the EXIF time, if any."""
    try:
        with Image.open(path) as img:
            if img.format in _DIMENSION_FORMATS:
                media_file.larger_dimension = max(img.size)
            else:
                logger.debug("Could not decode image dimensions for %s", path)
            return _exif_time(img.getexif())
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        logger.debug("Could not read image data for %s: %s", path, exc)
        return None


def extract_file_metadata(file_path) -> MediaFile:
    """Build a MediaFile for a path, falling back to the modification time."""
    path = os.fspath(file_path)
    with open(path, "rb") as handle:
        info = os.fstat(handle.fileno())

    media_type = determine_media_type(path)
    if media_type is MediaType.UNKNOWN:
        raise UnsupportedFileTypeError(f"unsupported file type: {path}")

    media_file = MediaFile(
        source_path=path,
        media_type=media_type,
        file_size=info.st_size,
        original_name=os.path.basename(path),
    )

    creation_time = None
    if media_type is MediaType.IMAGE:
        creation_time = _read_image_metadata(path, media_file)

    if creation_time is None:
        logger.debug("Could not extract time from metadata for %s. Using file info time.", path)
        creation_time = datetime.fromtimestamp(info.st_mtime)

    media_file.creation_time = creation_time
    return media_file


def compute_file_hash(file_path) -> str:
    """Return the SHA-256 hex digest of a file's contents."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as handle:
        for chunk in iter(partial(handle.read, _CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()