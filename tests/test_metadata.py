import hashlib
import os
from datetime import datetime

import pytest
from PIL import Image

from mediaorganizer.mediatypes import MediaType
from mediaorganizer.metadata import (
    UnsupportedFileTypeError,
    compute_file_hash,
    extract_file_metadata,
)

FIXED_MTIME = 1_600_000_000


def _set_mtime(path):
    os.utime(path, (FIXED_MTIME, FIXED_MTIME))


def test_png_dimensions_and_mtime_fallback(tmp_path):
    path = tmp_path / "picture.png"
    Image.new("RGB", (30, 20)).save(path)
    _set_mtime(path)

    media = extract_file_metadata(path)

    assert media.media_type is MediaType.IMAGE
    assert media.larger_dimension == 30
    assert media.file_size == os.path.getsize(path)
    assert media.original_name == "picture.png"
    assert media.creation_time == datetime.fromtimestamp(FIXED_MTIME)


def test_portrait_image_uses_height(tmp_path):
    path = tmp_path / "tall.gif"
    Image.new("L", (12, 45)).save(path)
    assert extract_file_metadata(path).larger_dimension == 45


def test_jpeg_exif_datetime_is_used(tmp_path):
    path = tmp_path / "shot.jpg"
    exif = Image.Exif()
    exif[0x0132] = "2021:05:06 07:08:09"
    Image.new("RGB", (40, 25)).save(path, exif=exif.tobytes())
    _set_mtime(path)

    media = extract_file_metadata(path)

    assert media.creation_time == datetime(2021, 5, 6, 7, 8, 9)
    assert media.larger_dimension == 40


def test_malformed_exif_time_falls_back_to_mtime(tmp_path):
    path = tmp_path / "bad.jpg"
    exif = Image.Exif()
    exif[0x0132] = "not a date"
    Image.new("RGB", (8, 8)).save(path, exif=exif.tobytes())
    _set_mtime(path)

    assert extract_file_metadata(path).creation_time == datetime.fromtimestamp(FIXED_MTIME)


def test_undecodable_image_keeps_zero_dimension(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"definitely not a jpeg")
    _set_mtime(path)

    media = extract_file_metadata(path)

    assert media.larger_dimension == 0
    assert media.creation_time == datetime.fromtimestamp(FIXED_MTIME)


def test_video_uses_modification_time(tmp_path):
    path = tmp_path / "clip.MP4"
    path.write_bytes(b"\x00" * 64)
    _set_mtime(path)

    media = extract_file_metadata(path)

    assert media.media_type is MediaType.VIDEO
    assert media.file_size == 64
    assert media.larger_dimension == 0
    assert media.creation_time == datetime.fromtimestamp(FIXED_MTIME)


def test_unsupported_extension_raises(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello")
    with pytest.raises(UnsupportedFileTypeError):
        extract_file_metadata(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        extract_file_metadata(tmp_path / "absent.jpg")


def test_hash_of_empty_file(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    assert compute_file_hash(path) == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_hash_of_abc(tmp_path):
    path = tmp_path / "abc.bin"
    path.write_bytes(b"abc")
    assert compute_file_hash(path) == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_hash_of_large_file_matches_sha256(tmp_path):
    data = bytes(range(256)) * 1000
    path = tmp_path / "large.bin"
    path.write_bytes(data)
    assert compute_file_hash(path) == hashlib.sha256(data).hexdigest()


def test_identical_contents_give_identical_hashes(tmp_path):
    first = tmp_path / "a.jpg"
    second = tmp_path / "b.jpg"
    third = tmp_path / "c.jpg"
    first.write_bytes(b"same bytes")
    second.write_bytes(b"same bytes")
    third.write_bytes(b"other bytes")

    assert compute_file_hash(first) == compute_file_hash(second)
    assert compute_file_hash(first) != compute_file_hash(third)


def test_hash_of_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        compute_file_hash(tmp_path / "absent.bin")