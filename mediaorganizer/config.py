"""Command-line and config-file settings for the organizer."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml

_LOGGER_NAME = "mediaorganizer"
logger = logging.getLogger(__name__)

_DEFAULT_DEST_DIRS = {
    "image": "./output/images",
    "video": "./output/videos",
    "audio": "./output/audio",
}
_DEFAULT_DUPLICATES_DIR = "duplicates"
_DEFAULT_JOBS = 4
_DB_FILENAME = ".mediaorganizer.db"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

_installed_handlers: list[logging.Handler] = []


class OrganizationScheme(str, Enum):
    """How files are laid out under their destination."""

    EXTENSION_FIRST = "extension_first"
    DATE_FIRST = "date_first"

    def __str__(self) -> str:
        return self.value


class ConfigError(Exception):
    """Raised when the configuration is missing, unreadable or invalid."""


def is_valid_scheme(scheme: str) -> bool:
    """True if the string names an organization scheme exactly."""
    return any(scheme == valid.value for valid in OrganizationScheme)


@dataclass
class Config:
    """Settings for one organizer run."""

    source_dir: str = ""
    destination: str = ""
    dest_dirs: dict[str, str] = field(default_factory=lambda: dict(_DEFAULT_DEST_DIRS))
    extension_dirs: dict[str, str] = field(default_factory=dict)
    organization_scheme: OrganizationScheme = OrganizationScheme.EXTENSION_FIRST
    space_replacement: str = ""
    no_original_name: bool = False
    duplicates_dir: str = _DEFAULT_DUPLICATES_DIR
    dry_run: bool = False
    verbose: bool = False
    log_file: str = ""
    concurrent_jobs: int = _DEFAULT_JOBS
    copy_files: bool = False
    delete_empty_dirs: bool = False
    db_path: str = ""
    fresh: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the organizer; unset options come back as None."""
    parser = argparse.ArgumentParser(
        prog="mediaorganizer",
        description="Organize photos, videos and audio files by date.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-s", "--source", help="Source directory to scan for media files")
    parser.add_argument(
        "--dest", help="Unified destination directory (used with date_first scheme)"
    )
    parser.add_argument(
        "--image-dest",
        help=f"Destination directory for images (default {_DEFAULT_DEST_DIRS['image']})",
    )
    parser.add_argument(
        "--video-dest",
        help=f"Destination directory for videos (default {_DEFAULT_DEST_DIRS['video']})",
    )
    parser.add_argument(
        "--audio-dest",
        help=f"Destination directory for audio files (default {_DEFAULT_DEST_DIRS['audio']})",
    )
    parser.add_argument(
        "-d", "--dry-run", action="store_true", default=None,
        help="Simulate the organization process without moving files",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=None,
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-c", "--copy", action="store_true", default=None,
        help="Copy files instead of moving them",
    )
    parser.add_argument(
        "--delete-empty-dirs", action="store_true", default=None,
        help="Delete empty folders in source directory after moving files",
    )
    parser.add_argument("-l", "--log-file", help="Log file path")
    parser.add_argument(
        "-j", "--jobs", type=int,
        help=f"Number of concurrent processing jobs (default {_DEFAULT_JOBS})",
    )
    parser.add_argument(
        "--scheme",
        help=(
            "Organization scheme (default extension_first):\n"
            "  extension_first: <type-dest>/<ext>/YYYY/YYYY-MM/YYYY-MM-DD/file "
            "(uses --image-dest, --video-dest, --audio-dest)\n"
            "  date_first:      <dest>/YYYY/YYYY-MM/YYYY-MM-DD/<ext>/file "
            "(uses --dest for all media types)"
        ),
    )
    parser.add_argument(
        "--space-replace", nargs="?", const="_",
        help="Replace spaces in filenames (default: _ when flag is used)",
    )
    parser.add_argument(
        "--no-original-name", action="store_true", default=None,
        help="Discard original filename, use only timestamp and dimension",
    )
    parser.add_argument(
        "--duplicates-dir",
        help=f"Directory name or path for duplicate files (default {_DEFAULT_DUPLICATES_DIR})",
    )
    parser.add_argument(
        "--db",
        help=f"Path to SQLite journal database (default: <source>/{_DB_FILENAME})",
    )
    parser.add_argument(
        "--fresh", action="store_true", default=None,
        help="Force a fresh start, ignore existing database",
    )
    parser.add_argument("--config", help="Path to configuration file (YAML/JSON)")
    return parser


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "t", "true"):
            return True
        if text in ("0", "f", "false", ""):
            return False
    raise ConfigError(f"error unmarshaling config: cannot parse {key!r} as a boolean")


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text, 0)
        except ValueError:
            pass
    raise ConfigError(f"error unmarshaling config: cannot parse {key!r} as an integer")


def _as_str(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ConfigError(f"error unmarshaling config: {key!r} must be a string")
    return str(value)


def _as_map(key: str, value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"error unmarshaling config: {key!r} must be a mapping")
    return {str(k).lower(): _as_str(f"{key}.{k}", v) for k, v in value.items()}


_STR_KEYS = {
    "source": "source_dir",
    "destination": "destination",
    "space_replacement": "space_replacement",
    "duplicates_dir": "duplicates_dir",
    "log_file": "log_file",
    "db_path": "db_path",
}
_BOOL_KEYS = {
    "no_original_name": "no_original_name",
    "dry_run": "dry_run",
    "verbose": "verbose",
    "copy_files": "copy_files",
    "delete_empty_dirs": "delete_empty_dirs",
    "fresh": "fresh",
}
_MAP_KEYS = {
    "destinations": "dest_dirs",
    "extension_destinations": "extension_dirs",
}


def _read_config_file(path: str) -> dict[str, Any]:
    kind = os.path.splitext(path)[1].lower().lstrip(".")
    if kind not in ("yaml", "yml", "json"):
        raise ConfigError(f"error reading config file: unsupported config type {kind!r}")
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigError(f"error reading config file: {exc}") from exc
    try:
        data = json.loads(text) if kind == "json" else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"error reading config file: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("error reading config file: top level must be a mapping")
    return {str(key).lower(): value for key, value in data.items()}


def _apply_file(config: Config, data: dict[str, Any]) -> str | None:
    """Copy file settings onto config; return the scheme if the file sets one."""
    for key, attr in _STR_KEYS.items():
        if key in data:
            setattr(config, attr, _as_str(key, data[key]))
    for key, attr in _BOOL_KEYS.items():
        if key in data:
            setattr(config, attr, _as_bool(key, data[key]))
    for key, attr in _MAP_KEYS.items():
        if key in data:
            getattr(config, attr).update(_as_map(key, data[key]))
    if "concurrent_jobs" in data:
        config.concurrent_jobs = _as_int("concurrent_jobs", data["concurrent_jobs"])
    if "organization_scheme" in data:
        return _as_str("organization_scheme", data["organization_scheme"])
    return None


def load_config(argv: list[str] | None = None) -> Config:
    """Build the configuration from defaults, a config file and flags.

    Flags given on the command line take precedence over the config file.
    Raises ConfigError when the result is invalid.
    """
    args = build_parser().parse_args(argv)

    config = Config()
    scheme = OrganizationScheme.EXTENSION_FIRST.value
    config.space_replacement = args.space_replace or ""
    config.no_original_name = bool(args.no_original_name)

    if args.config:
        file_scheme = _apply_file(config, _read_config_file(args.config))
        if file_scheme is not None:
            scheme = file_scheme
        logger.debug("Loaded configuration from file: %s", args.config)

    if args.source is not None:
        config.source_dir = args.source
    if args.dest is not None:
        config.destination = args.dest
    for media_kind, value in (
        ("image", args.image_dest),
        ("video", args.video_dest),
        ("audio", args.audio_dest),
    ):
        if value is not None:
            config.dest_dirs[media_kind] = value
    if args.dry_run is not None:
        config.dry_run = args.dry_run
    if args.verbose is not None:
        config.verbose = args.verbose
    if args.copy is not None:
        config.copy_files = args.copy
    if args.delete_empty_dirs is not None:
        config.delete_empty_dirs = args.delete_empty_dirs
    if args.log_file is not None:
        config.log_file = args.log_file
    if args.jobs is not None:
        config.concurrent_jobs = args.jobs
    if args.scheme is not None:
        scheme = args.scheme
    if args.duplicates_dir is not None:
        config.duplicates_dir = args.duplicates_dir
    if args.db is not None:
        config.db_path = args.db
    if args.fresh is not None:
        config.fresh = args.fresh

    if not config.source_dir:
        raise ConfigError("source directory is required")
    if not is_valid_scheme(scheme):
        raise ConfigError(
            f"invalid organization scheme: {scheme} (valid: extension_first, date_first)"
        )
    config.organization_scheme = OrganizationScheme(scheme)

    config.source_dir = os.path.abspath(config.source_dir)
    if config.db_path:
        config.db_path = os.path.abspath(config.db_path)
    else:
        config.db_path = os.path.join(config.source_dir, _DB_FILENAME)

    if config.destination:
        config.destination = os.path.abspath(config.destination)
        logger.debug("Final unified destination path: %s", config.destination)

    for media_kind, dest_dir in config.dest_dirs.items():
        config.dest_dirs[media_kind] = os.path.abspath(dest_dir)
        logger.debug("Final destination path for %s: %s", media_kind, config.dest_dirs[media_kind])

    setup_logging(config)
    return config


def setup_logging(config: Config) -> logging.Logger:
    """Set the log level and send output to stderr and, if set, a log file."""
    package_logger = logging.getLogger(_LOGGER_NAME)
    package_logger.setLevel(logging.DEBUG if config.verbose else logging.INFO)

    while _installed_handlers:
        handler = _installed_handlers.pop()
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    package_logger.addHandler(console)
    _installed_handlers.append(console)

    if config.log_file:
        try:
            file_handler = logging.FileHandler(config.log_file, mode="a", encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to log to file: %s", exc)
        else:
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
            _installed_handlers.append(file_handler)
            logger.info("Logging to file: %s", config.log_file)

    return package_logger