"""Command-line entry point for the media organizer."""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import sqlite3
import sys
import threading
import time
from collections.abc import Iterator

from .config import Config, ConfigError, OrganizationScheme, load_config
from .journal import Journal
from .scanner import MediaScanner, ScanResult

logger = logging.getLogger(__name__)

_PROGRESS_INTERVAL = 5.0


def _remove_journal_files(db_path: str) -> None:
    """Delete the journal database and its WAL/SHM companions if present."""
    if not os.path.exists(db_path):
        return
    logger.info("Fresh start: removing existing database %s", db_path)
    os.remove(db_path)
    for suffix in ("-wal", "-shm"):
        with contextlib.suppress(OSError):
            os.remove(db_path + suffix)


@contextlib.contextmanager
def _shutdown_on_signal(journal: Journal, db_path: str) -> Iterator[None]:
    """Close the journal and exit with status 1 on SIGINT or SIGTERM."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handle(signum, _frame) -> None:
        logger.info("Received signal %s, shutting down gracefully...", signal.Signals(signum).name)
        logger.info("Journal database saved at: %s", db_path)
        logger.info("Re-run the same command to resume from where it left off.")
        journal.close()
        raise SystemExit(1)

    signals = [signal.SIGINT]
    if hasattr(signal, "SIGTERM"):
        signals.append(signal.SIGTERM)
    previous = {sig: signal.signal(sig, handle) for sig in signals}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


@contextlib.contextmanager
def _progress_printer(scanner: MediaScanner) -> Iterator[None]:
    """Print scanner progress every few seconds while the block runs."""
    done = threading.Event()

    def report() -> None:
        while not done.wait(_PROGRESS_INTERVAL):
            print(
                f"Scanned: {scanner.processed_count()}/{scanner.total_files()} | "
                f"Organized: {scanner.organized_count()}",
                flush=True,
            )

    thread = threading.Thread(target=report, daemon=True)
    thread.start()
    try:
        yield
    finally:
        done.set()
        thread.join()


def _log_settings(config: Config) -> None:
    logger.debug("Source directory: %s", config.source_dir)
    for media_kind, dest_dir in config.dest_dirs.items():
        logger.debug("Destination for %s: %s", media_kind, dest_dir)
    logger.debug("Dry run: %s", config.dry_run)
    logger.debug("Copy files: %s", config.copy_files)
    logger.debug("Delete empty dirs: %s", config.delete_empty_dirs)
    logger.debug("Verbose: %s", config.verbose)
    logger.debug("Log file: %s", config.log_file)
    logger.debug("Concurrent jobs: %d", config.concurrent_jobs)
    logger.debug("Organization scheme: %s", config.organization_scheme)
    logger.debug("Database path: %s", config.db_path)


def _log_plan(config: Config) -> None:
    logger.info("Media Organizer")
    logger.info("Source directory: %s", config.source_dir)
    logger.info("Organization scheme: %s", config.organization_scheme)
    if config.organization_scheme is OrganizationScheme.DATE_FIRST and config.destination:
        logger.info("Destination: %s", config.destination)
    else:
        for media_kind, dest_dir in config.dest_dirs.items():
            logger.info("Destination for %s: %s", media_kind, dest_dir)
    for extension, dest_dir in config.extension_dirs.items():
        logger.info("Destination for extension .%s: %s", extension, dest_dir)

    if config.dry_run:
        logger.info("Running in DRY-RUN mode (no files will be moved/copied)")
    elif config.copy_files:
        logger.info("COPY MODE ENABLED (files will be copied instead of moved)")
    else:
        logger.info("MOVE MODE ENABLED (files will be moved from source to destination)")
        if config.delete_empty_dirs:
            logger.info(
                "DELETE EMPTY DIRS ENABLED (empty folders will be removed after moving files)"
            )


def _log_result(result: ScanResult, config: Config, elapsed: float) -> None:
    logger.info("Scan completed in %.3fs", elapsed)
    logger.info("Total files: %d", result.total_files)
    logger.info("Processed files: %d", result.processed_files)
    logger.info("Organized files: %d", result.organized_files)
    logger.info("Skipped files: %d", result.skipped_files)
    logger.info("Errors: %d", result.error_count)
    logger.info("Duplicates: %d", result.duplicate_count)
    logger.info("Journal database: %s", config.db_path)
    logger.info("Program completed successfully")


def main(argv=None) -> int:
    """Run the organizer; return the process exit status."""
    logging.getLogger("mediaorganizer").setLevel(logging.DEBUG)

    try:
        config = load_config(argv)
    except ConfigError as exc:
        logger.critical("Error loading configuration: %s", exc)
        return 1

    _log_settings(config)

    if not os.path.exists(config.source_dir):
        logger.critical("Source directory does not exist: %s", config.source_dir)
        return 1

    if config.fresh:
        try:
            _remove_journal_files(config.db_path)
        except OSError as exc:
            logger.critical("Failed to remove database: %s", exc)
            return 1

    resume_mode = not config.fresh and os.path.exists(config.db_path)
    if resume_mode:
        logger.info("Existing database found, resuming from previous run")

    try:
        journal = Journal(config.db_path)
    except sqlite3.Error as exc:
        logger.critical("Failed to initialize journal database: %s", exc)
        return 1

    with journal, _shutdown_on_signal(journal, config.db_path):
        _log_plan(config)
        logger.debug("Duplicates directory: %s", config.duplicates_dir)
        scanner = MediaScanner(
            config.source_dir,
            config.destination,
            config.dest_dirs,
            config.extension_dirs,
            str(config.organization_scheme),
            config.space_replacement,
            config.no_original_name,
            config.duplicates_dir,
            config.dry_run,
            config.copy_files,
            config.concurrent_jobs,
            config.delete_empty_dirs,
            journal,
            resume_mode,
        )

        logger.info("Starting scan with %d concurrent workers...", config.concurrent_jobs)
        started = time.monotonic()
        with _progress_printer(scanner):
            result = scanner.scan()
        _log_result(result, config, time.monotonic() - started)

    if config.log_file:
        print(f"Log file written to: {config.log_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())