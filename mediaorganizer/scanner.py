"""Pipeline that scans a source tree, de-duplicates and files media away."""

from __future__ import annotations

import logging
import os
import queue
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime

from .fileops import copy_file, format_sequence, is_ignored_file, move_file, remove_empty_directories
from .journal import AlreadyExistsError, DestFile, FileRecord, FileStatus, Journal
from .mediatypes import DATE_FIRST, MediaFile, MediaType, determine_media_type
from .metadata import compute_file_hash, extract_file_metadata

logger = logging.getLogger(__name__)

_QUEUE_SIZE = 100
_DONE = object()
_ZERO_TIME = datetime(1, 1, 1)
_RECORD_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ScanResult:
    """Counters describing one scan."""

    total_files: int = 0
    processed_files: int = 0
    skipped_files: int = 0
    organized_files: int = 0
    error_count: int = 0
    duplicate_count: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None


@dataclass(frozen=True)
class _MetadataError:
    path: str
    error: Exception


@dataclass(frozen=True)
class _MoveJob:
    record_id: int
    media_file: MediaFile
    dest_path: str
    is_duplicate: bool


def _raw_extension(path: str) -> str:
    """Extension of the final path element with its dot, case preserved."""
    name = os.path.basename(path)
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _compact_timestamp(moment: datetime) -> str:
    return (
        f"{moment.year:04d}{moment.month:02d}{moment.day:02d}-"
        f"{moment.hour:02d}{moment.minute:02d}{moment.second:02d}"
    )


def _record_time(moment: datetime) -> str:
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )


def _missing(path: str) -> bool:
    """True only when the path is known not to exist."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return True
    except OSError:
        return False
    return False


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root + os.sep)


def record_to_media_file(record: FileRecord) -> MediaFile:
    """Rebuild a MediaFile from a journal record so it can be re-queued."""
    try:
        creation_time = datetime.strptime(record.creation_time, _RECORD_TIME_FORMAT)
    except ValueError:
        creation_time = _ZERO_TIME
    try:
        media_type = MediaType(record.media_type)
    except ValueError:
        media_type = MediaType.UNKNOWN
    return MediaFile(
        source_path=record.source_path,
        media_type=media_type,
        creation_time=creation_time,
        larger_dimension=record.larger_dimension,
        file_size=record.file_size,
        hash=record.hash,
        original_name=record.original_name,
    )


class MediaScanner:
    """Walks a source tree and moves or copies its media into place."""

    def __init__(
        self,
        source_dir,
        destination,
        dest_dirs,
        extension_dirs,
        scheme,
        space_replacement,
        no_original_name,
        duplicates_dir,
        dry_run,
        copy_files,
        concurrency,
        delete_empty_dirs,
        journal: Journal,
        resume_mode,
    ) -> None:
        self.source_dir = os.fspath(source_dir)
        self.destination = os.fspath(destination) if destination else ""
        self.dest_dirs = dict(dest_dirs or {})
        self.extension_dirs = dict(extension_dirs or {})
        self.scheme = str(scheme)
        self.space_replacement = space_replacement or ""
        self.no_original_name = bool(no_original_name)
        self.duplicates_dir = duplicates_dir or ""
        self.dry_run = bool(dry_run)
        self.copy_files = bool(copy_files)
        self.concurrency = concurrency
        self.delete_empty_dirs = bool(delete_empty_dirs)
        self.journal = journal
        self.resume_mode = bool(resume_mode)
        self.result = ScanResult()
        self._workers = max(1, int(concurrency))
        self._lock = threading.Lock()
        self._processed = 0
        self._organized = 0

    # --- progress counters ---

    def processed_count(self) -> int:
        """Files whose metadata has been extracted so far."""
        with self._lock:
            return self._processed

    def organized_count(self) -> int:
        """Files moved, copied or simulated so far."""
        with self._lock:
            return self._organized

    def total_files(self) -> int:
        """Files found to process so far."""
        return self.result.total_files

    def _bump_processed(self) -> None:
        with self._lock:
            self._processed += 1

    def _bump_organized(self) -> None:
        with self._lock:
            self._organized += 1

    # --- main entry point ---

    def scan(self) -> ScanResult:
        """Run the whole pipeline and return the final counters."""
        logger.debug("Scanner started for source directory: %s", self.source_dir)
        for media_kind, dest_dir in self.dest_dirs.items():
            logger.debug("Using destination for %s: %s", media_kind, dest_dir)
        for ext, dest_dir in self.extension_dirs.items():
            logger.debug("Using destination for extension .%s: %s", ext, dest_dir)

        self._pre_index_destinations()
        completed, pending = self._resume_state()

        paths: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        results: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        jobs: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)

        threads = [threading.Thread(target=self._walk_source, args=(completed, paths), daemon=True)]
        threads += [
            threading.Thread(target=self._extract_worker, args=(paths, results), daemon=True)
            for _ in range(self._workers)
        ]
        threads.append(
            threading.Thread(target=self._organize, args=(pending, results, jobs), daemon=True)
        )
        threads += [
            threading.Thread(target=self._move_worker, args=(jobs,), daemon=True)
            for _ in range(self._workers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        if self.delete_empty_dirs and not self.dry_run and not self.copy_files:
            logger.info("Cleaning up empty directories in source...")
            remove_empty_directories(self.source_dir)

        self._journal_call(self.journal.clear_dest_index)
        self._populate_result_from_journal()

        self.result.end_time = datetime.now()
        logger.debug("Scan complete, processed %d files", self.result.processed_files)
        return self.result

    # --- destination naming ---

    def compute_dest_path(self, media_file: MediaFile, is_duplicate: bool, seq_num: int) -> str:
        """Full destination path, or '' when no destination is configured."""
        ext = _raw_extension(media_file.source_path)[1:]

        if self.scheme == DATE_FIRST and self.destination:
            base_dir = self.destination
        else:
            base_dir = self.dest_dirs.get(str(media_file.media_type), "")
            if not base_dir:
                logger.warning(
                    "No destination directory configured for media type: %s",
                    media_file.media_type,
                )
                return ""

        extension_dir = self.extension_dirs.get(ext, "") if ext else ""
        file_dir = media_file.destination_dir(
            base_dir, extension_dir, is_duplicate, self.scheme, self.duplicates_dir
        )
        file_name = media_file.new_filename(
            self.scheme, self.space_replacement, self.no_original_name
        )
        if seq_num > 1:
            suffix = _raw_extension(file_name)
            stem = file_name[: len(file_name) - len(suffix)]
            file_name = f"{stem}_{format_sequence(seq_num)}{suffix}"
        return os.path.join(file_dir, file_name)

    # --- pipeline stages ---

    def _iter_media_files(self, root: str):
        def on_error(exc: OSError) -> None:
            logger.error("Error accessing path %s: %s", exc.filename, exc)

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            dirnames.sort()
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if is_ignored_file(path):
                    continue
                if determine_media_type(path) is MediaType.UNKNOWN:
                    continue
                yield path

    def _walk_source(self, completed: set[str], paths: queue.Queue) -> None:
        try:
            for path in self._iter_media_files(self.source_dir):
                if path in completed:
                    logger.debug("Skipping completed file: %s", path)
                    continue
                self.result.total_files += 1
                paths.put(path)
        finally:
            for _ in range(self._workers):
                paths.put(_DONE)

    def _extract_worker(self, paths: queue.Queue, results: queue.Queue) -> None:
        try:
            while (path := paths.get()) is not _DONE:
                try:
                    results.put(extract_file_metadata(path))
                except (OSError, ValueError) as exc:
                    logger.error("Error extracting metadata for %s: %s", path, exc)
                    results.put(_MetadataError(path, exc))
        finally:
            results.put(_DONE)

    def _organize(self, pending: list[FileRecord], results: queue.Queue, jobs: queue.Queue) -> None:
        try:
            for record in pending:
                self._requeue(record, jobs)

            finished = 0
            while finished < self._workers:
                item = results.get()
                if item is _DONE:
                    finished += 1
                elif isinstance(item, _MetadataError):
                    self.result.error_count += 1
                    self.result.skipped_files += 1
                else:
                    self._register(item, jobs)
        finally:
            for _ in range(self._workers):
                jobs.put(_DONE)

    def _move_worker(self, jobs: queue.Queue) -> None:
        while (job := jobs.get()) is not _DONE:
            self._execute_move_job(job)

    # --- organizer helpers ---

    def _requeue(self, record: FileRecord, jobs: queue.Queue) -> None:
        if _missing(record.source_path):
            if record.dest_path and os.path.exists(record.dest_path):
                logger.info(
                    "Resume: source gone but dest exists, marking completed: %s",
                    record.dest_path,
                )
                self._set_status(record.id, FileStatus.COMPLETED)
                self._bump_organized()
                return
            logger.warning(
                "Resume: source file no longer exists, marking failed: %s", record.source_path
            )
            self._set_status(record.id, FileStatus.FAILED, "source file missing on resume")
            return
        jobs.put(
            _MoveJob(record.id, record_to_media_file(record), record.dest_path, record.is_duplicate)
        )

    def _register(self, media_file: MediaFile, jobs: queue.Queue) -> None:
        self._bump_processed()
        self.result.processed_files += 1

        ts_key = (
            f"{_compact_timestamp(media_file.creation_time)}_"
            f"{media_file.media_type}_{_raw_extension(media_file.source_path)}"
        )
        record = FileRecord(
            source_path=media_file.source_path,
            file_size=media_file.file_size,
            media_type=str(media_file.media_type),
            extension=media_file.extension(),
            creation_time=_record_time(media_file.creation_time),
            larger_dimension=media_file.larger_dimension,
            original_name=media_file.original_name,
            timestamp_key=ts_key,
            status=FileStatus.PENDING,
        )
        try:
            record_id = self.journal.insert_file(record)
        except AlreadyExistsError:
            logger.debug("Skipping already-journaled file: %s", media_file.source_path)
            return
        except sqlite3.Error as exc:
            logger.error("Failed to insert journal record for %s: %s", media_file.source_path, exc)
            self.result.error_count += 1
            return

        file_hash = self._lazy_hash(media_file, record_id)
        is_duplicate = self._is_duplicate(file_hash, record_id, media_file.source_path)

        try:
            ts_count = self.journal.count_by_timestamp_key(ts_key)
        except sqlite3.Error as exc:
            logger.error("CountByTimestampKey error: %s", exc)
            ts_count = 0
        seq_num = ts_count if ts_count > 1 else 0

        dest_path = self.compute_dest_path(media_file, is_duplicate, seq_num)
        self._journal_call(self.journal.update_dest_path, record_id, dest_path, seq_num, is_duplicate)
        jobs.put(_MoveJob(record_id, media_file, dest_path, is_duplicate))

    def _lazy_hash(self, media_file: MediaFile, record_id: int) -> str:
        """Hash the file only when another record shares its size."""
        try:
            size_count = self.journal.count_by_file_size(media_file.file_size)
        except sqlite3.Error as exc:
            logger.error("CountByFileSize error: %s", exc)
            size_count = 0
        if size_count < 2:
            return ""

        file_hash = ""
        try:
            file_hash = compute_file_hash(media_file.source_path)
        except OSError as exc:
            logger.warning("Could not hash %s: %s", media_file.source_path, exc)
        else:
            self._journal_call(self.journal.update_hash, record_id, file_hash)

        try:
            unhashed = self.journal.unhashed_by_file_size(media_file.file_size)
        except sqlite3.Error as exc:
            logger.error("GetUnhashedByFileSize error: %s", exc)
            unhashed = []
        for other in unhashed:
            hash_path = other.source_path
            if _missing(hash_path) and other.dest_path:
                hash_path = other.dest_path
            try:
                other_hash = compute_file_hash(hash_path)
            except OSError as exc:
                logger.warning("Could not backfill hash for %s: %s", other.source_path, exc)
                continue
            self._journal_call(self.journal.update_hash, other.id, other_hash)
        return file_hash

    def _is_duplicate(self, file_hash: str, record_id: int, source_path: str) -> bool:
        if not file_hash:
            return False
        try:
            matches = self.journal.get_by_hash(file_hash)
        except sqlite3.Error as exc:
            logger.error("GetByHash error: %s", exc)
            return False
        if any(match.id != record_id for match in matches):
            logger.debug("Duplicate detected (hash %s): %s", file_hash[:12], source_path)
            return True
        return False

    # --- mover ---

    def _execute_move_job(self, job: _MoveJob) -> None:
        operation = "copy" if self.copy_files else "move"
        source = job.media_file.source_path

        if self.dry_run:
            label = " [DUPLICATE]" if job.is_duplicate else ""
            logger.info("[DRY RUN] Would %s%s: %s -> \n%s", operation, label, source, job.dest_path)
            self._set_status(job.record_id, FileStatus.DRY_RUN)
            self._bump_organized()
            return

        dest_dir = os.path.dirname(job.dest_path)
        if dest_dir:
            try:
                os.makedirs(dest_dir, exist_ok=True)
            except OSError as exc:
                logger.error("Failed to create directory %s: %s", dest_dir, exc)
                self._set_status(job.record_id, FileStatus.FAILED, str(exc))
                return

        try:
            if self.copy_files:
                copy_file(source, job.dest_path)
                logger.info("Copied: %s -> \n%s", source, job.dest_path)
            else:
                move_file(source, job.dest_path)
                logger.info("Moved: %s -> \n%s", source, job.dest_path)
        except OSError as exc:
            logger.error("Failed to %s file %s to %s: %s", operation, source, job.dest_path, exc)
            self._set_status(job.record_id, FileStatus.FAILED, str(exc))
            return

        self._set_status(job.record_id, FileStatus.COMPLETED)
        self._bump_organized()

    # --- journal helpers ---

    def _journal_call(self, method, *args) -> None:
        try:
            method(*args)
        except sqlite3.Error as exc:
            logger.error("Journal update failed: %s", exc)

    def _set_status(self, record_id: int, status: FileStatus, message: str = "") -> None:
        self._journal_call(self.journal.update_status, record_id, status, message)

    def _resume_state(self) -> tuple[set[str], list[FileRecord]]:
        if not self.resume_mode:
            return set(), []

        completed: set[str] = set()
        try:
            completed = self.journal.completed_source_paths()
        except sqlite3.Error as exc:
            logger.error("Failed to load completed paths: %s", exc)
        else:
            if completed:
                logger.info("Resuming: %d files already completed, will be skipped", len(completed))

        try:
            reset = self.journal.reset_failed()
        except sqlite3.Error as exc:
            logger.error("Failed to reset failed records: %s", exc)
        else:
            if reset > 0:
                logger.info("Resuming: reset %d failed records for retry", reset)

        pending: list[FileRecord] = []
        try:
            pending = self.journal.pending_files()
        except sqlite3.Error as exc:
            logger.error("Failed to load pending records: %s", exc)
        else:
            if pending:
                logger.info("Resuming: %d pending files to process", len(pending))
        return completed, pending

    def _populate_result_from_journal(self) -> None:
        try:
            stats = self.journal.stats()
        except sqlite3.Error as exc:
            logger.error("Failed to read journal stats: %s", exc)
            return

        self.result.organized_files = stats.get(FileStatus.COMPLETED, 0) + stats.get(
            FileStatus.DRY_RUN, 0
        )
        self.result.error_count = stats.get(FileStatus.FAILED, 0)

        try:
            self.result.duplicate_count = self.journal.duplicate_count()
        except sqlite3.Error as exc:
            logger.error("Failed to read duplicate count: %s", exc)

        try:
            total = self.journal.total_count()
        except sqlite3.Error as exc:
            logger.error("Failed to read total count: %s", exc)
        else:
            self.result.total_files = total
            self.result.processed_files = total

    # --- destination pre-index ---

    def _destination_roots(self) -> list[str]:
        roots: dict[str, None] = {}
        if self.scheme == DATE_FIRST and self.destination:
            roots[self.destination] = None
        for directory in (*self.dest_dirs.values(), *self.extension_dirs.values()):
            if directory:
                roots[directory] = None
        if self.duplicates_dir and os.path.isabs(self.duplicates_dir):
            roots[self.duplicates_dir] = None
        return list(roots)

    def _pre_index_destinations(self) -> None:
        """Index files already in destinations so cross-run duplicates are found."""
        roots = self._destination_roots()
        if not roots:
            return

        self._journal_call(self.journal.clear_dest_index)

        files: list[DestFile] = []
        visited: set[str] = set()
        for root in roots:
            if not os.path.exists(root):
                logger.debug("Destination directory does not exist yet, skipping pre-index: %s", root)
                continue
            if _is_within(root, self.source_dir):
                continue
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = sorted(
                    name for name in dirnames
                    if not _is_within(os.path.join(dirpath, name), self.source_dir)
                )
                for name in sorted(filenames):
                    path = os.path.join(dirpath, name)
                    if path in visited or is_ignored_file(path):
                        continue
                    media_type = determine_media_type(path)
                    if media_type is MediaType.UNKNOWN:
                        continue
                    try:
                        size = os.lstat(path).st_size
                    except OSError:
                        continue
                    visited.add(path)
                    files.append(
                        DestFile(
                            path=path,
                            size=size,
                            media_type=str(media_type),
                            extension=_raw_extension(path).lower().removeprefix("."),
                        )
                    )

        if not files:
            logger.debug("No existing files found in destination directories")
            return

        try:
            inserted = self.journal.insert_dest_files(files)
        except sqlite3.Error as exc:
            logger.error("Failed to pre-index destination files: %s", exc)
            return
        logger.info(
            "Pre-indexed %d existing files from destination directories for duplicate detection",
            inserted,
        )