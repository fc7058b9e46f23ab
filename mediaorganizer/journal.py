"""SQLite journal that records every file the organizer handles."""

from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable


class FileStatus(str, Enum):
    """Processing status of a journal record."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    DRY_RUN = "dry_run"
    DEST_INDEX = "dest_index"

    def __str__(self) -> str:
        return self.value


class AlreadyExistsError(Exception):
    """Raised when a record with the same source path is already journaled."""

    def __init__(self, source_path: str = "") -> None:
        message = "file already exists in journal"
        if source_path:
            message = f"{message}: {source_path}"
        super().__init__(message)
        self.source_path = source_path


@dataclass
class FileRecord:
    """One row of the files table."""

    source_path: str
    file_size: int
    media_type: str
    extension: str
    creation_time: str
    original_name: str
    timestamp_key: str
    larger_dimension: int = 0
    hash: str = ""
    dest_path: str = ""
    sequence_num: int = 0
    is_duplicate: bool = False
    status: FileStatus = FileStatus.PENDING
    error_message: str = ""
    id: int = 0
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class DestFile:
    """A file already present in a destination directory."""

    path: str
    size: int
    media_type: str
    extension: str


_SCHEMA = """
CREATE TABLE IF NOT EXISTS files (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    source_path      TEXT NOT NULL UNIQUE,
    file_size        INTEGER NOT NULL,
    media_type       TEXT NOT NULL,
    extension        TEXT NOT NULL,
    creation_time    TEXT NOT NULL,
    larger_dimension INTEGER NOT NULL DEFAULT 0,
    original_name    TEXT NOT NULL,
    timestamp_key    TEXT NOT NULL,
    hash             TEXT NOT NULL DEFAULT '',
    dest_path        TEXT NOT NULL DEFAULT '',
    sequence_num     INTEGER NOT NULL DEFAULT 0,
    is_duplicate     INTEGER NOT NULL DEFAULT 0,
    status           TEXT NOT NULL DEFAULT 'pending',
    error_message    TEXT NOT NULL DEFAULT '',
    created_at       TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at       TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_files_status ON files(status);
CREATE INDEX IF NOT EXISTS idx_files_file_size ON files(file_size);
CREATE INDEX IF NOT EXISTS idx_files_hash ON files(hash) WHERE hash != '';
CREATE INDEX IF NOT EXISTS idx_files_timestamp_key ON files(timestamp_key);
"""

_COLUMNS = (
    "id, source_path, file_size, media_type, extension, creation_time, "
    "larger_dimension, original_name, timestamp_key, hash, dest_path, "
    "sequence_num, is_duplicate, status, error_message, created_at, updated_at"
)

_INSERT = """
INSERT INTO files (source_path, file_size, media_type, extension, creation_time,
    larger_dimension, original_name, timestamp_key, hash, dest_path,
    sequence_num, is_duplicate, status, error_message, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_INSERT_DEST = """
INSERT OR IGNORE INTO files (source_path, file_size, media_type, extension, creation_time,
    larger_dimension, original_name, timestamp_key, hash, dest_path,
    sequence_num, is_duplicate, status, error_message, created_at, updated_at)
VALUES (?, ?, ?, ?, '1970-01-01 00:00:00', 0, ?, 'dest_index', '', '', 0, 0,
    'dest_index', '', datetime('now'), datetime('now'))
"""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _row_to_record(row: tuple) -> FileRecord:
    (
        record_id, source_path, file_size, media_type, extension, creation_time,
        larger_dimension, original_name, timestamp_key, file_hash, dest_path,
        sequence_num, is_duplicate, status, error_message, created_at, updated_at,
    ) = row
    return FileRecord(
        id=record_id,
        source_path=source_path,
        file_size=file_size,
        media_type=media_type,
        extension=extension,
        creation_time=creation_time,
        larger_dimension=larger_dimension,
        original_name=original_name,
        timestamp_key=timestamp_key,
        hash=file_hash,
        dest_path=dest_path,
        sequence_num=sequence_num,
        is_duplicate=is_duplicate == 1,
        status=FileStatus(status),
        error_message=error_message,
        created_at=created_at,
        updated_at=updated_at,
    )


class Journal:
    """A SQLite-backed record of scanned, hashed and moved files."""

    def __init__(self, db_path) -> None:
        self.db_path = os.fspath(db_path)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = sqlite3.connect(
            self.db_path, timeout=5.0, isolation_level=None, check_same_thread=False
        )
        try:
            self._conn.execute("PRAGMA busy_timeout = 5000")
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error:
            self._conn.close()
            self._conn = None
            raise

    @property
    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("journal is closed")
        return self._conn

    def close(self) -> None:
        """Close the database connection; further calls do nothing."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> Journal:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _execute(self, sql: str, params: Iterable = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._db.execute(sql, tuple(params))

    def _scalar(self, sql: str, params: Iterable = ()) -> int:
        with self._lock:
            return self._db.execute(sql, tuple(params)).fetchone()[0]

    def _records(self, sql: str, params: Iterable = ()) -> list[FileRecord]:
        with self._lock:
            rows = self._db.execute(sql, tuple(params)).fetchall()
        return [_row_to_record(row) for row in rows]

    def insert_file(self, record: FileRecord) -> int:
        """Insert a record and return its new id.

        Raises AlreadyExistsError if the source path is already journaled.
        """
        now = _now()
        params = (
            record.source_path, record.file_size, record.media_type,
            record.extension, record.creation_time, record.larger_dimension,
            record.original_name, record.timestamp_key, record.hash,
            record.dest_path, record.sequence_num, int(record.is_duplicate),
            FileStatus(record.status).value, record.error_message, now, now,
        )
        try:
            cursor = self._execute(_INSERT, params)
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise AlreadyExistsError(record.source_path) from exc
            raise
        return cursor.lastrowid

    def update_status(
        self, record_id: int, status: FileStatus, error_message: str = ""
    ) -> None:
        """Set a record's status and error message."""
        self._execute(
            "UPDATE files SET status = ?, error_message = ?, updated_at = ? WHERE id = ?",
            (FileStatus(status).value, error_message, _now(), record_id),
        )

    def update_hash(self, record_id: int, file_hash: str) -> None:
        """Set a record's content hash."""
        self._execute(
            "UPDATE files SET hash = ?, updated_at = ? WHERE id = ?",
            (file_hash, _now(), record_id),
        )

    def update_dest_path(
        self, record_id: int, dest_path: str, sequence_num: int, is_duplicate: bool
    ) -> None:
        """Set a record's destination path, sequence number and duplicate flag."""
        self._execute(
            "UPDATE files SET dest_path = ?, sequence_num = ?, is_duplicate = ?, "
            "updated_at = ? WHERE id = ?",
            (dest_path, sequence_num, int(is_duplicate), _now(), record_id),
        )

    def count_by_file_size(self, size: int) -> int:
        """Number of records with the given file size."""
        return self._scalar("SELECT COUNT(*) FROM files WHERE file_size = ?", (size,))

    def count_by_timestamp_key(self, key: str) -> int:
        """Number of records sharing the given timestamp key."""
        return self._scalar(
            "SELECT COUNT(*) FROM files WHERE timestamp_key = ?", (key,)
        )

    def get_by_hash(self, file_hash: str) -> list[FileRecord]:
        """All records with the given hash; an empty hash matches nothing."""
        if not file_hash:
            return []
        return self._records(f"SELECT {_COLUMNS} FROM files WHERE hash = ?", (file_hash,))

    def completed_source_paths(self) -> set[str]:
        """Source paths whose status is completed or dry_run."""
        with self._lock:
            rows = self._db.execute(
                "SELECT source_path FROM files WHERE status IN ('completed', 'dry_run')"
            ).fetchall()
        return {path for (path,) in rows}

    def pending_files(self) -> list[FileRecord]:
        """Pending records that already have a destination path."""
        return self._records(
            f"SELECT {_COLUMNS} FROM files WHERE status = 'pending' AND dest_path != ''"
        )

    def reset_failed(self) -> int:
        """Turn failed records back into pending ones; return how many."""
        cursor = self._execute(
            "UPDATE files SET status = 'pending', error_message = '', updated_at = ? "
            "WHERE status = 'failed'",
            (_now(),),
        )
        return cursor.rowcount

    def drop_all(self) -> None:
        """Delete every record."""
        self._execute("DELETE FROM files")

    def stats(self) -> dict[FileStatus, int]:
        """Record counts keyed by status."""
        with self._lock:
            rows = self._db.execute(
                "SELECT status, COUNT(*) FROM files GROUP BY status"
            ).fetchall()
        return {FileStatus(status): count for status, count in rows}

    def duplicate_count(self) -> int:
        """Number of records flagged as duplicates."""
        return self._scalar("SELECT COUNT(*) FROM files WHERE is_duplicate = 1")

    def unhashed_by_file_size(self, size: int) -> list[FileRecord]:
        """Records of the given size that have no hash yet."""
        return self._records(
            f"SELECT {_COLUMNS} FROM files WHERE file_size = ? AND hash = ''", (size,)
        )

    def total_count(self) -> int:
        """Total number of records."""
        return self._scalar("SELECT COUNT(*) FROM files")

    def clear_dest_index(self) -> None:
        """Remove all pre-indexed destination records."""
        self._execute("DELETE FROM files WHERE status = 'dest_index'")

    def insert_dest_files(self, files: Iterable[DestFile]) -> int:
        """Index destination files in one transaction; return how many were added."""
        files = list(files)
        if not files:
            return 0
        inserted = 0
        with self._lock:
            db = self._db
            db.execute("BEGIN")
            try:
                for dest in files:
                    try:
                        cursor = db.execute(
                            _INSERT_DEST,
                            (
                                dest.path, dest.size, dest.media_type,
                                dest.extension, os.path.basename(dest.path),
                            ),
                        )
                    except sqlite3.Error:
                        continue
                    inserted += max(cursor.rowcount, 0)
                db.execute("COMMIT")
            except BaseException:
                if db.in_transaction:
                    db.execute("ROLLBACK")
                raise
        return inserted