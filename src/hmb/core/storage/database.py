"""SQLite database management for the health metric bank.

Handles connection lifecycle, the store catalog, schema versioning and
serialized access for concurrent writers.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per metric store; type_id compares with BINARY collation (case-sensitive)
CREATE TABLE IF NOT EXISTS metric_stores (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    type_id    TEXT NOT NULL UNIQUE,
    table_name TEXT NOT NULL UNIQUE,
    kind       TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

# Per-store table; {table} is always a catalog-assigned identifier, never raw input
STORE_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS "{table}" (
    source     TEXT NOT NULL,
    date       TEXT NOT NULL,
    fields     TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (source, date)
);

CREATE INDEX IF NOT EXISTS "idx_{table}_date" ON "{table}"(date);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class StorageUnavailableError(DatabaseError):
    """Raised when the backing medium cannot be reached or is not initialized."""


class MetricDatabase:
    """SQLite database manager for the metric bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing. One connection is shared by all
    threads; :meth:`transaction` serializes access to it.

    Usage::

        db = MetricDatabase(":memory:")
        db.initialize()
        with db.transaction() as conn:
            conn.execute(...)
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            StorageUnavailableError: If the database has not been initialized.
        """
        if self._conn is None:
            raise StorageUnavailableError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.

        Raises:
            StorageUnavailableError: If the database file cannot be opened.
        """
        if self._conn is not None:
            return  # Already initialized

        try:
            if self._db_path != ":memory:":
                db_file = Path(self._db_path).expanduser()
                db_file.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
            else:
                self._conn = sqlite3.connect(":memory:", check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            raise StorageUnavailableError(
                f"Cannot open metric database at {self._db_path}: {exc}"
            ) from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._ensure_schema()
        logger.info("Metric database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create catalog tables if they don't exist and record the version."""
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()
        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the connection exclusively; commit on success, roll back on error.

        Raises:
            StorageUnavailableError: If the database is not initialized or
                SQLite reports an operational failure (locked, I/O, disk full).
            DatabaseError: For any other SQLite error.
        """
        with self._lock:
            conn = self.connection
            try:
                yield conn
                conn.commit()
            except sqlite3.OperationalError as exc:
                conn.rollback()
                raise StorageUnavailableError(f"Storage operation failed: {exc}") from exc
            except sqlite3.Error as exc:
                conn.rollback()
                raise DatabaseError(f"Database error: {exc}") from exc
            except Exception:
                conn.rollback()
                raise

    def list_tables(self) -> set[str]:
        """Return the names of all user tables."""
        with self.transaction() as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            ).fetchall()
        return {row[0] for row in rows}

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Metric database closed")

    def __enter__(self) -> MetricDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
