"""SQLite connection and schema initialization for the prompt store."""

import sqlite3
import threading
from pathlib import Path

from .schema import get_init_schema
from ..core.exceptions import StorageError


class DatabaseConnection:
    """Manage a per-thread SQLite connection and one-time schema init."""

    __slots__ = ("db_path", "_local", "_lock", "_initialized")

    def __init__(self, db_path="./pocketprompt.db"):
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

    def initialize(self):
        """Create tables, indexes and triggers if they are missing."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = self._get_connection()
                for statement in get_init_schema():
                    conn.execute(statement)
                conn.commit()
                self._initialized = True
            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize database: {e}") from e

    def _get_connection(self):
        """Get or create the connection for the calling thread."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.connection = conn
        return conn

    def get_cursor_context(self):
        """Return a context manager for a SQLite cursor."""
        return CursorContext(self._get_connection())

    def get_transaction_context(self):
        """Return a transaction context manager (BEGIN/COMMIT/ROLLBACK)."""
        return TransactionContext(self._get_connection())

    def execute(self, query, params=()):
        """Execute one statement; returns the number of affected rows."""
        try:
            with self.get_cursor_context() as cursor:
                cursor.execute(query, params)
                return cursor.rowcount
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e

    def fetch_one(self, query, params=()):
        """Fetch a single row as a dict or None."""
        try:
            with self.get_cursor_context() as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
                return dict(row) if row else None
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e

    def fetch_all(self, query, params=()):
        """Fetch all rows as a list of dicts."""
        try:
            with self.get_cursor_context() as cursor:
                cursor.execute(query, params)
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e

    def get_version(self):
        """Return current schema version number (0 if uninitialized)."""
        try:
            result = self.fetch_one("SELECT MAX(version) AS version FROM schema_version")
        except StorageError:
            return 0
        return result["version"] if result and result["version"] else 0

    def close(self):
        """Close the calling thread's connection if open."""
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            self._local.connection = None


class CursorContext:
    """Context manager for SQLite cursor."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        self.cursor = self.connection.cursor()
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.cursor:
            self.cursor.close()


class TransactionContext:
    """Context manager for transactions (BEGIN/COMMIT/ROLLBACK)."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        self.cursor = self.connection.cursor()
        self.cursor.execute("BEGIN")
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Commit on success, rollback on error, then close cursor."""
        try:
            if exc_type is None:
                self.connection.commit()
            else:
                self.connection.rollback()
        finally:
            if self.cursor:
                self.cursor.close()
