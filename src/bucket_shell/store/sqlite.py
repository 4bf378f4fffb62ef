"""File-backed bucket store on SQLite.

The nested buckets are kept in two tables::

    buckets(id, parent_id, name)         -- one row per container
    entries(bucket_id, key, value)       -- one row per key/value entry

The root is the implicit bucket ``0``: top-level containers have
``parent_id = 0`` and it never has a row of its own.  Names and values
are BLOBs, which SQLite orders bytewise, so iteration order matches
the raw key order.

Transactions map onto SQLite's own:

- **Read snapshot** → ``BEGIN`` followed by an immediate read, which
  pins the snapshot in WAL mode.  Other processes may keep writing;
  this connection keeps seeing the moment the snapshot started.
- **Write transaction** → ``BEGIN IMMEDIATE``, which takes the
  database's single writer lock up front, so writes are serialized
  by the engine.

Engine failures (locked file, corrupt or foreign file, I/O error) are
re-raised as ``StoreUnavailableError``.
"""

from __future__ import annotations

import contextlib
import sqlite3
from collections.abc import Callable, Iterator
from typing import TypeVar
from pathlib import Path

from bucket_shell.codec import display
from bucket_shell.errors import (
    AlreadyExistsError,
    ContainerNotFoundError,
    IncompatibleValueError,
    KeyNotFoundError,
    StoreUnavailableError,
)
from bucket_shell.store.base import Transaction
from bucket_shell.store.transaction import TransactionRecord

T = TypeVar("T")

ROOT_BUCKET = 0

BUSY_TIMEOUT_SECONDS = 1.0
"""How long a transaction waits for another process's lock before failing."""

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS buckets (
        id INTEGER PRIMARY KEY,
        parent_id INTEGER NOT NULL,
        name BLOB NOT NULL,
        UNIQUE (parent_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entries (
        bucket_id INTEGER NOT NULL,
        key BLOB NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (bucket_id, key)
    )
    """,
)

_SUBTREE = """
    WITH RECURSIVE subtree(id) AS (
        SELECT ?
        UNION ALL
        SELECT buckets.id FROM buckets JOIN subtree ON buckets.parent_id = subtree.id
    )
"""


class SqliteTransaction:
    """One read snapshot or write transaction on a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection, *, writable: bool) -> None:
        """Wrap an already-begun SQLite transaction."""
        self.record = TransactionRecord(writable=writable)
        self.conn = conn

    @property
    def writable(self) -> bool:
        """Return True for write transactions."""
        return self.record.writable

    def root(self) -> SqliteContainer:
        """Return the root container."""
        self.record.ensure_active()
        return SqliteContainer(self, ROOT_BUCKET)

    def execute(self, sql: str, params: tuple[object, ...] = ()) -> sqlite3.Cursor:
        """Run one statement, converting engine errors."""
        self.record.ensure_active()
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            msg = f"Store unavailable: {e}"
            raise StoreUnavailableError(msg) from e


class SqliteContainer:
    """Handle on one bucket inside one ``SqliteTransaction``."""

    def __init__(self, txn: SqliteTransaction, bucket_id: int) -> None:
        """Bind the handle to *txn*."""
        self._txn = txn
        self._bucket_id = bucket_id

    def _check_exists(self) -> None:
        """Raise if this bucket was deleted earlier in the transaction."""
        if self._bucket_id == ROOT_BUCKET:
            self._txn.record.ensure_active()
            return
        row = self._txn.execute("SELECT 1 FROM buckets WHERE id = ?", (self._bucket_id,)).fetchone()
        if row is None:
            msg = "Container was deleted in this transaction"
            raise ContainerNotFoundError(msg)

    def _check_writable(self) -> None:
        self._txn.record.ensure_writable()
        self._check_exists()

    def _child_id(self, name: bytes) -> int | None:
        row = self._txn.execute(
            "SELECT id FROM buckets WHERE parent_id = ? AND name = ?",
            (self._bucket_id, name),
        ).fetchone()
        return None if row is None else row[0]

    def _has_entry(self, key: bytes) -> bool:
        row = self._txn.execute(
            "SELECT 1 FROM entries WHERE bucket_id = ? AND key = ?",
            (self._bucket_id, key),
        ).fetchone()
        return row is not None

    def child(self, name: bytes) -> SqliteContainer | None:
        """Return the sub-container *name*, or None."""
        self._check_exists()
        child_id = self._child_id(name)
        if child_id is None:
            return None
        return SqliteContainer(self._txn, child_id)

    def get(self, key: bytes) -> bytes | None:
        """Return the value of entry *key*, or None."""
        self._check_exists()
        row = self._txn.execute(
            "SELECT value FROM entries WHERE bucket_id = ? AND key = ?",
            (self._bucket_id, key),
        ).fetchone()
        return None if row is None else bytes(row[0])

    def put(self, key: bytes, value: bytes) -> None:
        """Create or overwrite entry *key*.

        Raises:
            ValueError: If *key* is empty.
            IncompatibleValueError: At the root, or if *key* names a
                sub-container.

        """
        if not key:
            msg = "Key must not be empty"
            raise ValueError(msg)
        self._check_writable()
        if self._bucket_id == ROOT_BUCKET:
            msg = "The root holds only containers"
            raise IncompatibleValueError(msg)
        if self._child_id(key) is not None:
            msg = f"Is a container: {display(key)}"
            raise IncompatibleValueError(msg)
        self._txn.execute(
            "INSERT INTO entries (bucket_id, key, value) VALUES (?, ?, ?)"
            " ON CONFLICT (bucket_id, key) DO UPDATE SET value = excluded.value",
            (self._bucket_id, key, value),
        )

    def delete(self, key: bytes) -> None:
        """Remove entry *key*.

        Raises:
            KeyNotFoundError: If there is no such entry.
            IncompatibleValueError: If *key* names a sub-container.

        """
        self._check_writable()
        if self._child_id(key) is not None:
            msg = f"Is a container: {display(key)}"
            raise IncompatibleValueError(msg)
        cursor = self._txn.execute(
            "DELETE FROM entries WHERE bucket_id = ? AND key = ?",
            (self._bucket_id, key),
        )
        if cursor.rowcount == 0:
            msg = f"Key not found: {display(key)}"
            raise KeyNotFoundError(msg)

    def create_child(self, name: bytes) -> SqliteContainer:
        """Create an empty sub-container *name*.

        Raises:
            ValueError: If *name* is empty.
            AlreadyExistsError: If a sub-container *name* exists.
            IncompatibleValueError: If an entry *name* exists.

        """
        if not name:
            msg = "Container name must not be empty"
            raise ValueError(msg)
        self._check_writable()
        if self._child_id(name) is not None:
            msg = f"Already exists: {display(name)}"
            raise AlreadyExistsError(msg)
        if self._has_entry(name):
            msg = f"Is an entry: {display(name)}"
            raise IncompatibleValueError(msg)
        cursor = self._txn.execute(
            "INSERT INTO buckets (parent_id, name) VALUES (?, ?)",
            (self._bucket_id, name),
        )
        if cursor.lastrowid is None:
            msg = f"Store unavailable: no row id for new container {display(name)}"
            raise StoreUnavailableError(msg)
        return SqliteContainer(self._txn, cursor.lastrowid)

    def delete_child(self, name: bytes) -> None:
        """Remove sub-container *name* and everything inside it.

        Raises:
            ContainerNotFoundError: If there is no such sub-container.

        """
        self._check_writable()
        child_id = self._child_id(name)
        if child_id is None:
            msg = f"Container not found: {display(name)}"
            raise ContainerNotFoundError(msg)
        self._txn.execute(
            _SUBTREE + "DELETE FROM entries WHERE bucket_id IN (SELECT id FROM subtree)",
            (child_id,),
        )
        self._txn.execute(
            _SUBTREE + "DELETE FROM buckets WHERE id IN (SELECT id FROM subtree)",
            (child_id,),
        )

    def iterate(self) -> Iterator[tuple[bytes, bytes | None]]:
        """Yield ``(name, value)`` in bytewise order; value is None for containers."""
        self._check_exists()
        cursor = self._txn.execute(
            "SELECT name, NULL FROM buckets WHERE parent_id = ?"
            " UNION ALL"
            " SELECT key, value FROM entries WHERE bucket_id = ?"
            " ORDER BY 1",
            (self._bucket_id, self._bucket_id),
        )
        # Rows are fetched up front so lookups issued during iteration
        # cannot disturb the cursor.
        rows = cursor.fetchall()
        for name, value in rows:
            self._txn.record.ensure_active()
            yield bytes(name), None if value is None else bytes(value)


class SqliteStore:
    """A bucket store kept in a single SQLite database file."""

    def __init__(self, conn: sqlite3.Connection, path: Path) -> None:
        """Wrap an open, initialised connection.  Use ``open`` instead."""
        self._conn = conn
        self.path = path

    @classmethod
    def open(cls, path: Path, *, timeout: float = BUSY_TIMEOUT_SECONDS) -> SqliteStore:
        """Open (creating if needed) the store at *path*.

        Raises:
            StoreUnavailableError: If the file cannot be opened, is not a
                store, or is locked by another process.

        """
        conn: sqlite3.Connection | None = None
        try:
            conn = sqlite3.connect(path, timeout=timeout, isolation_level=None)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("BEGIN IMMEDIATE")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            msg = f"Cannot open store {path}: {e}"
            raise StoreUnavailableError(msg) from e
        return cls(conn, path)

    def _begin(self, statement: str) -> None:
        try:
            self._conn.execute(statement)
        except sqlite3.ProgrammingError as e:
            msg = f"Store is closed: {e}"
            raise StoreUnavailableError(msg) from e
        except sqlite3.Error as e:
            msg = f"Store unavailable: {e}"
            raise StoreUnavailableError(msg) from e

    def _rollback(self) -> None:
        # The original failure is what the caller needs to see.
        with contextlib.suppress(sqlite3.Error):
            self._conn.execute("ROLLBACK")

    def _run(self, fn: Callable[[Transaction], T], *, writable: bool) -> T:
        self._begin("BEGIN IMMEDIATE" if writable else "BEGIN")
        txn = SqliteTransaction(self._conn, writable=writable)
        try:
            if not writable:
                # Pin the snapshot now rather than at the first lookup.
                txn.execute("SELECT 1 FROM buckets LIMIT 1").fetchall()
            result = fn(txn)
        except BaseException:
            txn.record.abort()
            self._rollback()
            raise
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            txn.record.abort()
            self._rollback()
            msg = f"Store unavailable: {e}"
            raise StoreUnavailableError(msg) from e
        txn.record.commit()
        return result

    def with_read_snapshot(self, fn: Callable[[Transaction], T]) -> T:
        """Run *fn* inside a read snapshot."""
        return self._run(fn, writable=False)

    def with_write_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run *fn* inside a serialized write transaction."""
        return self._run(fn, writable=True)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
