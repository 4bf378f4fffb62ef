"""In-process bucket store with snapshot reads and serialized writes.

The store is a table of buckets keyed by bucket id, in the same spirit
as an inode table:

- **Bucket**: holds ``children`` (name → bucket id) and ``entries``
  (key → value bytes).  A bucket's own name lives in its parent, not in
  the bucket.
- **Root**: bucket ``0``.  It holds only sub-buckets, never entries.

Concurrency is copy-on-write:

- A **read snapshot** grabs a reference to the currently published
  table.  Published tables and their buckets are never mutated, so the
  snapshot stays consistent however many writes commit meanwhile.
- A **write transaction** holds the store's write lock, starts from a
  shallow copy of the published table, and copies each bucket the
  first time it touches it.  Commit publishes the new table in one
  assignment; abort simply drops it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from typing import TypeVar
from dataclasses import dataclass, field

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


@dataclass
class _Bucket:
    """Internal bucket record."""

    bucket_id: int
    children: dict[bytes, int] = field(default_factory=dict)  # pyright: ignore[reportUnknownVariableType]
    entries: dict[bytes, bytes] = field(default_factory=dict)  # pyright: ignore[reportUnknownVariableType]

    def copy(self) -> _Bucket:
        """Return a copy whose dicts can be mutated independently."""
        return _Bucket(
            bucket_id=self.bucket_id,
            children=dict(self.children),
            entries=dict(self.entries),
        )


class MemoryTransaction:
    """One read snapshot or write transaction over a bucket table."""

    def __init__(self, buckets: dict[int, _Bucket], *, writable: bool, next_id: int) -> None:
        """Start a transaction over *buckets*.

        Write transactions take a private copy of the table; read
        snapshots share the published one.
        """
        self.record = TransactionRecord(writable=writable)
        self.buckets: dict[int, _Bucket] = dict(buckets) if writable else buckets
        self.next_id = next_id
        self._owned: set[int] = set()

    @property
    def writable(self) -> bool:
        """Return True for write transactions."""
        return self.record.writable

    def root(self) -> MemoryContainer:
        """Return the root container."""
        self.record.ensure_active()
        return MemoryContainer(self, ROOT_BUCKET)

    def mutable(self, bucket_id: int) -> _Bucket:
        """Return this transaction's private copy of a bucket."""
        if bucket_id not in self._owned:
            self.buckets[bucket_id] = self.buckets[bucket_id].copy()
            self._owned.add(bucket_id)
        return self.buckets[bucket_id]

    def allocate(self) -> _Bucket:
        """Create a new empty bucket owned by this transaction."""
        bucket = _Bucket(bucket_id=self.next_id)
        self.next_id += 1
        self.buckets[bucket.bucket_id] = bucket
        self._owned.add(bucket.bucket_id)
        return bucket

    def drop_subtree(self, bucket_id: int) -> None:
        """Remove a bucket and every bucket below it from the table."""
        pending = [bucket_id]
        while pending:
            current = self.buckets.pop(pending.pop())
            self._owned.discard(current.bucket_id)
            pending.extend(current.children.values())


class MemoryContainer:
    """Handle on one bucket inside one ``MemoryTransaction``."""

    def __init__(self, txn: MemoryTransaction, bucket_id: int) -> None:
        """Bind the handle to *txn*."""
        self._txn = txn
        self._bucket_id = bucket_id

    def _bucket(self) -> _Bucket:
        """Return the bucket as seen by the transaction, checking liveness."""
        self._txn.record.ensure_active()
        bucket = self._txn.buckets.get(self._bucket_id)
        if bucket is None:
            msg = "Container was deleted in this transaction"
            raise ContainerNotFoundError(msg)
        return bucket

    def _writable_bucket(self) -> _Bucket:
        """Check the transaction may write, then return a private copy."""
        self._txn.record.ensure_writable()
        self._bucket()
        return self._txn.mutable(self._bucket_id)

    def child(self, name: bytes) -> MemoryContainer | None:
        """Return the sub-container *name*, or None."""
        child_id = self._bucket().children.get(name)
        if child_id is None:
            return None
        return MemoryContainer(self._txn, child_id)

    def get(self, key: bytes) -> bytes | None:
        """Return the value of entry *key*, or None."""
        return self._bucket().entries.get(key)

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
        bucket = self._writable_bucket()
        if self._bucket_id == ROOT_BUCKET:
            msg = "The root holds only containers"
            raise IncompatibleValueError(msg)
        if key in bucket.children:
            msg = f"Is a container: {display(key)}"
            raise IncompatibleValueError(msg)
        bucket.entries[key] = value

    def delete(self, key: bytes) -> None:
        """Remove entry *key*.

        Raises:
            KeyNotFoundError: If there is no such entry.
            IncompatibleValueError: If *key* names a sub-container.

        """
        bucket = self._writable_bucket()
        if key in bucket.children:
            msg = f"Is a container: {display(key)}"
            raise IncompatibleValueError(msg)
        if key not in bucket.entries:
            msg = f"Key not found: {display(key)}"
            raise KeyNotFoundError(msg)
        del bucket.entries[key]

    def create_child(self, name: bytes) -> MemoryContainer:
        """Create an empty sub-container *name*.

        Raises:
            ValueError: If *name* is empty.
            AlreadyExistsError: If a sub-container *name* exists.
            IncompatibleValueError: If an entry *name* exists.

        """
        if not name:
            msg = "Container name must not be empty"
            raise ValueError(msg)
        bucket = self._writable_bucket()
        if name in bucket.children:
            msg = f"Already exists: {display(name)}"
            raise AlreadyExistsError(msg)
        if name in bucket.entries:
            msg = f"Is an entry: {display(name)}"
            raise IncompatibleValueError(msg)
        new_bucket = self._txn.allocate()
        bucket.children[name] = new_bucket.bucket_id
        return MemoryContainer(self._txn, new_bucket.bucket_id)

    def delete_child(self, name: bytes) -> None:
        """Remove sub-container *name* and everything inside it.

        Raises:
            ContainerNotFoundError: If there is no such sub-container.

        """
        bucket = self._writable_bucket()
        child_id = bucket.children.pop(name, None)
        if child_id is None:
            msg = f"Container not found: {display(name)}"
            raise ContainerNotFoundError(msg)
        self._txn.drop_subtree(child_id)

    def iterate(self) -> Iterator[tuple[bytes, bytes | None]]:
        """Yield ``(name, value)`` in bytewise order; value is None for containers."""
        bucket = self._bucket()
        items: list[tuple[bytes, bytes | None]] = [(name, None) for name in bucket.children]
        items.extend(bucket.entries.items())
        items.sort(key=lambda item: item[0])
        for item in items:
            self._txn.record.ensure_active()
            yield item


class MemoryStore:
    """A bucket store that lives entirely in process memory.

    Used as the in-process engine for tests and scratch sessions.  Any
    number of ``MemoryStore`` users may share one instance; each read
    sees a committed point in time and writes are serialized.
    """

    def __init__(self) -> None:
        """Create a store holding only an empty root."""
        self._buckets: dict[int, _Bucket] = {ROOT_BUCKET: _Bucket(bucket_id=ROOT_BUCKET)}
        self._next_id = ROOT_BUCKET + 1
        self._write_lock = threading.Lock()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "Store is closed"
            raise StoreUnavailableError(msg)

    def with_read_snapshot(self, fn: Callable[[Transaction], T]) -> T:
        """Run *fn* against the currently published table."""
        self._ensure_open()
        txn = MemoryTransaction(self._buckets, writable=False, next_id=self._next_id)
        try:
            result = fn(txn)
        except BaseException:
            txn.record.abort()
            raise
        txn.record.commit()
        return result

    def with_write_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run *fn* in a private copy and publish it if *fn* returns."""
        self._ensure_open()
        with self._write_lock:
            txn = MemoryTransaction(self._buckets, writable=True, next_id=self._next_id)
            try:
                result = fn(txn)
            except BaseException:
                txn.record.abort()
                raise
            self._buckets = txn.buckets
            self._next_id = txn.next_id
            txn.record.commit()
            return result

    def close(self) -> None:
        """Refuse further transactions."""
        self._closed = True
