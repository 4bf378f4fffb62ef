"""The store adapter contract.

The navigator never talks to a storage engine directly.  It relies on
three small interfaces:

- **Store** — runs a callback inside a read snapshot or inside a write
  transaction, and closes the underlying engine.
- **Transaction** — hands out the root container for the duration of
  the callback.
- **Container** — a handle on one bucket, valid only inside the
  transaction that produced it.

Any engine that can provide snapshot-isolated reads and serialized
writes over nested buckets can sit behind these protocols.  Two ship
with the package: ``MemoryStore`` (in-process) and ``SqliteStore``
(file-backed).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Protocol, TypeVar

T = TypeVar("T")


class Container(Protocol):
    """A transaction-bound handle on one bucket.

    Names and keys share one namespace per container: a name is either
    a sub-container or an entry, never both.
    """

    def child(self, name: bytes) -> Container | None:
        """Return the sub-container called *name*, or None.  Read-only."""
        ...

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored under *key*, or None."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """Create or overwrite the entry *key*."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove the entry *key*."""
        ...

    def create_child(self, name: bytes) -> Container:
        """Create an empty sub-container and return its handle."""
        ...

    def delete_child(self, name: bytes) -> None:
        """Remove the sub-container *name* and everything inside it."""
        ...

    def iterate(self) -> Iterator[tuple[bytes, bytes | None]]:
        """Yield ``(name, value)`` in bytewise name order.

        ``value`` is None for sub-containers.
        """
        ...


class Transaction(Protocol):
    """A read snapshot or a write transaction."""

    @property
    def writable(self) -> bool:
        """Return True for write transactions."""
        ...

    def root(self) -> Container:
        """Return the root container as seen by this transaction."""
        ...


class Store(Protocol):
    """An open store."""

    def with_read_snapshot(self, fn: Callable[[Transaction], T]) -> T:
        """Run *fn* inside a consistent point-in-time read snapshot."""
        ...

    def with_write_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run *fn* inside a serialized write transaction.

        The transaction commits if *fn* returns and rolls back if it
        raises; the exception propagates.
        """
        ...

    def close(self) -> None:
        """Release the underlying engine."""
        ...
