"""Tests for the in-process bucket store.

The memory store publishes a new bucket table on every commit and never
mutates a published one, so a read snapshot keeps its view however many
writes commit while it runs.
"""

import threading

import pytest

from bucket_shell.errors import StoreUnavailableError
from bucket_shell.store import MemoryStore, Transaction

WRITER_COUNT = 8


def _names(tx: Transaction) -> list[bytes]:
    return [name for name, _value in tx.root().iterate()]


class TestMemoryStoreSnapshots:
    """Verify snapshot isolation."""

    def test_snapshot_ignores_later_commit(self) -> None:
        """A write committed during a snapshot is invisible to it."""
        store = MemoryStore()

        def _read(tx: Transaction) -> tuple[list[bytes], list[bytes]]:
            before = _names(tx)
            store.with_write_transaction(lambda w: w.root().create_child(b"late"))
            return before, _names(tx)

        before, after = store.with_read_snapshot(_read)
        assert before == after == []
        assert store.with_read_snapshot(_names) == [b"late"]

    def test_snapshot_ignores_nested_write_to_entry(self) -> None:
        """Copy-on-write also protects buckets below the root."""
        store = MemoryStore()

        def _seed(tx: Transaction) -> None:
            tx.root().create_child(b"users").put(b"alice", b"1")

        store.with_write_transaction(_seed)

        def _overwrite(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.put(b"alice", b"2")

        def _read(tx: Transaction) -> bytes | None:
            store.with_write_transaction(_overwrite)
            users = tx.root().child(b"users")
            assert users is not None
            return users.get(b"alice")

        assert store.with_read_snapshot(_read) == b"1"

    def test_aborted_write_leaves_published_table(self) -> None:
        """An aborted write never becomes visible."""
        store = MemoryStore()

        def _write(tx: Transaction) -> None:
            tx.root().create_child(b"temp")
            raise KeyError(b"temp")

        with pytest.raises(KeyError):
            store.with_write_transaction(_write)
        assert store.with_read_snapshot(_names) == []


class TestMemoryStoreWrites:
    """Verify write serialization and the closed state."""

    def test_concurrent_writers_all_land(self) -> None:
        """Writers from many threads are serialized without losing any."""
        store = MemoryStore()

        def _writer(index: int) -> None:
            name = f"c{index}".encode()
            store.with_write_transaction(lambda tx: tx.root().create_child(name))

        threads = [threading.Thread(target=_writer, args=(i,)) for i in range(WRITER_COUNT)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store.with_read_snapshot(_names)) == WRITER_COUNT

    def test_closed_store_refuses_transactions(self) -> None:
        """After close, both transaction kinds fail."""
        store = MemoryStore()
        store.close()
        with pytest.raises(StoreUnavailableError, match="closed"):
            store.with_read_snapshot(_names)
        with pytest.raises(StoreUnavailableError, match="closed"):
            store.with_write_transaction(_names)
