"""Tests for the store adapter contract, run against every adapter.

Both ``MemoryStore`` and ``SqliteStore`` must behave identically from
the navigator's point of view: nested buckets with one shared name
space per bucket, bytewise iteration order, transaction-bound handles,
read-only snapshots, and all-or-nothing write transactions.
"""

import pytest

from bucket_shell.errors import (
    AlreadyExistsError,
    ContainerNotFoundError,
    IncompatibleValueError,
    KeyNotFoundError,
    ReadOnlyTransactionError,
    TransactionClosedError,
)
from bucket_shell.store import Store, Transaction


def _seed(store: Store) -> None:
    """Create ``/users`` holding ``alice=1`` and sub-container ``admins``."""

    def _write(tx: Transaction) -> None:
        users = tx.root().create_child(b"users")
        users.put(b"alice", b"1")
        users.create_child(b"admins")

    store.with_write_transaction(_write)


class TestContainers:
    """Verify container creation, lookup, and deletion."""

    def test_fresh_root_is_empty(self, store: Store) -> None:
        """A new store has nothing under the root."""
        assert store.with_read_snapshot(lambda tx: list(tx.root().iterate())) == []

    def test_create_and_find_child(self, store: Store) -> None:
        """A created container can be found by name."""
        _seed(store)
        found = store.with_read_snapshot(lambda tx: tx.root().child(b"users") is not None)
        assert found

    def test_missing_child_is_none(self, store: Store) -> None:
        """Looking up an absent container yields None, not an error."""
        assert store.with_read_snapshot(lambda tx: tx.root().child(b"nope")) is None

    def test_create_duplicate_raises(self, store: Store) -> None:
        """Two containers cannot share a name."""
        _seed(store)
        with pytest.raises(AlreadyExistsError, match="users"):
            store.with_write_transaction(lambda tx: tx.root().create_child(b"users"))

    def test_create_over_entry_raises(self, store: Store) -> None:
        """A container cannot take the name of an entry."""
        _seed(store)

        def _write(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.create_child(b"alice")

        with pytest.raises(IncompatibleValueError, match="alice"):
            store.with_write_transaction(_write)

    def test_delete_child_is_recursive(self, store: Store) -> None:
        """Deleting a container removes everything inside it."""
        _seed(store)
        store.with_write_transaction(lambda tx: tx.root().delete_child(b"users"))
        assert store.with_read_snapshot(lambda tx: list(tx.root().iterate())) == []

        # Recreating the name yields a fresh, empty container.
        store.with_write_transaction(lambda tx: tx.root().create_child(b"users"))

        def _read(tx: Transaction) -> list[tuple[bytes, bytes | None]]:
            users = tx.root().child(b"users")
            assert users is not None
            return list(users.iterate())

        assert store.with_read_snapshot(_read) == []

    def test_delete_missing_child_raises(self, store: Store) -> None:
        """Deleting an absent container is an error."""
        with pytest.raises(ContainerNotFoundError, match="ghost"):
            store.with_write_transaction(lambda tx: tx.root().delete_child(b"ghost"))

    def test_handle_of_deleted_container_is_dead(self, store: Store) -> None:
        """A handle whose bucket was deleted in the same transaction refuses use."""
        _seed(store)

        def _write(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            tx.root().delete_child(b"users")
            users.get(b"alice")

        with pytest.raises(ContainerNotFoundError, match="deleted"):
            store.with_write_transaction(_write)


class TestEntries:
    """Verify entry get/put/delete and iteration."""

    def test_put_then_get(self, store: Store) -> None:
        """A stored value can be read back."""
        _seed(store)

        def _read(tx: Transaction) -> bytes | None:
            users = tx.root().child(b"users")
            assert users is not None
            return users.get(b"alice")

        assert store.with_read_snapshot(_read) == b"1"

    def test_put_overwrites(self, store: Store) -> None:
        """Putting an existing key replaces its value."""
        _seed(store)

        def _write(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.put(b"alice", b"2")

        def _read(tx: Transaction) -> bytes | None:
            users = tx.root().child(b"users")
            assert users is not None
            return users.get(b"alice")

        store.with_write_transaction(_write)
        assert store.with_read_snapshot(_read) == b"2"

    def test_binary_keys_and_values(self, store: Store) -> None:
        """Keys and values are arbitrary bytes."""
        _seed(store)

        def _write(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.put(b"\x00\xff", b"\x01\x02")

        def _read(tx: Transaction) -> bytes | None:
            users = tx.root().child(b"users")
            assert users is not None
            return users.get(b"\x00\xff")

        store.with_write_transaction(_write)
        assert store.with_read_snapshot(_read) == b"\x01\x02"

    def test_put_on_container_name_raises(self, store: Store) -> None:
        """An entry cannot take the name of a container."""
        _seed(store)

        def _write(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.put(b"admins", b"x")

        with pytest.raises(IncompatibleValueError, match="admins"):
            store.with_write_transaction(_write)

    def test_put_at_root_raises(self, store: Store) -> None:
        """The root holds only containers."""
        with pytest.raises(IncompatibleValueError, match="root"):
            store.with_write_transaction(lambda tx: tx.root().put(b"k", b"v"))

    def test_delete_entry(self, store: Store) -> None:
        """A deleted entry is gone."""
        _seed(store)

        def _delete(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.delete(b"alice")

        def _read(tx: Transaction) -> bytes | None:
            users = tx.root().child(b"users")
            assert users is not None
            return users.get(b"alice")

        store.with_write_transaction(_delete)
        assert store.with_read_snapshot(_read) is None

    def test_delete_missing_entry_raises(self, store: Store) -> None:
        """Deleting an absent entry is an error."""
        _seed(store)

        def _delete(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.delete(b"bob")

        with pytest.raises(KeyNotFoundError, match="bob"):
            store.with_write_transaction(_delete)

    def test_iterate_in_bytewise_order(self, store: Store) -> None:
        """Containers and entries come back interleaved in byte order."""
        _seed(store)

        def _write(tx: Transaction) -> None:
            users = tx.root().child(b"users")
            assert users is not None
            users.put(b"zed", b"z")
            users.put(b"\xff", b"high")

        def _read(tx: Transaction) -> list[tuple[bytes, bytes | None]]:
            users = tx.root().child(b"users")
            assert users is not None
            return list(users.iterate())

        store.with_write_transaction(_write)
        assert store.with_read_snapshot(_read) == [
            (b"admins", None),
            (b"alice", b"1"),
            (b"zed", b"z"),
            (b"\xff", b"high"),
        ]


class TestTransactions:
    """Verify transaction modes, handle lifetime, and atomicity."""

    def test_read_snapshot_rejects_writes(self, store: Store) -> None:
        """Mutations are refused inside a read snapshot."""
        with pytest.raises(ReadOnlyTransactionError):
            store.with_read_snapshot(lambda tx: tx.root().create_child(b"users"))

    def test_writable_flag(self, store: Store) -> None:
        """Transactions report their mode."""
        assert store.with_read_snapshot(lambda tx: tx.writable) is False
        assert store.with_write_transaction(lambda tx: tx.writable) is True

    def test_handle_dies_with_transaction(self, store: Store) -> None:
        """A handle carried out of its transaction cannot be used."""
        _seed(store)
        leaked = store.with_read_snapshot(lambda tx: tx.root())
        with pytest.raises(TransactionClosedError):
            leaked.child(b"users")

    def test_failed_write_rolls_back(self, store: Store) -> None:
        """An exception in the callback discards every change it made."""

        def _write(tx: Transaction) -> None:
            tx.root().create_child(b"users")
            msg = "boom"
            raise RuntimeError(msg)

        with pytest.raises(RuntimeError, match="boom"):
            store.with_write_transaction(_write)
        assert store.with_read_snapshot(lambda tx: tx.root().child(b"users")) is None

    def test_callback_result_returned(self, store: Store) -> None:
        """The callback's return value comes back to the caller."""
        expected = 7
        assert store.with_write_transaction(lambda _tx: expected) == expected
        assert store.with_read_snapshot(lambda _tx: expected) == expected
