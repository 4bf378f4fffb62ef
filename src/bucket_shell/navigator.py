"""The navigator — a working directory for a store that has none.

The navigator owns one ``PathStack`` and turns it into a container
handle on demand.  The resolution walk is simple:

    root ──child(a)──▶ a ──child(b)──▶ b ──child(c)──▶ c

It starts at the transaction's root and follows one ``child()`` lookup
per segment, giving up at the first missing link.  Because handles are
bound to the transaction that produced them, the walk is repeated
inside every operation's own transaction and its result is never kept.

Rules the operations follow:

- **One transaction per operation.**  Reads open a snapshot, mutations
  open a write transaction, and both are closed before returning.
- **Stack changes only after confirmation.**  ``change_directory``
  pushes a name only once a snapshot has shown the container exists;
  a failed ``cd`` leaves the path untouched.
- **Stale paths are errors, not crashes.**  If a container on the path
  disappeared (deleted by another session, or by this one), resolution
  yields None and the operation raises ``ContainerNotFoundError``.  The
  stack keeps pointing at the missing container until the user moves.
- **Entries live below the root.**  Reading or writing an entry at the
  root raises ``NotPositionedError``.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from bucket_shell.codec import Codec, decode, display, encode_text
from bucket_shell.errors import (
    AlreadyExistsError,
    BucketShellError,
    ContainerNotFoundError,
    KeyNotFoundError,
    NotPositionedError,
    StoreUnavailableError,
    UsageError,
)
from bucket_shell.logging import Logger, LogLevel
from bucket_shell.path_stack import PathStack
from bucket_shell.store.base import Container, Store, Transaction

PARENT = ".."
ROOT = "/"

_LOG_SOURCE = "navigator"
_PATH_SEPARATOR = " -> "


class ItemKind(StrEnum):
    """What a name inside a container denotes."""

    CONTAINER = "container"
    ENTRY = "entry"


@dataclass(frozen=True)
class ListingRow:
    """One line of a container listing.

    ``value`` is the raw entry value, or None for containers.
    """

    name: bytes
    kind: ItemKind
    value: bytes | None = None


def _as_bytes(name: str | bytes) -> bytes:
    """Encode names typed at the shell; pass raw bytes through."""
    return name.encode() if isinstance(name, str) else name


class Navigator:
    """Process-local navigation state over a shared store.

    Several navigators may share one store; each keeps its own path and
    resolves it afresh in every transaction.
    """

    def __init__(self, store: Store, *, logger: Logger | None = None) -> None:
        """Create a navigator positioned at the root of *store*.

        Args:
            store: The open store to navigate.
            logger: Audit log to record into.  A private one is created
                if not provided.

        """
        self._store = store
        self._stack = PathStack()
        self._logger = logger if logger is not None else Logger()

    @property
    def store(self) -> Store:
        """Return the store being navigated."""
        return self._store

    @property
    def logger(self) -> Logger:
        """Return the audit log."""
        return self._logger

    @property
    def path(self) -> tuple[bytes, ...]:
        """Return the current path, root first."""
        return self._stack.snapshot()

    @property
    def is_root(self) -> bool:
        """Return True when positioned at the root."""
        return self._stack.is_root

    # -- Resolution ----------------------------------------------------------

    def resolve(self, tx: Transaction) -> Container | None:
        """Walk the path inside *tx* and return the current container.

        Returns:
            The root container for an empty path, the container the path
            names, or None if any container along the way is missing.

        """
        container = tx.root()
        for segment in self._stack.snapshot():
            child = container.child(segment)
            if child is None:
                return None
            container = child
        return container

    def _require_current(self, tx: Transaction) -> Container:
        """Resolve the path or raise ``ContainerNotFoundError``."""
        container = self.resolve(tx)
        if container is None:
            msg = f"Not found container: {self.print_working_path()}"
            raise ContainerNotFoundError(msg)
        return container

    @staticmethod
    def _require_name(raw: bytes, what: str) -> None:
        if not raw:
            msg = f"{what} must not be empty"
            raise UsageError(msg)

    def _require_positioned(self, action: str) -> None:
        if self._stack.is_root:
            msg = f"{action} needs a current container; cd into one first"
            raise NotPositionedError(msg)

    @contextlib.contextmanager
    def _audit(self, action: str) -> Iterator[None]:
        """Record a failed operation in the log, then let it propagate."""
        try:
            yield
        except StoreUnavailableError as e:
            self._logger.log(LogLevel.ERROR, f"{action} failed: {e}", source=_LOG_SOURCE)
            raise
        except BucketShellError as e:
            self._logger.log(LogLevel.WARNING, f"{action} failed: {e}", source=_LOG_SOURCE)
            raise

    def _info(self, message: str) -> None:
        self._logger.log(LogLevel.INFO, message, source=_LOG_SOURCE)

    # -- Navigation ----------------------------------------------------------

    def print_working_path(self) -> str:
        """Render the path as ``/`` or ``/ -> a -> b``.  No store access."""
        segments = self._stack.snapshot()
        if not segments:
            return ROOT
        return ROOT + _PATH_SEPARATOR + _PATH_SEPARATOR.join(display(s) for s in segments)

    def change_directory(self, name: str | bytes) -> str:
        """Move to the parent (``..``), the root (``/``) or a child container.

        Returns:
            The working path after the move.

        Raises:
            ContainerNotFoundError: If the current path is stale or the
                child does not exist.  The path is left unchanged.

        """
        segment = _as_bytes(name)
        if segment == PARENT.encode():
            self._stack.pop()
            self._info(f"cd .. -> {self.print_working_path()}")
            return self.print_working_path()
        if segment == ROOT.encode():
            self._stack.clear()
            self._info(f"cd / -> {self.print_working_path()}")
            return self.print_working_path()

        with self._audit(f"cd {display(segment)}"):
            if not segment:
                msg = "Not found container: (empty name)"
                raise ContainerNotFoundError(msg)

            def _exists(tx: Transaction) -> bool:
                return self._require_current(tx).child(segment) is not None

            if not self._store.with_read_snapshot(_exists):
                msg = f"Not found container: {display(segment)}"
                raise ContainerNotFoundError(msg)

        self._stack.push(segment)
        self._info(f"cd {display(segment)} -> {self.print_working_path()}")
        return self.print_working_path()

    def list(self) -> list[ListingRow]:
        """List the current container, tagging each name as container or entry.

        A name is a container when ``child()`` finds it in the same
        container; the value bytes play no part in the decision.

        Raises:
            ContainerNotFoundError: If the current path is stale.

        """

        def _list(tx: Transaction) -> list[ListingRow]:
            container = self._require_current(tx)
            rows: list[ListingRow] = []
            for name, value in container.iterate():
                if container.child(name) is not None:
                    rows.append(ListingRow(name=name, kind=ItemKind.CONTAINER))
                else:
                    rows.append(ListingRow(name=name, kind=ItemKind.ENTRY, value=value or b""))
            return rows

        with self._audit("ls"):
            return self._store.with_read_snapshot(_list)

    # -- Entries -------------------------------------------------------------

    def get_decoded(self, key: str | bytes, codec: Codec = Codec.RAW) -> bytes | int | datetime:
        """Read entry *key* in the current container and decode it.

        Raises:
            NotPositionedError: At the root.
            ContainerNotFoundError: If the current path is stale.
            KeyNotFoundError: If the entry does not exist.
            DecodeError: If the value is malformed for *codec*.

        """
        raw_key = _as_bytes(key)
        verb = "get" if codec is Codec.RAW else str(codec)
        with self._audit(f"{verb} {display(raw_key)}"):
            self._require_name(raw_key, "Key")
            self._require_positioned(verb)

            def _get(tx: Transaction) -> bytes:
                value = self._require_current(tx).get(raw_key)
                if value is None:
                    msg = f"Not found key: {display(raw_key)}"
                    raise KeyNotFoundError(msg)
                return value

            value = self._store.with_read_snapshot(_get)
            return decode(value, codec)

    def put(self, key: str | bytes, value: str | bytes) -> None:
        """Upsert entry *key*, or delete it when *value* is empty.

        Raises:
            UsageError: If *key* is empty.
            NotPositionedError: At the root.
            ContainerNotFoundError: If the current path is stale.
            KeyNotFoundError: When deleting an entry that does not exist.

        """
        raw_key = _as_bytes(key)
        raw_value = _as_bytes(value)
        with self._audit(f"put {display(raw_key)}"):
            self._require_name(raw_key, "Key")
            self._require_positioned("put")

            def _put(tx: Transaction) -> None:
                container = self._require_current(tx)
                if raw_value:
                    container.put(raw_key, raw_value)
                    return
                if container.get(raw_key) is None:
                    msg = f"Not found key: {display(raw_key)}"
                    raise KeyNotFoundError(msg)
                container.delete(raw_key)

            self._store.with_write_transaction(_put)

        action = "put" if raw_value else "deleted"
        self._info(f"{action} {display(raw_key)} in {self.print_working_path()}")

    def put_encoded(self, key: str | bytes, text: str, codec: Codec) -> None:
        """Parse *text* for *codec* and store the result under *key*.

        Raises the same errors as ``put``, and also:

        Raises:
            EncodeError: If *text* is not a valid value for *codec*.

        """
        raw_key = _as_bytes(key)
        with self._audit(f"put{codec} {display(raw_key)}"):
            value = encode_text(text, codec)
        self.put(raw_key, value)

    # -- Containers ----------------------------------------------------------

    def create_container(self, name: str | bytes) -> None:
        """Create container *name* at the root or in the current container.

        Raises:
            UsageError: If *name* is empty.
            ContainerNotFoundError: If the current path is stale.
            AlreadyExistsError: If a container called *name* exists.

        """
        raw_name = _as_bytes(name)

        def _create(tx: Transaction) -> None:
            parent = self._require_current(tx)
            if parent.child(raw_name) is not None:
                msg = f"Already exists: {display(raw_name)}"
                raise AlreadyExistsError(msg)
            parent.create_child(raw_name)

        with self._audit(f"mkdir {display(raw_name)}"):
            self._require_name(raw_name, "Container name")
            self._store.with_write_transaction(_create)
        self._info(f"created {display(raw_name)} in {self.print_working_path()}")

    def delete_container(self, name: str | bytes) -> None:
        """Delete container *name* (and its contents) from the current location.

        Raises:
            UsageError: If *name* is empty.
            ContainerNotFoundError: If the current path is stale or there
                is no container called *name*.

        """
        raw_name = _as_bytes(name)

        def _delete(tx: Transaction) -> None:
            parent = self._require_current(tx)
            if parent.child(raw_name) is None:
                msg = f"Not found container: {display(raw_name)}"
                raise ContainerNotFoundError(msg)
            parent.delete_child(raw_name)

        with self._audit(f"rmdir {display(raw_name)}"):
            self._require_name(raw_name, "Container name")
            self._store.with_write_transaction(_delete)
        self._info(f"deleted {display(raw_name)} from {self.print_working_path()}")
