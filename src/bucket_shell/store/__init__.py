"""Store adapters — the contract and the engines that implement it.

Re-exports public symbols so callers can write::

    from bucket_shell.store import MemoryStore, SqliteStore
"""

from bucket_shell.store.base import Container, Store, Transaction
from bucket_shell.store.memory import MemoryStore
from bucket_shell.store.sqlite import SqliteStore
from bucket_shell.store.transaction import TransactionRecord, TransactionState

__all__ = [
    "Container",
    "MemoryStore",
    "SqliteStore",
    "Store",
    "Transaction",
    "TransactionRecord",
    "TransactionState",
]
