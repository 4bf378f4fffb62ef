"""bucket-shell — a filesystem-style navigator for nested key-value buckets.

Re-exports the pieces most callers need::

    from bucket_shell import Navigator, Shell, SqliteStore
"""

from bucket_shell.navigator import ItemKind, ListingRow, Navigator
from bucket_shell.shell import Shell
from bucket_shell.store import MemoryStore, SqliteStore

__all__ = [
    "ItemKind",
    "ListingRow",
    "MemoryStore",
    "Navigator",
    "Shell",
    "SqliteStore",
]
