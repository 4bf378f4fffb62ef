"""Transaction lifecycle shared by the store adapters.

Every transaction moves through a small state machine::

    ACTIVE ──commit──▶ COMMITTED
       └────abort───▶ ABORTED

Handles given out by a transaction check its state before every use.
Once the transaction has left ACTIVE, the handles are dead: using one
raises ``TransactionClosedError`` instead of silently reading a stale
view or writing into a finished transaction.  This is what keeps a
resolved container from leaking from one command into the next.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from itertools import count

from bucket_shell.errors import ReadOnlyTransactionError, TransactionClosedError

_txn_counter = count(start=1)


class TransactionState(StrEnum):
    """Represent the lifecycle state of a transaction."""

    ACTIVE = "active"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class TransactionRecord:
    """Identity, mode and state of one transaction.

    ``txn_id`` values are unique per process and increase in begin order.
    """

    writable: bool
    txn_id: int = field(default_factory=lambda: next(_txn_counter))
    state: TransactionState = TransactionState.ACTIVE

    def ensure_active(self) -> None:
        """Raise unless the transaction is still ACTIVE."""
        if self.state is not TransactionState.ACTIVE:
            msg = f"Transaction {self.txn_id} is {self.state}"
            raise TransactionClosedError(msg)

    def ensure_writable(self) -> None:
        """Raise unless the transaction is ACTIVE and writable."""
        self.ensure_active()
        if not self.writable:
            msg = f"Transaction {self.txn_id} is a read snapshot"
            raise ReadOnlyTransactionError(msg)

    def commit(self) -> None:
        """Mark an ACTIVE transaction as COMMITTED.

        Raises:
            ValueError: If the transaction is not ACTIVE.

        """
        if self.state is not TransactionState.ACTIVE:
            msg = f"Cannot commit {self.state} transaction"
            raise ValueError(msg)
        self.state = TransactionState.COMMITTED

    def abort(self) -> None:
        """Mark an ACTIVE transaction as ABORTED.

        Raises:
            ValueError: If the transaction is not ACTIVE.

        """
        if self.state is not TransactionState.ACTIVE:
            msg = f"Cannot abort {self.state} transaction"
            raise ValueError(msg)
        self.state = TransactionState.ABORTED
