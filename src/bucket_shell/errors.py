"""Exception hierarchy for the bucket shell.

Every failure the shell can report is a ``BucketShellError``.  The
command surface catches that base class at its dispatch boundary and
turns it into a printed message, so no single failed command can end
the interactive session.

The tree mirrors the kinds of things that go wrong:

- **UsageError** — the command line had the wrong shape.
- **NavigationError** — the current location or a named target does
  not fit the request (not positioned, missing, colliding).
- **DecodeError** — stored bytes do not parse under the chosen codec.
- **EncodeError** — typed input cannot be stored under the chosen codec.
- **StoreError** — the storage engine or a transaction misbehaved.
"""


class BucketShellError(Exception):
    """Base exception for all bucket shell failures."""


class UsageError(BucketShellError):
    """Raised when a command receives the wrong number or shape of arguments."""


class NavigationError(BucketShellError):
    """Base for failures tied to the current location or a named target."""


class NotPositionedError(NavigationError):
    """Raised when an entry operation is attempted at the root."""


class ContainerNotFoundError(NavigationError):
    """Raised when a container is absent at resolution time."""


class KeyNotFoundError(NavigationError):
    """Raised when an entry key is absent."""


class AlreadyExistsError(NavigationError):
    """Raised when creating a container whose name is already taken."""


class IncompatibleValueError(NavigationError):
    """Raised when a name is used as an entry and a container at once."""


class DecodeError(BucketShellError):
    """Raised when stored bytes are malformed for the requested codec."""


class EncodeError(BucketShellError):
    """Raised when typed input cannot be encoded for the requested codec."""


class StoreError(BucketShellError):
    """Base for storage engine and transaction failures."""


class StoreUnavailableError(StoreError):
    """Raised when the engine cannot open the store or run a transaction."""


class TransactionClosedError(StoreError):
    """Raised when a handle is used after its transaction has ended."""


class ReadOnlyTransactionError(StoreError):
    """Raised when a mutation is attempted inside a read snapshot."""
