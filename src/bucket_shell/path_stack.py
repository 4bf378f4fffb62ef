"""The path stack — the client-side notion of "where am I".

The store has no current working directory.  The shell keeps one
itself as an ordered list of container names from the root down to the
current location:

    []            → at the root
    [b"a"]        → inside top-level container ``a``
    [b"a", b"b"]  → inside ``b``, which lives inside ``a``

The stack never checks that its names exist.  Existence is a property
of a particular transaction, so the navigator re-resolves the stack
against the live store every time it needs a location.
"""


class PathStack:
    """Ordered container names from the root to the current location.

    ``push``, ``pop`` and ``clear`` are the only mutators; ``snapshot``
    hands out an immutable tuple so callers cannot bypass them.
    """

    def __init__(self) -> None:
        """Create an empty stack (positioned at the root)."""
        self._segments: list[bytes] = []

    def push(self, segment: bytes) -> None:
        """Descend into *segment*.

        Raises:
            ValueError: If *segment* is empty.

        """
        if not segment:
            msg = "Path segment must not be empty"
            raise ValueError(msg)
        self._segments.append(segment)

    def pop(self) -> None:
        """Move up one level.  Popping at the root stays at the root."""
        if self._segments:
            self._segments.pop()

    def clear(self) -> None:
        """Return to the root."""
        self._segments.clear()

    def snapshot(self) -> tuple[bytes, ...]:
        """Return the segments root-first as an immutable tuple."""
        return tuple(self._segments)

    @property
    def is_root(self) -> bool:
        """Return True if the stack is empty."""
        return not self._segments

    @property
    def top(self) -> bytes | None:
        """Return the innermost segment, or None at the root."""
        return self._segments[-1] if self._segments else None

    def __len__(self) -> int:
        """Return the depth below the root."""
        return len(self._segments)
