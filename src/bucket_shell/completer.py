"""Context-aware tab completer for the bucket shell.

The completer separates **what to complete** (pure logic, fully
testable) from **how to wire it** (readline integration in the REPL).

The ``complete(text, state)`` method is the readline callback.  It
delegates to ``completions(text, line)`` which analyses the input
context and returns a list of candidate strings.  Names are looked up
by listing the current container, so candidates always reflect the
store as it is right now.
"""

from __future__ import annotations

import readline
from typing import TYPE_CHECKING

from bucket_shell.codec import display
from bucket_shell.errors import BucketShellError
from bucket_shell.logging import LogLevel
from bucket_shell.navigator import PARENT, ItemKind
from bucket_shell.shell import LOG_CLEAR

if TYPE_CHECKING:
    from bucket_shell.navigator import Navigator
    from bucket_shell.shell import Shell

# Commands whose argument is a container at the current location.
_CONTAINER_COMMANDS: frozenset[str] = frozenset(["cd", "rmdir"])

# Commands whose first argument is an entry key at the current location.
_ENTRY_COMMANDS: frozenset[str] = frozenset(["get", "int", "time", "put", "putint", "puttime"])


class Completer:
    """Context-aware tab completer for the bucket shell."""

    def __init__(self, shell: Shell) -> None:
        """Create a completer attached to a shell instance.

        Args:
            shell: The shell whose commands and navigator are used to
                   generate completion candidates.

        """
        self._shell = shell
        self._navigator: Navigator = shell.navigator

    def complete(self, text: str, state: int) -> str | None:
        """Readline callback — return the *state*-th candidate for *text*.

        Args:
            text: The partial word being completed.
            state: Index into the candidate list (0, 1, 2, …).

        Returns:
            The candidate at *state*, or ``None`` when exhausted.

        """
        line = readline.get_line_buffer()
        candidates = self.completions(text, line)
        if state < len(candidates):
            return candidates[state]
        return None

    def completions(self, text: str, line: str) -> list[str]:
        """Return completion candidates based on context.

        Args:
            text: The partial word under the cursor.
            line: The full input line so far.

        Returns:
            Sorted list of matching candidates.

        """
        words = line.lstrip().split()

        # No words yet, or still typing the first word → command completion
        if not words or (len(words) == 1 and not line.endswith(" ")):
            return self._complete_commands(text)

        # Only the first argument is completed.
        position = len(words) if line.endswith(" ") else len(words) - 1
        if position != 1:
            return []

        cmd = words[0]
        if cmd == "cd":
            names = self._complete_names(ItemKind.CONTAINER, text)
            return sorted([*names, PARENT]) if PARENT.startswith(text) else names
        if cmd in _CONTAINER_COMMANDS:
            return self._complete_names(ItemKind.CONTAINER, text)
        if cmd in _ENTRY_COMMANDS:
            return self._complete_names(ItemKind.ENTRY, text)
        if cmd == "log":
            words = [level.name.lower() for level in LogLevel] + [LOG_CLEAR]
            return sorted(w for w in words if w.startswith(text))
        return []

    # -- private completers ------------------------------------------------

    def _complete_commands(self, text: str) -> list[str]:
        """Complete command names from the shell's dispatch table."""
        return [cmd for cmd in self._shell.command_names if cmd.startswith(text)]

    def _complete_names(self, kind: ItemKind, text: str) -> list[str]:
        """Complete names of *kind* in the current container.

        Names that cannot be typed back verbatim (non-printable bytes)
        are left out.
        """
        try:
            rows = self._navigator.list()
        except BucketShellError:
            return []

        candidates: list[str] = []
        for row in rows:
            if row.kind is not kind:
                continue
            shown = display(row.name)
            if shown.encode() == row.name and shown.startswith(text):
                candidates.append(shown)
        return sorted(candidates)
