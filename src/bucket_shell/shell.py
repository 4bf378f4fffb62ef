"""The shell — command dispatch for the bucket navigator.

The shell reads a command string, splits it on whitespace into a verb
and arguments, dispatches to the handler for that verb, and returns a
string result.  It holds no navigation logic of its own: every handler
is a thin wrapper around one ``Navigator`` operation plus formatting.

Design choices:
    - **Returns strings, not prints.**  This keeps the shell fully
      testable and separates concerns (the caller decides how to
      display output).
    - **Command dispatch via a dict.**  Adding a new command means
      writing a method and adding one dict entry.
    - **One error boundary.**  Handlers raise; ``execute`` turns any
      ``BucketShellError`` into an ``Error:`` or ``Usage:`` line, so a
      failed command never ends the session.
"""

from collections.abc import Callable
from datetime import datetime
from typing import TypeAlias

from bucket_shell.codec import Codec, display
from bucket_shell.errors import BucketShellError, UsageError
from bucket_shell.logging import LogLevel
from bucket_shell.navigator import ItemKind, Navigator

# Subcommand of ``log`` that empties the session log.
LOG_CLEAR = "clear"

# Type alias for a command handler: takes a list of args, returns output.
_Handler: TypeAlias = Callable[[list[str]], str]

_USAGE: dict[str, str] = {
    "ls": "ls",
    "cd": "cd <container|..|/>",
    "pwd": "pwd",
    "get": "get <key>",
    "int": "int <key>",
    "time": "time <key>",
    "put": "put <key> [value...]",
    "putint": "putint <key> <unsigned-integer>",
    "puttime": "puttime <key> <iso-8601 timestamp>",
    "mkdir": "mkdir <name>",
    "rmdir": "rmdir <name>",
    "log": "log [debug|info|warning|error [source]] | log clear",
}


def format_value(value: bytes | int | datetime) -> str:
    """Render a decoded value as one line of output."""
    if isinstance(value, bytes):
        return display(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


class Shell:
    """Command interpreter over one navigator."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, navigator: Navigator) -> None:
        """Create a shell driving *navigator*."""
        self._navigator = navigator
        self._history: list[str] = []

        # Verb → handler.
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "ls": self._cmd_ls,
            "cd": self._cmd_cd,
            "pwd": self._cmd_pwd,
            "get": self._cmd_get,
            "int": self._cmd_int,
            "time": self._cmd_time,
            "put": self._cmd_put,
            "putint": self._cmd_putint,
            "puttime": self._cmd_puttime,
            "mkdir": self._cmd_mkdir,
            "rmdir": self._cmd_rmdir,
            "log": self._cmd_log,
            "history": self._cmd_history,
            "exit": self._cmd_exit,
        }

    @property
    def navigator(self) -> Navigator:
        """Return the navigator this shell drives."""
        return self._navigator

    @property
    def command_names(self) -> list[str]:
        """Return the sorted list of available command names."""
        return sorted(self._commands)

    def execute(self, command: str) -> str:
        """Parse and execute one command line.

        Args:
            command: The raw command string (e.g. "cd users").

        Returns:
            The command output, ``Usage: ...`` for malformed arguments,
            or ``Error: ...`` for a failed operation.

        """
        stripped = command.strip()
        if not stripped:
            return ""
        self._history.append(stripped)

        name, *args = stripped.split()
        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}"

        try:
            return handler(args)
        except UsageError as e:
            return f"Usage: {e}"
        except BucketShellError as e:
            return f"Error: {e}"

    # -- Command handlers ------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Available commands: " + ", ".join(self.command_names)

    def _cmd_ls(self, args: list[str]) -> str:
        """List containers and entries at the current location."""
        if args:
            raise UsageError(_USAGE["ls"])
        lines: list[str] = []
        for row in self._navigator.list():
            if row.kind is ItemKind.CONTAINER:
                lines.append(f"[Container] {display(row.name)}")
            else:
                lines.append(f"[Entry] {display(row.name)}={display(row.value or b'')}")
        return "\n".join(lines)

    def _cmd_cd(self, args: list[str]) -> str:
        """Change the current location and print it."""
        if len(args) != 1:
            raise UsageError(_USAGE["cd"])
        return self._navigator.change_directory(args[0])

    def _cmd_pwd(self, args: list[str]) -> str:
        """Show the current location."""
        if args:
            raise UsageError(_USAGE["pwd"])
        return self._navigator.print_working_path()

    def _decoded(self, verb: str, args: list[str], codec: Codec) -> str:
        if len(args) != 1:
            raise UsageError(_USAGE[verb])
        return format_value(self._navigator.get_decoded(args[0], codec))

    def _cmd_get(self, args: list[str]) -> str:
        """Show an entry's raw value."""
        return self._decoded("get", args, Codec.RAW)

    def _cmd_int(self, args: list[str]) -> str:
        """Show an entry decoded as an unsigned varint."""
        return self._decoded("int", args, Codec.UVARINT)

    def _cmd_time(self, args: list[str]) -> str:
        """Show an entry decoded as a binary timestamp."""
        return self._decoded("time", args, Codec.TIME)

    def _cmd_put(self, args: list[str]) -> str:
        """Set an entry's value; with no value, delete the entry."""
        if not args:
            raise UsageError(_USAGE["put"])
        self._navigator.put(args[0], " ".join(args[1:]))
        return ""

    def _cmd_putint(self, args: list[str]) -> str:
        """Store an unsigned integer as a varint."""
        if len(args) != 2:  # noqa: PLR2004
            raise UsageError(_USAGE["putint"])
        self._navigator.put_encoded(args[0], args[1], Codec.UVARINT)
        return ""

    def _cmd_puttime(self, args: list[str]) -> str:
        """Store an ISO-8601 timestamp in binary form."""
        if len(args) < 2:  # noqa: PLR2004
            raise UsageError(_USAGE["puttime"])
        self._navigator.put_encoded(args[0], " ".join(args[1:]), Codec.TIME)
        return ""

    def _cmd_mkdir(self, args: list[str]) -> str:
        """Create a container at the current location."""
        if len(args) != 1:
            raise UsageError(_USAGE["mkdir"])
        self._navigator.create_container(args[0])
        return ""

    def _cmd_rmdir(self, args: list[str]) -> str:
        """Delete a container (and everything in it) at the current location."""
        if len(args) != 1:
            raise UsageError(_USAGE["rmdir"])
        self._navigator.delete_container(args[0])
        return ""

    def _cmd_log(self, args: list[str]) -> str:
        """Show the session log, optionally filtered; ``log clear`` empties it."""
        logger = self._navigator.logger
        if args == [LOG_CLEAR]:
            logger.clear()
            return "Log cleared."
        if len(args) > 2:  # noqa: PLR2004
            raise UsageError(_USAGE["log"])
        min_level = None
        if args:
            try:
                min_level = LogLevel[args[0].upper()]
            except KeyError:
                raise UsageError(_USAGE["log"]) from None
        source = args[1] if len(args) == 2 else None  # noqa: PLR2004
        entries = logger.filter(min_level=min_level, source=source)
        return "\n".join(str(e) for e in entries) if entries else "No log entries."

    def _cmd_history(self, _args: list[str]) -> str:
        """Show command history."""
        if not self._history:
            return "No history."
        lines = [f"  {i + 1}  {cmd}" for i, cmd in enumerate(self._history)]
        return "\n".join(lines)

    def _cmd_exit(self, _args: list[str]) -> str:
        """Signal the REPL to stop."""
        return self.EXIT_SENTINEL
