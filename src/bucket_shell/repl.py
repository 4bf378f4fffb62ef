"""Interactive REPL (Read-Eval-Print Loop) for the bucket shell.

The REPL opens the store named on the command line, creates a
navigator and a shell over it, and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the command to ``shell.execute()``.
    3. **Print** — display the result.
    4. **Loop** — repeat until the shell returns the exit sentinel.

This module keeps the I/O loop separate from the shell logic.  The
shell is fully testable (returns strings, no I/O); the REPL is the
thin I/O wrapper that connects it to ``stdin``/``stdout``.

Only two failures end the process: a bad command line (argparse exits
with status 2) and a store that cannot be opened (status 1).  Anything
that goes wrong after that is reported by the shell and the session
carries on.
"""

import argparse
import readline
import sys
from collections.abc import Sequence
from pathlib import Path

from bucket_shell.codec import display
from bucket_shell.completer import Completer
from bucket_shell.errors import StoreUnavailableError
from bucket_shell.logging import Logger, LogLevel
from bucket_shell.navigator import ROOT, Navigator
from bucket_shell.shell import Shell
from bucket_shell.store.sqlite import SqliteStore

_BANNER = "Simple bucket shell. Type 'help' for commands, 'exit' to quit."
_PROMPT_NAME = "buckets"
_LOG_SOURCE = "repl"


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser: exactly one store path."""
    parser = argparse.ArgumentParser(
        prog="bucket-shell",
        description="Navigate the nested buckets of a key-value store file.",
    )
    parser.add_argument("store", type=Path, help="Path to the store file (created if missing)")
    return parser


def build_prompt(navigator: Navigator) -> str:
    """Build the prompt string showing the innermost container.

    Returns:
        A prompt like ``buckets:/ $ `` at the root or ``buckets:users $ ``.

    """
    path = navigator.path
    here = display(path[-1]) if path else ROOT
    return f"{_PROMPT_NAME}:{here} $ "


def run(argv: Sequence[str] | None = None) -> int:
    """Open the store and run the interactive REPL.

    Args:
        argv: Command-line arguments, without the program name.

    Returns:
        Process exit status.

    """
    args = build_parser().parse_args(argv)

    try:
        store = SqliteStore.open(args.store)
    except StoreUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)  # noqa: T201
        return 1

    logger = Logger()
    logger.log(LogLevel.INFO, f"opened {args.store}", source=_LOG_SOURCE)
    navigator = Navigator(store, logger=logger)
    shell = Shell(navigator=navigator)

    # Wire up tab completion via readline.
    completer = Completer(shell)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")

    print(_BANNER)  # noqa: T201

    try:
        while True:
            try:
                command = input(build_prompt(navigator))
            except EOFError:
                # Ctrl+D
                print()  # noqa: T201
                break

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201

    except KeyboardInterrupt:
        # Ctrl+C
        print("\nInterrupted.")  # noqa: T201

    finally:
        store.close()

    return 0


def main() -> None:
    """Console entry point for ``bucket-shell``."""
    raise SystemExit(run())
