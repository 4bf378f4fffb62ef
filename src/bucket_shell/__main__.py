"""Module entry point for ``python -m bucket_shell``."""

from bucket_shell.repl import main

if __name__ == "__main__":
    main()
