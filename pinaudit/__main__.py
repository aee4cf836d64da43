"""
Executable module for pinaudit.

Running:
    python -m pinaudit

is equivalent to:
    pinaudit
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: ImportError) -> None:
    """Report a CLI import failure on stderr."""
    sys.stderr.write("pinaudit CLI could not be loaded.\n")
    sys.stderr.write(f"Python version  : {sys.version}\n")
    try:
        from pinaudit.__version__ import __version__

        sys.stderr.write(f"pinaudit version: {__version__}\n")
    except ImportError:
        sys.stderr.write("pinaudit version: <unknown>\n")
    sys.stderr.write("\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """
    Main entrypoint when executing `python -m pinaudit`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from pinaudit.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
