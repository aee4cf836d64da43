"""
Utility helpers for pinaudit.

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client
- Dotted-numeric version helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

from pinaudit.utils.filesystem import safe_read_file, safe_write_file

from pinaudit.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
    verbosity_to_level,
)

from pinaudit.utils.console import (
    get_raw_console,
    print_error,
    print_progress,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

from pinaudit.utils.http import HTTPClient

from pinaudit.utils.version_utils import parse_numeric, split_version

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "print_progress",
    "get_raw_console",
    "reconfigure_console",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    "verbosity_to_level",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    # HTTP
    "HTTPClient",
    # Versions
    "split_version",
    "parse_numeric",
]
