"""
Terminal output for pinaudit, rendered with Rich.

Anything meant for the person running the audit (status lines, per-package
progress, summary and conflict tables) goes through here. Diagnostics
belong to :mod:`pinaudit.utils.logger` instead.

Colour is off when ``NO_COLOR`` or ``CI`` is set or stdout is not a
terminal. The CLI's ``--no-color`` flag sets ``NO_COLOR`` and calls
:func:`reconfigure_console`.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

#: Styles for status lines and for the outcome of a range check.
PINAUDIT_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "dim": "dim",
        "satisfied": "green",
        "outside": "bold red",
        "invalid": "magenta",
        "package": "bold cyan",
    }
)

RowStyler = Callable[[Mapping[str, Any]], Optional[str]]

_console: Optional[Console] = None
_lock = threading.Lock()


def color_enabled() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    try:
        return bool(isatty and isatty())
    except (OSError, ValueError):
        return False


def _build_console() -> Console:
    color = color_enabled()
    return Console(theme=PINAUDIT_THEME, no_color=not color, highlight=color)


def get_raw_console() -> Console:
    """The shared console, built on first use."""
    global _console
    with _lock:
        if _console is None:
            _console = _build_console()
        return _console


def reconfigure_console() -> None:
    """Forget the shared console; the next output re-reads the environment."""
    global _console
    with _lock:
        _console = None


def _emit(text: str, style: str) -> None:
    # Messages embed ranges like "[1.0, 2.0)", which Rich would read as markup.
    get_raw_console().print(text, style=style, markup=False, highlight=False)


def print_success(message: str, *, prefix: str = "[OK]") -> None:
    _emit(f"{prefix} {message}", "success")


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    _emit(f"{prefix} {message}", "error")


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    _emit(f"{prefix} {message}", "warning")


def print_progress(message: str) -> None:
    """One dim line per processed package."""
    _emit(message, "dim")


def print_table(
    rows: List[Dict[str, Any]],
    *,
    headers: Optional[Sequence[str]] = None,
    title: Optional[str] = None,
    caption: Optional[str] = None,
    column_styles: Optional[Dict[str, Dict[str, Any]]] = None,
    row_styler: Optional[RowStyler] = None,
) -> None:
    """Render row dictionaries as a table.

    Args:
        rows: One mapping per row. Cells missing from a row stay empty.
        headers: Column order; the first row's keys when omitted.
        title: Printed above the table.
        caption: Printed below the table.
        column_styles: ``style``, ``justify`` and ``no_wrap`` per column.
        row_styler: Returns a style (a theme name such as ``"outside"``
            works) for a whole row, or ``None`` to leave it plain.

    Nothing is printed for an empty ``rows`` list.
    """
    if not rows:
        return

    columns = list(headers) if headers is not None else list(rows[0])
    table = Table(title=title, caption=caption, header_style="bold")

    for column in columns:
        options = (column_styles or {}).get(column, {})
        table.add_column(
            column,
            style=options.get("style"),
            justify=options.get("justify", "left"),
            no_wrap=options.get("no_wrap", False),
            overflow="fold",
        )

    for row in rows:
        cells = [str(row.get(column, "")) for column in columns]
        table.add_row(*cells, style=row_styler(row) if row_styler else None)

    get_raw_console().print(table)
