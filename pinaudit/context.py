"""
Shared context object for pinaudit CLI commands.

One :class:`PinAuditContext` is created per invocation by the top-level
group and injected into subcommands with :data:`pass_context`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from pinaudit.config import PinAuditConfig


class PinAuditContext:
    """Global context object for pinaudit CLI commands.

    Attributes:
        config_path: Path to the configuration file, if any was used.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Loaded configuration (defaults when no file was found).
    """

    __slots__ = ("config_path", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: PinAuditConfig = PinAuditConfig()


#: Click decorator for injecting :class:`PinAuditContext` into commands.
pass_context = click.make_pass_decorator(PinAuditContext, ensure=True)
