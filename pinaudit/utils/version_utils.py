"""
Dotted-numeric version helpers for pinaudit.

Only the leading run of digits and dots of a version string takes part in
comparisons; anything after it (pre-release tags, build metadata) is kept
as an opaque suffix and ignored for ordering. ``1.2.3-beta`` therefore
compares equal to ``1.2.3``.

Numeric parts compare component by component, and a version with fewer
components sorts before one that extends it: ``1.0 < 1.0.0 < 1.0.0.1``.
"""

from __future__ import annotations

import re
from typing import Tuple

from packaging.version import Version

_NUMERIC_PREFIX = re.compile(r"[0-9][0-9.]*")


def split_version(text: str) -> Tuple[str, str]:
    """Split a version string into its dotted-numeric prefix and suffix.

    Surrounding whitespace is ignored. Trailing dots of the numeric run
    belong to the suffix, as do empty components (``1..2`` yields ``1``).

    Returns:
        ``(prefix, suffix)``; ``prefix`` is empty when the text does not
        start with a digit.

    Examples:
        >>> split_version("1.2.3-beta")
        ('1.2.3', '-beta')
        >>> split_version("4.0.0.")
        ('4.0.0', '.')
        >>> split_version("latest")
        ('', 'latest')
    """
    stripped = text.strip()
    match = _NUMERIC_PREFIX.match(stripped)
    if match is None:
        return "", stripped

    run = match.group(0)
    if ".." in run:
        run = run[: run.index("..")]
    prefix = run.rstrip(".")
    return prefix, stripped[len(prefix) :]


def parse_numeric(prefix: str) -> Tuple[int, ...]:
    """Turn ``"1.20.3"`` into ``(1, 20, 3)``.

    Every component is kept, so ``"1.0"`` and ``"1.0.0"`` give different
    tuples and the shorter one sorts first.
    """
    return Version(prefix).release
