"""Range command implementation for pinaudit.

Checks one or more versions against a declared version range, using the same
interval rules the audit applies to dependency edges::

    $ pinaudit range "[2.1.0, 3.0.0)" 2.0.0 2.5.1 3.0.0
"""

from __future__ import annotations

import sys
import click
from typing import Dict, List, Tuple

from pinaudit.models import VersionInterval
from pinaudit.exceptions import InvalidVersionError, MalformedRangeError
from pinaudit.utils import get_logger, print_error, print_table

logger = get_logger("commands.range")

SATISFIED = "satisfied"
OUTSIDE = "outside"
INVALID = "invalid"


@click.command(name="range")
@click.argument("range_text", metavar="RANGE")
@click.argument("versions", metavar="VERSION...", nargs=-1, required=True)
def range_command(range_text: str, versions: Tuple[str, ...]) -> None:
    """Check VERSION... against an interval such as "[1.0.0, 2.0.0)".

    Exits with status 1 if the range is malformed or any version falls
    outside it.
    """
    try:
        interval = VersionInterval.parse(range_text)
    except MalformedRangeError as e:
        print_error(f"{e}")
        sys.exit(1)

    results = evaluate(interval, versions)
    print_table(
        [{"Version": version, "Result": outcome} for version, outcome in results],
        title=f"Range {interval}",
        column_styles={"Version": {"style": "package", "no_wrap": True}},
        row_styler=lambda row: row["Result"],
    )

    if any(outcome != SATISFIED for _, outcome in results):
        sys.exit(1)


def evaluate(interval: VersionInterval, versions: Tuple[str, ...]) -> List[Tuple[str, str]]:
    """Classify each version as satisfied, outside or invalid."""
    results: List[Tuple[str, str]] = []
    seen: Dict[str, str] = {}
    for version in versions:
        if version not in seen:
            try:
                seen[version] = SATISFIED if interval.contains(version) else OUTSIDE
            except InvalidVersionError:
                logger.debug("Version %r has no numeric component", version)
                seen[version] = INVALID
        results.append((version, seen[version]))
    return results
