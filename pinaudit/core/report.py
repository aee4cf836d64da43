"""Report rendering and writing for pinaudit.

Each report is a delimited text file: a header row followed by data rows,
comma separated, with any field containing a comma quoted (declared ranges
such as ``"[1.0.0, 2.0.0)"`` therefore always appear quoted). Rows are
sorted and deduplicated, so auditing unchanged inputs twice produces
byte-identical files.

``render_*`` functions return report text; :class:`ReportWriter` writes
them atomically into an output directory.
"""

from __future__ import annotations

import io
import csv
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from pinaudit.utils.logger import get_logger
from pinaudit.core.closure import ClosureResult
from pinaudit.models.package import AssemblyRecord
from pinaudit.utils.filesystem import PathLike, safe_write_file
from pinaudit.constants import (
    ASSEMBLIES_REPORT,
    CONFLICTS_REPORT,
    DEPENDENCIES_REPORT,
    MALFORMED_REPORT,
    MISSING_REPORT,
    PACKAGES_REPORT,
)

logger = get_logger("report")

__all__ = [
    "ReportWriter",
    "render_packages",
    "render_assemblies",
    "render_conflicts",
    "render_missing",
    "render_dependencies",
    "render_malformed",
]

PACKAGES_HEADER = ("PackageName", "PackageVersion", "RootPackages")
ASSEMBLIES_HEADER = (
    "PackageName",
    "PackageVersion",
    "DllName",
    "DllVersion",
    "LibraryDirectoryPath",
    "RootPackages",
)
CONFLICTS_HEADER = (
    "TargetFramework",
    "PackageName",
    "PackageVersion",
    "DependencyName",
    "VersionRange",
    "DependencyVersion",
)
DEPENDENCIES_HEADER = (
    "PackageName",
    "PackageVersion",
    "TargetFramework",
    "DependencyName",
    "VersionRange",
)
MALFORMED_HEADER = (
    "TargetFramework",
    "PackageName",
    "PackageVersion",
    "DependencyName",
    "VersionRange",
    "Error",
)


def _render_csv(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)

    # Sorted, duplicate-free rows
    for row in sorted({tuple(row) for row in rows}):
        writer.writerow(row)
    return buffer.getvalue()


def _join_roots(roots: Iterable[str], separator: str = ", ") -> str:
    return separator.join(sorted(roots))


def render_packages(result: ClosureResult, *, include_roots: bool = True) -> str:
    """Packages report: name, pinned version and attributed roots."""
    header = PACKAGES_HEADER if include_roots else PACKAGES_HEADER[:2]
    rows = []
    for package in result.sorted_packages():
        row = [package.name, package.pinned_version]
        if include_roots:
            row.append(_join_roots(result.root_names(package.name)))
        rows.append(row)
    return _render_csv(header, rows)


def render_assemblies(records: Iterable[AssemblyRecord]) -> str:
    return _render_csv(
        ASSEMBLIES_HEADER,
        (
            (
                record.package_name,
                record.package_version,
                record.assembly_name,
                record.assembly_version,
                record.library_path,
                _join_roots(record.root_packages, ","),
            )
            for record in records
        ),
    )


def render_conflicts(result: ClosureResult) -> str:
    return _render_csv(CONFLICTS_HEADER, (c.to_row() for c in result.conflicts))


def render_dependencies(result: ClosureResult) -> str:
    return _render_csv(DEPENDENCIES_HEADER, (e.to_row() for e in result.edges))


def render_malformed(result: ClosureResult) -> str:
    return _render_csv(MALFORMED_HEADER, (d.to_row() for d in result.diagnostics))


def render_missing(result: ClosureResult) -> str:
    """Missing-version report: one package name per line, no header."""
    return "".join(f"{name}\n" for name in result.sorted_missing())


class ReportWriter:
    """Write all pinaudit reports into ``output_dir``.

    Args:
        output_dir: Target directory; created if needed.
        include_roots: Add the ``RootPackages`` column to the packages report.
    """

    def __init__(self, output_dir: PathLike = ".", *, include_roots: bool = True) -> None:
        self.output_dir = Path(output_dir)
        self.include_roots = include_roots

    def _write(self, filename: str, content: str) -> Path:
        path = safe_write_file(self.output_dir / filename, content)
        logger.info("Wrote %s", path)
        return path

    def write_packages(self, result: ClosureResult) -> Path:
        return self._write(
            PACKAGES_REPORT, render_packages(result, include_roots=self.include_roots)
        )

    def write_assemblies(self, records: Iterable[AssemblyRecord]) -> Path:
        return self._write(ASSEMBLIES_REPORT, render_assemblies(records))

    def write_conflicts(self, result: ClosureResult) -> Path:
        return self._write(CONFLICTS_REPORT, render_conflicts(result))

    def write_missing(self, result: ClosureResult) -> Path:
        return self._write(MISSING_REPORT, render_missing(result))

    def write_dependencies(self, result: ClosureResult) -> Path:
        return self._write(DEPENDENCIES_REPORT, render_dependencies(result))

    def write_malformed(self, result: ClosureResult) -> Path:
        return self._write(MALFORMED_REPORT, render_malformed(result))

    def write_all(
        self,
        result: ClosureResult,
        assemblies: Optional[List[AssemblyRecord]] = None,
    ) -> Dict[str, Path]:
        """Write every report; the assemblies report only when ``assemblies`` is given.

        Returns:
            Mapping of report file name to written path.
        """
        written = [
            self.write_packages(result),
            self.write_conflicts(result),
            self.write_missing(result),
            self.write_dependencies(result),
            self.write_malformed(result),
        ]
        if assemblies is not None:
            written.append(self.write_assemblies(assemblies))
        return {path.name: path for path in written}
