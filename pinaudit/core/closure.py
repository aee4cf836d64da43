"""Dependency closure builder for pinaudit.

Starting from a set of root packages, the builder walks the declared
dependency graph at the versions pinned in the central manifest, checks
every declared range against the dependency's pin and records which roots
(transitively) reach each package.

Traversal is a fixed-point worklist over root-attribution sets rather than
a plain visited-set DFS:

1. Every root is attributed to itself and pushed.
2. Popping package *P* (with its current root set *R*) fetches *P*'s
   declared dependencies. For each row the edge is recorded, the
   dependency's pin is resolved and its range is checked, then *R* is
   merged into the dependency's root set.
3. The dependency is pushed again **only if that merge added a root**.

Root sets only grow and are bounded by the number of roots, so the loop
terminates on cyclic graphs, and a package reached first from root A and
later from root B ends up attributed to both. Conflicts, edges and missing
pins are sets, so re-processing a package never duplicates them.

Typical usage::

    manifest = load_manifest("Packages.props")
    builder = ClosureBuilder(MetadataStore(source), manifest)
    result = await builder.build(["App", "Service"])
    for conflict in result.sorted_conflicts():
        print(conflict)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Set,
)

from pinaudit.utils.logger import get_logger
from pinaudit.core.manifest import PinManifest
from pinaudit.core.sources import DependencySource
from pinaudit.models.version_range import VersionInterval
from pinaudit.models.conflict import Conflict, RangeDiagnostic
from pinaudit.exceptions import InvalidVersionError, MalformedRangeError
from pinaudit.models.package import AssemblyRecord, DependencyEdge, Package

logger = get_logger("closure")

__all__ = ["ClosureBuilder", "ClosureResult", "collect_assemblies"]

#: Called once per dequeued package with the package and the worklist size left.
ProgressCallback = Callable[[Package, int], None]


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


@dataclass
class ClosureResult:
    """Everything one closure run produced.

    Attributes:
        roots: Root names in the order they were seeded.
        packages: Every reached package (roots included), keyed by name.
        roots_of: Root names attributed to each package.
        edges: Declared dependency rows seen during traversal.
        conflicts: Ranges violated by the dependency's pinned version.
        missing: Names of reached packages with no pin in the manifest.
        diagnostics: Edges that could not be checked (unparseable input).
        visits: Number of worklist pops, revisits included.
    """

    roots: List[str] = field(default_factory=list)
    packages: Dict[str, Package] = field(default_factory=dict)
    roots_of: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    edges: Set[DependencyEdge] = field(default_factory=set)
    conflicts: Set[Conflict] = field(default_factory=set)
    missing: Set[str] = field(default_factory=set)
    diagnostics: Set[RangeDiagnostic] = field(default_factory=set)
    visits: int = 0

    def sorted_packages(self) -> List[Package]:
        return sorted(self.packages.values())

    def sorted_edges(self) -> List[DependencyEdge]:
        return sorted(self.edges)

    def sorted_conflicts(self) -> List[Conflict]:
        return sorted(self.conflicts)

    def sorted_missing(self) -> List[str]:
        return sorted(self.missing)

    def sorted_diagnostics(self) -> List[RangeDiagnostic]:
        return sorted(self.diagnostics)

    def root_names(self, package_name: str) -> List[str]:
        """Sorted names of the roots that reach ``package_name``."""
        return sorted(self.roots_of.get(package_name, frozenset()))

    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def summary(self) -> Dict[str, int]:
        return {
            "roots": len(self.roots),
            "packages": len(self.packages),
            "edges": len(self.edges),
            "conflicts": len(self.conflicts),
            "missing": len(self.missing),
            "malformed": len(self.diagnostics),
            "visits": self.visits,
        }


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class ClosureBuilder:
    """Worklist traversal computing the pinned dependency closure.

    All accumulated state lives on the instance for the duration of one
    :meth:`build` call and is handed back as a :class:`ClosureResult`;
    calling :meth:`build` again starts from scratch.

    Args:
        source: Where declared dependencies come from. Wrap remote sources
            in :class:`~pinaudit.core.sources.MetadataStore` to avoid
            re-querying on revisits.
        manifest: Pin lookup table.
        strict_ranges: Abort on the first unparseable range (or pinned
            version) instead of recording a diagnostic and continuing.
        progress_callback: Invoked for each dequeued package.
    """

    def __init__(
        self,
        source: DependencySource,
        manifest: PinManifest,
        *,
        strict_ranges: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.source = source
        self.manifest = manifest
        self.strict_ranges = strict_ranges
        self.progress_callback = progress_callback

        self._intervals: Dict[str, VersionInterval] = {}
        self._reset()

    def _reset(self) -> None:
        self._result = ClosureResult()
        self._attribution: Dict[str, Set[str]] = {}
        self._worklist: List[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def build(self, roots: Iterable[str]) -> ClosureResult:
        """Compute the closure of ``roots``.

        Raises:
            MalformedRangeError: Only with ``strict_ranges``.
            InvalidVersionError: Only with ``strict_ranges``.
            QueryError: The dependency source failed; no partial result.
        """
        self._reset()
        result = self._result

        for name in roots:
            if name in self._attribution:
                continue
            self._add_package(name)
            self._attribution[name] = {name}
            result.roots.append(name)
            self._worklist.append(name)

        logger.info("Building closure from %d root package(s)", len(result.roots))

        while self._worklist:
            name = self._worklist.pop()
            await self._step(result.packages[name])

        result.roots_of = {
            name: frozenset(roots) for name, roots in self._attribution.items()
        }
        logger.info(
            "Closure complete: %d package(s), %d conflict(s), %d visit(s)",
            len(result.packages),
            len(result.conflicts),
            result.visits,
        )
        return result

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def _step(self, package: Package) -> None:
        result = self._result
        result.visits += 1
        logger.info("Processing %s", package.name)
        if self.progress_callback is not None:
            self.progress_callback(package, len(self._worklist))

        if not package.has_pin:
            logger.debug("Skipping dependency query for unpinned %s", package.name)
            return

        # Snapshot: the set may grow while this package's rows are processed (self-cycles).
        current_roots = frozenset(self._attribution[package.name])

        rows = await self.source.fetch_dependencies(package.name, package.pinned_version)
        logger.debug("%s %s declares %d dependency row(s)", package.name, package.pinned_version, len(rows))

        for framework, dependency_name, declared_range in rows:
            result.edges.add(
                DependencyEdge(
                    from_package=package.name,
                    from_version=package.pinned_version,
                    target_framework=framework,
                    to_package=dependency_name,
                    declared_range=declared_range,
                )
            )

            dependency = self._add_package(dependency_name)
            if dependency.has_pin:
                self._check(package, framework, dependency, declared_range)

            if self._attribute(dependency_name, current_roots):
                self._worklist.append(dependency_name)

    def _add_package(self, name: str) -> Package:
        """Return the closure's package for ``name``, resolving its pin once."""
        result = self._result
        package = result.packages.get(name)
        if package is None:
            package = Package(name, self.manifest.resolve(name))
            result.packages[name] = package
            if not package.has_pin:
                logger.debug("No pinned version for %s", name)
                result.missing.add(name)
        return package

    def _attribute(self, name: str, roots: FrozenSet[str]) -> bool:
        """Merge ``roots`` into ``name``'s root set; True if it grew."""
        attributed = self._attribution.setdefault(name, set())
        before = len(attributed)
        attributed |= roots
        return len(attributed) > before

    # ------------------------------------------------------------------
    # Range checking
    # ------------------------------------------------------------------

    def _interval(self, text: str) -> VersionInterval:
        interval = self._intervals.get(text)
        if interval is None:
            interval = VersionInterval.parse(text)
            self._intervals[text] = interval
        return interval

    def _check(
        self,
        package: Package,
        framework: str,
        dependency: Package,
        declared_range: str,
    ) -> None:
        try:
            satisfied = self._interval(declared_range).contains(dependency.pinned_version)
        except (MalformedRangeError, InvalidVersionError) as exc:
            if self.strict_ranges:
                raise
            logger.warning(
                "Cannot check %s -> %s %r (%s): %s",
                package.name,
                dependency.name,
                declared_range,
                framework,
                exc,
            )
            self._result.diagnostics.add(
                RangeDiagnostic(
                    target_framework=framework,
                    package_name=package.name,
                    package_version=package.pinned_version,
                    dependency_name=dependency.name,
                    declared_range=declared_range,
                    error=str(exc),
                )
            )
            return

        if not satisfied:
            conflict = Conflict(
                target_framework=framework,
                package_name=package.name,
                package_version=package.pinned_version,
                dependency_name=dependency.name,
                declared_range=declared_range,
                dependency_version=dependency.pinned_version,
            )
            if conflict not in self._result.conflicts:
                logger.debug("Conflict: %s", conflict)
            self._result.conflicts.add(conflict)


# ---------------------------------------------------------------------------
# Assemblies
# ---------------------------------------------------------------------------


async def collect_assemblies(
    source: DependencySource,
    result: ClosureResult,
) -> List[AssemblyRecord]:
    """Fetch the assemblies of every pinned package in ``result``.

    Returns:
        Sorted, deduplicated records annotated with each package's roots.
    """
    records: Set[AssemblyRecord] = set()

    for package in result.sorted_packages():
        if not package.has_pin:
            continue
        rows = await source.fetch_assemblies(package.name, package.pinned_version)
        roots = result.root_names(package.name)
        for assembly_name, assembly_version, library_path in rows:
            records.add(
                AssemblyRecord.create(
                    package,
                    assembly_name,
                    assembly_version,
                    library_path,
                    roots,
                )
            )

    logger.info("Collected %d assembly record(s)", len(records))
    return sorted(records)
