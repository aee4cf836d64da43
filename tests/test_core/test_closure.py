"""Unit tests for pinaudit.core.closure module.

Test Coverage:
- Conflict detection along declared edges
- Multi-root attribution, including packages reached late from a second root
- Termination on cycles
- Unpinned roots and dependencies (missing pins, never queried)
- Lenient vs strict handling of malformed ranges
- Idempotent re-runs and progress callbacks
- Assembly collection
"""

from __future__ import annotations

from typing import List, Tuple

import pytest

from pinaudit.core.manifest import PinManifest
from pinaudit.core.sources import InMemoryDependencySource, MetadataStore
from pinaudit.core.closure import ClosureBuilder, ClosureResult, collect_assemblies
from pinaudit.exceptions import InvalidVersionError, MalformedRangeError
from pinaudit.models import Conflict, Package


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def source() -> InMemoryDependencySource:
    """App 1.0.0 needs Lib in [2.1.0, 3.0.0); Lib is pinned at 2.0.0."""
    src = InMemoryDependencySource()
    src.add_dependency("App", "1.0.0", "net8.0", "Lib", "[2.1.0, 3.0.0)")
    src.add_dependency("Lib", "2.0.0", "net8.0", "Core", "[1.0.0, )")
    return src


@pytest.fixture
def manifest() -> PinManifest:
    return PinManifest({"App": "1.0.0", "Lib": "2.0.0", "Core": "1.2.0"})


async def _build(
    source: InMemoryDependencySource,
    manifest: PinManifest,
    roots: List[str],
    **kwargs,
) -> ClosureResult:
    return await ClosureBuilder(source, manifest, **kwargs).build(roots)


# ============================================================================
# Traversal
# ============================================================================


@pytest.mark.unit
class TestClosureTraversal:
    """Tests for the worklist traversal."""

    @pytest.mark.asyncio
    async def test_detects_conflict(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        result = await _build(source, manifest, ["App"])

        assert result.sorted_conflicts() == [
            Conflict("net8.0", "App", "1.0.0", "Lib", "[2.1.0, 3.0.0)", "2.0.0")
        ]
        assert result.has_conflicts()

    @pytest.mark.asyncio
    async def test_satisfied_ranges_produce_no_conflict(
        self, source: InMemoryDependencySource
    ) -> None:
        manifest = PinManifest({"App": "1.0.0", "Lib": "2.5.0", "Core": "1.0.0"})

        result = await _build(source, manifest, ["App"])

        assert result.conflicts == set()
        assert [p.name for p in result.sorted_packages()] == ["App", "Core", "Lib"]

    @pytest.mark.asyncio
    async def test_pin_on_inclusive_lower_bound_is_satisfied(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0.0", "net8.0", "Lib", "[2.0.0, 3.0.0)")
        manifest = PinManifest({"App": "1.0.0", "Lib": "2.0.0"})

        result = await _build(src, manifest, ["App"])

        assert result.conflicts == set()
        assert not result.has_conflicts()

    @pytest.mark.asyncio
    async def test_transitive_packages_get_pins_and_roots(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        result = await _build(source, manifest, ["App"])

        assert result.packages["Core"].pinned_version == "1.2.0"
        assert result.root_names("Core") == ["App"]
        assert result.root_names("App") == ["App"]

    @pytest.mark.asyncio
    async def test_edges_are_recorded(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        result = await _build(source, manifest, ["App"])

        assert [e.to_row() for e in result.sorted_edges()] == [
            ("App", "1.0.0", "net8.0", "Lib", "[2.1.0, 3.0.0)"),
            ("Lib", "2.0.0", "net8.0", "Core", "[1.0.0, )"),
        ]

    @pytest.mark.asyncio
    async def test_each_framework_checked_separately(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0", "net8.0", "Lib", "[2.0, )")
        src.add_dependency("App", "1.0", "net472", "Lib", "[1.0, )")
        manifest = PinManifest({"App": "1.0", "Lib": "1.5"})

        result = await _build(src, manifest, ["App"])

        assert [c.target_framework for c in result.sorted_conflicts()] == ["net8.0"]
        assert len(result.edges) == 2

    @pytest.mark.asyncio
    async def test_duplicate_roots_are_seeded_once(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        result = await _build(source, manifest, ["App", "App"])

        assert result.roots == ["App"]


@pytest.mark.unit
class TestMultiRootAttribution:
    """Tests for root attribution across several roots."""

    @pytest.mark.asyncio
    async def test_shared_dependency_attributed_to_both_roots(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0", "net8.0", "Shared", "[1.0, )")
        src.add_dependency("Service", "1.0", "net8.0", "Mid", "[1.0, )")
        src.add_dependency("Mid", "1.0", "net8.0", "Shared", "[1.0, )")
        src.add_dependency("Shared", "1.0", "net8.0", "Leaf", "[1.0, )")
        manifest = PinManifest(
            {"App": "1.0", "Service": "1.0", "Mid": "1.0", "Shared": "1.0", "Leaf": "1.0"}
        )

        result = await _build(src, manifest, ["App", "Service"])

        assert result.root_names("Shared") == ["App", "Service"]
        assert result.root_names("Leaf") == ["App", "Service"]
        assert result.root_names("Mid") == ["Service"]

    @pytest.mark.asyncio
    async def test_root_reachable_from_other_root(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0", "net8.0", "Lib", "[1.0, )")
        manifest = PinManifest({"App": "1.0", "Lib": "1.0"})

        result = await _build(src, manifest, ["App", "Lib"])

        assert result.root_names("Lib") == ["App", "Lib"]
        assert result.root_names("App") == ["App"]

    @pytest.mark.asyncio
    async def test_cycle_from_two_roots_terminates(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("A", "1.0", "net8.0", "B", "[1.0, )")
        src.add_dependency("B", "1.0", "net8.0", "A", "[1.0, )")
        manifest = PinManifest({"A": "1.0", "B": "1.0"})

        result = await _build(src, manifest, ["A", "B"])

        assert result.root_names("A") == ["A", "B"]
        assert result.root_names("B") == ["A", "B"]
        assert len(result.edges) == 2
        # Each package can be revisited at most once per root it gains.
        assert result.visits <= 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("roots", [["R1", "R2"], ["R2", "R1"]], ids=["r1-first", "r2-first"])
    async def test_attribution_independent_of_root_order(self, roots: List[str]) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("R1", "1.0.0", "net8.0", "A", "[1.0.0, )")
        src.add_dependency("R2", "1.0.0", "net8.0", "B", "[1.0.0, )")
        src.add_dependency("A", "1.0.0", "net8.0", "B", "[2.0.0, )")
        src.add_dependency("B", "1.0.0", "net8.0", "A", "[1.0.0, )")
        manifest = PinManifest({"R1": "1.0.0", "R2": "1.0.0", "A": "1.0.0", "B": "1.0.0"})

        result = await _build(src, manifest, roots)

        assert result.root_names("A") == ["R1", "R2"]
        assert result.root_names("B") == ["R1", "R2"]
        assert result.root_names("R1") == ["R1"]
        assert result.root_names("R2") == ["R2"]
        # A is re-processed once its root set grows; the conflict is still reported once.
        assert result.sorted_conflicts() == [
            Conflict("net8.0", "A", "1.0.0", "B", "[2.0.0, )", "1.0.0")
        ]

    @pytest.mark.asyncio
    async def test_self_cycle_terminates(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("A", "1.0", "net8.0", "A", "[1.0, )")
        manifest = PinManifest({"A": "1.0"})

        result = await _build(src, manifest, ["A"])

        assert result.visits == 1
        assert result.root_names("A") == ["A"]


@pytest.mark.unit
class TestMissingPins:
    """Tests for packages without a pinned version."""

    @pytest.mark.asyncio
    async def test_unpinned_dependency_is_missing_and_not_queried(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0", "net8.0", "Ghost", "[1.0, )")
        manifest = PinManifest({"App": "1.0"})

        result = await _build(src, manifest, ["App"])

        assert result.sorted_missing() == ["Ghost"]
        assert result.packages["Ghost"].pinned_version == ""
        assert result.conflicts == set()
        assert src.dependency_queries == 1

    @pytest.mark.asyncio
    async def test_unpinned_root_is_missing(self) -> None:
        src = InMemoryDependencySource()

        result = await _build(src, PinManifest(), ["Orphan"])

        assert result.sorted_missing() == ["Orphan"]
        assert "Orphan" in result.packages
        assert src.dependency_queries == 0


@pytest.mark.unit
class TestRangeHandling:
    """Tests for malformed range handling."""

    @pytest.fixture
    def malformed(self) -> Tuple[InMemoryDependencySource, PinManifest]:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0", "net8.0", "Lib", "1.0.0")
        src.add_dependency("App", "1.0", "net8.0", "Other", "[9.0, )")
        return src, PinManifest({"App": "1.0", "Lib": "1.0.0", "Other": "1.0"})

    @pytest.mark.asyncio
    async def test_lenient_records_diagnostic_and_continues(
        self, malformed: Tuple[InMemoryDependencySource, PinManifest]
    ) -> None:
        src, manifest = malformed

        result = await _build(src, manifest, ["App"])

        diagnostics = result.sorted_diagnostics()
        assert len(diagnostics) == 1
        assert diagnostics[0].dependency_name == "Lib"
        assert "Unknown version range format" in diagnostics[0].error
        assert [c.dependency_name for c in result.conflicts] == ["Other"]
        assert "Lib" in result.packages

    @pytest.mark.asyncio
    async def test_strict_raises(
        self, malformed: Tuple[InMemoryDependencySource, PinManifest]
    ) -> None:
        src, manifest = malformed

        with pytest.raises(MalformedRangeError):
            await _build(src, manifest, ["App"], strict_ranges=True)

    @pytest.mark.asyncio
    async def test_unparseable_pin_is_a_diagnostic(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("App", "1.0", "net8.0", "Lib", "[1.0, )")
        manifest = PinManifest({"App": "1.0", "Lib": "$(LibVersion)"})

        result = await _build(src, manifest, ["App"])

        assert len(result.diagnostics) == 1
        with pytest.raises(InvalidVersionError):
            await _build(src, manifest, ["App"], strict_ranges=True)


@pytest.mark.unit
class TestBuilderBehaviour:
    """Tests for re-runs, progress reporting and caching."""

    @pytest.mark.asyncio
    async def test_rebuild_is_idempotent(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        builder = ClosureBuilder(source, manifest)

        first = await builder.build(["App"])
        second = await builder.build(["App"])

        assert first.sorted_conflicts() == second.sorted_conflicts()
        assert first.sorted_edges() == second.sorted_edges()
        assert first.roots_of == second.roots_of
        assert first is not second

    @pytest.mark.asyncio
    async def test_progress_callback_called_per_visit(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        seen: List[str] = []

        def on_visit(package: Package, remaining: int) -> None:
            seen.append(package.name)

        result = await _build(source, manifest, ["App"], progress_callback=on_visit)

        assert seen == ["App", "Lib", "Core"]
        assert result.visits == 3

    @pytest.mark.asyncio
    async def test_metadata_store_avoids_requerying(self) -> None:
        src = InMemoryDependencySource()
        src.add_dependency("A", "1.0", "net8.0", "B", "[1.0, )")
        src.add_dependency("B", "1.0", "net8.0", "A", "[1.0, )")
        manifest = PinManifest({"A": "1.0", "B": "1.0"})

        result = await _build(MetadataStore(src), manifest, ["A", "B"])

        assert result.visits > 2
        assert src.dependency_queries == 2

    @pytest.mark.asyncio
    async def test_summary(
        self, source: InMemoryDependencySource, manifest: PinManifest
    ) -> None:
        summary = (await _build(source, manifest, ["App"])).summary()

        assert summary["roots"] == 1
        assert summary["packages"] == 3
        assert summary["conflicts"] == 1
        assert summary["missing"] == 0


@pytest.mark.unit
class TestCollectAssemblies:
    """Tests for collect_assemblies."""

    @pytest.mark.asyncio
    async def test_collects_pinned_packages_only(
        self, source: InMemoryDependencySource
    ) -> None:
        source.add_assembly("Lib", "2.0.0", "Lib", "2.0.0.0", "lib/net8.0")
        source.add_assembly("App", "1.0.0", "App", "1.0.0.0", "lib/net8.0")
        manifest = PinManifest({"App": "1.0.0", "Lib": "2.0.0"})
        result = await _build(source, manifest, ["App"])

        records = await collect_assemblies(source, result)

        assert [r.package_name for r in records] == ["App", "Lib"]
        assert records[1].root_packages == ("App",)
        # App and Lib are pinned, Core is not.
        assert source.assembly_queries == 2
