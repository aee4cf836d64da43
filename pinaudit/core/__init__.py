"""
Core functionality exports for pinaudit.

    from pinaudit.core import ClosureBuilder, load_manifest, MetadataStore
"""

from __future__ import annotations

from pinaudit.core.manifest import PinManifest, load_manifest, load_roots, parse_roots
from pinaudit.core.sources import (
    AssemblyRow,
    DependencyRow,
    DependencySource,
    InMemoryDependencySource,
    KustoDependencySource,
    MetadataStore,
    SnapshotDependencySource,
)
from pinaudit.core.closure import ClosureBuilder, ClosureResult, collect_assemblies
from pinaudit.core.report import ReportWriter

__all__ = [
    "PinManifest",
    "load_manifest",
    "load_roots",
    "parse_roots",
    "DependencyRow",
    "AssemblyRow",
    "DependencySource",
    "InMemoryDependencySource",
    "SnapshotDependencySource",
    "KustoDependencySource",
    "MetadataStore",
    "ClosureBuilder",
    "ClosureResult",
    "collect_assemblies",
    "ReportWriter",
]
