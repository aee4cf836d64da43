"""
Package and dependency-graph data models for pinaudit.

A :class:`Package` is identified by its name alone. Its pinned version is
looked up once from the central manifest and attached for reporting and
metadata queries, but never takes part in equality, hashing or ordering:
the same name must never appear twice in a closure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Tuple


@dataclass(frozen=True, order=True)
class Package:
    """A package in the closure.

    Attributes:
        name: Package name; the identity key.
        pinned_version: Version from the manifest, or ``""`` if unpinned.
    """

    name: str
    pinned_version: str = field(default="", compare=False)

    @property
    def has_pin(self) -> bool:
        return bool(self.pinned_version)

    def to_json(self) -> Dict[str, Any]:
        return {"name": self.name, "pinned_version": self.pinned_version or None}

    def __str__(self) -> str:
        if self.pinned_version:
            return f"{self.name} {self.pinned_version}"
        return f"{self.name} (unpinned)"


@dataclass(frozen=True, order=True)
class DependencyEdge:
    """One declared dependency row: ``from_package`` needs ``to_package``.

    The same pair may appear several times with different target
    frameworks; each edge is checked on its own.
    """

    from_package: str
    from_version: str
    target_framework: str
    to_package: str
    declared_range: str

    def to_row(self) -> Tuple[str, str, str, str, str]:
        return (
            self.from_package,
            self.from_version,
            self.target_framework,
            self.to_package,
            self.declared_range,
        )


@dataclass(frozen=True, order=True)
class AssemblyRecord:
    """An assembly shipped by a package at its pinned version.

    ``root_packages`` holds the sorted names of the roots that reach the
    package; it is informational and part of the record so rows sort the
    same way on every run.
    """

    package_name: str
    package_version: str
    assembly_name: str
    assembly_version: str
    library_path: str
    root_packages: Tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        package: "Package",
        assembly_name: str,
        assembly_version: str,
        library_path: str,
        roots: Iterable[str] = (),
    ) -> "AssemblyRecord":
        return cls(
            package_name=package.name,
            package_version=package.pinned_version,
            assembly_name=assembly_name,
            assembly_version=assembly_version,
            library_path=library_path,
            root_packages=tuple(sorted(set(roots))),
        )
