"""
Version conflict data models for pinaudit.

A :class:`Conflict` is recorded when the pinned version of a dependency
falls outside the range a consuming package declares for it under some
target framework. Conflicts are collected in sets: the full tuple is the
identity, so re-checking the same edge after a revisit never produces a
duplicate. A :class:`RangeDiagnostic` records an edge whose declared range
(or the dependency's pinned version) could not be parsed at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True, order=True)
class Conflict:
    """A declared range that the pinned dependency version violates.

    Args:
        target_framework: Framework the dependency is declared for.
        package_name: Consuming package.
        package_version: Pinned version of the consuming package.
        dependency_name: Package being constrained.
        declared_range: Range text as declared by the consumer.
        dependency_version: Pinned version of the dependency.
    """

    target_framework: str
    package_name: str
    package_version: str
    dependency_name: str
    declared_range: str
    dependency_version: str

    def to_row(self) -> Tuple[str, str, str, str, str, str]:
        return (
            self.target_framework,
            self.package_name,
            self.package_version,
            self.dependency_name,
            self.declared_range,
            self.dependency_version,
        )

    def to_display_string(self) -> str:
        """Return a human-readable description of the conflict."""
        return (
            f"{self.package_name} {self.package_version} ({self.target_framework}) "
            f"requires {self.dependency_name} {self.declared_range}, "
            f"pinned {self.dependency_version}"
        )

    def to_json(self) -> Dict[str, str]:
        return {
            "target_framework": self.target_framework,
            "package_name": self.package_name,
            "package_version": self.package_version,
            "dependency_name": self.dependency_name,
            "declared_range": self.declared_range,
            "dependency_version": self.dependency_version,
        }

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass(frozen=True, order=True)
class RangeDiagnostic:
    """An edge that could not be checked because its input was unparseable."""

    target_framework: str
    package_name: str
    package_version: str
    dependency_name: str
    declared_range: str
    error: str

    def to_row(self) -> Tuple[str, str, str, str, str, str]:
        return (
            self.target_framework,
            self.package_name,
            self.package_version,
            self.dependency_name,
            self.declared_range,
            self.error,
        )
