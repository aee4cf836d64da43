"""
Unified data model exports for pinaudit.

Example:
    >>> from pinaudit.models import Package, Conflict, VersionInterval
"""

from __future__ import annotations

from pinaudit.models.conflict import Conflict, RangeDiagnostic
from pinaudit.models.package import AssemblyRecord, DependencyEdge, Package
from pinaudit.models.version_range import VersionBound, VersionInterval, satisfies

__all__ = [
    "Package",
    "DependencyEdge",
    "AssemblyRecord",
    "Conflict",
    "RangeDiagnostic",
    "VersionBound",
    "VersionInterval",
    "satisfies",
]
