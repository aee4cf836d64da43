"""
pinaudit: audit centrally pinned package versions

Given a set of root packages and a central version manifest, pinaudit walks
the transitive dependency closure at the pinned versions and reports every
declared dependency range the pins violate.

Features include:
    • Multi-root attribution of every package in the closure
    • Interval-notation version range checking
    • CSV reports for packages, assemblies, conflicts and dependency edges
    • Offline audits from JSON metadata snapshots
"""

from __future__ import annotations

from pinaudit.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "pinaudit Contributors"
__license__ = "Apache-2.0"
__description__ = "Audit pinned package versions against declared dependency ranges."

__all__ = [
    "__version__",
]
