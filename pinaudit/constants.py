"""
Centralized constants for pinaudit.

This module defines immutable configuration values used across pinaudit,
including metadata-service settings, default input/output file names and
logging formats. All values are intended to be treated as read-only.
"""

from typing import Final

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "pinaudit/{version}"

# ---------------------------------------------------------------------------
# Metadata service (Kusto / Azure Data Explorer)
# ---------------------------------------------------------------------------

#: REST v1 query endpoint, formatted with the cluster host name.
KUSTO_QUERY_URL: Final[str] = "https://{cluster}/v1/rest/query"

#: Default database holding the package metadata tables.
DEFAULT_DATABASE: Final[str] = "dependency"

#: Table with one row per (package, version, framework, dependency).
DEFAULT_DEPENDENCY_TABLE: Final[str] = "PackageDependency"

#: Table with one row per assembly shipped in a package version.
DEFAULT_ASSEMBLY_TABLE: Final[str] = "PackageAssembly"

#: Environment variable holding a bearer token for the metadata service.
ACCESS_TOKEN_ENV: Final[str] = "PINAUDIT_ACCESS_TOKEN"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

# ---------------------------------------------------------------------------
# Input files
# ---------------------------------------------------------------------------

#: Root package list, one name per line.
DEFAULT_ROOTS_FILE: Final[str] = "roots.txt"

#: Central version manifest (``<PackageVersion Include="..." Version="..." />``).
DEFAULT_MANIFEST_FILE: Final[str] = "Packages.props"

# ---------------------------------------------------------------------------
# Output files
# ---------------------------------------------------------------------------

PACKAGES_REPORT: Final[str] = "Packages.csv"
ASSEMBLIES_REPORT: Final[str] = "DllInfo.csv"
CONFLICTS_REPORT: Final[str] = "VersionConflicts.csv"
MISSING_REPORT: Final[str] = "MissingVersions.txt"
DEPENDENCIES_REPORT: Final[str] = "Dependencies.csv"
MALFORMED_REPORT: Final[str] = "MalformedRanges.csv"

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading input files.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
