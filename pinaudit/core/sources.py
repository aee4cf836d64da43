"""Package metadata sources for pinaudit.

A dependency source answers two questions about one exact
``(package, pinned version)`` pair: which dependencies it declares (per
target framework, with the declared version range) and which assemblies it
ships. An empty version or an unknown package yields an empty list rather
than an error.

Three implementations are provided:

- :class:`KustoDependencySource` queries the package metadata tables of an
  Azure Data Explorer (Kusto) cluster over its REST query endpoint.
- :class:`SnapshotDependencySource` answers from a JSON snapshot file, for
  offline audits and CI.
- :class:`InMemoryDependencySource` is a plain in-process table.

:class:`MetadataStore` wraps any of them so that each pair is fetched at
most once per run, however often the closure revisits a package.

Typical usage::

    async with HTTPClient(headers={"Authorization": f"Bearer {token}"}) as http:
        source = MetadataStore(KustoDependencySource(http, cluster="mycluster.kusto.windows.net"))
        rows = await source.fetch_dependencies("Newtonsoft.Json", "13.0.3")
"""

from __future__ import annotations

import re
import json
import uuid
from typing import Any, Dict, List, Mapping, NamedTuple, Protocol, Sequence, Tuple

from pinaudit.utils.http import HTTPClient
from pinaudit.utils.logger import get_logger
from pinaudit.utils.filesystem import PathLike, safe_read_file
from pinaudit.exceptions import ConfigError, NetworkError, ParseError, QueryError
from pinaudit.constants import (
    DEFAULT_ASSEMBLY_TABLE,
    DEFAULT_DATABASE,
    DEFAULT_DEPENDENCY_TABLE,
    KUSTO_QUERY_URL,
)

logger = get_logger("sources")

__all__ = [
    "DependencyRow",
    "AssemblyRow",
    "DependencySource",
    "InMemoryDependencySource",
    "SnapshotDependencySource",
    "KustoDependencySource",
    "MetadataStore",
]


class DependencyRow(NamedTuple):
    target_framework: str
    dependency_name: str
    version_range: str


class AssemblyRow(NamedTuple):
    assembly_name: str
    assembly_version: str
    library_path: str


class DependencySource(Protocol):
    """Query interface the closure builder consumes."""

    async def fetch_dependencies(self, name: str, version: str) -> List[DependencyRow]:
        ...

    async def fetch_assemblies(self, name: str, version: str) -> List[AssemblyRow]:
        ...


_Key = Tuple[str, str]


# ---------------------------------------------------------------------------
# In-process sources
# ---------------------------------------------------------------------------


class InMemoryDependencySource:
    """Dependency source backed by dictionaries.

    ``dependency_queries`` and ``assembly_queries`` count the calls made,
    which is handy when checking caching behaviour.
    """

    def __init__(self) -> None:
        self._dependencies: Dict[_Key, List[DependencyRow]] = {}
        self._assemblies: Dict[_Key, List[AssemblyRow]] = {}
        self.dependency_queries: int = 0
        self.assembly_queries: int = 0

    def add_dependency(
        self,
        name: str,
        version: str,
        target_framework: str,
        dependency_name: str,
        version_range: str,
    ) -> None:
        self._dependencies.setdefault((name, version), []).append(
            DependencyRow(target_framework, dependency_name, version_range)
        )

    def add_assembly(
        self,
        name: str,
        version: str,
        assembly_name: str,
        assembly_version: str,
        library_path: str,
    ) -> None:
        self._assemblies.setdefault((name, version), []).append(
            AssemblyRow(assembly_name, assembly_version, library_path)
        )

    async def fetch_dependencies(self, name: str, version: str) -> List[DependencyRow]:
        self.dependency_queries += 1
        return list(self._dependencies.get((name, version), ()))

    async def fetch_assemblies(self, name: str, version: str) -> List[AssemblyRow]:
        self.assembly_queries += 1
        return list(self._assemblies.get((name, version), ()))


_SNAPSHOT_DEPENDENCY_FIELDS = (
    "name",
    "version",
    "target_framework",
    "dependency_name",
    "version_range",
)
_SNAPSHOT_ASSEMBLY_FIELDS = (
    "name",
    "version",
    "assembly_name",
    "assembly_version",
    "library_path",
)


class SnapshotDependencySource(InMemoryDependencySource):
    """Dependency source loaded from a JSON snapshot.

    Snapshot layout::

        {
          "dependencies": [
            {"name": "App", "version": "1.0.0", "target_framework": "net8.0",
             "dependency_name": "Lib", "version_range": "[2.0.0, 3.0.0)"}
          ],
          "assemblies": [
            {"name": "Lib", "version": "2.0.0", "assembly_name": "Lib",
             "assembly_version": "2.0.0.0", "library_path": "lib/net8.0"}
          ]
        }

    Both lists are optional.
    """

    @classmethod
    def from_json(cls, text: str, *, source: str = "<snapshot>") -> "SnapshotDependencySource":
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ParseError(f"Invalid JSON snapshot: {exc}", file_path=source) from exc

        if not isinstance(data, dict):
            raise ParseError("Snapshot must be a JSON object", file_path=source)

        snapshot = cls()
        for entry in _snapshot_entries(data, "dependencies", _SNAPSHOT_DEPENDENCY_FIELDS, source):
            snapshot.add_dependency(*entry)
        for entry in _snapshot_entries(data, "assemblies", _SNAPSHOT_ASSEMBLY_FIELDS, source):
            snapshot.add_assembly(*entry)

        logger.debug(
            "Loaded snapshot %s: %d dependency key(s), %d assembly key(s)",
            source,
            len(snapshot._dependencies),
            len(snapshot._assemblies),
        )
        return snapshot

    @classmethod
    def load(cls, path: PathLike) -> "SnapshotDependencySource":
        return cls.from_json(safe_read_file(path), source=str(path))


def _snapshot_entries(
    data: Mapping[str, Any],
    section: str,
    fields: Sequence[str],
    source: str,
) -> List[Tuple[str, ...]]:
    entries = data.get(section, [])
    if not isinstance(entries, list):
        raise ParseError(f"Snapshot section '{section}' must be a list", file_path=source)

    result: List[Tuple[str, ...]] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ParseError(
                f"Snapshot {section}[{index}] must be an object", file_path=source
            )
        missing = [name for name in fields if name not in entry]
        if missing:
            raise ParseError(
                f"Snapshot {section}[{index}] is missing: {', '.join(missing)}",
                file_path=source,
            )
        result.append(tuple("" if entry[name] is None else str(entry[name]) for name in fields))
    return result


# ---------------------------------------------------------------------------
# Kusto (Azure Data Explorer)
# ---------------------------------------------------------------------------

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_DEPENDENCY_QUERY = """declare query_parameters(PackageName:string, PackageVersion:string);
{table}
| where Name == PackageName and Version == PackageVersion
| project TargetFramework, DependencyName, DependencyVersionRange"""

_ASSEMBLY_QUERY = """declare query_parameters(PackageName:string, PackageVersion:string);
{table}
| where Name == PackageName and Version == PackageVersion
| project AssemblyName, AssemblyVersion, LibraryDirectoryPath"""


def _query_url(cluster: str) -> str:
    host = cluster.strip().rstrip("/")
    if host.startswith(("https://", "http://")):
        return f"{host}/v1/rest/query"
    return KUSTO_QUERY_URL.format(cluster=host)


class KustoDependencySource:
    """Dependency source reading the package metadata tables in Kusto.

    Expected schemas::

        PackageDependency: Name, Version, TargetFramework, DependencyName,
                           DependencyVersionRange
        PackageAssembly:   Name, Version, AssemblyName, AssemblyVersion,
                           LibraryDirectoryPath, ...

    Authentication is the caller's business: pass an :class:`HTTPClient`
    whose default headers carry an ``Authorization: Bearer`` token for the
    cluster.

    Args:
        http_client: Client used for every query.
        cluster: Cluster host name or ``https://`` URL.
        database: Database holding both tables.
        dependency_table: Name of the dependency table.
        assembly_table: Name of the assembly table.

    Raises:
        ConfigError: A table name is not a plain identifier.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        *,
        cluster: str,
        database: str = DEFAULT_DATABASE,
        dependency_table: str = DEFAULT_DEPENDENCY_TABLE,
        assembly_table: str = DEFAULT_ASSEMBLY_TABLE,
    ) -> None:
        for option, table in (
            ("dependency_table", dependency_table),
            ("assembly_table", assembly_table),
        ):
            if not _IDENTIFIER.match(table):
                raise ConfigError(f"Invalid table name: {table!r}", option=option)

        self.http_client = http_client
        self.cluster = cluster
        self.database = database
        self.dependency_table = dependency_table
        self.assembly_table = assembly_table
        self.url = _query_url(cluster)

    async def fetch_dependencies(self, name: str, version: str) -> List[DependencyRow]:
        if not version:
            return []
        rows = await self._run(
            _DEPENDENCY_QUERY.format(table=self.dependency_table),
            self.dependency_table,
            name,
            version,
            ("TargetFramework", "DependencyName", "DependencyVersionRange"),
        )
        return [DependencyRow(*row) for row in rows]

    async def fetch_assemblies(self, name: str, version: str) -> List[AssemblyRow]:
        if not version:
            return []
        rows = await self._run(
            _ASSEMBLY_QUERY.format(table=self.assembly_table),
            self.assembly_table,
            name,
            version,
            ("AssemblyName", "AssemblyVersion", "LibraryDirectoryPath"),
        )
        return [AssemblyRow(*row) for row in rows]

    async def _run(
        self,
        query: str,
        table: str,
        name: str,
        version: str,
        columns: Sequence[str],
    ) -> List[Tuple[str, ...]]:
        request_id = f"pinaudit;{uuid.uuid4()}"
        properties = {
            "Options": {},
            "Parameters": {"PackageName": name, "PackageVersion": version},
        }
        payload = {
            "db": self.database,
            "csl": query,
            "properties": json.dumps(properties),
        }

        logger.debug("Querying %s for %s %s (request %s)", table, name, version, request_id)
        try:
            body = await self.http_client.post_json(
                self.url,
                json=payload,
                headers={
                    "Accept": "application/json",
                    "x-ms-client-request-id": request_id,
                },
            )
        except NetworkError as exc:
            raise QueryError(
                f"Query against {table} failed: {exc.message}",
                table=table,
                package_name=name,
                package_version=version,
                url=exc.url,
                status_code=exc.status_code,
                response_body=exc.response_body,
            ) from exc

        return _extract_rows(body, columns, table=table, name=name, version=version)


def _extract_rows(
    body: Mapping[str, Any],
    columns: Sequence[str],
    *,
    table: str,
    name: str,
    version: str,
) -> List[Tuple[str, ...]]:
    """Pull the requested columns out of the primary table of a v1 response."""
    tables = body.get("Tables")
    if not isinstance(tables, list) or not tables:
        raise QueryError(
            "Query response contains no result table",
            table=table,
            package_name=name,
            package_version=version,
        )

    primary = tables[0]
    header = [column.get("ColumnName") for column in primary.get("Columns", [])]
    try:
        positions = [header.index(column) for column in columns]
    except ValueError as exc:
        raise QueryError(
            f"Query response is missing expected columns {list(columns)}",
            table=table,
            package_name=name,
            package_version=version,
        ) from exc

    rows: List[Tuple[str, ...]] = []
    for raw in primary.get("Rows", []):
        rows.append(tuple("" if raw[i] is None else str(raw[i]) for i in positions))
    return rows


# ---------------------------------------------------------------------------
# Caching wrapper
# ---------------------------------------------------------------------------


class MetadataStore:
    """Per-run cache in front of a :class:`DependencySource`.

    The closure builder re-processes a package whenever a new root reaches
    it; with this wrapper the underlying source still sees each
    ``(name, version)`` pair at most once per query kind.

    Attributes:
        remote_calls: Number of calls forwarded to the wrapped source.
    """

    def __init__(self, source: DependencySource) -> None:
        self.source = source
        self.remote_calls: int = 0
        self._dependencies: Dict[_Key, List[DependencyRow]] = {}
        self._assemblies: Dict[_Key, List[AssemblyRow]] = {}

    async def fetch_dependencies(self, name: str, version: str) -> List[DependencyRow]:
        key = (name, version)
        if key not in self._dependencies:
            self.remote_calls += 1
            self._dependencies[key] = list(await self.source.fetch_dependencies(name, version))
        return list(self._dependencies[key])

    async def fetch_assemblies(self, name: str, version: str) -> List[AssemblyRow]:
        key = (name, version)
        if key not in self._assemblies:
            self.remote_calls += 1
            self._assemblies[key] = list(await self.source.fetch_assemblies(name, version))
        return list(self._assemblies[key])
