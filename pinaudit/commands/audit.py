"""Audit command implementation for pinaudit.

Builds the pinned dependency closure of the root packages and writes the
reports. The command wires together:

1. **load_roots / load_manifest**: read the root list and the central
   version manifest.
2. **A dependency source**: a JSON snapshot (``--snapshot``) or the Kusto
   metadata tables (``--cluster``), wrapped in a :class:`MetadataStore` so
   each package version is queried once.
3. **ClosureBuilder**: the worklist traversal, checking every declared
   range against the pinned version.
4. **ReportWriter**: packages, assemblies, conflicts, missing pins,
   dependency edges and malformed ranges.

Reports are written only once the whole closure has been computed.

Typical usage::

    # Offline, against an exported metadata snapshot
    $ pinaudit audit --snapshot metadata.json --output-dir reports

    # Against the metadata service
    $ export PINAUDIT_ACCESS_TOKEN=$(az account get-access-token \\
          --resource https://mycluster.kusto.windows.net --query accessToken -o tsv)
    $ pinaudit audit --cluster mycluster.kusto.windows.net

    # Fail CI when any declared range is violated
    $ pinaudit audit --snapshot metadata.json --fail-on-conflicts
"""

from __future__ import annotations

import sys
import click
import asyncio
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pinaudit.config import PinAuditConfig
from pinaudit.models import AssemblyRecord, Package
from pinaudit.constants import ACCESS_TOKEN_ENV
from pinaudit.context import pass_context, PinAuditContext
from pinaudit.exceptions import ConfigError, PinAuditError, error_hint
from pinaudit.core import (
    ClosureBuilder,
    ClosureResult,
    DependencySource,
    KustoDependencySource,
    MetadataStore,
    PinManifest,
    ReportWriter,
    SnapshotDependencySource,
    collect_assemblies,
    load_manifest,
    load_roots,
)
from pinaudit.utils import (
    HTTPClient,
    get_logger,
    print_error,
    print_progress,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.audit")


@dataclass
class AuditSettings:
    """Effective settings after merging config file and CLI options."""

    roots_file: Path
    manifest_file: Path
    output_dir: Path
    snapshot: Optional[Path]
    cluster: Optional[str]
    database: str
    dependency_table: str
    assembly_table: str
    token: Optional[str]
    strict_ranges: bool
    timeout: int
    max_retries: int
    include_assemblies: bool


@click.command()
@click.option(
    "--roots",
    "-r",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Root package list, one name per line. [default: roots.txt]",
)
@click.option(
    "--manifest",
    "-m",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Central version manifest. [default: Packages.props]",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the reports. [default: current directory]",
)
@click.option(
    "--snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read package metadata from a JSON snapshot instead of the service.",
)
@click.option(
    "--cluster",
    envvar="PINAUDIT_CLUSTER",
    help="Metadata-service cluster host.",
)
@click.option("--database", help="Metadata database name.")
@click.option(
    "--token",
    envvar=ACCESS_TOKEN_ENV,
    help=f"Bearer token for the metadata service (or set {ACCESS_TOKEN_ENV}).",
)
@click.option(
    "--strict-ranges/--lenient-ranges",
    default=None,
    help="Abort on a malformed version range instead of reporting it.",
)
@click.option(
    "--no-assemblies",
    is_flag=True,
    help="Skip the assembly (DllInfo) report.",
)
@click.option(
    "--fail-on-conflicts",
    is_flag=True,
    help="Exit with status 1 when any version conflict is found.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Do not print per-package progress.",
)
@pass_context
def audit(
    ctx: PinAuditContext,
    roots: Optional[Path],
    manifest: Optional[Path],
    output_dir: Optional[Path],
    snapshot: Optional[Path],
    cluster: Optional[str],
    database: Optional[str],
    token: Optional[str],
    strict_ranges: Optional[bool],
    no_assemblies: bool,
    fail_on_conflicts: bool,
    quiet: bool,
) -> None:
    """Audit pinned versions of the dependency closure of the root packages.

    Every package reachable from the roots is looked up at the version
    pinned in the manifest; each declared dependency range is checked
    against the dependency's pin. Results are written as CSV reports.

    Exits:
        0 on success, 1 on error or, with ``--fail-on-conflicts``, when
        conflicts were found.
    """
    try:
        settings = _resolve_settings(
            ctx.config,
            roots=roots,
            manifest=manifest,
            output_dir=output_dir,
            snapshot=snapshot,
            cluster=cluster,
            database=database,
            token=token,
            strict_ranges=strict_ranges,
            include_assemblies=not no_assemblies,
        )
        result = _run_audit(settings, show_progress=not quiet)

    except PinAuditError as e:
        print_error(f"{e}")
        hint = error_hint(e)
        if hint:
            print_warning(hint, prefix="[HINT]")
        sys.exit(1)

    if result is not None and fail_on_conflicts and result.has_conflicts():
        sys.exit(1)


def _resolve_settings(
    config: PinAuditConfig,
    *,
    roots: Optional[Path],
    manifest: Optional[Path],
    output_dir: Optional[Path],
    snapshot: Optional[Path],
    cluster: Optional[str],
    database: Optional[str],
    token: Optional[str],
    strict_ranges: Optional[bool],
    include_assemblies: bool,
) -> AuditSettings:
    """Merge CLI options over the loaded configuration.

    Raises:
        ConfigError: Neither a snapshot nor a cluster is available, or a
            cluster is configured without an access token.
    """
    settings = AuditSettings(
        roots_file=roots or Path(config.roots_file),
        manifest_file=manifest or Path(config.manifest_file),
        output_dir=output_dir or Path(config.output_dir),
        snapshot=snapshot,
        cluster=cluster or config.cluster,
        database=database or config.database,
        dependency_table=config.dependency_table,
        assembly_table=config.assembly_table,
        token=token,
        strict_ranges=config.strict_ranges if strict_ranges is None else strict_ranges,
        timeout=config.timeout,
        max_retries=config.max_retries,
        include_assemblies=include_assemblies,
    )

    if settings.snapshot is None:
        if not settings.cluster:
            raise ConfigError(
                "No metadata source: pass --snapshot or configure a cluster",
                option="cluster",
            )
        if not settings.token:
            raise ConfigError(
                f"No access token for {settings.cluster}: pass --token or set {ACCESS_TOKEN_ENV}",
                option="token",
            )

    return settings


def _run_audit(settings: AuditSettings, *, show_progress: bool) -> Optional[ClosureResult]:
    """Load inputs, build the closure, write and summarise the reports."""
    root_names = load_roots(settings.roots_file)
    if not root_names:
        print_warning(f"No root packages found in {settings.roots_file}")
        return None

    pins = load_manifest(settings.manifest_file)
    logger.info(
        "Auditing %d root package(s) against %d pin(s)", len(root_names), len(pins)
    )

    result, assemblies = asyncio.run(
        _audit_async(settings, root_names, pins, show_progress=show_progress)
    )

    writer = ReportWriter(settings.output_dir)
    written = writer.write_all(result, assemblies)

    _display_summary(result, assemblies)
    if result.has_conflicts():
        _display_conflicts(result)
        print_warning(f"{len(result.conflicts)} version conflict(s) found")
    if result.diagnostics:
        print_warning(
            f"{len(result.diagnostics)} dependency range(s) could not be checked "
            "(see MalformedRanges.csv)"
        )
    print_success(f"Wrote {len(written)} report(s) to {settings.output_dir}")
    return result


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _audit_async(
    settings: AuditSettings,
    roots: List[str],
    pins: PinManifest,
    *,
    show_progress: bool,
) -> Tuple[ClosureResult, Optional[List[AssemblyRecord]]]:
    if settings.snapshot is not None:
        source = SnapshotDependencySource.load(settings.snapshot)
        return await _build(source, settings, roots, pins, show_progress=show_progress)

    assert settings.cluster is not None
    headers = {"Authorization": f"Bearer {settings.token}"}
    async with HTTPClient(
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        headers=headers,
    ) as http:
        kusto = KustoDependencySource(
            http,
            cluster=settings.cluster,
            database=settings.database,
            dependency_table=settings.dependency_table,
            assembly_table=settings.assembly_table,
        )
        return await _build(kusto, settings, roots, pins, show_progress=show_progress)


async def _build(
    source: DependencySource,
    settings: AuditSettings,
    roots: List[str],
    pins: PinManifest,
    *,
    show_progress: bool,
) -> Tuple[ClosureResult, Optional[List[AssemblyRecord]]]:
    store = MetadataStore(source)

    def on_visit(package: Package, remaining: int) -> None:
        if show_progress:
            print_progress(f"Processing {package.name} ({remaining} queued)")

    builder = ClosureBuilder(
        store,
        pins,
        strict_ranges=settings.strict_ranges,
        progress_callback=on_visit,
    )
    result = await builder.build(roots)

    assemblies: Optional[List[AssemblyRecord]] = None
    if settings.include_assemblies:
        assemblies = await collect_assemblies(store, result)

    logger.info("Metadata queries issued: %d", store.remote_calls)
    return result, assemblies


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def _display_summary(
    result: ClosureResult,
    assemblies: Optional[List[AssemblyRecord]],
) -> None:
    summary = result.summary()
    rows = [
        {"Metric": "Root packages", "Count": summary["roots"]},
        {"Metric": "Packages in closure", "Count": summary["packages"]},
        {"Metric": "Dependency edges", "Count": summary["edges"]},
        {"Metric": "Version conflicts", "Count": summary["conflicts"]},
        {"Metric": "Missing pins", "Count": summary["missing"]},
        {"Metric": "Malformed ranges", "Count": summary["malformed"]},
    ]
    if assemblies is not None:
        rows.append({"Metric": "Assemblies", "Count": len(assemblies)})

    print_table(
        rows,
        title="Audit Summary",
        column_styles={"Count": {"justify": "right", "style": "bold"}},
    )


def _display_conflicts(result: ClosureResult) -> None:
    rows = [
        {
            "Framework": c.target_framework,
            "Package": f"{c.package_name} {c.package_version}",
            "Dependency": c.dependency_name,
            "Declared": c.declared_range,
            "Pinned": c.dependency_version,
        }
        for c in result.sorted_conflicts()
    ]
    print_table(
        rows,
        title="Version Conflicts",
        column_styles={
            "Package": {"style": "package", "no_wrap": True},
            "Declared": {"style": "yellow"},
            "Pinned": {"style": "bold red"},
        },
    )
