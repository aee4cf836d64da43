"""Tests for the ``pinaudit audit`` command.

The command is driven end to end through the Click runner against a JSON
metadata snapshot; the Kusto path is exercised with a patched source.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from pinaudit.cli import cli
from pinaudit.core.sources import InMemoryDependencySource
from pinaudit.config import PinAuditConfig
from pinaudit.commands.audit import _resolve_settings
from pinaudit.exceptions import ConfigError

PROPS = """<Project>
  <ItemGroup>
    <PackageVersion Include="App" Version="1.0.0" />
    <PackageVersion Include="Lib" Version="2.0.0" />
  </ItemGroup>
</Project>
"""

SNAPSHOT: Dict[str, List[Dict[str, str]]] = {
    "dependencies": [
        {
            "name": "App",
            "version": "1.0.0",
            "target_framework": "net8.0",
            "dependency_name": "Lib",
            "version_range": "[2.1.0, 3.0.0)",
        },
        {
            "name": "Lib",
            "version": "2.0.0",
            "target_framework": "net8.0",
            "dependency_name": "Ghost",
            "version_range": "[1.0.0, )",
        },
    ],
    "assemblies": [
        {
            "name": "Lib",
            "version": "2.0.0",
            "assembly_name": "Lib",
            "assembly_version": "2.0.0.0",
            "library_path": "lib/net8.0",
        }
    ],
}


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A directory with roots.txt, Packages.props and a metadata snapshot."""
    monkeypatch.chdir(tmp_path)
    for name in ("NO_COLOR", "PINAUDIT_CLUSTER", "PINAUDIT_ACCESS_TOKEN", "PINAUDIT_CONFIG"):
        monkeypatch.delenv(name, raising=False)

    (tmp_path / "roots.txt").write_text("App\n")
    (tmp_path / "Packages.props").write_text(PROPS)
    (tmp_path / "snapshot.json").write_text(json.dumps(SNAPSHOT))
    return tmp_path


@pytest.mark.integration
class TestAuditCommand:
    """End-to-end tests for ``pinaudit audit``."""

    def test_audit_with_snapshot_writes_reports(self, workspace: Path) -> None:
        result = CliRunner().invoke(
            cli, ["audit", "--snapshot", "snapshot.json", "-o", "reports", "-q"]
        )

        assert result.exit_code == 0, result.output
        reports = workspace / "reports"
        assert (reports / "VersionConflicts.csv").read_text().splitlines()[1] == (
            'net8.0,App,1.0.0,Lib,"[2.1.0, 3.0.0)",2.0.0'
        )
        assert (reports / "MissingVersions.txt").read_text() == "Ghost\n"
        assert "Lib,2.0.0,Lib,2.0.0.0,lib/net8.0,App" in (reports / "DllInfo.csv").read_text()
        assert (reports / "Packages.csv").exists()
        assert (reports / "Dependencies.csv").exists()
        assert (reports / "MalformedRanges.csv").exists()

    def test_progress_lines_printed_unless_quiet(self, workspace: Path) -> None:
        loud = CliRunner().invoke(cli, ["audit", "--snapshot", "snapshot.json"])
        quiet = CliRunner().invoke(cli, ["audit", "--snapshot", "snapshot.json", "-q"])

        assert "Processing App" in loud.output
        assert "Processing App" not in quiet.output

    def test_no_assemblies_skips_dll_report(self, workspace: Path) -> None:
        result = CliRunner().invoke(
            cli, ["audit", "--snapshot", "snapshot.json", "--no-assemblies", "-q"]
        )

        assert result.exit_code == 0
        assert not (workspace / "DllInfo.csv").exists()
        assert (workspace / "Packages.csv").exists()

    def test_fail_on_conflicts(self, workspace: Path) -> None:
        result = CliRunner().invoke(
            cli, ["audit", "--snapshot", "snapshot.json", "--fail-on-conflicts", "-q"]
        )

        assert result.exit_code == 1
        assert (workspace / "VersionConflicts.csv").exists()

    def test_strict_ranges_aborts_on_malformed_range(self, workspace: Path) -> None:
        snapshot = json.loads(json.dumps(SNAPSHOT))
        snapshot["dependencies"][0]["version_range"] = "2.1.0"
        (workspace / "snapshot.json").write_text(json.dumps(snapshot))

        lenient = CliRunner().invoke(cli, ["audit", "--snapshot", "snapshot.json", "-q"])
        strict = CliRunner().invoke(
            cli, ["audit", "--snapshot", "snapshot.json", "--strict-ranges", "-q"]
        )

        assert lenient.exit_code == 0
        assert "2.1.0" in (workspace / "MalformedRanges.csv").read_text()
        assert strict.exit_code == 1
        assert "Unknown version range format" in strict.output

    def test_missing_manifest_is_an_error(self, workspace: Path) -> None:
        (workspace / "Packages.props").unlink()

        result = CliRunner().invoke(cli, ["audit", "--snapshot", "snapshot.json"])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_empty_roots_warns(self, workspace: Path) -> None:
        (workspace / "roots.txt").write_text("\n\n")

        result = CliRunner().invoke(cli, ["audit", "--snapshot", "snapshot.json"])

        assert result.exit_code == 0
        assert "No root packages" in result.output
        assert not (workspace / "Packages.csv").exists()

    def test_no_source_configured(self, workspace: Path) -> None:
        result = CliRunner().invoke(cli, ["audit"])

        assert result.exit_code == 1
        assert "No metadata source" in result.output
        assert "[HINT] Run with --snapshot" in result.output

    def test_cluster_uses_kusto_source(self, workspace: Path) -> None:
        fake = InMemoryDependencySource()
        fake.add_dependency("App", "1.0.0", "net8.0", "Lib", "[2.0.0, )")

        with patch("pinaudit.commands.audit.KustoDependencySource", return_value=fake) as kusto:
            result = CliRunner().invoke(
                cli,
                ["audit", "--cluster", "c.kusto.windows.net", "--token", "t", "-q"],
            )

        assert result.exit_code == 0, result.output
        assert kusto.call_args.kwargs["cluster"] == "c.kusto.windows.net"
        assert kusto.call_args.kwargs["database"] == "dependency"
        assert fake.dependency_queries == 2

    def test_config_file_supplies_settings(self, workspace: Path) -> None:
        (workspace / "pinaudit.toml").write_text('[pinaudit]\noutput_dir = "out"\n')

        result = CliRunner().invoke(cli, ["audit", "--snapshot", "snapshot.json", "-q"])

        assert result.exit_code == 0
        assert (workspace / "out" / "Packages.csv").exists()


@pytest.mark.unit
class TestResolveSettings:
    """Tests for merging CLI options over configuration."""

    def _resolve(self, config: PinAuditConfig, **overrides):
        options = dict(
            roots=None,
            manifest=None,
            output_dir=None,
            snapshot=None,
            cluster=None,
            database=None,
            token=None,
            strict_ranges=None,
            include_assemblies=True,
        )
        options.update(overrides)
        return _resolve_settings(config, **options)

    def test_config_values_used_by_default(self) -> None:
        config = PinAuditConfig(cluster="c", database="deps", strict_ranges=True)

        settings = self._resolve(config, token="t")

        assert settings.cluster == "c"
        assert settings.database == "deps"
        assert settings.strict_ranges is True
        assert settings.roots_file == Path("roots.txt")

    def test_cli_overrides_config(self) -> None:
        config = PinAuditConfig(cluster="c", strict_ranges=True)

        settings = self._resolve(
            config, cluster="other", token="t", strict_ranges=False, roots=Path("r.txt")
        )

        assert settings.cluster == "other"
        assert settings.strict_ranges is False
        assert settings.roots_file == Path("r.txt")

    def test_cluster_requires_token(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            self._resolve(PinAuditConfig(cluster="c"))

        assert exc_info.value.option == "token"

    def test_snapshot_needs_no_cluster(self) -> None:
        settings = self._resolve(PinAuditConfig(), snapshot=Path("s.json"))

        assert settings.cluster is None
