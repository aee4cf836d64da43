"""Settings for an audit, read from TOML.

Settings live in a ``[pinaudit]`` table of ``pinaudit.toml`` or a
``[tool.pinaudit]`` table of ``pyproject.toml``. The file given with
``--config`` (or ``PINAUDIT_CONFIG``) wins; otherwise the current directory
is searched for ``pinaudit.toml`` first and a ``pyproject.toml`` carrying
the table second.

Values are layered: built-in defaults, then the file, then environment
variables, then command-line options.

Example (``pinaudit.toml``)::

    [pinaudit]
    cluster = "mycluster.westus.kusto.windows.net"
    database = "dependency"
    manifest_file = "eng/Packages.props"
    output_dir = "reports"
    strict_ranges = false
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from pinaudit.exceptions import ConfigError
from pinaudit.utils.logger import get_logger
from pinaudit.constants import (
    DEFAULT_ASSEMBLY_TABLE,
    DEFAULT_DATABASE,
    DEFAULT_DEPENDENCY_TABLE,
    DEFAULT_MANIFEST_FILE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_ROOTS_FILE,
    DEFAULT_TIMEOUT,
)

logger = get_logger("config")

CONFIG_FILE_NAME = "pinaudit.toml"


@dataclass
class PinAuditConfig:
    """Parsed and validated pinaudit configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        cluster: Metadata-service cluster host (or ``https://`` URL).
        database: Database holding the package metadata tables.
        dependency_table: Table of declared dependencies.
        assembly_table: Table of shipped assemblies.
        roots_file: Root package list.
        manifest_file: Central version manifest.
        output_dir: Directory receiving the reports.
        strict_ranges: Abort on the first malformed range instead of
            recording it and continuing.
        timeout: Per-request timeout in seconds.
        max_retries: Retries for failed metadata queries.
        source_path: Path to the loaded config file, or ``None``.
    """

    cluster: Optional[str] = None
    database: str = DEFAULT_DATABASE
    dependency_table: str = DEFAULT_DEPENDENCY_TABLE
    assembly_table: str = DEFAULT_ASSEMBLY_TABLE
    roots_file: str = DEFAULT_ROOTS_FILE
    manifest_file: str = DEFAULT_MANIFEST_FILE
    output_dir: str = "."
    strict_ranges: bool = False
    timeout: int = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as a dictionary for debug logging."""
        return {
            f.name: getattr(self, f.name) for f in fields(self) if f.name != "source_path"
        }


#: Option name -> accepted type. Booleans are rejected for ``int`` options.
_OPTION_TYPES: Dict[str, type] = {
    "cluster": str,
    "database": str,
    "dependency_table": str,
    "assembly_table": str,
    "roots_file": str,
    "manifest_file": str,
    "output_dir": str,
    "strict_ranges": bool,
    "timeout": int,
    "max_retries": int,
}


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Locate the configuration file, or return ``None`` when there is none.

    Raises:
        ConfigError: ``explicit_path`` was given but is not a file.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        return resolved

    for candidate in (Path.cwd() / CONFIG_FILE_NAME, Path.cwd() / "pyproject.toml"):
        if candidate.is_file() and _section_of(candidate) is not None:
            logger.debug("Discovered configuration in %s", candidate)
            return candidate

    return None


def _section_of(path: Path) -> Optional[Dict[str, Any]]:
    """The pinaudit table of ``path``, or ``None`` if it has none.

    A ``pinaudit.toml`` always counts, even when empty or unparseable (its
    errors surface when it is loaded). A ``pyproject.toml`` that does not
    parse is someone else's problem.
    """
    if path.name == CONFIG_FILE_NAME:
        try:
            return _read_toml(path).get("pinaudit", {})
        except ConfigError:
            return {}
    try:
        return _read_toml(path).get("tool", {}).get("pinaudit")
    except ConfigError:
        return None


def load_config(config_path: Optional[Path] = None) -> PinAuditConfig:
    """Build the configuration from ``config_path`` or a discovered file.

    Defaults are returned when no file is found, or when the file has no
    pinaudit table.

    Raises:
        ConfigError: The file is not valid TOML, has unknown keys or holds
            values of the wrong type or range.
    """
    resolved = discover_config_file(config_path)
    if resolved is None:
        return PinAuditConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)
    table = raw.get("tool", {}) if resolved.name == "pyproject.toml" else raw
    section = table.get("pinaudit") or {}

    config = _parse_section(section, config_path=str(resolved)) if section else PinAuditConfig()
    config.source_path = resolved
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> PinAuditConfig:
    """Validate a ``[pinaudit]`` table and build the config from it.

    Raises:
        ConfigError: Unknown keys, wrong value types, or non-positive
            ``timeout`` / negative ``max_retries``.
    """
    unknown = set(section) - set(_OPTION_TYPES)
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    config = PinAuditConfig()

    for option, expected in _OPTION_TYPES.items():
        if option not in section:
            continue
        value = section[option]
        if expected is int and isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(
                f"{option} must be {'a' if expected is not int else 'an'} "
                f"{expected.__name__}, got {type(value).__name__}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, value)

    if config.timeout <= 0:
        raise ConfigError(
            "timeout must be positive",
            config_path=config_path,
            option="timeout",
        )
    if config.max_retries < 0:
        raise ConfigError(
            "max_retries must not be negative",
            config_path=config_path,
            option="max_retries",
        )

    return config
