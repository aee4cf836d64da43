"""Central version manifest and root list loading.

The manifest is an MSBuild ``Directory.Packages.props``-style file with one
declaration per line::

    <PackageVersion Include="Newtonsoft.Json" Version="13.0.3" />
    <PackageVersion Update="Serilog" Version="3.1.1" />

Further attributes after ``Version`` (a ``Condition``, say) and anything
else after the tag, such as a trailing comment, are ignored. Lines that do
not start with a declaration (commented-out ones included) are skipped
without complaint, and when a name is declared more than once the last
declaration wins.

The root list is plain text with one package name per line.

Typical usage::

    manifest = load_manifest("Packages.props")
    manifest.resolve("Newtonsoft.Json")    # "13.0.3"
    manifest.resolve("Unknown.Package")    # ""

    roots = load_roots("roots.txt")
"""

from __future__ import annotations

import re
from typing import Dict, Iterator, List, Mapping, Optional

from pinaudit.utils.logger import get_logger
from pinaudit.utils.filesystem import PathLike, safe_read_file

logger = get_logger("manifest")

__all__ = ["PinManifest", "load_manifest", "parse_roots", "load_roots"]

_PACKAGE_VERSION_LINE = re.compile(
    r'^\s*<PackageVersion\s+(?:Include|Update)\s*=\s*"(?P<name>[^"]+)"'
    r'\s+Version\s*=\s*"(?P<version>[^"]+)"[^>]*/>'
)


class PinManifest:
    """Read-only ``name -> pinned version`` table.

    Built once per run; lookups are exact-name and side-effect free.
    """

    __slots__ = ("_pins", "source")

    def __init__(
        self,
        pins: Optional[Mapping[str, str]] = None,
        *,
        source: Optional[str] = None,
    ) -> None:
        self._pins: Dict[str, str] = dict(pins or {})
        self.source = source

    @classmethod
    def from_text(cls, text: str, *, source: Optional[str] = None) -> "PinManifest":
        """Parse manifest text, keeping the last declaration of each name."""
        pins: Dict[str, str] = {}
        skipped = 0

        for line in text.splitlines():
            match = _PACKAGE_VERSION_LINE.match(line)
            if match is None:
                if "<PackageVersion" in line:
                    skipped += 1
                continue
            name = match.group("name")
            if name in pins:
                logger.debug(
                    "Pin for %s redeclared: %s -> %s",
                    name,
                    pins[name],
                    match.group("version"),
                )
            pins[name] = match.group("version")

        if skipped:
            logger.debug("Skipped %d unrecognised PackageVersion line(s)", skipped)
        logger.debug("Loaded %d pin(s)%s", len(pins), f" from {source}" if source else "")
        return cls(pins, source=source)

    def resolve(self, name: str) -> str:
        """Return the pinned version of ``name``, or ``""`` if it has none."""
        return self._pins.get(name, "")

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._pins.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._pins

    def __len__(self) -> int:
        return len(self._pins)

    def __iter__(self) -> Iterator[str]:
        return iter(self._pins)

    def __repr__(self) -> str:
        return f"PinManifest(pins={len(self._pins)}, source={self.source!r})"


def load_manifest(path: PathLike) -> PinManifest:
    """Read and parse a version manifest file."""
    return PinManifest.from_text(safe_read_file(path), source=str(path))


def parse_roots(text: str) -> List[str]:
    """Return root package names, trimmed, blank lines and repeats dropped."""
    roots: List[str] = []
    seen = set()

    for line in text.splitlines():
        name = line.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        roots.append(name)

    return roots


def load_roots(path: PathLike) -> List[str]:
    """Read the root package list from ``path``."""
    roots = parse_roots(safe_read_file(path))
    logger.debug("Loaded %d root package(s) from %s", len(roots), path)
    return roots
