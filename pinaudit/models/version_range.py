"""
Version interval model for pinaudit.

Declared dependency ranges use interval notation with a comma between the
bounds::

    (, )              anything
    (, 2.0.0)         below 2.0.0
    (1.0.0, 2.0.0)    strictly between
    [1.0.0, )         1.0.0 or later
    [1.0.0, 2.0.0)    1.0.0 up to but excluding 2.0.0
    [1.0.0, 2.0.0]    1.0.0 through 2.0.0

``(`` / ``)`` exclude the bound, ``[`` / ``]`` include it, and an empty side
is unbounded. Bounds and versions are compared on their dotted-numeric
prefix only, component by component, with missing components sorting
first: ``1.0`` falls outside ``[1.0.0, )`` while ``1.0.0`` falls inside
``(1.0, 2.0)`` (see :mod:`pinaudit.utils.version_utils`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from pinaudit.exceptions import InvalidVersionError, MalformedRangeError
from pinaudit.utils.version_utils import parse_numeric, split_version

_OPENERS = {"(": False, "[": True}
_CLOSERS = {")": False, "]": True}


@dataclass(frozen=True)
class VersionBound:
    """A version value: comparable numeric part plus ignored suffix.

    Attributes:
        raw: Original text, trimmed.
        numeric: Dotted-numeric components, e.g. ``(1, 2, 3)``.
        suffix: Text after the numeric prefix, e.g. ``"-beta"``.
    """

    raw: str
    numeric: Tuple[int, ...]
    suffix: str = ""

    @classmethod
    def parse(cls, text: str) -> "VersionBound":
        """Parse ``text``; raises :class:`InvalidVersionError` without a numeric prefix."""
        prefix, suffix = split_version(text)
        if not prefix:
            raise InvalidVersionError(text)
        return cls(raw=text.strip(), numeric=parse_numeric(prefix), suffix=suffix)

    def __lt__(self, other: "VersionBound") -> bool:
        return self.numeric < other.numeric

    def __le__(self, other: "VersionBound") -> bool:
        return self.numeric <= other.numeric

    def __gt__(self, other: "VersionBound") -> bool:
        return self.numeric > other.numeric

    def __ge__(self, other: "VersionBound") -> bool:
        return self.numeric >= other.numeric

    def same_as(self, other: "VersionBound") -> bool:
        """Return True if both bounds occupy the same position in the ordering."""
        return self.numeric == other.numeric

    def __str__(self) -> str:
        return self.raw


def _parse_side(side: str, range_text: str) -> Optional[VersionBound]:
    value = side.strip()
    if not value:
        return None
    try:
        return VersionBound.parse(value)
    except InvalidVersionError as exc:
        raise MalformedRangeError(
            range_text, f"bound {value!r} has no numeric version"
        ) from exc


@dataclass(frozen=True)
class VersionInterval:
    """A parsed version range.

    Attributes:
        lower: Lower bound, or ``None`` when unbounded below.
        lower_inclusive: ``True`` for ``[``.
        upper: Upper bound, or ``None`` when unbounded above.
        upper_inclusive: ``True`` for ``]``.
        text: The range exactly as declared.
    """

    lower: Optional[VersionBound]
    lower_inclusive: bool
    upper: Optional[VersionBound]
    upper_inclusive: bool
    text: str = ""

    @classmethod
    def parse(cls, text: str) -> "VersionInterval":
        """Parse interval notation.

        Raises:
            MalformedRangeError: Unknown opening/closing delimiter, missing
                comma, or a bound without a numeric version.

        Example::

            >>> interval = VersionInterval.parse("[2.0.0, 3.0.0)")
            >>> interval.contains("2.5.1"), interval.contains("3.0.0")
            (True, False)
        """
        body = text.strip()
        if len(body) < 2:
            raise MalformedRangeError(text, "too short")

        opener, closer = body[0], body[-1]
        if opener not in _OPENERS:
            raise MalformedRangeError(text, "must start with '(' or '['")
        if closer not in _CLOSERS:
            raise MalformedRangeError(text, "must end with ')' or ']'")

        inner = body[1:-1]
        if "," not in inner:
            raise MalformedRangeError(text, "missing ',' between bounds")
        lower_text, upper_text = inner.split(",", 1)

        return cls(
            lower=_parse_side(lower_text, text),
            lower_inclusive=_OPENERS[opener],
            upper=_parse_side(upper_text, text),
            upper_inclusive=_CLOSERS[closer],
            text=text,
        )

    def contains(self, version: str) -> bool:
        """Return True if ``version`` satisfies both sides of the interval.

        Raises:
            InvalidVersionError: ``version`` has no numeric prefix.
        """
        candidate = VersionBound.parse(version)

        if self.lower is not None:
            if self.lower_inclusive:
                if not candidate >= self.lower:
                    return False
            elif not candidate > self.lower:
                return False

        if self.upper is not None:
            if self.upper_inclusive:
                if not candidate <= self.upper:
                    return False
            elif not candidate < self.upper:
                return False

        return True

    def __contains__(self, version: object) -> bool:
        if not isinstance(version, str):
            return False
        return self.contains(version)

    @property
    def is_unbounded(self) -> bool:
        return self.lower is None and self.upper is None

    def __str__(self) -> str:
        return self.text


def satisfies(range_text: str, version: str) -> bool:
    """Shorthand for ``VersionInterval.parse(range_text).contains(version)``."""
    return VersionInterval.parse(range_text).contains(version)
