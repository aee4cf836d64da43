"""
Reading audit inputs and writing reports.

Inputs (root list, ``Packages.props``, metadata snapshots) are read with a
size cap. Reports are first written to a hidden sibling temp file and then
moved over the target, so a report is either the previous run's or the
complete new one. Every failure surfaces as :class:`FileOperationError`.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Optional, Union

from pinaudit.constants import MAX_FILE_SIZE
from pinaudit.utils.logger import get_logger
from pinaudit.exceptions import FileOperationError

logger = get_logger("filesystem")

PathLike = Union[str, Path]


def _failure(message: str, path: Path, operation: str, cause: Optional[Exception] = None) -> FileOperationError:
    return FileOperationError(
        message,
        file_path=str(path),
        operation=operation,
        original_error=cause,
    )


@contextmanager
def _staged(target: Path) -> Iterator[IO[str]]:
    """Yield a temp file next to ``target``; move it into place on success."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, staged_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    staged = Path(staged_name)

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        staged.replace(target)
    except BaseException:
        try:
            staged.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove temporary file %s: %s", staged, exc)
        raise


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8-sig",
) -> str:
    """Read a text input file of at most ``max_size`` bytes.

    ``utf-8-sig`` drops the byte-order mark MSBuild tooling likes to put at
    the start of ``.props`` files.
    """
    path = Path(file_path)
    if not path.exists():
        raise _failure(f"File not found: {path}", path, "read")
    if not path.is_file():
        raise _failure(f"Not a file: {path}", path, "read")

    path = path.resolve()
    size = path.stat().st_size
    if max_size is not None and size > max_size:
        raise _failure(f"File too large: {size} bytes (max {max_size})", path, "read")

    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise _failure(f"Failed to read file: {exc}", path, "read", exc) from exc


def safe_write_file(file_path: PathLike, content: str) -> Path:
    """Replace ``file_path`` with ``content`` in one step and return the path."""
    path = Path(file_path)
    try:
        with _staged(path) as handle:
            handle.write(content)
    except OSError as exc:
        raise _failure(f"Atomic write failed: {exc}", path, "write", exc) from exc

    logger.debug("Wrote %d character(s) to %s", len(content), path)
    return path
