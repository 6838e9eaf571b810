"""Fixed-field metadata extraction from object locations."""

from __future__ import annotations

import re
import stat
from pathlib import Path

from catalog_mcp.catalog.models import ObjectRecord

# Extension objects carry a dotted suffix: CustTable.ContosoExtension
OBJECT_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$")


class ExtractError(Exception):
    """Raised when one object location cannot be turned into a record."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def extract_record(
    root: Path,
    absolute_path: Path,
    known_type: str,
    last_indexed: str,
) -> ObjectRecord:
    """Build a record from stat data and the path position; the body is never read.

    The package is the first path segment under ``root`` and the name is the
    file name without its object extension.
    """
    resolved_root = root.resolve()
    try:
        relative = absolute_path.relative_to(resolved_root).as_posix()
    except ValueError as error:
        raise ExtractError(str(absolute_path), "Path is outside the catalog root.") from error

    try:
        info = absolute_path.stat(follow_symlinks=False)
    except OSError as error:
        raise ExtractError(relative, f"Unreadable entry: {error.strerror or error}") from error
    if not stat.S_ISREG(info.st_mode):
        raise ExtractError(relative, "Not a regular file.")

    segments = relative.split("/")
    if len(segments) < 3:
        raise ExtractError(relative, "Object is not inside a package type folder.")

    name = object_name_from_filename(absolute_path.name)
    if not name:
        raise ExtractError(relative, "Object name is empty.")
    if not OBJECT_NAME_PATTERN.match(name):
        raise ExtractError(relative, f"Malformed object name '{name}'.")

    return ObjectRecord(
        name=name,
        object_type=known_type,
        package=segments[0],
        path=relative,
        size=info.st_size,
        mtime_ns=info.st_mtime_ns,
        last_indexed=last_indexed,
    )


def object_name_from_filename(filename: str) -> str:
    """Strip the final extension: ``CustTable.xml`` -> ``CustTable``."""
    stem, dot, _ = filename.rpartition(".")
    if not dot:
        return filename
    return stem
