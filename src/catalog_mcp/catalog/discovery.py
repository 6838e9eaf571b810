"""Package and object-location discovery under the catalog root."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from catalog_mcp.catalog.types import ObjectTypeSpec

SKIPPED_PACKAGE_DIRS = frozenset({"node_modules", "bin", "obj", "temp", ".git"})


class RootEnumerationError(Exception):
    """Raised when the catalog root itself cannot be listed."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(slots=True, frozen=True)
class PackageLocation:
    """A package directory and the directory its type folders live in."""

    name: str
    content_root: Path


@dataclass(slots=True, frozen=True)
class ObjectLocation:
    """Candidate object file for one configured type."""

    object_type: str
    path: Path


def discover_packages(root: Path, excluded: tuple[Path, ...] = ()) -> list[PackageLocation]:
    """List packages in name order, resolving ``Pkg/Pkg`` double nesting."""
    if not root.exists():
        raise RootEnumerationError(f"Catalog root does not exist: {root}")
    if not root.is_dir():
        raise RootEnumerationError(f"Catalog root is not a directory: {root}")
    try:
        with os.scandir(root) as entries:
            ordered = sorted(entries, key=lambda item: item.name)
    except OSError as error:
        raise RootEnumerationError(
            f"Catalog root cannot be enumerated: {error.strerror or error}"
        ) from error

    excluded_resolved = tuple(path.resolve() for path in excluded)
    packages: list[PackageLocation] = []
    for entry in ordered:
        if not entry.is_dir(follow_symlinks=False):
            continue
        if _is_skipped_package_name(entry.name):
            continue
        outer = Path(entry.path)
        if outer.resolve() in excluded_resolved:
            continue
        inner = outer / entry.name
        content_root = inner if inner.is_dir() and not inner.is_symlink() else outer
        packages.append(PackageLocation(name=entry.name, content_root=content_root))
    return packages


def discover_object_locations(
    packages: list[PackageLocation],
    specs: tuple[ObjectTypeSpec, ...],
) -> list[ObjectLocation]:
    """Collect candidate files from each package's configured type folders only."""
    locations: list[ObjectLocation] = []
    for package in packages:
        for spec in specs:
            for folder in spec.folders:
                locations.extend(_scan_type_folder(package.content_root / folder, spec))
    return locations


def _scan_type_folder(folder: Path, spec: ObjectTypeSpec) -> list[ObjectLocation]:
    if folder.is_symlink() or not folder.is_dir():
        return []
    try:
        with os.scandir(folder) as entries:
            ordered = sorted(entries, key=lambda item: item.name)
    except OSError:
        return []
    output: list[ObjectLocation] = []
    for entry in ordered:
        if entry.is_dir(follow_symlinks=False):
            continue
        if not has_extension(entry.name, spec.extensions):
            continue
        output.append(ObjectLocation(object_type=spec.name, path=Path(entry.path)))
    return output


def has_extension(filename: str, extensions: tuple[str, ...]) -> bool:
    """Suffix check that also accepts compound extensions such as ``.designer.cs``."""
    lowered = filename.lower()
    return any(lowered.endswith(extension) for extension in extensions)


def _is_skipped_package_name(name: str) -> bool:
    if name.startswith("."):
        return True
    if name.startswith("Ax"):
        return True
    return name.lower() in SKIPPED_PACKAGE_DIRS
