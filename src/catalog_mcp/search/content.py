"""Line-by-line, case-insensitive substring search over raw files."""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from catalog_mcp.catalog.discovery import has_extension
from catalog_mcp.security import relative_posix

CONTEXT_LINES = 2
MAX_LINE_CHARS = 300


@dataclass(slots=True, frozen=True)
class ContentMatch:
    """One matching line with a short surrounding snippet."""

    path: str
    line: int
    text: str
    before: tuple[str, ...]
    after: tuple[str, ...]


@dataclass(slots=True)
class ScanCounters:
    """Deterministic diagnostics for one content scan."""

    files_scanned: int = 0
    files_skipped: int = 0
    files_oversized: int = 0


def iter_candidate_files(
    scope: Path,
    extensions: tuple[str, ...],
    exclude_dirs: tuple[str, ...],
    excluded_paths: tuple[Path, ...] = (),
) -> Iterator[Path]:
    """Yield matching files depth-first; a directory's files come before its subdirectories."""
    if scope.is_file():
        if has_extension(scope.name, extensions):
            yield scope
        return
    excluded_names = set(exclude_dirs)
    excluded_resolved = {path.resolve() for path in excluded_paths}
    stack: list[Path] = [scope]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered = sorted(entries, key=lambda item: item.name)
        except OSError:
            continue
        subdirectories: list[Path] = []
        for entry in ordered:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in excluded_names:
                    continue
                full_path = Path(entry.path)
                if full_path.resolve() in excluded_resolved:
                    continue
                subdirectories.append(full_path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if has_extension(entry.name, extensions):
                yield Path(entry.path)
        stack.extend(reversed(subdirectories))


def search_lines(relative_path: str, text: str, term: str) -> list[ContentMatch]:
    """Return every line containing ``term`` (case-insensitive) with context."""
    folded_term = term.casefold()
    lines = text.splitlines()
    matches: list[ContentMatch] = []
    for index, line in enumerate(lines):
        if folded_term not in line.casefold():
            continue
        before = lines[max(0, index - CONTEXT_LINES) : index]
        after = lines[index + 1 : index + 1 + CONTEXT_LINES]
        matches.append(
            ContentMatch(
                path=relative_path,
                line=index + 1,
                text=_clip(line.strip()),
                before=tuple(_clip(item) for item in before),
                after=tuple(_clip(item) for item in after),
            )
        )
    return matches


def scan_content(
    root: Path,
    scope: Path,
    term: str,
    extensions: tuple[str, ...],
    exclude_dirs: tuple[str, ...],
    max_file_bytes: int,
    max_matches: int,
    skip_paths: frozenset[str] = frozenset(),
    excluded_paths: tuple[Path, ...] = (),
) -> tuple[list[ContentMatch], ScanCounters]:
    """Scan files under ``scope`` and stop as soon as ``max_matches`` is reached.

    Unreadable or oversized files are counted and skipped.
    """
    counters = ScanCounters()
    matches: list[ContentMatch] = []
    if max_matches < 1:
        return matches, counters
    resolved_root = root.resolve()
    if _scope_is_excluded(resolved_root, scope, exclude_dirs, excluded_paths):
        return matches, counters
    for candidate in iter_candidate_files(scope, extensions, exclude_dirs, excluded_paths):
        relative = relative_posix(resolved_root, candidate)
        if relative in skip_paths:
            continue
        try:
            size = candidate.stat().st_size
        except OSError:
            counters.files_skipped += 1
            continue
        if size > max_file_bytes:
            counters.files_oversized += 1
            continue
        try:
            text = candidate.read_text(encoding="utf-8", errors="replace")
        except OSError:
            counters.files_skipped += 1
            continue
        counters.files_scanned += 1
        for match in search_lines(relative, text, term):
            matches.append(match)
            if len(matches) >= max_matches:
                return matches, counters
    return matches, counters


def _scope_is_excluded(
    root: Path,
    scope: Path,
    exclude_dirs: tuple[str, ...],
    excluded_paths: tuple[Path, ...],
) -> bool:
    resolved_scope = scope.resolve()
    for excluded in excluded_paths:
        if resolved_scope.is_relative_to(excluded.resolve()):
            return True
    try:
        parts = resolved_scope.relative_to(root).parts
    except ValueError:
        return False
    return any(part in exclude_dirs for part in parts)


def _clip(text: str) -> str:
    if len(text) > MAX_LINE_CHARS:
        return text[:MAX_LINE_CHARS]
    return text
