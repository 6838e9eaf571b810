"""Path resolution helpers for root-scoped access."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


class PathViolation(Exception):
    """Raised when a requested path resolves outside the configured root."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def _normalize_relative_input(candidate: str) -> tuple[str, bool]:
    """Normalize path separators and detect absolute-style inputs."""
    normalized = candidate.replace("\\", "/")
    if normalized.startswith("/"):
        return normalized, True
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def resolve_root_path(root: Path, candidate: str) -> Path:
    """Resolve a candidate path against the catalog root with escape checks.

    Pure: nothing is read or written. Symlinks are followed while resolving so a
    link that points outside ``root`` is rejected like a ``..`` segment.
    """
    resolved_root = root.resolve()
    normalized, is_absolute_style = _normalize_relative_input(candidate)

    if not normalized:
        raise PathViolation(
            reason="Path is empty.",
            hint="Provide a root-relative path such as 'ApplicationSuite/AxClass'.",
        )

    if is_absolute_style:
        resolved_absolute = Path(normalized).resolve(strict=False)
        if not resolved_absolute.is_relative_to(resolved_root):
            raise PathViolation(
                reason="Absolute path is outside the catalog root.",
                hint="Use a path located under the configured root.",
            )
        return resolved_absolute

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathViolation(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a root-relative path.",
        )

    resolved = resolved_root.joinpath(*parts).resolve(strict=False)
    if not resolved.is_relative_to(resolved_root):
        raise PathViolation(
            reason="Resolved path escapes the catalog root.",
            hint="Use a path located under the configured root.",
        )
    return resolved


def relative_posix(root: Path, resolved_path: Path) -> str:
    """Return the normalized forward-slash form of a path under ``root``."""
    relative = resolved_path.relative_to(root.resolve()).as_posix()
    return "" if relative == "." else relative
