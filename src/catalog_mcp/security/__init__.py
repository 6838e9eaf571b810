"""Root sandboxing and limit primitives."""

from .paths import PathViolation, relative_posix, resolve_root_path
from .policy import (
    CatalogLimits,
    PolicyBlockedError,
    enforce_result_limit,
)

__all__ = [
    "CatalogLimits",
    "PathViolation",
    "PolicyBlockedError",
    "enforce_result_limit",
    "relative_posix",
    "resolve_root_path",
]
