"""Result and file-size limits applied around catalog queries."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class CatalogLimits:
    """Runtime limits for queries and tool responses."""

    max_file_bytes: int = 500 * 1024
    default_limit: int = 50
    max_page_size: int = 5000
    max_search_results: int = 200
    max_total_bytes_per_response: int = 4 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class PolicyBlockedError(Exception):
    """Raised when a request exceeds a configured limit."""

    reason: str
    hint: str


def enforce_result_limit(requested: int, cap: int, name: str) -> None:
    """Raise PolicyBlockedError when a requested result count exceeds its cap."""
    if requested > cap:
        raise PolicyBlockedError(
            reason=f"Requested {name} exceeds the configured maximum of {cap}.",
            hint=f"Reduce {name} or page through results with a narrower filter.",
        )
