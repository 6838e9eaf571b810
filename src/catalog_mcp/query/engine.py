"""Exact, wildcard and listing queries over the published catalog snapshot."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from catalog_mcp.catalog.models import CatalogSnapshot, ObjectRecord
from catalog_mcp.catalog.store import CatalogStore
from catalog_mcp.catalog.types import ObjectTypeRegistry

SORT_FIELDS = ("name", "package", "size")
GROUP_FIELDS = ("package",)


class QueryError(Exception):
    """Raised for malformed query arguments such as unknown types or sort fields."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(slots=True, frozen=True)
class QueryPage:
    """One page of results plus the metadata callers need to interpret it."""

    total_count: int
    records: tuple[ObjectRecord, ...]
    index_status: str
    built_at: str | None

    @property
    def index_built(self) -> bool:
        return self.index_status != "not_built"

    @property
    def truncated(self) -> bool:
        return len(self.records) < self.total_count

    def to_public_dict(self) -> dict[str, object]:
        return {
            "total_count": self.total_count,
            "returned_count": len(self.records),
            "truncated": self.truncated,
            "index_status": self.index_status,
            "built_at": self.built_at,
            "objects": [record.to_public_dict() for record in self.records],
        }


class QueryEngine:
    """Serves read queries from whatever snapshot is current when a query starts."""

    def __init__(
        self,
        store: CatalogStore,
        object_types: ObjectTypeRegistry,
        default_limit: int = 50,
        root: Path | None = None,
    ) -> None:
        self._store = store
        self._object_types = object_types
        self._default_limit = default_limit
        self._root = root.resolve() if root is not None else None

    def find_by_name(
        self,
        name: str,
        object_type: str | None = None,
        package: str | None = None,
    ) -> QueryPage:
        """Exact case-sensitive lookup, falling back to case-insensitive equality."""
        self._validate_type(object_type)
        snapshot = self._store.current()
        candidates = [
            record
            for record in snapshot.records(object_type)
            if package is None or record.package == package
        ]
        matches = [record for record in candidates if record.name == name]
        if not matches:
            folded = name.casefold()
            matches = [record for record in candidates if record.name.casefold() == folded]
        matches.sort(key=lambda item: (item.package, item.object_type, item.path))
        matches = self._prune_missing(snapshot, matches)
        return _page(snapshot, matches, len(matches))

    def search_pattern(
        self,
        pattern: str,
        object_type: str | None = None,
        package: str | None = None,
        limit: int | None = None,
        sort_by: str = "name",
    ) -> QueryPage:
        """Case-insensitive ``*``/``?`` match against names; empty pattern matches all."""
        self._validate_type(object_type)
        page_limit = self._validate_limit(limit)
        sort_key = _sort_key(sort_by)
        snapshot = self._store.current()
        matcher = name_matcher(pattern)
        matches = [
            record
            for record in snapshot.records(object_type)
            if (package is None or record.package == package) and matcher(record.name)
        ]
        matches.sort(key=sort_key)
        return _page(snapshot, matches[:page_limit], len(matches))

    def list_by_type(
        self,
        object_type: str,
        sort_by: str = "name",
        limit: int | None = None,
    ) -> QueryPage:
        """All records of one type, sorted and paginated."""
        if not object_type:
            raise QueryError("object_type is required.")
        self._validate_type(object_type)
        page_limit = self._validate_limit(limit)
        sort_key = _sort_key(sort_by)
        snapshot = self._store.current()
        records = sorted(snapshot.records(object_type), key=sort_key)
        return _page(snapshot, records[:page_limit], len(records))

    def browse_package(
        self,
        package: str,
        object_type: str | None = None,
        limit: int | None = None,
    ) -> QueryPage:
        """All records of one package ordered by type, then name."""
        if not package:
            raise QueryError("package is required.")
        self._validate_type(object_type)
        page_limit = self._validate_limit(limit)
        snapshot = self._store.current()
        records = [
            record for record in snapshot.records(object_type) if record.package == package
        ]
        records.sort(key=lambda item: (item.object_type, item.name.casefold(), item.name))
        return _page(snapshot, records[:page_limit], len(records))

    def stats(self) -> dict[str, object]:
        snapshot = self._store.current()
        return {
            "index_status": snapshot.index_status,
            "built_at": snapshot.built_at or None,
            "total_objects": snapshot.total_objects,
            "per_type_counts": dict(snapshot.per_type_counts),
            "per_package_counts": snapshot.per_package_counts(),
        }

    def type_counts(self) -> tuple[str, dict[str, int]]:
        """Index status and per-type counts read from one snapshot."""
        snapshot = self._store.current()
        return snapshot.index_status, dict(snapshot.per_type_counts)

    def _validate_type(self, object_type: str | None) -> None:
        if object_type is None:
            return
        if object_type not in self._object_types:
            raise QueryError(
                f"Unknown object type '{object_type}'. "
                "Use catalog.object_types to list configured types."
            )

    def _validate_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise QueryError("limit must be a positive integer.")
        return limit

    def _prune_missing(
        self, snapshot: CatalogSnapshot, matches: list[ObjectRecord]
    ) -> list[ObjectRecord]:
        if self._root is None or snapshot.origin != "disk" or not matches:
            return matches
        missing = [record for record in matches if not (self._root / record.path).is_file()]
        if not missing:
            return matches
        self._store.prune(snapshot, missing)
        return [record for record in matches if record not in missing]


def name_matcher(pattern: str) -> Callable[[str], bool]:
    """Return a case-insensitive predicate for ``*``/``?`` wildcard patterns."""
    if pattern == "":
        return _match_all
    if "*" not in pattern and "?" not in pattern:
        folded = pattern.casefold()
        return lambda name: name.casefold() == folded
    compiled = compile_pattern(pattern)
    return lambda name: compiled.fullmatch(name) is not None


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate wildcards to a regex; every other character is literal."""
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            if not parts or parts[-1] != ".*":
                parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def group_by_package(
    records: Iterable[ObjectRecord],
) -> dict[str, dict[str, list[dict[str, object]]]]:
    """Nest records as ``{package: {object_type: [record, ...]}}`` with sorted keys."""
    grouped: dict[str, dict[str, list[ObjectRecord]]] = {}
    for record in records:
        grouped.setdefault(record.package, {}).setdefault(record.object_type, []).append(record)
    return {
        package: {
            object_type: [
                item.to_public_dict()
                for item in sorted(by_type[object_type], key=lambda r: (r.name.casefold(), r.name))
            ]
            for object_type in sorted(by_type)
        }
        for package, by_type in sorted(grouped.items())
    }


def _match_all(_: str) -> bool:
    return True


def _sort_key(sort_by: str) -> Callable[[ObjectRecord], tuple[object, ...]]:
    if sort_by == "name":
        return lambda item: (item.name.casefold(), item.name, item.package, item.object_type)
    if sort_by == "package":
        return lambda item: (
            item.package.casefold(),
            item.package,
            item.name.casefold(),
            item.name,
            item.object_type,
        )
    if sort_by == "size":
        return lambda item: (-item.size, item.name.casefold(), item.name, item.package)
    raise QueryError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}.")


def _page(snapshot: CatalogSnapshot, records: list[ObjectRecord], total: int) -> QueryPage:
    return QueryPage(
        total_count=total,
        records=tuple(records),
        index_status=snapshot.index_status,
        built_at=snapshot.built_at or None,
    )
