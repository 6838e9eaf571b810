"""Typed models for catalog state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

NOT_BUILT_ORIGIN = "not_built"


@dataclass(slots=True, frozen=True)
class ObjectRecord:
    """One indexed object. ``(object_type, package, name)`` is the natural key."""

    name: str
    object_type: str
    package: str
    path: str
    size: int
    mtime_ns: int
    last_indexed: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.object_type, self.package, self.name)

    def to_public_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "object_type": self.object_type,
            "package": self.package,
            "path": self.path,
            "size": self.size,
            "last_indexed": self.last_indexed,
        }


@dataclass(slots=True, frozen=True)
class ExtractFailure:
    """Diagnostic for one object location that could not be extracted."""

    path: str
    object_type: str
    reason: str


@dataclass(slots=True, frozen=True)
class CatalogSnapshot:
    """Immutable, fully built catalog version.

    ``records_by_type`` holds only non-empty types; use :func:`build_snapshot`
    so the per-type counts always sum to ``total_objects``.
    """

    records_by_type: Mapping[str, tuple[ObjectRecord, ...]]
    built_at: str
    generation: int
    origin: str = "build"
    total_objects: int = field(init=False)
    per_type_counts: Mapping[str, int] = field(init=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(
            {name: tuple(records) for name, records in sorted(self.records_by_type.items())}
        )
        counts = MappingProxyType({name: len(records) for name, records in frozen.items()})
        object.__setattr__(self, "records_by_type", frozen)
        object.__setattr__(self, "per_type_counts", counts)
        object.__setattr__(self, "total_objects", sum(counts.values()))

    @property
    def is_built(self) -> bool:
        return self.origin != NOT_BUILT_ORIGIN

    @property
    def index_status(self) -> str:
        if self.origin == NOT_BUILT_ORIGIN:
            return "not_built"
        if self.origin == "disk":
            return "loaded"
        return "ready"

    def records(self, object_type: str | None = None) -> tuple[ObjectRecord, ...]:
        """Return records for one type, or all records in type order."""
        if object_type is not None:
            return self.records_by_type.get(object_type, ())
        output: list[ObjectRecord] = []
        for records in self.records_by_type.values():
            output.extend(records)
        return tuple(output)

    def per_package_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.records():
            counts[record.package] = counts.get(record.package, 0) + 1
        return dict(sorted(counts.items()))


def build_snapshot(
    records: Iterable[ObjectRecord],
    built_at: str,
    generation: int,
    origin: str = "build",
) -> CatalogSnapshot:
    """Partition records by type in deterministic (package, name, path) order."""
    grouped: dict[str, list[ObjectRecord]] = {}
    for record in records:
        grouped.setdefault(record.object_type, []).append(record)
    ordered = {
        object_type: tuple(sorted(items, key=lambda item: (item.package, item.name, item.path)))
        for object_type, items in grouped.items()
        if items
    }
    return CatalogSnapshot(
        records_by_type=ordered,
        built_at=built_at,
        generation=generation,
        origin=origin,
    )


NOT_BUILT = CatalogSnapshot(records_by_type={}, built_at="", generation=0, origin=NOT_BUILT_ORIGIN)


@dataclass(slots=True, frozen=True)
class BuildStats:
    """Outcome of one successful index build."""

    total_objects: int
    per_type_counts: dict[str, int]
    elapsed_ms: int
    failed_count: int
    scope: str
    force_rebuild: bool
    built_at: str
    failures: tuple[ExtractFailure, ...] = ()
    persisted: bool = True

    def to_public_dict(self) -> dict[str, object]:
        return {
            "total_objects": self.total_objects,
            "per_type_counts": dict(self.per_type_counts),
            "elapsed_ms": self.elapsed_ms,
            "failed_count": self.failed_count,
            "scope": self.scope,
            "force_rebuild": self.force_rebuild,
            "built_at": self.built_at,
            "persisted": self.persisted,
            "failures": [
                {"path": item.path, "object_type": item.object_type, "reason": item.reason}
                for item in self.failures
            ],
        }


@dataclass(slots=True)
class IndexBuildJob:
    """Transient record of one requested build."""

    scope: str
    force_rebuild: bool
    started_at: str
    stats: BuildStats | None = None
    failure_reason: str | None = None

    def to_public_dict(self) -> dict[str, object]:
        status = "running"
        if self.stats is not None:
            status = "succeeded"
        elif self.failure_reason is not None:
            status = "failed"
        payload: dict[str, object] = {
            "scope": self.scope,
            "force_rebuild": self.force_rebuild,
            "started_at": self.started_at,
            "status": status,
        }
        if self.stats is not None:
            payload["elapsed_ms"] = self.stats.elapsed_ms
            payload["total_objects"] = self.stats.total_objects
            payload["failed_count"] = self.stats.failed_count
        if self.failure_reason is not None:
            payload["failure_reason"] = self.failure_reason
        return payload
