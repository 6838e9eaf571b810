"""Index build orchestration: discover, extract, merge, publish, persist."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path

from catalog_mcp.catalog.discovery import (
    RootEnumerationError,
    discover_object_locations,
    discover_packages,
)
from catalog_mcp.catalog.extractor import ExtractError, extract_record
from catalog_mcp.catalog.models import (
    BuildStats,
    CatalogSnapshot,
    ExtractFailure,
    IndexBuildJob,
    ObjectRecord,
    build_snapshot,
)
from catalog_mcp.catalog.store import CatalogStore
from catalog_mcp.catalog.types import ObjectTypeRegistry
from catalog_mcp.logging import utc_timestamp

MAX_REPORTED_FAILURES = 50
SCOPE_ALL = "all"

BuildLogSink = Callable[[dict[str, object]], None]


class BuildError(Exception):
    """Raised when a build fails outright; the prior snapshot stays published."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BuildInProgress(Exception):
    """Raised when a build is requested while another one is running."""

    def __init__(self, active: IndexBuildJob) -> None:
        super().__init__(f"An index build for scope '{active.scope}' is already running.")
        self.active = active


class IndexBuilder:
    """Builds catalog snapshots; at most one build runs at a time."""

    def __init__(
        self,
        root: Path,
        store: CatalogStore,
        object_types: ObjectTypeRegistry,
        excluded_dirs: tuple[Path, ...] = (),
        build_log: BuildLogSink | None = None,
    ) -> None:
        self._root = root.resolve()
        self._store = store
        self._object_types = object_types
        self._excluded_dirs = excluded_dirs
        self._build_log = build_log
        self._build_lock = threading.Lock()
        self._active_job: IndexBuildJob | None = None
        self._last_job: IndexBuildJob | None = None

    @property
    def active_job(self) -> IndexBuildJob | None:
        return self._active_job

    @property
    def last_job(self) -> IndexBuildJob | None:
        return self._last_job

    def start(self, object_type: str | None = None, force_rebuild: bool = False) -> IndexBuildJob:
        """Claim the build slot and return the job; pair with :meth:`run`.

        Raises BuildInProgress when another build holds the slot.
        """
        if object_type is not None:
            self._object_types.require(object_type)
        if not self._build_lock.acquire(blocking=False):
            active = self._active_job
            raise BuildInProgress(
                active
                if active is not None
                else IndexBuildJob(scope="unknown", force_rebuild=False, started_at="")
            )
        job = IndexBuildJob(
            scope=object_type or SCOPE_ALL,
            force_rebuild=force_rebuild,
            started_at=utc_timestamp(),
        )
        self._active_job = job
        return job

    def run(self, job: IndexBuildJob) -> BuildStats:
        """Execute a job claimed by :meth:`start` and release the slot afterwards."""
        try:
            stats = self._execute(job)
            job.stats = stats
        except BuildError as error:
            job.failure_reason = error.reason
            self._log_job(job)
            raise
        except Exception as error:
            job.failure_reason = f"Unexpected build failure: {type(error).__name__}"
            self._log_job(job)
            raise
        finally:
            self._last_job = job
            self._active_job = None
            self._build_lock.release()
        self._log_job(job)
        return stats

    def build(self, object_type: str | None = None, force_rebuild: bool = False) -> BuildStats:
        """Build all types, or one type, and publish the resulting snapshot."""
        return self.run(self.start(object_type=object_type, force_rebuild=force_rebuild))

    def _execute(self, job: IndexBuildJob) -> BuildStats:
        started = time.perf_counter()
        if job.scope == SCOPE_ALL:
            specs = tuple(self._object_types)
        else:
            specs = (self._object_types.require(job.scope),)
        scope_types = {spec.name for spec in specs}

        previous = self._store.current()
        try:
            packages = discover_packages(self._root, excluded=self._excluded_dirs)
        except RootEnumerationError as error:
            raise BuildError(error.reason) from error
        locations = discover_object_locations(packages, specs)

        prior_by_path = _prior_records(previous, scope_types)
        timestamp = utc_timestamp()
        records: list[ObjectRecord] = []
        failures: list[ExtractFailure] = []
        for location in locations:
            try:
                record = extract_record(
                    self._root, location.path, location.object_type, last_indexed=timestamp
                )
            except ExtractError as error:
                failures.append(
                    ExtractFailure(
                        path=error.path,
                        object_type=location.object_type,
                        reason=error.reason,
                    )
                )
                continue
            prior = prior_by_path.get((record.object_type, record.path))
            if prior is not None and _unchanged(prior, record):
                record = prior
            records.append(record)

        if not job.force_rebuild and previous.is_built:
            for object_type in previous.per_type_counts:
                if object_type in scope_types or object_type not in self._object_types:
                    continue
                records.extend(previous.records(object_type))

        snapshot = build_snapshot(
            records,
            built_at=timestamp,
            generation=previous.generation + 1,
        )
        self._store.publish(snapshot)
        persisted = True
        try:
            self._store.persist(snapshot)
        except OSError:
            persisted = False

        return BuildStats(
            total_objects=snapshot.total_objects,
            per_type_counts=dict(snapshot.per_type_counts),
            elapsed_ms=int((time.perf_counter() - started) * 1000),
            failed_count=len(failures),
            scope=job.scope,
            force_rebuild=job.force_rebuild,
            built_at=timestamp,
            failures=tuple(failures[:MAX_REPORTED_FAILURES]),
            persisted=persisted,
        )

    def _log_job(self, job: IndexBuildJob) -> None:
        if self._build_log is None:
            return
        entry = job.to_public_dict()
        if job.stats is not None:
            entry["per_type_counts"] = dict(job.stats.per_type_counts)
            entry["persisted"] = job.stats.persisted
            entry["failures"] = [
                {"path": item.path, "object_type": item.object_type, "reason": item.reason}
                for item in job.stats.failures
            ]
        try:
            self._build_log(entry)
        except OSError:
            return


def _prior_records(
    previous: CatalogSnapshot, scope_types: set[str]
) -> dict[tuple[str, str], ObjectRecord]:
    output: dict[tuple[str, str], ObjectRecord] = {}
    for object_type in scope_types:
        for record in previous.records(object_type):
            output[(record.object_type, record.path)] = record
    return output


def _unchanged(prior: ObjectRecord, current: ObjectRecord) -> bool:
    return (
        prior.name == current.name
        and prior.package == current.package
        and prior.size == current.size
        and prior.mtime_ns == current.mtime_ns
    )
