"""Published catalog snapshot plus its durable on-disk mirror."""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path

from catalog_mcp.catalog.models import (
    NOT_BUILT,
    CatalogSnapshot,
    ObjectRecord,
    build_snapshot,
)

CATALOG_SCHEMA_VERSION = 1


@dataclass(slots=True, frozen=True)
class CatalogSchemaUnsupportedError(Exception):
    """Raised when the stored catalog schema does not match the supported version."""

    found: int
    expected: int


class CatalogStoreCorruptError(Exception):
    """Raised when the stored manifest or records cannot be decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class CatalogStore:
    """Owns the currently published snapshot.

    Readers call :meth:`current` and keep the returned reference for the whole
    query; writers swap in a new immutable snapshot, so there are no torn reads.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir.resolve()
        self._index_dir = self._data_dir / "index"
        self._manifest_path = self._index_dir / "manifest.json"
        self._records_path = self._index_dir / "records.jsonl"
        self._snapshot: CatalogSnapshot = NOT_BUILT
        self._publish_lock = threading.Lock()

    @property
    def index_dir(self) -> Path:
        return self._index_dir

    def current(self) -> CatalogSnapshot:
        """Return the latest published snapshot, or NOT_BUILT before the first build."""
        return self._snapshot

    def publish(self, snapshot: CatalogSnapshot) -> None:
        """Atomically replace the visible snapshot."""
        with self._publish_lock:
            self._snapshot = snapshot

    def replace_if_current(self, expected: CatalogSnapshot, snapshot: CatalogSnapshot) -> bool:
        """Publish ``snapshot`` only if ``expected`` is still the visible one."""
        with self._publish_lock:
            if self._snapshot is not expected:
                return False
            self._snapshot = snapshot
            return True

    def prune(self, expected: CatalogSnapshot, missing: Iterable[ObjectRecord]) -> bool:
        """Publish a copy of ``expected`` without ``missing`` records; memory only."""
        dropped = {record.key + (record.path,) for record in missing}
        if not dropped:
            return False
        kept = [
            record
            for record in expected.records()
            if record.key + (record.path,) not in dropped
        ]
        pruned = build_snapshot(
            kept,
            built_at=expected.built_at,
            generation=expected.generation + 1,
            origin=expected.origin,
        )
        return self.replace_if_current(expected, pruned)

    def persist(self, snapshot: CatalogSnapshot) -> None:
        """Write manifest and records with atomic file replacement."""
        manifest = {
            "schema_version": CATALOG_SCHEMA_VERSION,
            "built_at": snapshot.built_at,
            "generation": snapshot.generation,
            "total_objects": snapshot.total_objects,
            "per_type_counts": dict(snapshot.per_type_counts),
        }
        self._index_dir.mkdir(parents=True, exist_ok=True)
        self._atomic_write_jsonl(
            self._records_path, [asdict(record) for record in snapshot.records()]
        )
        self._atomic_write_json(self._manifest_path, manifest)

    def load(self) -> CatalogSnapshot | None:
        """Read the persisted snapshot; None when absent.

        Records are not checked against the filesystem here; stale entries are
        pruned lazily when a lookup first notices the source file is gone.
        Undecodable files raise :class:`CatalogStoreCorruptError`.
        """
        manifest = self._read_manifest()
        if manifest is None:
            return None
        schema = manifest.get("schema_version")
        if not isinstance(schema, int) or isinstance(schema, bool):
            raise CatalogSchemaUnsupportedError(found=-1, expected=CATALOG_SCHEMA_VERSION)
        if schema != CATALOG_SCHEMA_VERSION:
            raise CatalogSchemaUnsupportedError(found=schema, expected=CATALOG_SCHEMA_VERSION)
        if not self._records_path.exists():
            return None

        records: list[ObjectRecord] = []
        for obj in self._read_jsonl(self._records_path):
            record = _record_from_json(obj)
            if record is not None:
                records.append(record)
        built_at = manifest.get("built_at")
        generation = manifest.get("generation")
        return build_snapshot(
            records,
            built_at=built_at if isinstance(built_at, str) else "",
            generation=generation if isinstance(generation, int) else 1,
            origin="disk",
        )

    def _read_manifest(self) -> dict[str, object] | None:
        if not self._manifest_path.exists():
            return None
        try:
            with self._manifest_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except UnicodeDecodeError as error:
            raise CatalogStoreCorruptError(self._manifest_path, "not valid UTF-8") from error
        except json.JSONDecodeError as error:
            raise CatalogStoreCorruptError(self._manifest_path, "not valid JSON") from error
        if not isinstance(payload, dict):
            raise CatalogStoreCorruptError(self._manifest_path, "not a JSON object")
        return payload

    @staticmethod
    def _read_jsonl(path: Path) -> list[dict[str, object]]:
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as error:
            raise CatalogStoreCorruptError(path, "not valid UTF-8") from error
        output: list[dict[str, object]] = []
        for raw_line in text.splitlines():
            stripped = raw_line.strip()
            if not stripped:
                continue
            try:
                obj = json.loads(stripped)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                output.append(obj)
        return output

    @staticmethod
    def _atomic_write_json(path: Path, payload: dict[str, object]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(path)

    @staticmethod
    def _atomic_write_jsonl(path: Path, rows: list[dict[str, object]]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            for row in rows:
                handle.write(json.dumps(row, sort_keys=True))
                handle.write("\n")
        tmp.replace(path)


def _record_from_json(obj: dict[str, object]) -> ObjectRecord | None:
    name = obj.get("name")
    object_type = obj.get("object_type")
    package = obj.get("package")
    path = obj.get("path")
    size = obj.get("size")
    mtime_ns = obj.get("mtime_ns")
    last_indexed = obj.get("last_indexed")
    if not isinstance(name, str) or not isinstance(object_type, str):
        return None
    if not isinstance(package, str) or not isinstance(path, str):
        return None
    if not isinstance(size, int) or size < 0 or not isinstance(mtime_ns, int):
        return None
    if not isinstance(last_indexed, str):
        return None
    return ObjectRecord(
        name=name,
        object_type=object_type,
        package=package,
        path=path,
        size=size,
        mtime_ns=mtime_ns,
        last_indexed=last_indexed,
    )
