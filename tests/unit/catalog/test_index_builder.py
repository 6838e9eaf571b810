from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from catalog_mcp.catalog import (
    BuildError,
    BuildInProgress,
    CatalogStore,
    IndexBuilder,
    UnknownObjectTypeError,
    default_object_types,
)


def _builder(root: Path, data_dir: Path, build_log=None) -> tuple[IndexBuilder, CatalogStore]:
    store = CatalogStore(data_dir)
    builder = IndexBuilder(
        root=root,
        store=store,
        object_types=default_object_types(),
        excluded_dirs=(data_dir,),
        build_log=build_log,
    )
    return builder, store


def _seed(root: Path, write_object) -> None:
    for name in ("CustHelper", "SalesHelper", "VendHelper"):
        write_object(root, "ApplicationSuite", "AxClass", name)
    for name in ("CustTable", "VendTable"):
        write_object(root, "ApplicationSuite", "AxTable", name)


def test_build_reports_totals_and_per_type_counts(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")

    stats = builder.build()

    assert stats.total_objects == 5
    assert stats.per_type_counts == {"AxClass": 3, "AxTable": 2}
    assert stats.failed_count == 0
    assert stats.scope == "all"
    assert stats.persisted is True
    assert store.current().index_status == "ready"
    assert sum(store.current().per_type_counts.values()) == store.current().total_objects


def test_noop_rebuild_keeps_records_and_last_indexed(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")

    builder.build()
    first = store.current()
    builder.build(force_rebuild=True)
    second = store.current()

    assert second.records() == first.records()
    assert second.generation == first.generation + 1


def test_changed_file_is_refreshed_and_deleted_file_dropped(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")
    builder.build()
    before = {record.name: record for record in store.current().records()}

    changed = root / "ApplicationSuite" / "ApplicationSuite" / "AxClass" / "CustHelper.xml"
    changed.write_text("<AxClass>much longer body than before</AxClass>\n", encoding="utf-8")
    stat = changed.stat()
    os.utime(changed, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
    (root / "ApplicationSuite" / "ApplicationSuite" / "AxTable" / "VendTable.xml").unlink()
    builder.build()
    after = {record.name: record for record in store.current().records()}

    assert "VendTable" not in after
    assert after["CustHelper"].size == changed.stat().st_size
    assert after["SalesHelper"].last_indexed == before["SalesHelper"].last_indexed


def test_type_scoped_build_carries_other_types_over(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")
    builder.build()

    write_object(root, "ApplicationSuite", "AxClass", "NewHelper")
    write_object(root, "ApplicationSuite", "AxTable", "NewTable")
    tables_before = store.current().records("AxTable")
    stats = builder.build(object_type="AxClass")
    tables_after = store.current().records("AxTable")

    assert stats.scope == "AxClass"
    assert dict(store.current().per_type_counts) == {"AxClass": 4, "AxTable": 2}
    assert tables_after == tables_before
    assert [(r.path, r.size, r.mtime_ns, r.last_indexed) for r in tables_after] == [
        (r.path, r.size, r.mtime_ns, r.last_indexed) for r in tables_before
    ]


def test_extension_objects_are_indexed(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    write_object(root, "Contoso", "AxTableExtension", "CustTable.ContosoExtension")
    write_object(root, "Contoso", "AxFormExtension", "CustTable.ContosoExtension")
    builder, store = _builder(root, tmp_path / "data")

    stats = builder.build()

    assert stats.failed_count == 0
    assert stats.total_objects == 2
    assert dict(store.current().per_type_counts) == {"AxFormExtension": 1, "AxTableExtension": 1}
    assert {record.name for record in store.current().records()} == {
        "CustTable.ContosoExtension"
    }


def test_forced_type_scoped_build_publishes_only_that_type(
    tmp_path: Path, write_object
) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")
    builder.build()

    builder.build(object_type="AxTable", force_rebuild=True)

    assert dict(store.current().per_type_counts) == {"AxTable": 2}


def test_extraction_failures_are_counted_not_fatal(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    write_object(root, "ApplicationSuite", "AxClass", "Bad Name")
    builder, store = _builder(root, tmp_path / "data")

    stats = builder.build()

    assert stats.total_objects == 5
    assert stats.failed_count == 1
    assert stats.failures[0].path == "ApplicationSuite/ApplicationSuite/AxClass/Bad Name.xml"
    assert all(record.name != "Bad Name" for record in store.current().records())


def test_missing_root_fails_and_keeps_previous_snapshot(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")
    builder.build()
    published = store.current()

    shutil.rmtree(root)
    with pytest.raises(BuildError):
        builder.build()

    assert store.current() is published
    assert builder.last_job is not None
    assert builder.last_job.to_public_dict()["status"] == "failed"


def test_concurrent_build_is_rejected(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, _ = _builder(root, tmp_path / "data")

    job = builder.start()
    with pytest.raises(BuildInProgress) as error:
        builder.build()
    assert error.value.active is job

    builder.run(job)
    assert builder.active_job is None
    assert builder.build().total_objects == 5


def test_unknown_type_scope_is_rejected_before_building(tmp_path: Path) -> None:
    builder, store = _builder(tmp_path, tmp_path / "data")

    with pytest.raises(UnknownObjectTypeError):
        builder.build(object_type="AxNope")

    assert builder.active_job is None
    assert store.current().is_built is False


def test_build_log_receives_one_entry_per_build(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    entries: list[dict[str, object]] = []
    builder, _ = _builder(root, tmp_path / "data", build_log=entries.append)

    builder.build()

    assert len(entries) == 1
    assert entries[0]["status"] == "succeeded"
    assert entries[0]["per_type_counts"] == {"AxClass": 3, "AxTable": 2}
    assert entries[0]["failures"] == []


def test_build_persists_for_the_next_process(tmp_path: Path, write_object) -> None:
    root = tmp_path / "root"
    _seed(root, write_object)
    builder, store = _builder(root, tmp_path / "data")
    builder.build()

    loaded = CatalogStore(tmp_path / "data").load()

    assert loaded is not None
    assert loaded.records() == store.current().records()
