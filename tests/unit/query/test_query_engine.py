from __future__ import annotations

from pathlib import Path

import pytest

from catalog_mcp.catalog import CatalogStore, ObjectRecord, build_snapshot, default_object_types
from catalog_mcp.query import QueryEngine, QueryError


def _record(
    name: str,
    object_type: str = "AxTable",
    package: str = "ApplicationSuite",
    size: int = 10,
) -> ObjectRecord:
    return ObjectRecord(
        name=name,
        object_type=object_type,
        package=package,
        path=f"{package}/{package}/{object_type}/{name}.xml",
        size=size,
        mtime_ns=1,
        last_indexed="2026-01-01T00:00:00.000Z",
    )


def _engine(tmp_path: Path, records: list[ObjectRecord], origin: str = "build") -> QueryEngine:
    store = CatalogStore(tmp_path / "data")
    snapshot = build_snapshot(
        records, built_at="2026-01-01T00:00:00.000Z", generation=1, origin=origin
    )
    store.publish(snapshot)
    return QueryEngine(store=store, object_types=default_object_types(), default_limit=50)


def test_find_returns_same_name_from_every_package(tmp_path: Path) -> None:
    engine = _engine(
        tmp_path,
        [_record("CustTable"), _record("CustTable", package="Contoso"), _record("VendTable")],
    )

    page = engine.find_by_name("CustTable")

    assert page.total_count == 2
    assert [record.package for record in page.records] == ["ApplicationSuite", "Contoso"]
    assert page.index_status == "ready"


def test_find_falls_back_to_case_insensitive_match(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record("CustTable")])

    assert [record.name for record in engine.find_by_name("custtable").records] == ["CustTable"]


def test_find_prefers_exact_case_when_present(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record("CustTable"), _record("custtable", package="Contoso")])

    page = engine.find_by_name("custtable")

    assert [(record.name, record.package) for record in page.records] == [
        ("custtable", "Contoso")
    ]


def test_find_filters_by_type_and_package(tmp_path: Path) -> None:
    engine = _engine(
        tmp_path,
        [
            _record("Cust"),
            _record("Cust", object_type="AxClass"),
            _record("Cust", package="Contoso"),
        ],
    )

    by_type = engine.find_by_name("Cust", object_type="AxClass")
    by_package = engine.find_by_name("Cust", package="Contoso")

    assert [record.object_type for record in by_type.records] == ["AxClass"]
    assert [record.package for record in by_package.records] == ["Contoso"]


def test_pattern_page_reports_total_beyond_limit(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record(f"Cust{index:02d}") for index in range(10)])

    page = engine.search_pattern("Cust*", limit=1)

    assert page.total_count == 10
    assert len(page.records) == 1
    assert page.truncated is True
    assert page.records[0].name == "Cust00"


def test_pattern_wildcards_are_anchored_and_case_insensitive(tmp_path: Path) -> None:
    engine = _engine(
        tmp_path,
        [_record("CustTable"), _record("CustTrans"), _record("MyCustTable"), _record("Cust")],
    )

    assert [r.name for r in engine.search_pattern("cust*").records] == [
        "Cust",
        "CustTable",
        "CustTrans",
    ]
    assert [r.name for r in engine.search_pattern("*table").records] == [
        "CustTable",
        "MyCustTable",
    ]
    assert [r.name for r in engine.search_pattern("Cust????s").records] == ["CustTrans"]
    assert engine.search_pattern("Cust.Table").total_count == 0


def test_pattern_without_wildcards_is_exact_and_empty_matches_all(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record("CustTable"), _record("CustTableX")])

    assert [r.name for r in engine.search_pattern("custtable").records] == ["CustTable"]
    assert engine.search_pattern("").total_count == 2


def test_regex_metacharacters_are_literal(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record("A_B"), _record("AxB")])

    assert [r.name for r in engine.search_pattern("A_*").records] == ["A_B"]
    assert engine.search_pattern("A[x]B").total_count == 0


def test_list_by_type_sorting(tmp_path: Path) -> None:
    engine = _engine(
        tmp_path,
        [
            _record("Beta", package="Zeta", size=5),
            _record("alpha", package="Contoso", size=50),
            _record("Gamma", package="ApplicationSuite", size=50),
            _record("Other", object_type="AxClass"),
        ],
    )

    by_name = engine.list_by_type("AxTable")
    by_size = engine.list_by_type("AxTable", sort_by="size")
    by_package = engine.list_by_type("AxTable", sort_by="package")

    assert [r.name for r in by_name.records] == ["alpha", "Beta", "Gamma"]
    assert [r.name for r in by_size.records] == ["alpha", "Gamma", "Beta"]
    assert [r.package for r in by_package.records] == ["ApplicationSuite", "Contoso", "Zeta"]
    assert by_name.total_count == 3


def test_unknown_type_and_sort_field_raise_query_error(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record("CustTable")])

    with pytest.raises(QueryError):
        engine.list_by_type("AxNope")
    with pytest.raises(QueryError):
        engine.search_pattern("*", object_type="AxNope")
    with pytest.raises(QueryError):
        engine.list_by_type("AxTable", sort_by="mtime")
    with pytest.raises(QueryError):
        engine.search_pattern("*", limit=0)


def test_queries_before_first_build_report_not_built(tmp_path: Path) -> None:
    engine = QueryEngine(
        store=CatalogStore(tmp_path / "data"), object_types=default_object_types()
    )

    page = engine.search_pattern("*")

    assert page.total_count == 0
    assert page.index_status == "not_built"
    assert page.index_built is False
    assert page.built_at is None
    assert engine.stats()["total_objects"] == 0


def test_browse_package_orders_by_type_then_name(tmp_path: Path) -> None:
    engine = _engine(
        tmp_path,
        [
            _record("Zed", object_type="AxClass"),
            _record("CustTable"),
            _record("Abc", object_type="AxClass"),
            _record("Foreign", package="Contoso"),
        ],
    )

    page = engine.browse_package("ApplicationSuite")

    assert [(r.object_type, r.name) for r in page.records] == [
        ("AxClass", "Abc"),
        ("AxClass", "Zed"),
        ("AxTable", "CustTable"),
    ]


def test_stats_include_package_counts(tmp_path: Path) -> None:
    engine = _engine(
        tmp_path,
        [_record("A"), _record("B", object_type="AxClass"), _record("C", package="Contoso")],
    )

    stats = engine.stats()

    assert stats["total_objects"] == 3
    assert stats["per_type_counts"] == {"AxClass": 1, "AxTable": 2}
    assert stats["per_package_counts"] == {"ApplicationSuite": 2, "Contoso": 1}


def test_lazy_prune_drops_vanished_records_from_disk_snapshot(tmp_path: Path) -> None:
    root = tmp_path / "root"
    present = _record("Present")
    vanished = _record("Vanished")
    file_path = root / present.path
    file_path.parent.mkdir(parents=True)
    file_path.write_text("<x/>", encoding="utf-8")
    store = CatalogStore(tmp_path / "data")
    store.publish(build_snapshot([present, vanished], built_at="t", generation=1, origin="disk"))
    engine = QueryEngine(store=store, object_types=default_object_types(), root=root)

    assert engine.find_by_name("Vanished").total_count == 0
    assert engine.find_by_name("Present").total_count == 1
    assert store.current().total_objects == 1


def test_type_counts_come_from_one_snapshot(tmp_path: Path) -> None:
    engine = _engine(tmp_path, [_record("A"), _record("B", object_type="AxClass")])
    empty = QueryEngine(
        store=CatalogStore(tmp_path / "empty"), object_types=default_object_types()
    )

    assert engine.type_counts() == ("ready", {"AxClass": 1, "AxTable": 1})
    assert empty.type_counts() == ("not_built", {})
