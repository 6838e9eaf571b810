from __future__ import annotations

from pathlib import Path

from catalog_mcp.server import StdioServer, create_server


def _call(server: StdioServer, tool: str, **arguments: object) -> dict[str, object]:
    return server.handle_payload(
        {
            "id": f"req-{tool}",
            "method": "tools/call",
            "params": {"name": tool, "arguments": arguments},
        }
    )


def _seed(root: Path, write_object) -> None:
    write_object(root, "ApplicationSuite", "AxTable", "CustTable", body="<AxTable>" + "x" * 200)
    write_object(root, "ApplicationSuite", "AxTable", "VendTable")
    write_object(root, "ApplicationSuite", "AxClass", "CustHelper")
    write_object(root, "Contoso", "AxTable", "CustTable", nested=False)
    write_object(root, "Contoso", "AxClass", "ContosoCustExt", nested=False)


def test_build_then_query_every_tool(tmp_path: Path, write_object) -> None:
    _seed(tmp_path, write_object)
    server = create_server(root=str(tmp_path), environ={})

    build = _call(server, "catalog.build_index")
    assert build["ok"] is True
    assert build["result"]["total_objects"] == 5
    assert build["result"]["per_type_counts"] == {"AxClass": 2, "AxTable": 3}
    assert build["result"]["background"] is False

    found = _call(server, "catalog.find_object", name="CustTable")
    assert found["ok"] is True
    assert found["warnings"] == []
    assert [item["package"] for item in found["result"]["objects"]] == [
        "ApplicationSuite",
        "Contoso",
    ]
    assert found["result"]["index_status"] == "ready"
    assert "mtime_ns" not in found["result"]["objects"][0]

    pattern = _call(server, "catalog.search_pattern", pattern="Cust*", limit=1, group_by="package")
    assert pattern["result"]["total_count"] == 3
    assert pattern["result"]["returned_count"] == 1
    assert pattern["result"]["truncated"] is True
    assert list(pattern["result"]["grouped"]) == ["ApplicationSuite"]

    listed = _call(server, "catalog.list_by_type", object_type="AxTable", sort_by="size")
    assert listed["result"]["objects"][0]["name"] == "CustTable"
    assert listed["result"]["objects"][0]["package"] == "ApplicationSuite"

    browsed = _call(server, "catalog.browse_package", package="Contoso")
    assert browsed["result"]["by_type"] == {"AxClass": ["ContosoCustExt"], "AxTable": ["CustTable"]}

    smart = _call(server, "catalog.smart_search", term="VendTable", max_results=10)
    hits = smart["result"]["hits"]
    assert hits[0] == {
        "path": "ApplicationSuite/ApplicationSuite/AxTable/VendTable.xml",
        "source": "object",
        "name": "VendTable",
        "object_type": "AxTable",
        "package": "ApplicationSuite",
    }
    assert all(hit["path"] != hits[0]["path"] for hit in hits[1:])

    stats = _call(server, "catalog.index_stats")
    assert stats["result"]["total_objects"] == 5
    assert stats["result"]["per_package_counts"] == {"ApplicationSuite": 3, "Contoso": 2}
    assert stats["result"]["last_build"]["status"] == "succeeded"
    assert stats["result"]["build_running"] is False

    types = _call(server, "catalog.object_types")
    counts = {item["name"]: item["count"] for item in types["result"]["object_types"]}
    assert counts["AxTable"] == 3
    assert counts["AxForm"] == 0


def test_tools_list_describes_registered_tools(tmp_path: Path) -> None:
    server = create_server(root=str(tmp_path), environ={})

    response = server.handle_payload({"id": "req-list", "method": "tools/list", "params": {}})

    names = [tool["name"] for tool in response["result"]["tools"]]
    assert names == [
        "catalog.status",
        "catalog.build_index",
        "catalog.find_object",
        "catalog.search_pattern",
        "catalog.list_by_type",
        "catalog.browse_package",
        "catalog.smart_search",
        "catalog.index_stats",
        "catalog.object_types",
        "catalog.audit_log",
    ]
    assert all(tool["description"] for tool in response["result"]["tools"])


def test_queries_before_build_warn_instead_of_failing(tmp_path: Path, write_object) -> None:
    _seed(tmp_path, write_object)
    server = create_server(root=str(tmp_path), environ={})

    response = _call(server, "catalog.find_object", name="CustTable")

    assert response["ok"] is True
    assert response["result"]["total_count"] == 0
    assert response["result"]["index_status"] == "not_built"
    assert response["result"]["built_at"] is None
    assert len(response["warnings"]) == 1


def test_type_scoped_build_through_the_tool(tmp_path: Path, write_object) -> None:
    _seed(tmp_path, write_object)
    server = create_server(root=str(tmp_path), environ={})

    response = _call(server, "catalog.build_index", object_type="AxClass", force_rebuild=True)

    assert response["ok"] is True
    assert response["result"]["scope"] == "AxClass"
    assert response["result"]["per_type_counts"] == {"AxClass": 2}


def test_audit_log_tool_returns_recent_entries(tmp_path: Path) -> None:
    server = create_server(root=str(tmp_path), environ={})
    _call(server, "catalog.find_object", name="CustTable")

    response = _call(server, "catalog.audit_log", limit=1)

    entries = response["result"]["entries"]
    assert len(entries) == 1
    assert entries[0]["tool"] == "catalog.find_object"
    assert entries[0]["metadata"]["name"] == "CustTable"
