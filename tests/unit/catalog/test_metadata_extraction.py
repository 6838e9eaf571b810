from __future__ import annotations

from pathlib import Path

import pytest

from catalog_mcp.catalog import ExtractError, extract_record
from catalog_mcp.catalog.extractor import object_name_from_filename


def test_record_fields_come_from_path_and_stat(tmp_path: Path, write_object) -> None:
    path = write_object(tmp_path, "ApplicationSuite", "AxTable", "CustTable", body="x" * 42)

    record = extract_record(tmp_path, path, "AxTable", last_indexed="2026-01-01T00:00:00.000Z")

    assert record.name == "CustTable"
    assert record.object_type == "AxTable"
    assert record.package == "ApplicationSuite"
    assert record.path == "ApplicationSuite/ApplicationSuite/AxTable/CustTable.xml"
    assert record.size == 42
    assert record.mtime_ns == path.stat().st_mtime_ns
    assert record.last_indexed == "2026-01-01T00:00:00.000Z"
    assert record.key == ("AxTable", "ApplicationSuite", "CustTable")


def test_malformed_name_is_rejected(tmp_path: Path, write_object) -> None:
    path = write_object(tmp_path, "Pkg", "AxClass", "Bad Name")

    with pytest.raises(ExtractError) as error:
        extract_record(tmp_path, path, "AxClass", last_indexed="t")

    assert error.value.path == "Pkg/Pkg/AxClass/Bad Name.xml"
    assert error.value.reason == "Malformed object name 'Bad Name'."


@pytest.mark.parametrize("name", ["Cust..Table", "CustTable.", "9Lives"])
def test_dotted_and_leading_digit_edge_names_are_rejected(
    tmp_path: Path, write_object, name: str
) -> None:
    path = write_object(tmp_path, "Pkg", "AxClass", name)

    with pytest.raises(ExtractError):
        extract_record(tmp_path, path, "AxClass", last_indexed="t")


def test_extension_object_keeps_dotted_name(tmp_path: Path, write_object) -> None:
    path = write_object(tmp_path, "Contoso", "AxTableExtension", "CustTable.ContosoExtension")

    record = extract_record(tmp_path, path, "AxTableExtension", last_indexed="t")

    assert record.name == "CustTable.ContosoExtension"
    assert record.package == "Contoso"
    assert record.path == "Contoso/Contoso/AxTableExtension/CustTable.ContosoExtension.xml"


def test_file_outside_package_type_folder_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "Pkg").mkdir()
    stray = tmp_path / "Pkg" / "Stray.xml"
    stray.write_text("<x/>", encoding="utf-8")

    with pytest.raises(ExtractError) as error:
        extract_record(tmp_path, stray, "AxClass", last_indexed="t")

    assert error.value.reason == "Object is not inside a package type folder."


def test_missing_file_is_reported_unreadable(tmp_path: Path) -> None:
    missing = tmp_path / "Pkg" / "Pkg" / "AxClass" / "Gone.xml"

    with pytest.raises(ExtractError) as error:
        extract_record(tmp_path, missing, "AxClass", last_indexed="t")

    assert error.value.reason.startswith("Unreadable entry:")


def test_directory_is_not_a_record(tmp_path: Path) -> None:
    folder = tmp_path / "Pkg" / "Pkg" / "AxClass" / "Nested.xml"
    folder.mkdir(parents=True)

    with pytest.raises(ExtractError) as error:
        extract_record(tmp_path, folder, "AxClass", last_indexed="t")

    assert error.value.reason == "Not a regular file."


def test_object_name_strips_final_extension_only() -> None:
    assert object_name_from_filename("CustTable.xml") == "CustTable"
    assert object_name_from_filename("Form1.designer.cs") == "Form1.designer"
    assert object_name_from_filename("README") == "README"
