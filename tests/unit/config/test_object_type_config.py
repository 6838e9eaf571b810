from __future__ import annotations

from pathlib import Path

import pytest

from catalog_mcp.catalog import ObjectTypeRegistry, ObjectTypeSpec, UnknownObjectTypeError
from catalog_mcp.config import load_effective_config


def test_config_adds_types_to_the_defaults(tmp_path: Path) -> None:
    (tmp_path / "catalog_mcp.toml").write_text(
        "\n".join(
            [
                "[object_types.AxWorkflowType]",
                'folders = ["AxWorkflowType"]',
                'extensions = [".XML"]',
            ]
        ),
        encoding="utf-8",
    )

    registry = load_effective_config(tmp_path, environ={}).object_types

    assert "AxClass" in registry
    assert registry.require("AxWorkflowType").extensions == (".xml",)


def test_replace_defaults_keeps_only_configured_types(tmp_path: Path) -> None:
    (tmp_path / "catalog_mcp.toml").write_text(
        "\n".join(
            [
                "[object_types]",
                "replace_defaults = true",
                "",
                "[object_types.class]",
                'folders = ["Classes"]',
                'extensions = [".xpp"]',
            ]
        ),
        encoding="utf-8",
    )

    registry = load_effective_config(tmp_path, environ={}).object_types

    assert registry.names() == ("class",)


def test_registry_rejects_duplicates_and_unknown_lookups() -> None:
    spec = ObjectTypeSpec(name="AxClass", folders=("AxClass",))

    with pytest.raises(ValueError, match="Duplicate"):
        ObjectTypeRegistry([spec, spec])
    with pytest.raises(UnknownObjectTypeError) as error:
        ObjectTypeRegistry([spec]).require("AxTable")
    assert error.value.known == ("AxClass",)


def test_folder_names_cannot_contain_separators() -> None:
    with pytest.raises(ValueError, match="invalid folder"):
        ObjectTypeRegistry([ObjectTypeSpec(name="AxClass", folders=("a/b",))])
