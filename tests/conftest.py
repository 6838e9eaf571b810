from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

ObjectWriter = Callable[..., Path]


@pytest.fixture
def write_object() -> ObjectWriter:
    """Write one object file into a ``Root/Pkg/Pkg/<Type>/<Name>.xml`` layout."""

    def _write(
        root: Path,
        package: str,
        object_type: str,
        name: str,
        body: str | None = None,
        nested: bool = True,
        suffix: str = ".xml",
    ) -> Path:
        content_root = root / package / package if nested else root / package
        folder = content_root / object_type
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{name}{suffix}"
        text = body if body is not None else f"<{object_type}><Name>{name}</Name></{object_type}>\n"
        path.write_text(text, encoding="utf-8")
        return path

    return _write
