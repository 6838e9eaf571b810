"""Configured closed set of supported object types."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

DEFAULT_OBJECT_TYPE_NAMES = (
    "AxClass",
    "AxTable",
    "AxForm",
    "AxEnum",
    "AxEdt",
    "AxQuery",
    "AxView",
    "AxMap",
    "AxDataEntityView",
    "AxMenuItemDisplay",
    "AxMenuItemAction",
    "AxMenuItemOutput",
    "AxReport",
    "AxService",
    "AxSecurityPrivilege",
    "AxTableExtension",
    "AxClassExtension",
    "AxFormExtension",
)


@dataclass(slots=True, frozen=True)
class ObjectTypeSpec:
    """One object category and where its objects live inside a package."""

    name: str
    folders: tuple[str, ...]
    extensions: tuple[str, ...] = (".xml",)


class UnknownObjectTypeError(ValueError):
    """Raised when an object type is not part of the configured registry."""

    def __init__(self, name: str, known: tuple[str, ...]) -> None:
        super().__init__(f"Unknown object type: {name}")
        self.name = name
        self.known = known


class ObjectTypeRegistry:
    """Validated, insertion-ordered registry of object types."""

    def __init__(self, specs: Iterable[ObjectTypeSpec]) -> None:
        self._specs: dict[str, ObjectTypeSpec] = {}
        for spec in specs:
            _validate_spec(spec)
            if spec.name in self._specs:
                raise ValueError(f"Duplicate object type: {spec.name}")
            self._specs[spec.name] = spec
        if not self._specs:
            raise ValueError("At least one object type must be configured.")

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[ObjectTypeSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def names(self) -> tuple[str, ...]:
        """Return type names in configuration order."""
        return tuple(self._specs.keys())

    def get(self, name: str) -> ObjectTypeSpec | None:
        return self._specs.get(name)

    def require(self, name: str) -> ObjectTypeSpec:
        """Return the ObjectTypeSpec for ``name`` or raise UnknownObjectTypeError."""
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownObjectTypeError(name, self.names())
        return spec

    def to_public_list(self) -> list[dict[str, object]]:
        return [
            {
                "name": spec.name,
                "folders": list(spec.folders),
                "extensions": list(spec.extensions),
            }
            for spec in self._specs.values()
        ]


def default_object_types() -> ObjectTypeRegistry:
    """Build the default registry where each type lives in a folder of the same name."""
    return ObjectTypeRegistry(
        ObjectTypeSpec(name=name, folders=(name,)) for name in DEFAULT_OBJECT_TYPE_NAMES
    )


def registry_from_payload(
    base: ObjectTypeRegistry, payload: dict[str, object]
) -> ObjectTypeRegistry:
    """Merge an ``[object_types]`` config table into ``base``.

    Each sub-table adds or replaces one type. ``replace_defaults = true`` drops
    the base entries first.
    """
    replace_defaults = payload.get("replace_defaults", False)
    if not isinstance(replace_defaults, bool):
        raise ValueError("Config field 'object_types.replace_defaults' must be a boolean.")

    merged: dict[str, ObjectTypeSpec] = {} if replace_defaults else {s.name: s for s in base}
    for name in sorted(key for key in payload if key != "replace_defaults"):
        table = payload[name]
        if not isinstance(table, dict):
            raise ValueError(f"Config section 'object_types.{name}' must be a table.")
        folders = _strings(table.get("folders", [name]), f"object_types.{name}.folders")
        extensions = _strings(
            table.get("extensions", [".xml"]), f"object_types.{name}.extensions"
        )
        merged[name] = ObjectTypeSpec(
            name=name,
            folders=folders,
            extensions=tuple(ext.lower() for ext in extensions),
        )
    return ObjectTypeRegistry(merged.values())


def _strings(value: object, field: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"Config field '{field}' must be a list of strings.")
    return tuple(value)


def _validate_spec(spec: ObjectTypeSpec) -> None:
    if not spec.name or not spec.name.strip():
        raise ValueError("Object type names must be non-empty.")
    if not spec.folders:
        raise ValueError(f"Object type '{spec.name}' must declare at least one folder.")
    for folder in spec.folders:
        if not folder or "/" in folder or "\\" in folder or folder in (".", ".."):
            raise ValueError(f"Object type '{spec.name}' has invalid folder '{folder}'.")
    if not spec.extensions:
        raise ValueError(f"Object type '{spec.name}' must declare at least one extension.")
    for extension in spec.extensions:
        if not extension.startswith("."):
            raise ValueError(
                f"Object type '{spec.name}' extension '{extension}' must start with '.'."
            )
