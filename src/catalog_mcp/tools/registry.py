"""Deterministic tool registration primitives."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

ToolHandler = Callable[[dict[str, object]], dict[str, object]]


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """Represents deterministic tool dispatch failures."""

    code: str
    message: str


@dataclass(slots=True, frozen=True)
class ToolEntry:
    """A registered handler and its one-line description."""

    name: str
    handler: ToolHandler
    description: str


@dataclass(slots=True)
class ToolRegistry:
    """In-memory tool registry preserving deterministic insertion order."""

    _entries: dict[str, ToolEntry] = field(default_factory=dict)

    def register(self, name: str, handler: ToolHandler, description: str = "") -> None:
        """Register a named handler."""
        self._entries[name] = ToolEntry(name=name, handler=handler, description=description)

    def get(self, name: str) -> ToolHandler | None:
        """Return a handler by name."""
        entry = self._entries.get(name)
        return entry.handler if entry is not None else None

    def names(self) -> tuple[str, ...]:
        """Return registered tool names in deterministic order."""
        return tuple(self._entries.keys())

    def describe(self) -> list[dict[str, str]]:
        """Return name/description pairs for ``tools/list``."""
        return [
            {"name": entry.name, "description": entry.description}
            for entry in self._entries.values()
        ]

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        """Dispatch to a registered tool by name."""
        handler = self.get(name)
        if handler is None:
            raise ToolDispatchError(code="UNKNOWN_TOOL", message=f"Unknown tool: {name}")
        return handler(arguments)
