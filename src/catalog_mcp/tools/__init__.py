"""MCP tool interfaces and registrations."""

from .registry import ToolDispatchError, ToolEntry, ToolHandler, ToolRegistry

__all__ = ["ToolDispatchError", "ToolEntry", "ToolHandler", "ToolRegistry"]
