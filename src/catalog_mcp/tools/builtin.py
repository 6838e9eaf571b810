"""Built-in catalog tools."""

from __future__ import annotations

from collections.abc import Callable

from catalog_mcp.config import ServerConfig
from catalog_mcp.query import GROUP_FIELDS, QueryEngine, QueryPage, group_by_package
from catalog_mcp.search import SmartSearch
from catalog_mcp.security import enforce_result_limit
from catalog_mcp.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

NOT_BUILT_WARNING = "Catalog index has not been built yet; run catalog.build_index."

BuildRunner = Callable[[str | None, bool, bool], dict[str, object]]


def register_builtin_tools(
    registry: ToolRegistry,
    config: ServerConfig,
    engine: QueryEngine,
    smart_search: SmartSearch,
    run_build: BuildRunner,
    read_index_stats: Callable[[], dict[str, object]],
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> None:
    """Register the catalog tool set in a stable order."""
    registry.register(
        "catalog.status",
        _status_handler(config, read_index_stats),
        "Server root, index status and effective configuration.",
    )
    registry.register(
        "catalog.build_index",
        _build_index_handler(run_build),
        "Build the object catalog for all types or one type.",
    )
    registry.register(
        "catalog.find_object",
        _find_object_handler(engine),
        "Exact object lookup by name with optional type and package filters.",
    )
    registry.register(
        "catalog.search_pattern",
        _search_pattern_handler(config, engine),
        "Wildcard (* and ?) search over object names.",
    )
    registry.register(
        "catalog.list_by_type",
        _list_by_type_handler(config, engine),
        "List objects of one type, sorted and paginated.",
    )
    registry.register(
        "catalog.browse_package",
        _browse_package_handler(config, engine),
        "List the objects of one package grouped by type.",
    )
    registry.register(
        "catalog.smart_search",
        _smart_search_handler(config, smart_search),
        "Object-name matches first, then raw content matches.",
    )
    registry.register(
        "catalog.index_stats",
        _index_stats_handler(read_index_stats),
        "Object totals per type and package plus the last build outcome.",
    )
    registry.register(
        "catalog.object_types",
        _object_types_handler(config, engine),
        "Configured object types with their current counts.",
    )
    registry.register(
        "catalog.audit_log",
        _audit_log_handler(config, read_audit_entries),
        "Recent sanitized request audit entries.",
    )


def _status_handler(
    config: ServerConfig,
    read_index_stats: Callable[[], dict[str, object]],
) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        stats = read_index_stats()
        return {
            "root": str(config.root),
            "index_status": stats["index_status"],
            "built_at": stats["built_at"],
            "total_objects": stats["total_objects"],
            "build_running": stats["build_running"],
            "limits_summary": {
                "max_file_bytes": config.limits.max_file_bytes,
                "default_limit": config.limits.default_limit,
                "max_page_size": config.limits.max_page_size,
                "max_search_results": config.limits.max_search_results,
            },
            "effective_config": config.to_public_dict(),
        }

    return handler


def _build_index_handler(run_build: BuildRunner) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        object_type = _optional_str(arguments, "object_type", "catalog.build_index")
        force_rebuild = _optional_bool(arguments, "force_rebuild", "catalog.build_index")
        background = _optional_bool(arguments, "background", "catalog.build_index")
        return run_build(object_type or None, force_rebuild, background)

    return handler


def _find_object_handler(engine: QueryEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        name = _required_str(arguments, "name", "catalog.find_object")
        object_type = _optional_str(arguments, "object_type", "catalog.find_object")
        package = _optional_str(arguments, "package", "catalog.find_object")
        page = engine.find_by_name(name, object_type=object_type or None, package=package or None)
        return _page_result(page)

    return handler


def _search_pattern_handler(config: ServerConfig, engine: QueryEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        tool = "catalog.search_pattern"
        pattern = arguments.get("pattern", "")
        if not isinstance(pattern, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message=f"{tool} pattern must be a string."
            )
        object_type = _optional_str(arguments, "object_type", tool)
        package = _optional_str(arguments, "package", tool)
        sort_by = _optional_str(arguments, "sort_by", tool) or "name"
        group_by = _optional_str(arguments, "group_by", tool)
        if group_by is not None and group_by not in GROUP_FIELDS:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"{tool} group_by must be one of: {', '.join(GROUP_FIELDS)}.",
            )
        limit = _limit(arguments, "limit", tool, config.limits.default_limit)
        enforce_result_limit(limit, config.limits.max_page_size, "limit")
        page = engine.search_pattern(
            pattern,
            object_type=object_type or None,
            package=package or None,
            limit=limit,
            sort_by=sort_by,
        )
        result = _page_result(page)
        if group_by == "package":
            result["grouped"] = group_by_package(page.records)
        return result

    return handler


def _list_by_type_handler(config: ServerConfig, engine: QueryEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        tool = "catalog.list_by_type"
        object_type = _required_str(arguments, "object_type", tool)
        sort_by = _optional_str(arguments, "sort_by", tool) or "name"
        limit = _limit(arguments, "limit", tool, config.limits.default_limit)
        enforce_result_limit(limit, config.limits.max_page_size, "limit")
        return _page_result(engine.list_by_type(object_type, sort_by=sort_by, limit=limit))

    return handler


def _browse_package_handler(config: ServerConfig, engine: QueryEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        tool = "catalog.browse_package"
        package = _required_str(arguments, "package", tool)
        object_type = _optional_str(arguments, "object_type", tool)
        limit = _limit(arguments, "limit", tool, config.limits.default_limit)
        enforce_result_limit(limit, config.limits.max_page_size, "limit")
        page = engine.browse_package(package, object_type=object_type or None, limit=limit)
        result = _page_result(page)
        by_type: dict[str, list[str]] = {}
        for record in page.records:
            by_type.setdefault(record.object_type, []).append(record.name)
        result["by_type"] = by_type
        return result

    return handler


def _smart_search_handler(config: ServerConfig, smart_search: SmartSearch) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        tool = "catalog.smart_search"
        term = _required_str(arguments, "term", tool)
        path_scope = _optional_str(arguments, "path_scope", tool)
        extensions_value = arguments.get("extensions")
        extensions: list[str] | None = None
        if extensions_value is not None:
            if not isinstance(extensions_value, list) or not all(
                isinstance(item, str) for item in extensions_value
            ):
                raise ToolDispatchError(
                    code="INVALID_PARAMS",
                    message=f"{tool} extensions must be a list of strings.",
                )
            extensions = list(extensions_value)
        max_results = _limit(arguments, "max_results", tool, config.limits.max_search_results)
        enforce_result_limit(max_results, config.limits.max_search_results, "max_results")
        result = smart_search.search(
            term,
            path_scope=path_scope or None,
            extensions=extensions,
            max_results=max_results,
        ).to_public_dict()
        if result["index_status"] == "not_built":
            result["__warnings__"] = [NOT_BUILT_WARNING]
        return result

    return handler


def _index_stats_handler(read_index_stats: Callable[[], dict[str, object]]) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        stats = read_index_stats()
        if stats["index_status"] == "not_built":
            return {**stats, "__warnings__": [NOT_BUILT_WARNING]}
        return stats

    return handler


def _object_types_handler(config: ServerConfig, engine: QueryEngine) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        index_status, counts = engine.type_counts()
        types = config.object_types.to_public_list()
        for item in types:
            item["count"] = counts.get(str(item["name"]), 0)
        return {"object_types": types, "index_status": index_status}

    return handler


def _audit_log_handler(
    config: ServerConfig,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", config.limits.default_limit)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else config.limits.default_limit
        if limit < 1:
            limit = 1
        if limit > config.limits.max_page_size:
            limit = config.limits.max_page_size

        return {"entries": read_audit_entries(since, limit)}

    return handler


def _page_result(page: QueryPage) -> dict[str, object]:
    result = page.to_public_dict()
    if not page.index_built:
        result["__warnings__"] = [NOT_BUILT_WARNING]
    return result


def _required_str(arguments: dict[str, object], key: str, tool: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} {key} must be a non-empty string.",
        )
    return value.strip()


def _optional_str(arguments: dict[str, object], key: str, tool: str) -> str | None:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolDispatchError(code="INVALID_PARAMS", message=f"{tool} {key} must be a string.")
    return value.strip()


def _optional_bool(arguments: dict[str, object], key: str, tool: str) -> bool:
    value = arguments.get(key, False)
    if not isinstance(value, bool):
        raise ToolDispatchError(code="INVALID_PARAMS", message=f"{tool} {key} must be a boolean.")
    return value


def _limit(arguments: dict[str, object], key: str, tool: str, default: int) -> int:
    value = arguments.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolDispatchError(code="INVALID_PARAMS", message=f"{tool} {key} must be an integer.")
    if value < 1:
        raise ToolDispatchError(code="INVALID_PARAMS", message=f"{tool} {key} must be >= 1.")
    return value
