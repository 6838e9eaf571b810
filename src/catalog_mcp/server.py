"""STDIO MCP server entrypoint."""

from __future__ import annotations

import argparse
import json
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from catalog_mcp.catalog import (
    BuildError,
    BuildInProgress,
    CatalogSchemaUnsupportedError,
    CatalogStore,
    CatalogStoreCorruptError,
    IndexBuilder,
    IndexBuildJob,
    UnknownObjectTypeError,
)
from catalog_mcp.config import (
    CliOverrides,
    ServerConfig,
    load_effective_config,
    parse_extensions,
    root_from_environment,
)
from catalog_mcp.logging import (
    AuditEvent,
    JsonlAuditLogger,
    build_log_sink,
    sanitize_arguments,
    utc_timestamp,
)
from catalog_mcp.query import QueryEngine, QueryError
from catalog_mcp.search import SmartSearch
from catalog_mcp.security import PathViolation, PolicyBlockedError
from catalog_mcp.tools.builtin import register_builtin_tools
from catalog_mcp.tools.registry import ToolDispatchError, ToolRegistry


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="catalog-mcp")
    parser.add_argument("--root", required=False, default=None)
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--max-file-bytes", type=int, required=False, default=None)
    parser.add_argument("--default-limit", type=int, required=False, default=None)
    parser.add_argument("--max-page-size", type=int, required=False, default=None)
    parser.add_argument("--max-search-results", type=int, required=False, default=None)
    parser.add_argument(
        "--extensions",
        required=False,
        default=None,
        help="Comma separated content-search extensions, e.g. '.xpp,.xml'.",
    )
    return parser


class StdioServer:
    """Deterministic STDIO server routing requests to catalog tools."""

    def __init__(self, config: ServerConfig) -> None:
        self._config = config
        self._root = config.root
        self._limits = config.limits
        self._data_dir = config.data_dir
        self._audit_logger = JsonlAuditLogger(path=self._data_dir / "audit.jsonl")
        self._store = CatalogStore(self._data_dir)
        self._builder = IndexBuilder(
            root=self._root,
            store=self._store,
            object_types=config.object_types,
            excluded_dirs=(self._data_dir,),
            build_log=build_log_sink(
                JsonlAuditLogger(path=self._store.index_dir / "builds.jsonl")
            ),
        )
        self._engine = QueryEngine(
            store=self._store,
            object_types=config.object_types,
            default_limit=self._limits.default_limit,
            root=self._root,
        )
        self._smart_search = SmartSearch(
            root=self._root,
            engine=self._engine,
            limits=self._limits,
            index_config=config.index,
            excluded_paths=(self._data_dir,),
        )
        self._build_thread: threading.Thread | None = None
        self._load_warning: str | None = None
        self._load_persisted_snapshot()

        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            config=self._config,
            engine=self._engine,
            smart_search=self._smart_search,
            run_build=self._run_build,
            read_index_stats=self._index_stats,
            read_audit_entries=self._audit_logger.read,
        )
        self._fallback_request_counter = 0

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from stdin and write JSON-line responses."""
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_json_line(line)
            out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
            out_stream.flush()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        if request.method == "tools/list":
            return self.success_response(
                request_id=request.request_id,
                result={"tools": self._registry.describe()},
            )

        tool_name: str
        arguments: dict[str, object]
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        response = self._dispatch(request.request_id, tool_name, arguments)
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
        )
        return response

    def _dispatch(
        self, request_id: str, tool_name: str, arguments: dict[str, object]
    ) -> dict[str, object]:
        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except PathViolation as error:
            return self.blocked_response(
                request_id=request_id,
                code="PATH_VIOLATION",
                reason=error.reason,
                hint=error.hint,
            )
        except PolicyBlockedError as error:
            return self.blocked_response(
                request_id=request_id,
                code="LIMIT_EXCEEDED",
                reason=error.reason,
                hint=error.hint,
            )
        except ToolDispatchError as error:
            return self.error_response(request_id, error.code, error.message)
        except UnknownObjectTypeError as error:
            return self.error_response(
                request_id,
                "INVALID_PARAMS",
                f"Unknown object type '{error.name}'. Known types: {', '.join(error.known)}.",
            )
        except QueryError as error:
            return self.error_response(request_id, "QUERY_ERROR", error.message)
        except BuildInProgress as error:
            return self.error_response(request_id, "BUILD_IN_PROGRESS", str(error))
        except BuildError as error:
            return self.error_response(request_id, "BUILD_FAILED", error.reason)
        except Exception:
            return self.error_response(
                request_id,
                "INTERNAL_ERROR",
                "Unhandled server error while executing tool.",
            )

        warnings = _extract_result_warnings(result)
        response = self.success_response(
            request_id=request_id,
            result=result,
            warnings=warnings,
        )
        return self.enforce_response_size_limit(request_id=request_id, response=response)

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize deterministic fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        """Generate deterministic fallback request IDs for invalid/missing IDs."""
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
            "blocked": False,
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    @staticmethod
    def blocked_response(request_id: str, code: str, reason: str, hint: str) -> dict[str, object]:
        """Build explicit blocked response envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "warnings": [],
            "blocked": True,
            "error": {"code": code, "message": reason},
        }

    def enforce_response_size_limit(
        self,
        request_id: str,
        response: dict[str, object],
    ) -> dict[str, object]:
        """Block responses that exceed max_total_bytes_per_response."""
        response_bytes = len(json.dumps(response, sort_keys=True).encode("utf-8"))
        if response_bytes <= self._limits.max_total_bytes_per_response:
            return response
        return self.blocked_response(
            request_id=request_id,
            code="RESPONSE_TOO_LARGE",
            reason="Response exceeds max_total_bytes_per_response limit.",
            hint="Lower limit/max_results or narrow the query with a type or package filter.",
        )

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
    ) -> None:
        """Log one sanitized request event."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            tool=tool_name,
            ok=bool(response.get("ok", False)),
            blocked=bool(response.get("blocked", False)),
            error_code=error_code,
            metadata=sanitize_arguments(arguments),
        )
        self._audit_logger.append(event)

    def wait_for_build(self, timeout: float | None = None) -> bool:
        """Join a running background build; True when no build is left running."""
        thread = self._build_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _load_persisted_snapshot(self) -> None:
        try:
            snapshot = self._store.load()
        except CatalogSchemaUnsupportedError as error:
            self._load_warning = (
                f"Stored catalog schema {error.found} is unsupported; expected "
                f"{error.expected}. Run catalog.build_index to rebuild."
            )
            return
        except CatalogStoreCorruptError as error:
            self._load_warning = (
                f"Stored catalog is corrupt ({error.path.name} is {error.reason}). "
                "Run catalog.build_index to rebuild."
            )
            return
        except OSError:
            self._load_warning = "Stored catalog could not be read; run catalog.build_index."
            return
        if snapshot is not None:
            self._store.publish(snapshot)

    def _run_build(
        self, object_type: str | None, force_rebuild: bool, background: bool
    ) -> dict[str, object]:
        job = self._builder.start(object_type=object_type, force_rebuild=force_rebuild)
        if background:
            thread = threading.Thread(
                target=self._run_background_build,
                args=(job,),
                name="catalog-index-build",
                daemon=True,
            )
            self._build_thread = thread
            thread.start()
            return {"background": True, "job": job.to_public_dict()}
        stats = self._builder.run(job)
        result = stats.to_public_dict()
        result["background"] = False
        result["index_status"] = self._store.current().index_status
        return result

    def _run_background_build(self, job: IndexBuildJob) -> None:
        try:
            self._builder.run(job)
        except BuildError:
            # Recorded on the job and in builds.jsonl; surfaced via index_stats.
            return

    def _index_stats(self) -> dict[str, object]:
        stats = self._engine.stats()
        active = self._builder.active_job
        last = self._builder.last_job
        stats["build_running"] = active is not None
        stats["active_build"] = active.to_public_dict() if active is not None else None
        stats["last_build"] = last.to_public_dict() if last is not None else None
        if self._load_warning is not None:
            stats["load_warning"] = self._load_warning
        return stats


def create_server(
    root: str,
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    environ: dict[str, str] | None = None,
) -> StdioServer:
    """Create a configured STDIO server instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).resolve(),
            max_file_bytes=overrides.max_file_bytes,
            default_limit=overrides.default_limit,
            max_page_size=overrides.max_page_size,
            max_search_results=overrides.max_search_results,
            extensions=overrides.extensions,
        )
    config = load_effective_config(root=Path(root).resolve(), overrides=overrides, environ=environ)
    return StdioServer(config=config)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the catalog server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    root = Path(args.root) if args.root is not None else root_from_environment()
    if root is None:
        parser.error("a catalog root is required: pass --root or set CATALOG_MCP_ROOT")
    extensions: tuple[str, ...] | None = None
    if args.extensions is not None:
        try:
            extensions = parse_extensions(args.extensions)
        except ValueError as error:
            parser.error(str(error))
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        max_file_bytes=args.max_file_bytes,
        default_limit=args.default_limit,
        max_page_size=args.max_page_size,
        max_search_results=args.max_search_results,
        extensions=extensions,
    )
    server = create_server(root=str(root), cli_overrides=overrides)
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    warnings: list[str] = []
    for item in raw:
        if isinstance(item, str):
            warnings.append(item)
    return warnings
