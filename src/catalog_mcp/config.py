"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from catalog_mcp.catalog.types import (
    ObjectTypeRegistry,
    default_object_types,
    registry_from_payload,
)
from catalog_mcp.security import CatalogLimits

CONFIG_FILE_NAME = "catalog_mcp.toml"

MAX_FILE_BYTES_CAP = 16 * 1024 * 1024
MAX_PAGE_SIZE_CAP = 100_000
MAX_SEARCH_RESULTS_CAP = 1_000
MAX_TOTAL_BYTES_PER_RESPONSE_CAP = 64 * 1024 * 1024

ENV_ROOT = "CATALOG_MCP_ROOT"
ENV_DATA_DIR = "CATALOG_MCP_DATA_DIR"
ENV_MAX_FILE_BYTES = "CATALOG_MCP_MAX_FILE_BYTES"
ENV_EXTENSIONS = "CATALOG_MCP_EXTENSIONS"
ENV_DEFAULT_LIMIT = "CATALOG_MCP_DEFAULT_LIMIT"

DEFAULT_EXTENSIONS = (
    ".xpp",
    ".xml",
    ".rnrproj",
    ".axproj",
    ".txt",
    ".md",
    ".json",
    ".axpp",
    ".designer.cs",
)
DEFAULT_EXCLUDE_DIRS = (".git", "node_modules", "bin", "obj")


@dataclass(slots=True, frozen=True)
class IndexConfig:
    """Content-search file selection settings."""

    extensions: tuple[str, ...]
    exclude_dirs: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged server configuration."""

    root: Path
    data_dir: Path
    limits: CatalogLimits
    index: IndexConfig
    object_types: ObjectTypeRegistry

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "root": str(self.root),
            "data_dir": str(self.data_dir),
            "limits": {
                "max_file_bytes": self.limits.max_file_bytes,
                "default_limit": self.limits.default_limit,
                "max_page_size": self.limits.max_page_size,
                "max_search_results": self.limits.max_search_results,
                "max_total_bytes_per_response": self.limits.max_total_bytes_per_response,
            },
            "index": {
                "extensions": list(self.index.extensions),
                "exclude_dirs": list(self.index.exclude_dirs),
            },
            "object_types": list(self.object_types.names()),
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides; environment and CLI values both land here."""

    data_dir: Path | None = None
    max_file_bytes: int | None = None
    default_limit: int | None = None
    max_page_size: int | None = None
    max_search_results: int | None = None
    extensions: tuple[str, ...] | None = None


def default_config(root: Path) -> ServerConfig:
    """Build default config for a given catalog root."""
    resolved_root = root.resolve()
    return ServerConfig(
        root=resolved_root,
        data_dir=resolved_root / ".catalog_mcp",
        limits=CatalogLimits(),
        index=IndexConfig(extensions=DEFAULT_EXTENSIONS, exclude_dirs=DEFAULT_EXCLUDE_DIRS),
        object_types=default_object_types(),
    )


def load_config_file(root: Path) -> dict[str, object]:
    """Load optional catalog_mcp.toml from the catalog root."""
    config_path = root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def overrides_from_environment(environ: Mapping[str, str] | None = None) -> CliOverrides:
    """Read CATALOG_MCP_* variables into overrides."""
    env = os.environ if environ is None else environ
    data_dir_value = env.get(ENV_DATA_DIR, "").strip()
    extensions_value = env.get(ENV_EXTENSIONS, "").strip()
    return CliOverrides(
        data_dir=Path(data_dir_value) if data_dir_value else None,
        max_file_bytes=_env_int(env, ENV_MAX_FILE_BYTES),
        default_limit=_env_int(env, ENV_DEFAULT_LIMIT),
        extensions=parse_extensions(extensions_value) if extensions_value else None,
    )


def root_from_environment(environ: Mapping[str, str] | None = None) -> Path | None:
    """Return the catalog root named by CATALOG_MCP_ROOT, if set."""
    env = os.environ if environ is None else environ
    value = env.get(ENV_ROOT, "").strip()
    return Path(value) if value else None


def parse_extensions(raw: str) -> tuple[str, ...]:
    """Parse a comma separated extension list into normalized '.ext' entries."""
    output: list[str] = []
    for item in raw.split(","):
        stripped = item.strip().lower()
        if not stripped:
            continue
        if not stripped.startswith("."):
            stripped = f".{stripped}"
        if stripped not in output:
            output.append(stripped)
    if not output:
        raise ValueError("Extension list must contain at least one extension.")
    return tuple(output)


def _env_int(env: Mapping[str, str], name: str) -> int | None:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Environment variable '{name}' must be an integer.") from error


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def merge_config(
    base: ServerConfig, file_payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, config file, then environment/CLI overrides."""
    limits_payload = _get_table(file_payload, "limits")
    index_payload = _get_table(file_payload, "index")
    object_types_payload = _get_table(file_payload, "object_types")

    limits = _merge_limits(
        base.limits,
        {
            "max_file_bytes": limits_payload.get("max_file_bytes"),
            "default_limit": limits_payload.get("default_limit"),
            "max_page_size": limits_payload.get("max_page_size"),
            "max_search_results": limits_payload.get("max_search_results"),
            "max_total_bytes_per_response": limits_payload.get("max_total_bytes_per_response"),
        },
        prefix="limits",
    )

    extensions = base.index.extensions
    if "extensions" in index_payload:
        extensions = parse_extensions(
            ",".join(_tuple_of_strings(index_payload["extensions"], "index", "extensions"))
        )
    exclude_dirs = base.index.exclude_dirs
    if "exclude_dirs" in index_payload:
        exclude_dirs = _tuple_of_strings(index_payload["exclude_dirs"], "index", "exclude_dirs")

    data_dir = base.data_dir
    if "data_dir" in index_payload:
        raw_data_dir = index_payload["data_dir"]
        if not isinstance(raw_data_dir, str) or not raw_data_dir.strip():
            raise ValueError("Config field 'index.data_dir' must be a non-empty string.")
        data_dir = Path(raw_data_dir)
        if not data_dir.is_absolute():
            data_dir = base.root / data_dir

    object_types = base.object_types
    if object_types_payload:
        object_types = registry_from_payload(base.object_types, object_types_payload)

    merged = ServerConfig(
        root=base.root,
        data_dir=data_dir,
        limits=limits,
        index=IndexConfig(extensions=extensions, exclude_dirs=exclude_dirs),
        object_types=object_types,
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    limits = _merge_limits(
        config.limits,
        {
            "max_file_bytes": overrides.max_file_bytes,
            "default_limit": overrides.default_limit,
            "max_page_size": overrides.max_page_size,
            "max_search_results": overrides.max_search_results,
            "max_total_bytes_per_response": None,
        },
        prefix="overrides",
    )
    index = config.index
    if overrides.extensions is not None:
        index = IndexConfig(extensions=overrides.extensions, exclude_dirs=index.exclude_dirs)
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        root=config.root,
        data_dir=data_dir.resolve(),
        limits=limits,
        index=index,
        object_types=config.object_types,
    )


def load_effective_config(
    root: Path,
    overrides: CliOverrides | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServerConfig:
    """Load effective config: defaults -> config file -> environment -> overrides."""
    resolved_root = root.resolve()
    base = default_config(resolved_root)
    payload = load_config_file(resolved_root)
    from_file = merge_config(base, payload, CliOverrides())
    with_env = apply_cli_overrides(from_file, overrides_from_environment(environ))
    return apply_cli_overrides(with_env, overrides or CliOverrides())


def _merge_limits(
    base: CatalogLimits, values: dict[str, object], prefix: str
) -> CatalogLimits:
    max_page_size = _optional_positive_int_with_cap(
        values["max_page_size"], f"{prefix}.max_page_size", base.max_page_size, MAX_PAGE_SIZE_CAP
    )
    default_limit = _optional_positive_int_with_cap(
        values["default_limit"], f"{prefix}.default_limit", base.default_limit, max_page_size
    )
    return CatalogLimits(
        max_file_bytes=_optional_positive_int_with_cap(
            values["max_file_bytes"],
            f"{prefix}.max_file_bytes",
            base.max_file_bytes,
            MAX_FILE_BYTES_CAP,
        ),
        default_limit=min(default_limit, max_page_size),
        max_page_size=max_page_size,
        max_search_results=_optional_positive_int_with_cap(
            values["max_search_results"],
            f"{prefix}.max_search_results",
            base.max_search_results,
            MAX_SEARCH_RESULTS_CAP,
        ),
        max_total_bytes_per_response=_optional_positive_int_with_cap(
            values["max_total_bytes_per_response"],
            f"{prefix}.max_total_bytes_per_response",
            base.max_total_bytes_per_response,
            MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
        ),
    )


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
