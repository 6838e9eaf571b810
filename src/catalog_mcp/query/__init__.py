"""Catalog query package."""

from .engine import (
    GROUP_FIELDS,
    SORT_FIELDS,
    QueryEngine,
    QueryError,
    QueryPage,
    compile_pattern,
    group_by_package,
    name_matcher,
)

__all__ = [
    "GROUP_FIELDS",
    "QueryEngine",
    "QueryError",
    "QueryPage",
    "SORT_FIELDS",
    "compile_pattern",
    "group_by_package",
    "name_matcher",
]
