"""Two-phase smart search: catalog names first, raw content second."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from catalog_mcp.config import IndexConfig, parse_extensions
from catalog_mcp.query import QueryEngine, QueryError
from catalog_mcp.search.content import ContentMatch, scan_content
from catalog_mcp.security import CatalogLimits, resolve_root_path

SOURCE_OBJECT = "object"
SOURCE_CONTENT = "content"


@dataclass(slots=True, frozen=True)
class SearchHit:
    """One merged result; ``context`` is only set for content hits."""

    path: str
    source: str
    name: str | None = None
    object_type: str | None = None
    package: str | None = None
    line: int | None = None
    text: str | None = None
    context: dict[str, list[str]] | None = None

    def to_public_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"path": self.path, "source": self.source}
        if self.source == SOURCE_OBJECT:
            payload["name"] = self.name
            payload["object_type"] = self.object_type
            payload["package"] = self.package
        else:
            payload["line"] = self.line
            payload["text"] = self.text
            payload["context"] = self.context
        return payload


@dataclass(slots=True, frozen=True)
class SmartSearchResult:
    """Merged hits plus how each phase went."""

    hits: tuple[SearchHit, ...]
    index_status: str
    object_matches: int
    content_phase_ran: bool
    files_scanned: int
    files_skipped: int

    def to_public_dict(self) -> dict[str, object]:
        return {
            "hits": [hit.to_public_dict() for hit in self.hits],
            "index_status": self.index_status,
            "object_matches": self.object_matches,
            "content_phase_ran": self.content_phase_ran,
            "files_scanned": self.files_scanned,
            "files_skipped": self.files_skipped,
        }


class SmartSearch:
    """Combines catalog-name and content matches into one prioritized stream.

    Every object hit precedes every content hit. The content phase runs only
    when the name phase leaves room under ``max_results`` and never revisits a
    path the name phase already returned.
    """

    def __init__(
        self,
        root: Path,
        engine: QueryEngine,
        limits: CatalogLimits,
        index_config: IndexConfig,
        excluded_paths: tuple[Path, ...] = (),
    ) -> None:
        self._root = root.resolve()
        self._engine = engine
        self._limits = limits
        self._index_config = index_config
        self._excluded_paths = excluded_paths

    def search(
        self,
        term: str,
        path_scope: str | None = None,
        extensions: list[str] | tuple[str, ...] | None = None,
        max_results: int | None = None,
    ) -> SmartSearchResult:
        if not isinstance(term, str) or not term.strip():
            raise QueryError("term must be a non-empty string.")
        term = term.strip()
        limit = self._limits.max_search_results if max_results is None else max_results
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise QueryError("max_results must be a positive integer.")
        scope = self._root if not path_scope else resolve_root_path(self._root, path_scope)
        selected_extensions = self._index_config.extensions
        if extensions:
            try:
                selected_extensions = parse_extensions(",".join(extensions))
            except ValueError as error:
                raise QueryError(str(error)) from error

        page = self._engine.search_pattern(f"*{term}*", limit=limit, sort_by="name")
        hits: list[SearchHit] = []
        seen_paths: set[str] = set()
        for record in page.records:
            if record.path in seen_paths:
                continue
            seen_paths.add(record.path)
            hits.append(
                SearchHit(
                    path=record.path,
                    source=SOURCE_OBJECT,
                    name=record.name,
                    object_type=record.object_type,
                    package=record.package,
                )
            )

        content_phase_ran = False
        files_scanned = 0
        files_skipped = 0
        remaining = limit - len(hits)
        if remaining > 0:
            content_phase_ran = True
            matches, counters = scan_content(
                root=self._root,
                scope=scope,
                term=term,
                extensions=selected_extensions,
                exclude_dirs=self._index_config.exclude_dirs,
                max_file_bytes=self._limits.max_file_bytes,
                max_matches=remaining,
                skip_paths=frozenset(seen_paths),
                excluded_paths=self._excluded_paths,
            )
            hits.extend(_content_hit(match) for match in matches)
            files_scanned = counters.files_scanned
            files_skipped = counters.files_skipped + counters.files_oversized

        return SmartSearchResult(
            hits=tuple(hits[:limit]),
            index_status=page.index_status,
            object_matches=page.total_count,
            content_phase_ran=content_phase_ran,
            files_scanned=files_scanned,
            files_skipped=files_skipped,
        )


def _content_hit(match: ContentMatch) -> SearchHit:
    return SearchHit(
        path=match.path,
        source=SOURCE_CONTENT,
        line=match.line,
        text=match.text,
        context={"before": list(match.before), "after": list(match.after)},
    )
