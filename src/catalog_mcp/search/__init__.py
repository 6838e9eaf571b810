"""Smart (catalog + content) search package."""

from .content import ContentMatch, ScanCounters, iter_candidate_files, scan_content, search_lines
from .smart import SOURCE_CONTENT, SOURCE_OBJECT, SearchHit, SmartSearch, SmartSearchResult

__all__ = [
    "ContentMatch",
    "SOURCE_CONTENT",
    "SOURCE_OBJECT",
    "ScanCounters",
    "SearchHit",
    "SmartSearch",
    "SmartSearchResult",
    "iter_candidate_files",
    "scan_content",
    "search_lines",
]
