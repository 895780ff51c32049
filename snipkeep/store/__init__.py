from __future__ import annotations

from ._store import SnippetStore, carry_forward_file_urls, newest_first
from .search import SearchQuery, filter_snippets, highlight_segments, matches, parse_query
from .types import ContentType, Snippet, normalize_id

__all__ = [
    "ContentType",
    "SearchQuery",
    "Snippet",
    "SnippetStore",
    "carry_forward_file_urls",
    "filter_snippets",
    "highlight_segments",
    "matches",
    "newest_first",
    "normalize_id",
    "parse_query",
]
