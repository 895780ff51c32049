from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .types import Snippet


@dataclass(frozen=True)
class SearchQuery:
    text: str
    terms: tuple[str, ...]
    match_all: bool

    @property
    def is_empty(self) -> bool:
        return not self.text


def parse_query(raw: str | None) -> SearchQuery:
    """Lower-case and trim; ``a + b`` means every term must match."""
    text = (raw or "").strip().lower()
    if "+" in text:
        terms = tuple(term.strip() for term in text.split("+") if term.strip())
        return SearchQuery(text=text, terms=terms, match_all=True)
    return SearchQuery(text=text, terms=(text,) if text else (), match_all=False)


def matches(snippet: Snippet, query: SearchQuery) -> bool:
    if query.is_empty:
        return True
    title = snippet.title.lower()
    timestamp = (snippet.timestamp or "").lower()
    if query.match_all:
        combined = f"{title} {timestamp}"
        return all(term in combined for term in query.terms)
    return query.text in title or query.text in timestamp


def filter_snippets(snippets: Iterable[Snippet], query: SearchQuery | str | None) -> list[Snippet]:
    if not isinstance(query, SearchQuery):
        query = parse_query(query)
    return [snippet for snippet in snippets if matches(snippet, query)]


def highlight_segments(text: str, terms: Sequence[str]) -> tuple[tuple[str, bool], ...]:
    """Split ``text`` into (segment, matched) pairs, case-insensitively."""
    needles = sorted({term for term in terms if term}, key=len, reverse=True)
    if not text:
        return ()
    if not needles:
        return ((text, False),)
    pattern = re.compile("|".join(re.escape(term) for term in needles), re.IGNORECASE)
    segments: list[tuple[str, bool]] = []
    cursor = 0
    for match in pattern.finditer(text):
        if match.start() > cursor:
            segments.append((text[cursor : match.start()], False))
        segments.append((match.group(0), True))
        cursor = match.end()
    if cursor < len(text):
        segments.append((text[cursor:], False))
    return tuple(segments)
