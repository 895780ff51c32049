"""Projection from session state to display records.

``render_snippets`` is pure: the same snapshot, query and reveal view always
yield an equal ``RenderResult``. UI layers (the CLI, or anything else) consume
the records; they never look at ``Snippet`` objects directly.
"""

from __future__ import annotations

import html
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from .reveal import RevealView
from .store import ContentType, Snippet, filter_snippets, highlight_segments, parse_query

ContentKind = Literal["text", "image", "pdf", "locked", "loading", "missing"]

EMPTY_STORE_MESSAGE = "No snippets yet. Add your first snippet above!"
NO_RESULTS_MESSAGE = "No snippets found matching your search."

_TYPE_LABELS = {
    ContentType.TEXT: "📝 Text",
    ContentType.IMAGE: "🖼️ Image",
    ContentType.PDF: "📄 PDF",
}
_LOCKED_MESSAGES = {
    ContentType.TEXT: (None, "Content is hidden"),
    ContentType.IMAGE: ("🖼️", "Image is hidden"),
    ContentType.PDF: ("📄", "PDF is hidden"),
}


@dataclass(frozen=True)
class ContentView:
    kind: ContentKind
    body: str | None = None
    source: str | None = None
    file_name: str | None = None
    glyph: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class DisplayRecord:
    id: int
    title_html: str
    title_segments: tuple[tuple[str, bool], ...]
    type_label: str
    timestamp: str
    content: ContentView
    protected: bool
    actions: tuple[str, ...]
    needs_file_url: bool = False


@dataclass(frozen=True)
class RenderResult:
    records: tuple[DisplayRecord, ...]
    empty_message: str | None = None

    @property
    def pending_file_urls(self) -> tuple[int, ...]:
        return tuple(record.id for record in self.records if record.needs_file_url)


def escape_html(text: str) -> str:
    return html.escape(text, quote=False)


def title_html(segments: Iterable[tuple[str, bool]]) -> str:
    parts = []
    for text, matched in segments:
        escaped = escape_html(text)
        parts.append(f'<span class="highlight">{escaped}</span>' if matched else escaped)
    return "".join(parts)


def _file_content(snippet: Snippet, plaintext: str | None) -> tuple[ContentView, bool]:
    kind: ContentKind = "image" if snippet.content_type is ContentType.IMAGE else "pdf"
    default_name = "Image" if kind == "image" else "Document.pdf"
    file_name = snippet.file_name or default_name
    if plaintext is not None:
        return ContentView(kind=kind, source=plaintext, file_name=file_name), False
    if snippet.storage_path and not snippet.file_url:
        if snippet.is_encrypted:
            return (
                ContentView(kind="missing", file_name=file_name, message="Encrypted file unavailable"),
                False,
            )
        glyph = "🖼️" if kind == "image" else "📄"
        label = "image" if kind == "image" else "PDF"
        return (
            ContentView(
                kind="loading", file_name=file_name, glyph=glyph, message=f"Loading {label}..."
            ),
            True,
        )
    source = snippet.file_url or snippet.content
    if not source:
        return ContentView(kind="missing", file_name=file_name, message="File unavailable"), False
    return ContentView(kind=kind, source=source, file_name=file_name), False


def render_snippet(snippet: Snippet, terms: tuple[str, ...], reveal: RevealView) -> DisplayRecord:
    segments = highlight_segments(snippet.title, terms)
    protected = snippet.hidden and not reveal.is_unlocked(snippet.id)
    plaintext = reveal.plaintext_for(snippet.id) if snippet.is_encrypted else None
    needs_file_url = False
    if protected:
        glyph, message = _LOCKED_MESSAGES[snippet.content_type]
        content = ContentView(kind="locked", glyph=glyph, message=f"🔒 {message}")
    elif snippet.content_type is ContentType.TEXT:
        body = plaintext if plaintext is not None else (snippet.content or "")
        content = ContentView(kind="text", body=body)
    else:
        content, needs_file_url = _file_content(snippet, plaintext)

    actions: list[str] = ["copy" if snippet.content_type is ContentType.TEXT else "download"]
    if snippet.hidden:
        actions.append("unlock" if protected else "lock")
    actions.append("delete")
    return DisplayRecord(
        id=snippet.id,
        title_html=title_html(segments),
        title_segments=segments,
        type_label=_TYPE_LABELS[snippet.content_type],
        timestamp=snippet.timestamp,
        content=content,
        protected=protected,
        actions=tuple(actions),
        needs_file_url=needs_file_url,
    )


def render_snippets(
    snippets: Iterable[Snippet],
    query: str | None,
    reveal: RevealView,
) -> RenderResult:
    items = list(snippets)
    if not items:
        return RenderResult(records=(), empty_message=EMPTY_STORE_MESSAGE)
    parsed = parse_query(query)
    visible = filter_snippets(items, parsed)
    if not visible:
        return RenderResult(records=(), empty_message=NO_RESULTS_MESSAGE)
    return RenderResult(records=tuple(render_snippet(item, parsed.terms, reveal) for item in visible))
