from __future__ import annotations

import dataclasses
import threading
from collections.abc import Iterable

from ..errors import ValidationError
from .types import Snippet, normalize_id


def newest_first(snippets: Iterable[Snippet]) -> list[Snippet]:
    """Drop duplicate ids (first occurrence wins) and order by id, newest first."""
    seen: set[int] = set()
    unique: list[Snippet] = []
    for snippet in snippets:
        if snippet.id in seen:
            continue
        seen.add(snippet.id)
        unique.append(snippet)
    return sorted(unique, key=lambda item: item.id, reverse=True)


def carry_forward_file_urls(old: Iterable[Snippet], new: Iterable[Snippet]) -> list[Snippet]:
    urls = {item.id: item.file_url for item in old if item.file_url}
    merged: list[Snippet] = []
    for item in new:
        url = urls.get(item.id)
        if url and not item.file_url:
            item = dataclasses.replace(item, file_url=url)
        merged.append(item)
    return merged


class SnippetStore:
    """In-memory snippet collection, newest first, unique by id.

    Callers receive immutable snapshots; every mutation goes through a method
    below. Authorization (passwords) is the caller's job.
    """

    def __init__(self, snippets: Iterable[Snippet] = ()) -> None:
        self._lock = threading.RLock()
        self._items: list[Snippet] = newest_first(snippets)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def snapshot(self) -> tuple[Snippet, ...]:
        with self._lock:
            return tuple(self._items)

    def find_by_id(self, snippet_id: object) -> Snippet | None:
        key = normalize_id(snippet_id)
        with self._lock:
            for item in self._items:
                if item.id == key:
                    return item
        return None

    def add(self, snippet: Snippet) -> None:
        with self._lock:
            if any(item.id == snippet.id for item in self._items):
                raise ValidationError(f"duplicate snippet id {snippet.id}")
            index = 0
            while index < len(self._items) and self._items[index].id > snippet.id:
                index += 1
            self._items.insert(index, snippet)

    def remove(self, snippet_id: object) -> Snippet | None:
        key = normalize_id(snippet_id)
        with self._lock:
            for index, item in enumerate(self._items):
                if item.id == key:
                    return self._items.pop(index)
        return None

    def replace(self, snippet: Snippet) -> bool:
        """Swap in the server's canonical copy of an existing snippet."""
        with self._lock:
            for index, item in enumerate(self._items):
                if item.id == snippet.id:
                    if item.file_url and not snippet.file_url:
                        snippet = dataclasses.replace(snippet, file_url=item.file_url)
                    self._items[index] = snippet
                    return True
        return False

    def set_file_url(self, snippet_id: object, url: str) -> bool:
        key = normalize_id(snippet_id)
        with self._lock:
            for index, item in enumerate(self._items):
                if item.id == key:
                    self._items[index] = dataclasses.replace(item, file_url=url)
                    return True
        return False

    def replace_all(self, snippets: Iterable[Snippet]) -> None:
        with self._lock:
            fresh = newest_first(snippets)
            self._items = carry_forward_file_urls(self._items, fresh)
