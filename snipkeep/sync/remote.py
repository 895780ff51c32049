from __future__ import annotations

import logging
import mimetypes
import time
from collections.abc import Callable
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any
from urllib.parse import quote

from ..errors import NetworkError, NotFoundError, ServerError, ValidationError
from ..store.types import Snippet, normalize_id
from . import http_client

logger = logging.getLogger(__name__)

SNIPPETS_PATH = "snippets"
CONFIG_PATH = "config"


@dataclass(frozen=True)
class PageResult:
    snippets: list[Snippet]
    total_count: int
    has_more: bool


@dataclass(frozen=True)
class BlobTarget:
    url: str
    anon_key: str
    bucket: str


def _error_detail(payload: dict[str, Any] | None) -> str:
    if not isinstance(payload, dict):
        return "no response body"
    error = payload.get("error")
    message = payload.get("message")
    if isinstance(error, str) and isinstance(message, str):
        return f"{error}: {message}"
    if isinstance(error, str):
        return error
    if isinstance(message, str):
        return message
    return "unknown error"


def _parse_snippets(raw: object) -> list[Snippet]:
    if not isinstance(raw, list):
        return []
    parsed: list[Snippet] = []
    for item in raw:
        try:
            parsed.append(Snippet.from_payload(item))
        except ValidationError as exc:
            logger.warning("skipping malformed snippet row: %s", exc)
    return parsed


def blob_path_for(snippet_id: int, file_name: str | None, file_type: str | None) -> str:
    ext = ""
    if file_name and "." in file_name:
        ext = file_name.rsplit(".", 1)[1].lower()
    if not ext and file_type:
        guessed = mimetypes.guess_extension(file_type) or ""
        ext = guessed.lstrip(".")
    ext = ext or "bin"
    return f"{snippet_id}/{int(time.time() * 1000)}.{ext}"


class RemoteStoreClient:
    """CRUD against the snippets function plus direct blob-store uploads."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 15.0,
        blob_target: BlobTarget | None = None,
        on_blob_target: Callable[[BlobTarget], None] | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout_s = timeout_s
        self._blob_target = blob_target
        self._on_blob_target = on_blob_target

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | list[Any] | None = None,
    ) -> dict[str, Any]:
        url = http_client.join_url(self._base_url, path, params)
        try:
            status, payload = http_client.request_json(
                method, url, body=body, timeout_s=self._timeout_s
            )
        except (OSError, HTTPException, ValueError) as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc
        if status == 404 and params and "id" in params:
            raise NotFoundError(f"snippet {params['id']} not found")
        if status >= 400:
            raise ServerError(status, _error_detail(payload))
        return payload or {}

    def list_page(self, page: int = 1, page_size: int = 50, *, lightweight: bool = False) -> PageResult:
        payload = self._request(
            "GET",
            SNIPPETS_PATH,
            params={
                "page": page,
                "limit": page_size,
                "lightweight": "true" if lightweight else None,
            },
        )
        if "items" in payload and "snippets" not in payload:
            snippets = _parse_snippets(payload["items"])
            return PageResult(snippets=snippets, total_count=len(snippets), has_more=False)
        snippets = _parse_snippets(payload.get("snippets"))
        pagination = payload.get("pagination")
        if not isinstance(pagination, dict):
            return PageResult(snippets=snippets, total_count=len(snippets), has_more=False)
        return PageResult(
            snippets=snippets,
            total_count=int(pagination.get("totalCount") or len(snippets)),
            has_more=bool(pagination.get("hasMore")),
        )

    def list_all(self, *, page_size: int = 50, lightweight: bool = False) -> list[Snippet]:
        collected: list[Snippet] = []
        page = 1
        while True:
            result = self.list_page(page, page_size, lightweight=lightweight)
            collected.extend(result.snippets)
            if not result.has_more or not result.snippets:
                return collected
            page += 1

    def count(self) -> int:
        payload = self._request("GET", SNIPPETS_PATH, params={"countOnly": "true"})
        pagination = payload.get("pagination")
        if isinstance(pagination, dict) and pagination.get("totalCount") is not None:
            return int(pagination["totalCount"])
        return int(payload.get("totalCount") or 0)

    def get_by_id(self, snippet_id: object) -> Snippet:
        key = normalize_id(snippet_id)
        payload = self._request("GET", SNIPPETS_PATH, params={"id": key})
        raw = payload.get("snippet", payload)
        if not isinstance(raw, dict) or raw.get("id") is None:
            raise NotFoundError(f"snippet {key} not found")
        return Snippet.from_payload(raw)

    def get_signed_url(self, snippet_id: object) -> str:
        key = normalize_id(snippet_id)
        payload = self._request("GET", SNIPPETS_PATH, params={"id": key, "getUrl": "true"})
        url = payload.get("fileUrl")
        if not url:
            raise NotFoundError(f"no file stored for snippet {key}")
        return str(url)

    def get_raw_content(self, snippet_id: object) -> str:
        key = normalize_id(snippet_id)
        payload = self._request("GET", SNIPPETS_PATH, params={"id": key, "getContent": "true"})
        content = payload.get("content")
        if not content:
            raise NotFoundError(f"no stored content for snippet {key}")
        return str(content)

    def save(self, snippet: Snippet) -> Snippet:
        payload = self._request("POST", SNIPPETS_PATH, body={"snippet": snippet.to_payload()})
        saved = payload.get("snippet")
        if isinstance(saved, dict):
            return Snippet.from_payload(saved)
        logger.warning("save response carried no snippet; keeping local copy of %s", snippet.id)
        return snippet

    def save_all(self, snippets: list[Snippet]) -> None:
        self._request("POST", SNIPPETS_PATH, body=[item.to_payload() for item in snippets])

    def remove(self, snippet_id: object) -> None:
        key = normalize_id(snippet_id)
        self._request("DELETE", SNIPPETS_PATH, params={"id": key})

    def fetch_blob_target(self) -> BlobTarget:
        payload = self._request("GET", CONFIG_PATH)
        url = payload.get("supabaseUrl")
        key = payload.get("supabaseAnonKey")
        if not url or not key:
            raise ServerError(500, _error_detail(payload))
        return BlobTarget(
            url=str(url), anon_key=str(key), bucket=str(payload.get("storageBucket") or "code-files")
        )

    def blob_target(self) -> BlobTarget:
        """Configured blob target, fetched from the config endpoint on first use."""
        if self._blob_target is not None:
            return self._blob_target
        target = self.fetch_blob_target()
        self._blob_target = target
        if self._on_blob_target is not None:
            try:
                self._on_blob_target(target)
            except (OSError, ValueError) as exc:
                logger.warning("could not persist blob target: %s", exc)
        return target

    def download(self, url: str) -> bytes:
        try:
            status, data, _ = http_client.request_bytes("GET", url, timeout_s=self._timeout_s)
        except (OSError, HTTPException, ValueError) as exc:
            raise NetworkError(f"file download failed: {exc}") from exc
        if status >= 400:
            raise ServerError(status, "file download failed")
        return data

    def upload_blob_direct(
        self,
        data: bytes,
        snippet_id: int,
        *,
        file_name: str | None = None,
        file_type: str | None = None,
    ) -> str:
        target = self.blob_target()
        path = blob_path_for(snippet_id, file_name, file_type)
        url = http_client.join_url(
            target.url, f"storage/v1/object/{quote(target.bucket)}/{quote(path)}"
        )
        headers = {
            "Authorization": f"Bearer {target.anon_key}",
            "apikey": target.anon_key,
            "Content-Type": file_type or "application/octet-stream",
            "x-upsert": "false",
        }
        try:
            status, payload = http_client.request_json(
                "POST", url, headers=headers, body_bytes=data, timeout_s=self._timeout_s
            )
        except (OSError, HTTPException, ValueError) as exc:
            raise NetworkError(f"blob upload failed: {exc}") from exc
        if status >= 400:
            raise ServerError(status, _error_detail(payload))
        logger.info("uploaded %d bytes to %s", len(data), path)
        return path
