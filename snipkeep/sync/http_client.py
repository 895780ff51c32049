from __future__ import annotations

import json
from http.client import HTTPConnection, HTTPSConnection
from typing import Any
from urllib.parse import urlencode, urlparse


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return ""
    parsed = urlparse(trimmed)
    if parsed.scheme:
        return trimmed
    return f"http://{trimmed}"


def join_url(base: str, path: str, params: dict[str, Any] | None = None) -> str:
    url = f"{build_base_url(base)}/{path.lstrip('/')}"
    if params:
        query = {key: value for key, value in params.items() if value is not None}
        if query:
            url = f"{url}?{urlencode(query)}"
    return url


def _open(url: str, timeout_s: float) -> tuple[HTTPConnection, str]:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError("missing hostname")
    if parsed.scheme == "https":
        conn: HTTPConnection = HTTPSConnection(
            parsed.hostname, parsed.port or 443, timeout=timeout_s
        )
    else:
        conn = HTTPConnection(parsed.hostname, parsed.port or 80, timeout=timeout_s)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return conn, path


def request_json(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | list[Any] | None = None,
    body_bytes: bytes | None = None,
    timeout_s: float = 3.0,
) -> tuple[int, dict[str, Any] | None]:
    conn, path = _open(url, timeout_s)
    payload = None
    if body_bytes is None and body is not None:
        body_bytes = json.dumps(body, ensure_ascii=False).encode("utf-8")
    request_headers = {"Accept": "application/json"}
    if body_bytes is not None:
        request_headers["Content-Type"] = "application/json"
        request_headers["Content-Length"] = str(len(body_bytes))
    if headers:
        request_headers.update(headers)
    status: int | None = None
    try:
        conn.request(method, path, body=body_bytes, headers=request_headers)
        resp = conn.getresponse()
        status = int(resp.status)
        raw = resp.read()
        if raw:
            try:
                payload = json.loads(raw.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                snippet = raw[:240].decode("utf-8", errors="replace").strip()
                payload = {
                    "error": f"non_json_response: {snippet}" if snippet else "non_json_response"
                }
    finally:
        conn.close()
    assert status is not None
    if payload is None:
        return status, None
    if isinstance(payload, dict):
        return status, payload
    if isinstance(payload, list):
        # Older list endpoints answer with a bare array.
        return status, {"items": payload}
    return status, {"error": f"unexpected_json_type: {type(payload).__name__}"}


def request_bytes(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout_s: float = 3.0,
) -> tuple[int, bytes, str | None]:
    conn, path = _open(url, timeout_s)
    status: int | None = None
    try:
        conn.request(method, path, headers=headers or {})
        resp = conn.getresponse()
        status = int(resp.status)
        content_type = resp.getheader("Content-Type")
        raw = resp.read()
    finally:
        conn.close()
    assert status is not None
    return status, raw, content_type
