from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from snipkeep.errors import NetworkError, NotFoundError, ServerError, ValidationError
from snipkeep.store import Snippet
from snipkeep.sync import remote as remote_mod
from snipkeep.sync.remote import BlobTarget, RemoteStoreClient, blob_path_for

BASE = "http://api.test/fn"


class _Recorder:
    def __init__(self, responses: list[tuple[int, dict | None]]) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def __call__(self, method, url, *, headers=None, body=None, body_bytes=None, timeout_s=3.0):
        parsed = urlparse(url)
        self.calls.append(
            {
                "method": method,
                "path": parsed.path,
                "query": {k: v[0] for k, v in parse_qs(parsed.query).items()},
                "host": parsed.hostname,
                "headers": headers or {},
                "body": body,
                "body_bytes": body_bytes,
            }
        )
        return self.responses.pop(0)


def _row(snippet_id: int, title: str = "t", **extra) -> dict:
    return {"id": snippet_id, "title": title, "contentType": "text", **extra}


def test_list_all_walks_pages(monkeypatch) -> None:
    recorder = _Recorder(
        [
            (200, {"snippets": [_row(3), _row(2)], "pagination": {"totalCount": 3, "hasMore": True}}),
            (200, {"snippets": [_row(1)], "pagination": {"totalCount": 3, "hasMore": False}}),
        ]
    )
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)

    items = RemoteStoreClient(BASE).list_all(page_size=2, lightweight=True)

    assert [item.id for item in items] == [3, 2, 1]
    assert recorder.calls[0]["path"] == "/fn/snippets"
    assert recorder.calls[0]["query"] == {"page": "1", "limit": "2", "lightweight": "true"}
    assert recorder.calls[1]["query"]["page"] == "2"


def test_list_page_accepts_bare_array_and_skips_bad_rows(monkeypatch) -> None:
    recorder = _Recorder([(200, {"items": [_row(1), {"title": "no id"}]})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)

    page = RemoteStoreClient(BASE).list_page()

    assert [item.id for item in page.snippets] == [1]
    assert page.has_more is False
    assert "lightweight" not in recorder.calls[0]["query"]


def test_count_uses_count_only(monkeypatch) -> None:
    recorder = _Recorder([(200, {"snippets": [], "pagination": {"totalCount": 12}})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    assert RemoteStoreClient(BASE).count() == 12
    assert recorder.calls[0]["query"] == {"countOnly": "true"}


def test_transport_failure_becomes_network_error(monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise OSError("refused")

    monkeypatch.setattr(remote_mod.http_client, "request_json", boom)
    with pytest.raises(NetworkError):
        RemoteStoreClient(BASE).list_page()


def test_error_status_becomes_server_error(monkeypatch) -> None:
    recorder = _Recorder([(500, {"error": "Failed to fetch snippets", "message": "db down"})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    with pytest.raises(ServerError) as excinfo:
        RemoteStoreClient(BASE).list_page()
    assert excinfo.value.status == 500
    assert excinfo.value.message == "Failed to fetch snippets: db down"


def test_id_lookup_404_is_not_found(monkeypatch) -> None:
    recorder = _Recorder([(404, {"error": "Snippet not found"})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    with pytest.raises(NotFoundError):
        RemoteStoreClient(BASE).get_by_id("7")
    assert recorder.calls[0]["query"] == {"id": "7"}


def test_signed_url_and_raw_content(monkeypatch) -> None:
    recorder = _Recorder(
        [
            (200, {**_row(7), "fileUrl": "https://signed/7"}),
            (200, {"content": "CIPHER"}),
            (200, {"content": None}),
        ]
    )
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    client = RemoteStoreClient(BASE)

    assert client.get_signed_url(7) == "https://signed/7"
    assert client.get_raw_content(7) == "CIPHER"
    with pytest.raises(NotFoundError):
        client.get_raw_content(7)
    assert recorder.calls[0]["query"] == {"id": "7", "getUrl": "true"}
    assert recorder.calls[1]["query"] == {"id": "7", "getContent": "true"}


def test_save_adopts_server_representation(monkeypatch) -> None:
    recorder = _Recorder(
        [(200, {"success": True, "snippet": _row(9, "t", storagePath="9/1.png", contentType="image")})]
    )
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    local = Snippet(id=9, title="t", content="data:image/png;base64,AAAA", file_url="https://x")

    saved = RemoteStoreClient(BASE).save(local)

    assert saved.storage_path == "9/1.png"
    assert recorder.calls[0]["method"] == "POST"
    assert recorder.calls[0]["body"]["snippet"]["id"] == 9
    assert "fileUrl" not in recorder.calls[0]["body"]["snippet"]


def test_save_without_snippet_keeps_local(monkeypatch) -> None:
    recorder = _Recorder([(200, {"success": True})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    local = Snippet(id=9, title="t")
    assert RemoteStoreClient(BASE).save(local) is local


def test_save_all_posts_array_and_remove_uses_delete(monkeypatch) -> None:
    recorder = _Recorder([(200, {"success": True}), (200, {"success": True})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    client = RemoteStoreClient(BASE)

    client.save_all([Snippet(id=2, title="b"), Snippet(id=1, title="a")])
    client.remove("2")

    assert [item["id"] for item in recorder.calls[0]["body"]] == [2, 1]
    assert recorder.calls[1]["method"] == "DELETE"
    assert recorder.calls[1]["query"] == {"id": "2"}


def test_blob_path_uses_extension() -> None:
    assert blob_path_for(5, "scan.PDF", "application/pdf").startswith("5/")
    assert blob_path_for(5, "scan.PDF", None).endswith(".pdf")
    assert blob_path_for(5, None, "image/png").endswith(".png")
    assert blob_path_for(5, None, None).endswith(".bin")


def test_upload_blob_direct_with_configured_target(monkeypatch) -> None:
    recorder = _Recorder([(200, {"Key": "code-files/5/1.png"})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    client = RemoteStoreClient(
        BASE, blob_target=BlobTarget(url="https://blob.test", anon_key="anon", bucket="code-files")
    )

    path = client.upload_blob_direct(b"\x89PNG", 5, file_name="a.png", file_type="image/png")

    call = recorder.calls[0]
    assert path.startswith("5/") and path.endswith(".png")
    assert call["host"] == "blob.test"
    assert call["path"] == f"/storage/v1/object/code-files/{path}"
    assert call["headers"]["Authorization"] == "Bearer anon"
    assert call["headers"]["Content-Type"] == "image/png"
    assert call["body_bytes"] == b"\x89PNG"


def test_blob_target_fetched_once_and_persisted(monkeypatch) -> None:
    recorder = _Recorder(
        [
            (200, {"supabaseUrl": "https://blob.test", "supabaseAnonKey": "anon"}),
            (200, {}),
            (200, {}),
        ]
    )
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    persisted: list[BlobTarget] = []
    client = RemoteStoreClient(BASE, on_blob_target=persisted.append)

    client.upload_blob_direct(b"a", 1, file_name="a.pdf")
    client.upload_blob_direct(b"b", 2, file_name="b.pdf")

    assert recorder.calls[0]["path"] == "/fn/config"
    assert [call["host"] for call in recorder.calls[1:]] == ["blob.test", "blob.test"]
    assert persisted == [BlobTarget(url="https://blob.test", anon_key="anon", bucket="code-files")]


def test_blob_target_missing_keys_is_server_error(monkeypatch) -> None:
    recorder = _Recorder([(200, {"error": "Missing Supabase configuration"})])
    monkeypatch.setattr(remote_mod.http_client, "request_json", recorder)
    with pytest.raises(ServerError):
        RemoteStoreClient(BASE).fetch_blob_target()


def test_parse_rejects_non_object_rows() -> None:
    with pytest.raises(ValidationError):
        Snippet.from_payload("nope")  # type: ignore[arg-type]
