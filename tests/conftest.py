from __future__ import annotations

import dataclasses
import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from snipkeep.errors import NetworkError, NotFoundError
from snipkeep.session import SessionContext, ViewingState
from snipkeep.store import Snippet


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SNIPKEEP_CONFIG", str(tmp_path / "config.json"))
    for name in list(os.environ):
        if name.startswith("SNIPKEEP_") and name != "SNIPKEEP_CONFIG":
            monkeypatch.delenv(name, raising=False)


class FakeRemote:
    """In-memory stand-in for RemoteStoreClient."""

    def __init__(self, rows: list[Snippet] | None = None) -> None:
        self.rows: list[Snippet] = list(rows or [])
        self.calls: list[tuple[str, object]] = []
        self.fail_list = False
        self.fail_save = False
        self.fail_remove = False
        self.missing_on_remove = False
        self.signed_urls: dict[int, str] = {}
        self.raw_content: dict[int, str] = {}
        self.blobs: dict[str, bytes] = {}
        self.saved_batches: list[list[Snippet]] = []

    def list_all(self, *, page_size: int = 50, lightweight: bool = False) -> list[Snippet]:
        self.calls.append(("list_all", None))
        if self.fail_list:
            raise NetworkError("offline")
        return list(self.rows)

    def count(self) -> int:
        self.calls.append(("count", None))
        if self.fail_list:
            raise NetworkError("offline")
        return len(self.rows)

    def get_by_id(self, snippet_id: object) -> Snippet:
        for row in self.rows:
            if row.id == snippet_id:
                return row
        raise NotFoundError(f"snippet {snippet_id} not found")

    def save(self, snippet: Snippet) -> Snippet:
        self.calls.append(("save", snippet.id))
        if self.fail_save:
            raise NetworkError("offline")
        saved = dataclasses.replace(snippet, file_url=None)
        self.rows = [row for row in self.rows if row.id != snippet.id] + [saved]
        return saved

    def save_all(self, snippets: list[Snippet]) -> None:
        self.calls.append(("save_all", len(snippets)))
        self.saved_batches.append(list(snippets))

    def remove(self, snippet_id: object) -> None:
        self.calls.append(("remove", snippet_id))
        if self.fail_remove:
            raise NetworkError("offline")
        if self.missing_on_remove:
            raise NotFoundError(f"snippet {snippet_id} not found")
        self.rows = [row for row in self.rows if row.id != snippet_id]

    def get_signed_url(self, snippet_id: object) -> str:
        self.calls.append(("get_signed_url", snippet_id))
        if snippet_id not in self.signed_urls:
            raise NotFoundError(f"no file stored for snippet {snippet_id}")
        return self.signed_urls[snippet_id]

    def get_raw_content(self, snippet_id: object) -> str:
        self.calls.append(("get_raw_content", snippet_id))
        if snippet_id not in self.raw_content:
            raise NotFoundError(f"no stored content for snippet {snippet_id}")
        return self.raw_content[snippet_id]

    def download(self, url: str) -> bytes:
        self.calls.append(("download", url))
        return self.blobs[url]

    def upload_blob_direct(self, data: bytes, snippet_id: int, *, file_name=None, file_type=None) -> str:
        path = f"{snippet_id}/upload.bin"
        self.calls.append(("upload_blob_direct", path))
        self.blobs[path] = data
        return path


class FakeGateway:
    """Reversible stand-in for the crypto service."""

    def __init__(self) -> None:
        self.encrypt_calls = 0
        self.decrypt_calls = 0

    def encrypt(self, plaintext: str, password: str) -> str:
        self.encrypt_calls += 1
        return f"enc:{password}:{plaintext}"

    def decrypt(self, ciphertext: str | None, password: str) -> str | None:
        self.decrypt_calls += 1
        prefix = f"enc:{password}:"
        if not ciphertext or not ciphertext.startswith(prefix):
            return None
        return ciphertext[len(prefix) :]


class ScriptedDialogs:
    """Answers password prompts from a queue; records everything shown."""

    def __init__(self, passwords: list[str | None] | None = None, confirm: bool = True) -> None:
        self.passwords = list(passwords or [])
        self.confirm_answer = confirm
        self.prompts: list[str] = []
        self.alerts: list[str] = []
        self.notices: list[str] = []
        self.confirms: list[str] = []

    def prompt_password(self, message: str) -> str | None:
        self.prompts.append(message)
        return self.passwords.pop(0) if self.passwords else None

    def confirm(self, message: str) -> bool:
        self.confirms.append(message)
        return self.confirm_answer

    def alert(self, message: str) -> None:
        self.alerts.append(message)

    def notify(self, message: str) -> None:
        self.notices.append(message)


@pytest.fixture
def session() -> Iterator[SessionContext]:
    ctx = SessionContext(viewing=ViewingState(cooldown_s=0))
    yield ctx
    ctx.close()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dialogs() -> ScriptedDialogs:
    return ScriptedDialogs()
