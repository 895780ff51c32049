from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer
from rich import print
from rich.markup import escape

from snipkeep.commands.common import print_records, print_snippet, report
from snipkeep.errors import ValidationError
from snipkeep.service import ActionResult, AddRequest, DownloadPayload, SnippetService
from snipkeep.store import ContentType
from snipkeep.utils import read_file_payload


def content_type_for(mime_type: str) -> ContentType:
    if mime_type.startswith("image/"):
        return ContentType.IMAGE
    if mime_type == "application/pdf":
        return ContentType.PDF
    raise ValidationError(f"Unsupported file type: {mime_type} (images and PDFs only)")


def build_add_request(
    *,
    title: str,
    password: str,
    text: str | None,
    file: Path | None,
    hidden: bool,
) -> AddRequest:
    if file is None:
        return AddRequest(title=title, password=password, text=text, hidden=hidden)
    payload = read_file_payload(file)
    return AddRequest(
        title=title,
        password=password,
        content_type=content_type_for(payload.mime_type),
        file=payload,
        hidden=hidden,
    )


def prompt_add_request(on_input: Callable[[], None] | None = None) -> AddRequest:
    """Collect an add form interactively; ``on_input`` fires before each field."""

    def ask(message: str, **kwargs: Any) -> str:
        if on_input is not None:
            on_input()
        return typer.prompt(message, **kwargs)

    title = ask("Title")
    password = ask("Password", hide_input=True)
    raw_path = ask("File path (blank for text)", default="", show_default=False)
    text = None
    if not raw_path.strip():
        text = ask("Content")
    if on_input is not None:
        on_input()
    hidden = typer.confirm("Hide and encrypt?", default=False)
    return build_add_request(
        title=title,
        password=password,
        text=text,
        file=Path(raw_path.strip()).expanduser() if raw_path.strip() else None,
        hidden=hidden,
    )


def list_cmd(service: SnippetService, *, query: str | None) -> None:
    """Print snippets, newest first, filtered by ``query``."""

    print_records(service.render(query, autoload=False))


def add_cmd(
    service: SnippetService,
    *,
    title: str | None,
    password: str | None,
    text: str | None,
    file: Path | None,
    hidden: bool,
) -> None:
    try:
        if title is None or password is None or (text is None and file is None):
            request = prompt_add_request()
        else:
            request = build_add_request(
                title=title, password=password, text=text, file=file, hidden=hidden
            )
    except ValidationError as exc:
        report(ActionResult(ok=False, message=str(exc)))
        return
    result = service.add(request)
    if report(result):
        print(f"- id: {result.value.id}")


def delete_cmd(service: SnippetService, *, snippet_id: int) -> None:
    report(service.delete(snippet_id))


def copy_cmd(service: SnippetService, *, snippet_id: int) -> None:
    result = service.copy(snippet_id)
    if not result.ok:
        report(result)
        return
    typer.echo(result.value)


def write_download(payload: DownloadPayload, out: Path | None) -> Path:
    target = out or Path.cwd() / payload.file_name
    if target.is_dir():
        target = target / payload.file_name
    target.write_bytes(payload.data)
    return target


def download_cmd(service: SnippetService, *, snippet_id: int, out: Path | None) -> None:
    result = service.download(snippet_id)
    if not report(result):
        return
    target = write_download(result.value, out)
    print(f"- wrote {len(result.value.data)} bytes to {escape(str(target))}")


def reveal_cmd(service: SnippetService, *, snippet_id: int) -> None:
    result = service.unlock(snippet_id)
    if not result.ok:
        report(result)
        return
    snippet = service.session.store.find_by_id(snippet_id)
    if snippet is not None and snippet.is_file:
        print_snippet(service, snippet.id)
        return
    typer.echo(result.value or "")


def push_cmd(service: SnippetService) -> None:
    result = service.push()
    if report(result):
        print(f"- {result.value} snippets written")
