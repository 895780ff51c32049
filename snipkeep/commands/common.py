from __future__ import annotations

from typing import Any

import typer
from rich import print
from rich.markup import escape

from snipkeep.config import SnipkeepConfig, load_config, read_config_file, write_config_file
from snipkeep.render import DisplayRecord, RenderResult
from snipkeep.service import ActionResult, SnippetService


class TerminalDialogs:
    """Dialogs backed by the controlling terminal."""

    def prompt_password(self, message: str) -> str | None:
        try:
            return typer.prompt(message, hide_input=True, default="", show_default=False)
        except typer.Abort:
            print()
            return None

    def confirm(self, message: str) -> bool:
        try:
            return typer.confirm(message, default=False)
        except typer.Abort:
            print()
            return False

    def alert(self, message: str) -> None:
        print(f"[red]{escape(message)}[/red]")

    def notify(self, message: str) -> None:
        print(f"[cyan]{escape(message)}[/cyan]")


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def open_service(config: SnipkeepConfig | None = None) -> SnippetService:
    """Build a session against the configured API and load the remote list."""

    service = SnippetService.from_config(config or load_config(), TerminalDialogs())
    loaded = service.load()
    if not loaded.ok:
        print(f"[red]{escape(loaded.message)}[/red]")
        service.close()
        raise typer.Exit(code=1)
    return service


def report(result: ActionResult, *, exit_on_error: bool = True) -> bool:
    if result.ok:
        if result.message:
            print(f"[green]{escape(result.message)}[/green]")
        return True
    if result.cancelled:
        print(f"[yellow]{escape(result.message)}[/yellow]")
        return False
    print(f"[red]{escape(result.message)}[/red]")
    if exit_on_error:
        raise typer.Exit(code=1)
    return False


def _title_markup(record: DisplayRecord) -> str:
    parts = []
    for text, matched in record.title_segments:
        parts.append(f"[reverse]{escape(text)}[/reverse]" if matched else escape(text))
    return "".join(parts)


def _content_lines(record: DisplayRecord) -> list[str]:
    content = record.content
    if content.kind == "text":
        return [escape(line) for line in (content.body or "").splitlines()] or [""]
    if content.kind in {"image", "pdf"}:
        source = content.source or ""
        where = "inline" if source.startswith("data:") else escape(source)
        return [f"{escape(content.file_name or '')} ({where})"]
    glyph = f"{content.glyph} " if content.glyph else ""
    return [f"[dim]{glyph}{escape(content.message or '')}[/dim]"]


def print_records(result: RenderResult) -> None:
    if result.empty_message:
        print(f"[dim]{escape(result.empty_message)}[/dim]")
        return
    for record in result.records:
        print(
            f"[bold]#{record.id}[/bold] {_title_markup(record)} "
            f"[dim]{escape(record.type_label)} · {escape(record.timestamp)}[/dim]"
        )
        for line in _content_lines(record):
            print(f"    {line}")
        print(f"    [dim]actions: {', '.join(record.actions)}[/dim]")


def print_snippet(service: SnippetService, snippet_id: int) -> None:
    records = service.render(None, autoload=False).records
    match = tuple(record for record in records if record.id == snippet_id)
    print_records(RenderResult(records=match))
