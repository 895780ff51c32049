from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich import print
from rich.logging import RichHandler

from . import __version__
from .commands.common import open_service
from .commands.config_cmds import config_set_cmd, config_show_cmd
from .commands.snippet_cmds import (
    add_cmd,
    copy_cmd,
    delete_cmd,
    download_cmd,
    list_cmd,
    push_cmd,
    reveal_cmd,
)
from .commands.sync_cmds import shell_cmd, watch_cmd
from .config import load_config

app = typer.Typer(help="snipkeep: password-protected snippet manager")
config_app = typer.Typer(help="Show or change configuration")
app.add_typer(config_app, name="config")


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(show_path=False)],
        )


@app.command("list")
def list_snippets(
    query: str | None = typer.Argument(None, help='Filter; "a + b" requires every term'),
) -> None:
    """List snippets, newest first."""

    service = open_service()
    try:
        list_cmd(service, query=query)
    finally:
        service.close()


@app.command()
def add(
    title: str | None = typer.Option(None, help="Snippet title"),
    password: str | None = typer.Option(None, help="Password for delete/unlock"),
    text: str | None = typer.Option(None, help="Text content"),
    file: Path | None = typer.Option(None, exists=True, dir_okay=False, help="Image or PDF"),
    hidden: bool = typer.Option(False, help="Hide and encrypt the content"),
) -> None:
    """Add a snippet (prompts for anything not given)."""

    service = open_service()
    try:
        add_cmd(service, title=title, password=password, text=text, file=file, hidden=hidden)
    finally:
        service.close()


@app.command()
def delete(snippet_id: int) -> None:
    """Delete a snippet (asks for its password)."""

    service = open_service()
    try:
        delete_cmd(service, snippet_id=snippet_id)
    finally:
        service.close()


@app.command()
def copy(snippet_id: int) -> None:
    """Print a text snippet's content."""

    service = open_service()
    try:
        copy_cmd(service, snippet_id=snippet_id)
    finally:
        service.close()


@app.command()
def download(
    snippet_id: int,
    out: Path | None = typer.Option(None, "--out", "-o", help="File or directory to write"),
) -> None:
    """Save an image or PDF snippet to disk."""

    service = open_service()
    try:
        download_cmd(service, snippet_id=snippet_id, out=out)
    finally:
        service.close()


@app.command()
def reveal(snippet_id: int) -> None:
    """Unlock a hidden snippet and show it."""

    service = open_service()
    try:
        reveal_cmd(service, snippet_id=snippet_id)
    finally:
        service.close()


@app.command()
def push() -> None:
    """Write the full snippet list back to the server."""

    service = open_service()
    try:
        push_cmd(service)
    finally:
        service.close()


@app.command()
def watch(
    interval: float | None = typer.Option(None, help="Seconds between checks"),
    query: str | None = typer.Option(None, help="Filter applied when reprinting"),
) -> None:
    """Reprint the list whenever the server copy changes."""

    watch_cmd(open_service(), interval=interval, query=query)


@app.command()
def shell(
    poll: bool | None = typer.Option(None, help="Run live sync (defaults to config)"),
) -> None:
    """Interactive session with live sync."""

    config = load_config()
    service = open_service(config)
    shell_cmd(service, poll=config.poll_enabled if poll is None else poll)


@config_app.command("show")
def config_show(
    show_secrets: bool = typer.Option(False, help="Print the blob key unmasked"),
) -> None:
    """Show the effective configuration."""

    config_show_cmd(show_secrets=show_secrets)


@config_app.command("set")
def config_set(key: str, value: str) -> None:
    """Set a config key in the config file (empty value removes it)."""

    config_set_cmd(key=key, value=value)


def main() -> None:
    app()


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)
