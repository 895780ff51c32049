from __future__ import annotations

import shlex
import time
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from snipkeep.commands.common import print_records, print_snippet, report
from snipkeep.commands.snippet_cmds import prompt_add_request, write_download
from snipkeep.errors import ValidationError
from snipkeep.service import SnippetService
from snipkeep.sync.poller import LiveSyncPoller, RefreshEvent

SHELL_HELP = """\
list [QUERY]           show snippets (use "a + b" to require every term)
unlock ID | lock ID    reveal or re-hide a hidden snippet
copy ID                print a text snippet's content
download ID [PATH]     save a file snippet
delete ID              delete a snippet
add                    add a snippet
push                   write the full list back to the server
refresh                reload the list from the server
count                  compare the server's snippet count with the loaded list
freeze | thaw          keep or stop keeping the current view from refreshing
poll start [SECONDS] | poll stop | poll check | poll interval SECONDS | poll status
pause | resume         suspend or resume background sync
quit"""


def _print_refresh(event: RefreshEvent) -> None:
    print(f"[dim]{event.total} snippets[/dim]")


def watch_cmd(service: SnippetService, *, interval: float | None, query: str | None) -> None:
    """Poll the server and reprint the list whenever it changes."""

    def on_refresh(event: RefreshEvent) -> None:
        print_records(service.render(query, autoload=False))
        _print_refresh(event)

    poller = service.create_poller(on_refresh=on_refresh)
    print_records(service.render(query, autoload=False))
    poller.start(interval)
    print(f"[green]Watching every {poller.interval_s:g}s (Ctrl+C to stop)[/green]")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print()
    finally:
        poller.stop()
        service.close()


def _require_id(args: list[str]) -> int:
    if not args:
        raise ValidationError("missing snippet id")
    try:
        return int(args[0])
    except ValueError as exc:
        raise ValidationError(f"invalid snippet id: {args[0]}") from exc


def _poll_command(poller: LiveSyncPoller, args: list[str]) -> None:
    action = args[0] if args else "status"
    if action == "start":
        poller.start(float(args[1]) if len(args) > 1 else None)
    elif action == "stop":
        poller.stop()
    elif action == "check":
        if not poller.check_now():
            print("[dim]No changes[/dim]")
    elif action == "interval":
        if len(args) < 2:
            raise ValidationError("usage: poll interval SECONDS")
        poller.set_interval(float(args[1]))
    elif action != "status":
        raise ValidationError(f"unknown poll action: {action}")
    print(f"Live sync: {poller.status()} (every {poller.interval_s:g}s)")


def _dispatch(service: SnippetService, poller: LiveSyncPoller, command: str, args: list[str]) -> None:
    if command == "list":
        print_records(service.render(" ".join(args) or None))
    elif command == "unlock":
        result = service.unlock(_require_id(args))
        if report(result, exit_on_error=False):
            print_snippet(service, _require_id(args))
    elif command == "lock":
        report(service.lock(_require_id(args)), exit_on_error=False)
    elif command == "copy":
        result = service.copy(_require_id(args))
        if report(result, exit_on_error=False):
            typer.echo(result.value)
    elif command == "download":
        result = service.download(_require_id(args))
        if report(result, exit_on_error=False):
            out = Path(args[1]).expanduser() if len(args) > 1 else None
            target = write_download(result.value, out)
            print(f"- wrote {escape(str(target))}")
    elif command == "delete":
        report(service.delete(_require_id(args)), exit_on_error=False)
    elif command == "add":
        with service.session.viewing.dialog():
            request = prompt_add_request(on_input=poller.note_input_activity)
        report(service.add(request), exit_on_error=False)
    elif command == "push":
        report(service.push(), exit_on_error=False)
    elif command == "refresh":
        result = service.load()
        if report(result, exit_on_error=False):
            print(f"[dim]{result.value} snippets[/dim]")
    elif command == "poll":
        _poll_command(poller, args)
    elif command == "count":
        result = service.count()
        if report(result, exit_on_error=False):
            print(f"{result.value} on the server, {len(service.session.store)} loaded")
    elif command == "freeze":
        service.session.viewing.set_persistent(True)
        print("Live sync: holding the current view")
    elif command == "thaw":
        service.session.viewing.set_persistent(False)
        print(f"Live sync: {poller.status()}")
    elif command == "pause":
        poller.set_visible(False)
        print("Live sync: Paused")
    elif command == "resume":
        poller.set_visible(True)
        print(f"Live sync: {poller.status()}")
    elif command == "help":
        print(escape(SHELL_HELP))
    else:
        raise ValidationError(f"unknown command: {command} (try 'help')")


def shell_cmd(service: SnippetService, *, poll: bool) -> None:
    """Interactive session with live sync running in the background."""

    poller = service.create_poller(on_refresh=_print_refresh)
    if poll:
        poller.start()
    print_records(service.render(None))
    print(f"[dim]Live sync: {poller.status()}. Type 'help' for commands.[/dim]")
    try:
        while True:
            try:
                line = typer.prompt("snipkeep", prompt_suffix="> ", default="", show_default=False)
            except typer.Abort:
                print()
                break
            try:
                parts = shlex.split(line)
            except ValueError as exc:
                print(f"[red]{escape(str(exc))}[/red]")
                continue
            if not parts:
                continue
            command, args = parts[0].lower(), parts[1:]
            if command in {"quit", "exit"}:
                break
            try:
                _dispatch(service, poller, command, args)
            except (ValidationError, ValueError) as exc:
                print(f"[red]{escape(str(exc))}[/red]")
            except typer.Abort:
                print("\n[yellow]Cancelled[/yellow]")
    finally:
        poller.stop()
        service.close()
