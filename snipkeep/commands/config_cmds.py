from __future__ import annotations

import json
from dataclasses import asdict, fields

import typer
from rich import print
from rich.markup import escape

from snipkeep.commands.common import read_config_or_exit, write_config_or_exit
from snipkeep.config import SnipkeepConfig, get_config_path, load_config


def config_show_cmd(*, show_secrets: bool) -> None:
    """Print the effective configuration (file overlaid by environment)."""

    data = asdict(load_config())
    if data.get("blob_anon_key") and not show_secrets:
        data["blob_anon_key"] = "***"
    print(f"- Config: {escape(str(get_config_path()))}")
    print(escape(json.dumps(data, indent=2)))


def config_set_cmd(*, key: str, value: str) -> None:
    """Write one key to the config file; an empty value removes it."""

    known = {item.name for item in fields(SnipkeepConfig)}
    if key not in known:
        print(f"[red]Unknown config key: {escape(key)}[/red]")
        print(f"Known keys: {', '.join(sorted(known))}")
        raise typer.Exit(code=1)
    data = read_config_or_exit()
    if value == "":
        data.pop(key, None)
    else:
        data[key] = value
    write_config_or_exit(data)
    effective = getattr(load_config(), key)
    print(f"[green]{escape(key)} = {escape(repr(effective))}[/green]")
