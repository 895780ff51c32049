import json

from typer.testing import CliRunner

from snipkeep import __version__
from snipkeep.cli_app import app
from snipkeep.config import read_config_file

runner = CliRunner()


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("list", "add", "delete", "copy", "download", "reveal", "watch", "shell"):
        assert command in result.stdout


def test_config_help_shows_subcommands() -> None:
    result = runner.invoke(app, ["config", "--help"])
    assert result.exit_code == 0
    assert "show" in result.stdout
    assert "set" in result.stdout


def test_version_prints_package_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_config_set_and_show_round_trip() -> None:
    result = runner.invoke(app, ["config", "set", "page_size", "25"])
    assert result.exit_code == 0
    assert read_config_file() == {"page_size": "25"}

    shown = runner.invoke(app, ["config", "show"])
    assert shown.exit_code == 0
    assert '"page_size": 25' in shown.stdout


def test_config_set_rejects_unknown_key() -> None:
    result = runner.invoke(app, ["config", "set", "nope", "1"])
    assert result.exit_code == 1
    assert read_config_file() == {}


def test_config_show_masks_blob_key(monkeypatch) -> None:
    monkeypatch.setenv("SNIPKEEP_BLOB_ANON_KEY", "very-secret")
    shown = runner.invoke(app, ["config", "show"])
    assert "very-secret" not in shown.stdout
    assert json.dumps("***") in shown.stdout
