import json
from pathlib import Path

import pytest

from snipkeep.config import (
    SnipkeepConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
    update_config_file,
    write_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_read_config_file_missing_or_blank_is_empty(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "missing.json") == {}
    blank = tmp_path / "blank.json"
    blank.write_text("  \n")
    assert read_config_file(blank) == {}


def test_config_path_follows_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    target = tmp_path / "elsewhere.json"
    monkeypatch.setenv("SNIPKEEP_CONFIG", str(target))
    assert get_config_path() == target


def test_write_config_file_creates_parents(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "dir" / "config.json"
    written = write_config_file({"page_size": 25}, config_path)
    assert written == config_path
    assert json.loads(config_path.read_text()) == {"page_size": 25}


def test_update_config_file_merges(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    write_config_file({"page_size": 25, "blob_bucket": "files"}, config_path)
    update_config_file({"blob_bucket": "other", "blob_url": "https://blob.test"}, config_path)
    assert read_config_file(config_path) == {
        "page_size": 25,
        "blob_bucket": "other",
        "blob_url": "https://blob.test",
    }


def test_load_config_defaults_without_file() -> None:
    assert load_config() == SnipkeepConfig()


def test_load_config_reads_file_values(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "api_base_url": "https://snips.example/.netlify/functions",
                "page_size": "20",
                "poll_enabled": "off",
                "poll_interval_s": 2,
                "blob_url": "  ",
                "unknown_key": "ignored",
            }
        )
    )
    cfg = load_config(config_path)
    assert cfg.api_base_url == "https://snips.example/.netlify/functions"
    assert cfg.page_size == 20
    assert cfg.poll_enabled is False
    assert cfg.poll_interval_s == 2.0
    assert cfg.blob_url is None
    assert not hasattr(cfg, "unknown_key")


def test_env_overrides_win_over_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"page_size": 20, "lightweight_list": False}))
    monkeypatch.setenv("SNIPKEEP_PAGE_SIZE", "7")
    monkeypatch.setenv("SNIPKEEP_LIGHTWEIGHT_LIST", "yes")
    assert get_env_overrides() == {"page_size": "7", "lightweight_list": "yes"}
    cfg = load_config(config_path)
    assert cfg.page_size == 7
    assert cfg.lightweight_list is True


def test_blank_api_url_keeps_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SNIPKEEP_API_URL", "   ")
    assert load_config().api_base_url == SnipkeepConfig().api_base_url


def test_invalid_numbers_warn_and_keep_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SNIPKEEP_POLL_INTERVAL_S", "soon")
    monkeypatch.setenv("SNIPKEEP_INLINE_MAX_BYTES", "lots")
    with pytest.warns(RuntimeWarning):
        cfg = load_config()
    assert cfg.poll_interval_s == 5.0
    assert cfg.inline_max_bytes == 4_000_000


def test_load_config_ignores_malformed_file(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{oops")
    assert load_config(config_path) == SnipkeepConfig()
