from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/snipkeep/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "api_base_url": "SNIPKEEP_API_URL",
    "request_timeout_s": "SNIPKEEP_REQUEST_TIMEOUT_S",
    "page_size": "SNIPKEEP_PAGE_SIZE",
    "lightweight_list": "SNIPKEEP_LIGHTWEIGHT_LIST",
    "poll_enabled": "SNIPKEEP_POLL_ENABLED",
    "poll_interval_s": "SNIPKEEP_POLL_INTERVAL_S",
    "input_quiet_s": "SNIPKEEP_INPUT_QUIET_S",
    "viewing_cooldown_s": "SNIPKEEP_VIEWING_COOLDOWN_S",
    "inline_max_bytes": "SNIPKEEP_INLINE_MAX_BYTES",
    "blob_url": "SNIPKEEP_BLOB_URL",
    "blob_anon_key": "SNIPKEEP_BLOB_ANON_KEY",
    "blob_bucket": "SNIPKEEP_BLOB_BUCKET",
}

_INT_KEYS = {"page_size", "inline_max_bytes"}
_FLOAT_KEYS = {"request_timeout_s", "poll_interval_s", "input_quiet_s", "viewing_cooldown_s"}
_BOOL_KEYS = {"lightweight_list", "poll_enabled"}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("SNIPKEEP_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def update_config_file(updates: dict[str, Any], path: Path | None = None) -> Path:
    data = read_config_file(path)
    data.update(updates)
    return write_config_file(data, path)


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class SnipkeepConfig:
    api_base_url: str = "http://localhost:8888/.netlify/functions"
    request_timeout_s: float = 15.0
    page_size: int = 50
    lightweight_list: bool = False
    poll_enabled: bool = True
    poll_interval_s: float = 5.0
    # Quiet period after typing in the add form before polling resumes.
    input_quiet_s: float = 10.0
    viewing_cooldown_s: float = 30.0
    # The functions transport rejects request bodies above a few MB; larger
    # unencrypted files go straight to the blob store.
    inline_max_bytes: int = 4_000_000
    blob_url: str | None = None
    blob_anon_key: str | None = None
    blob_bucket: str = "code-files"


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> SnipkeepConfig:
    cfg = SnipkeepConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: SnipkeepConfig, data: dict[str, Any]) -> SnipkeepConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in _FLOAT_KEYS:
            setattr(cfg, key, _parse_float(value, getattr(cfg, key), key=key))
            continue
        if key in _BOOL_KEYS:
            setattr(cfg, key, _coerce_bool(value, getattr(cfg, key), key=key))
            continue
        if isinstance(value, str):
            value = value.strip() or None
            if value is None and key in {"api_base_url", "blob_bucket"}:
                continue
        setattr(cfg, key, value)
    return cfg
