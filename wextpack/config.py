"""Config file and environment loading."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from .constants import CONFIG_FILE_NAME
from .errors import UsageError

KNOWN_KEYS = {
    "artifacts_dir",
    "as_needed",
    "ignore_files",
    "show_ready_message",
    "log_level",
    "poll_interval",
}

_TRUTHY = {"1", "true", "yes", "on"}


class Config(dict):
    """Plain dict with attribute access; missing keys read as None."""

    def __getattr__(self, item):
        if item.startswith("__"):
            raise AttributeError(item)
        return self.get(item)


def load_config(path: str | Path | None = None, source_dir: str | Path | None = None) -> Config:
    """
    Load settings from a YAML file, then apply WEXTPACK_* environment overrides.

    Without `path`, `<source_dir>/wextpack.yml` is used if it exists. An
    explicitly given path must exist.
    """
    data: dict[str, Any] = {}
    cfg_path = Path(path) if path else None
    if cfg_path is None and source_dir is not None:
        candidate = Path(source_dir) / CONFIG_FILE_NAME
        if candidate.is_file():
            cfg_path = candidate

    if cfg_path is not None:
        data = _read_config_file(cfg_path)

    data.update(_load_env_overrides())
    return Config(data)


def _read_config_file(cfg_path: Path) -> dict[str, Any]:
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise UsageError(f"Could not read config file {cfg_path}: {e}") from e
    except yaml.YAMLError as e:
        raise UsageError(f"Error parsing config file {cfg_path}: {e}") from e

    if not isinstance(raw, dict):
        raise UsageError(f"Config file {cfg_path} must contain a mapping at the top level")

    unknown = sorted(set(raw) - KNOWN_KEYS)
    if unknown:
        raise UsageError(f"Config file {cfg_path} has unknown option(s): {', '.join(unknown)}")

    ignore_files = raw.get("ignore_files")
    if ignore_files is not None and not (
        isinstance(ignore_files, list) and all(isinstance(p, str) for p in ignore_files)
    ):
        raise UsageError(f"Config file {cfg_path}: ignore_files must be a list of strings")

    for key in ("as_needed", "show_ready_message"):
        if raw.get(key) is not None and not isinstance(raw[key], bool):
            raise UsageError(f"Config file {cfg_path}: {key} must be true or false")

    for key in ("artifacts_dir", "log_level"):
        if raw.get(key) is not None and not isinstance(raw[key], str):
            raise UsageError(f"Config file {cfg_path}: {key} must be a string")

    poll_interval = raw.get("poll_interval")
    if poll_interval is not None and (
        isinstance(poll_interval, bool)
        or not isinstance(poll_interval, (int, float))
        or poll_interval <= 0
    ):
        raise UsageError(f"Config file {cfg_path}: poll_interval must be a positive number")
    return dict(raw)


def _load_env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    def _pick_env(key: str) -> str | None:
        value = os.getenv(key)
        if value:
            return value.strip()
        return None

    artifacts_dir = _pick_env("WEXTPACK_ARTIFACTS_DIR")
    if artifacts_dir:
        overrides["artifacts_dir"] = artifacts_dir

    log_level = _pick_env("WEXTPACK_LOG_LEVEL")
    if log_level:
        overrides["log_level"] = log_level.upper()

    as_needed = _pick_env("WEXTPACK_AS_NEEDED")
    if as_needed is not None:
        overrides["as_needed"] = as_needed.lower() in _TRUTHY

    poll_raw = _pick_env("WEXTPACK_POLL_INTERVAL")
    if poll_raw:
        try:
            poll_interval = float(poll_raw)
        except ValueError:
            poll_interval = 0.0
        if poll_interval > 0:
            overrides["poll_interval"] = poll_interval

    return overrides
