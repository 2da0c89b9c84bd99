"""Load WatchConfig from watchlist.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from dataclasses import fields
from pathlib import Path

import yaml

from watchlist._errors import ConfigError
from watchlist.config import WatchConfig

_CONFIG_KEYS = frozenset(f.name for f in fields(WatchConfig))


def load_config(root: Path, **overrides: object) -> WatchConfig:
    """Load WatchConfig from root, optionally merging watchlist.yaml.

    Looks for watchlist.yaml, watchlist.yml, or watchlist.toml in root. If
    found, loads and merges with overrides. Overrides take precedence;
    ``None`` overrides are ignored so unset CLI flags fall through.
    """
    file_config = _read_watchlist_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    unknown = sorted(set(merged) - _CONFIG_KEYS)
    if unknown:
        msg = f"Unknown config keys: {', '.join(unknown)}"
        raise ConfigError(msg)
    try:
        return WatchConfig(**merged)  # type: ignore[arg-type]
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc


def _read_watchlist_config(root: Path) -> dict[str, object]:
    """Read config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("watchlist.yaml", "watchlist.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "watchlist.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping"
        raise ConfigError(msg)
    return _flatten_watchlist_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_watchlist_section(data)


def _flatten_watchlist_section(data: dict[str, object]) -> dict[str, object]:
    """Extract watchlist.* keys into top-level config."""
    result: dict[str, object] = {}
    for k, v in data.items():
        if k != "watchlist":
            result[k] = v
    section = data.get("watchlist")
    if isinstance(section, dict):
        result.update(section)
    return result
