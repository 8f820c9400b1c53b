"""
Where ghui keeps its files, and how config.json and GHUI_* combine.

Precedence: model defaults < ~/.config/ghui/config.json < GHUI_* variables.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable

from .models import GhuiConfig

logger = logging.getLogger(__name__)

APP_DIR = "ghui"


def _xdg_dir(variable: str, *fallback: str) -> Path:
    if value := os.environ.get(variable):
        return Path(value)
    return Path.home().joinpath(*fallback)


def get_xdg_config_home() -> Path:
    """$XDG_CONFIG_HOME, or ~/.config."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def get_xdg_cache_home() -> Path:
    return _xdg_dir("XDG_CACHE_HOME", ".cache")


def get_xdg_state_home() -> Path:
    return _xdg_dir("XDG_STATE_HOME", ".local", "state")


def get_user_config_path() -> Path:
    return get_xdg_config_home() / APP_DIR / "config.json"


def get_cache_path(config: GhuiConfig | None = None) -> Path:
    """The SQLite cache file; ``cache.path`` in config wins over the XDG default."""
    if config is not None and config.cache.path:
        return Path(config.cache.path).expanduser()
    return get_xdg_cache_home() / APP_DIR / "cache.db"


def get_log_path() -> Path:
    return get_xdg_state_home() / APP_DIR / "ghui.log"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge ``override`` into a copy of ``base``, section by section.

    Example:
        >>> deep_merge({"ui": {"editor": "vi"}}, {"ui": {"exit_after_checkout": True}})
        {'ui': {'editor': 'vi', 'exit_after_checkout': True}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_config_file(path: Path) -> dict[str, Any]:
    """Parsed config.json, or {} when it is missing or unreadable."""
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring config at %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: top level is not an object", path)
        return {}
    return data


def _seconds(raw: str) -> float | None:
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds >= 1 else None


def _flag(raw: str) -> bool:
    return raw.strip().lower() not in ("false", "0", "no", "off")


# variable -> (section, key, parser); a parser returning None rejects the value
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "GHUI_REFRESH_INTERVAL": ("refresh", "interval_seconds", _seconds),
    "GHUI_ACTIONS_POLL_INTERVAL": ("refresh", "actions_poll_seconds", _seconds),
    "GHUI_EXIT_AFTER_CHECKOUT": ("ui", "exit_after_checkout", _flag),
    "GHUI_CACHE_PATH": ("cache", "path", str),
}


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Return a copy of ``config_dict`` with GHUI_* variables applied.

    Interval variables must be numbers of at least one second; anything else
    is logged and ignored.
    """
    result = copy.deepcopy(config_dict)
    for variable, (section, key, parse) in ENV_OVERRIDES.items():
        raw = os.environ.get(variable)
        if not raw:
            continue
        value = parse(raw)
        if value is None:
            logger.warning("Ignoring %s=%r", variable, raw)
            continue
        result.setdefault(section, {})[key] = value
    return result


def load_config(config_path: Path | None = None) -> GhuiConfig:
    """
    Build the effective configuration.

    Args:
        config_path: Config file to read instead of the user config

    Raises:
        ValidationError: If a value is out of range
    """
    path = config_path if config_path is not None else get_user_config_path()
    merged = deep_merge({}, _read_config_file(path))
    return GhuiConfig(**apply_env_overrides(merged))
