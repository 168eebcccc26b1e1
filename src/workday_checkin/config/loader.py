"""YAML defaults loader.

Reads ``config.yaml`` (packaged next to this module, or the file named by the
``WORKDAY_CHECKIN_CONFIG`` environment variable) and flattens nested sections
into upper-case keys, e.g. ``reminders.morning.start`` -> ``REMINDERS_MORNING_START``.

Environment variables and ``.env`` still override these values; see
:mod:`workday_checkin.config.settings`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "WORKDAY_CHECKIN_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")


def get_config_path() -> Path:
    """Return the YAML config path in effect."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return DEFAULT_CONFIG_PATH


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary. Missing files yield ``{}``."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(
            f"Invalid YAML in {path}: {e}\n"
            f"Please fix the YAML syntax."
        )

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Configuration must be a dictionary, got {type(data).__name__}\n"
            f"Please check the format of {path}"
        )

    return data


def flatten_config(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into ``SECTION_KEY`` style keys."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_config(value, name))
        else:
            flat[name.upper()] = value
    return flat


@lru_cache
def get_yaml_defaults(path: str | None = None) -> dict[str, Any]:
    """Return flattened defaults from the YAML config file."""
    config_path = Path(path) if path else get_config_path()
    return flatten_config(_load_yaml_dict(config_path))
