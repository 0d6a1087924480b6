"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML settings file, applies ``INVENTORY_*`` environment
overrides, and parses the result into a frozen ``InventorySettings``.

Invariants enforced
-------------------
* Unknown sections or keys raise ``ValueError``; a typo never silently
  falls back to a default.
* Every value passes ``InventorySettings.__post_init__`` validation.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or bad value  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import InventorySettings

ENV_PREFIX = "INVENTORY_"

# YAML section -> {yaml key: settings field}
_SECTIONS: dict[str, dict[str, str]] = {
    "database": {
        "url": "database_url",
        "echo": "echo",
        "pool_size": "pool_size",
        "max_overflow": "max_overflow",
        "pool_timeout": "pool_timeout",
        "busy_timeout_seconds": "busy_timeout_seconds",
    },
    "locking": {
        "lock_timeout_seconds": "lock_timeout_seconds",
    },
    "queries": {
        "recent_adjustment_limit": "recent_adjustment_limit",
        "default_page_size": "default_page_size",
        "max_page_size": "max_page_size",
    },
    "actors": {
        "system_actor_id": "system_actor_id",
    },
    "logging": {
        "level": "log_level",
    },
}

_DEFAULTS = InventorySettings()


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _coerce(field_name: str, value: Any) -> Any:
    """Coerce a raw YAML/env value to the type of the field's default."""
    default = getattr(_DEFAULTS, field_name)
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{field_name}: expected a boolean, got {value!r}")
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{field_name}: expected an integer, got {value!r}") from None
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{field_name}: expected a number, got {value!r}") from None
    return str(value)


def flatten_settings_dict(data: Mapping[str, Any]) -> dict[str, Any]:
    """Map the sectioned YAML layout onto flat InventorySettings field names."""
    flat: dict[str, Any] = {}
    for section, values in data.items():
        if section not in _SECTIONS:
            raise ValueError(f"Unknown settings section: {section!r}")
        if values is None:
            continue
        if not isinstance(values, Mapping):
            raise ValueError(f"Settings section {section!r} must be a mapping")
        keys = _SECTIONS[section]
        for key, value in values.items():
            if key not in keys:
                raise ValueError(f"Unknown setting {section}.{key}")
            flat[keys[key]] = _coerce(keys[key], value)
    return flat


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect INVENTORY_<FIELD> overrides, e.g. INVENTORY_DATABASE_URL."""
    overrides: dict[str, Any] = {}
    for f in fields(InventorySettings):
        env_name = ENV_PREFIX + f.name.upper()
        if env_name in environ:
            overrides[f.name] = _coerce(f.name, environ[env_name])
    return overrides


def settings_from_dict(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> InventorySettings:
    """Build settings from a parsed YAML mapping plus environment overrides."""
    values = flatten_settings_dict(data)
    if environ is not None:
        values.update(env_overrides(environ))
    return InventorySettings(**values)


def load_settings(
    path: Path,
    environ: Mapping[str, str] | None = None,
) -> InventorySettings:
    """Load, override and validate settings from a YAML file."""
    return settings_from_dict(load_yaml_file(path), environ)
