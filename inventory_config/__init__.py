"""
inventory_config -- single public entrypoint for inventory settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or ``INVENTORY_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and below
    ``inventory_services``.  The kernel MUST NEVER import from
    ``inventory_config``; the service layer passes values into kernel
    constructors.

Failure modes:
    - ``FileNotFoundError`` -- the selected settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from inventory_config.loader import load_settings, settings_from_dict
from inventory_config.schema import InventorySettings

_logger = logging.getLogger("inventory_kernel.config")

# Default settings file shipped with the package
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

# Environment variable naming an alternative settings file
CONFIG_PATH_ENV = "INVENTORY_CONFIG"


def get_active_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> InventorySettings:
    """The ONLY public settings entrypoint.

    Resolution order for the file: ``config_path``, then the path named by
    ``INVENTORY_CONFIG``, then the packaged default.  ``INVENTORY_<FIELD>``
    variables override individual values from the file.

    Args:
        config_path: Explicit settings file.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if environ is None else environ
    path = config_path or Path(env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    settings = load_settings(path, env)

    _logger.info(
        "inventory_settings_loaded",
        extra={
            "config_path": str(path),
            "dialect": settings.database_url.split(":", 1)[0],
            "lock_timeout_seconds": settings.lock_timeout_seconds,
            "log_level": settings.log_level,
        },
    )
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "InventorySettings",
    "get_active_settings",
    "load_settings",
    "settings_from_dict",
]
