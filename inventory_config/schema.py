"""
InventorySettings schema.

The runtime configuration of the inventory kernel: database connection,
lock bounds, query limits, and logging.  YAML files are parsed into this
frozen dataclass by ``inventory_config.loader``; the service layer passes
the values into kernel constructors.  The kernel itself never imports
this package.
"""

from __future__ import annotations

from dataclasses import dataclass

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class InventorySettings:
    """Validated runtime settings."""

    database_url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    busy_timeout_seconds: float = 10.0

    # Upper bound on waiting for one inventory row lock
    lock_timeout_seconds: float = 5.0

    recent_adjustment_limit: int = 10
    default_page_size: int = 50
    max_page_size: int = 200

    # Actor recorded when an order carries no created_by/updated_by
    system_actor_id: str = "system"

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"max_overflow must be >= 0, got {self.max_overflow}")
        if self.pool_timeout <= 0:
            raise ValueError(f"pool_timeout must be positive, got {self.pool_timeout}")
        if self.busy_timeout_seconds <= 0:
            raise ValueError(
                f"busy_timeout_seconds must be positive, got {self.busy_timeout_seconds}"
            )
        if self.lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}"
            )
        if self.recent_adjustment_limit < 1:
            raise ValueError(
                f"recent_adjustment_limit must be >= 1, got {self.recent_adjustment_limit}"
            )
        if self.default_page_size < 1:
            raise ValueError(
                f"default_page_size must be >= 1, got {self.default_page_size}"
            )
        if self.max_page_size < self.default_page_size:
            raise ValueError(
                f"max_page_size ({self.max_page_size}) must be >= "
                f"default_page_size ({self.default_page_size})"
            )
        if not self.system_actor_id:
            raise ValueError("system_actor_id must not be empty")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level!r}")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
